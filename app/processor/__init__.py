# Background note → claim processing
from .claim_processor import ClaimOutcome, ClaimProcessor
from .progress import ProgressBroadcaster, ProgressSubscription
from .queue import ProcessingQueue
from .runtime import ProcessorRuntime

__all__ = [
    "ClaimOutcome",
    "ClaimProcessor",
    "ProcessingQueue",
    "ProcessorRuntime",
    "ProgressBroadcaster",
    "ProgressSubscription",
]
