# Observability module
from .logging_config import configure_logging, get_logger
from .timing import timed, TimingContext

__all__ = [
    "configure_logging",
    "get_logger",
    "timed",
    "TimingContext",
]
