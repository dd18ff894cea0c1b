"""End-to-end tests for ClaimProcessor and ProcessorRuntime over the JSON stores."""

from __future__ import annotations

import asyncio

import pytest

from app.coder.adapters.llm.stub_reasoner import DeterministicStubReasoner
from app.coder.adapters.persistence.json_claim_stores import open_stores
from app.coder.application.claims_service import ClaimsService
from app.common.exceptions import ErrorKind, ReasoningProviderError, StoreIOError
from app.processor.runtime import ProcessorRuntime
from claim_schemas.records import WorkItem, WorkItemStatus
from config.settings import ProcessorSettings, StoreSettings


class FlakyReasoner(DeterministicStubReasoner):
    """Stub reasoner whose first ``failures`` extractions raise."""

    def __init__(
        self,
        failures: int,
        kind: ErrorKind = ErrorKind.TRANSIENT,
        retry_after_s: float | None = None,
    ):
        super().__init__(reason="tests")
        self.failures = failures
        self.kind = kind
        self.retry_after_s = retry_after_s
        self.calls = 0

    async def extract_entities(self, note_text):
        self.calls += 1
        if self.calls <= self.failures:
            raise ReasoningProviderError(
                "rate limited",
                kind=self.kind,
                status_code=429,
                retry_after_s=self.retry_after_s,
            )
        return await super().extract_entities(note_text)


class SlowReasoner(DeterministicStubReasoner):
    def __init__(self):
        super().__init__(reason="tests")
        self.calls = 0

    async def extract_entities(self, note_text):
        self.calls += 1
        await asyncio.sleep(5)
        return await super().extract_entities(note_text)


class BrokenReasoner(DeterministicStubReasoner):
    async def extract_entities(self, note_text):
        raise RuntimeError("provider exploded")


class SamplingReasoner(DeterministicStubReasoner):
    """Records how many stored work items are ``processing`` during each extraction."""

    def __init__(self):
        super().__init__(reason="tests")
        self.work_items = None
        self.samples: list[int] = []

    async def extract_entities(self, note_text):
        statuses = [item.status for item in self.work_items.list_all()]
        self.samples.append(statuses.count(WorkItemStatus.PROCESSING))
        await asyncio.sleep(0.1)
        return await super().extract_entities(note_text)


def _service(claims_service: ClaimsService, reasoner) -> ClaimsService:
    return ClaimsService(claims_service.registry, claims_service.rules, reasoner, claims_service.citations)


def _runtime(tmp_path, service: ClaimsService, **overrides) -> tuple[ProcessorRuntime, list[float]]:
    options = {
        "max_concurrency": 2,
        "inter_item_delay_ms": 0,
        "retry_base_delay_ms": 1000,
        "max_retries": 3,
        "item_timeout_s": 10,
        **overrides,
    }
    work_items, claim_records, audit_log = open_stores(StoreSettings(data_dir=tmp_path))
    delays: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        delays.append(seconds)

    runtime = ProcessorRuntime(
        service=service,
        work_items=work_items,
        claim_records=claim_records,
        audit_log=audit_log,
        settings=ProcessorSettings(**options),
        sleep=fake_sleep,
    )
    return runtime, delays


async def _process_one(runtime: ProcessorRuntime, note: str) -> WorkItem:
    await runtime.initialize()
    item = await runtime.submit("note.txt", note)
    await runtime.join()
    await runtime.close()
    return runtime.work_items.get(item.id)


# =============================================================================
# Successful processing
# =============================================================================


class TestSuccessfulProcessing:
    def test_sample_note_is_fixed_and_approved(self, tmp_path, claims_service, sample_note):
        runtime, delays = _runtime(tmp_path, claims_service)
        item = asyncio.run(_process_one(runtime, sample_note))

        assert item.status == WorkItemStatus.COMPLETED
        assert item.error is None
        assert item.processing_completed_at is not None

        record = runtime.claim_records.get(item.claim_id)
        assert record is not None
        assert record.decision == "approved"
        assert record.amount_approved == pytest.approx(460.0)
        assert record.patient_name == "Jane Doe"
        assert record.claim.procedures[2].code == "99213"
        assert record.claim.procedures[2].modifiers == ["25"]

        entries = runtime.audit_log.list_all()
        assert [entry.action for entry in entries] == ["claim_processed", "claim_fixed", "note_uploaded"]
        assert [entry.actor for entry in entries] == ["system", "ai", "user"]
        assert entries[1].details["issues_before"] == 1
        assert entries[1].details["issues_after"] == 0
        assert delays == []

    def test_without_auto_fix_claim_is_denied(self, tmp_path, claims_service, sample_note):
        runtime, _ = _runtime(tmp_path, claims_service, auto_fix=False)
        item = asyncio.run(_process_one(runtime, sample_note))

        record = runtime.claim_records.get(item.claim_id)
        assert item.status == WorkItemStatus.COMPLETED
        assert record.decision == "denied"
        assert record.reason_codes == ["MISSING_MODIFIER_25"]
        assert "claim_fixed" not in [entry.action for entry in runtime.audit_log.list_all()]

    def test_progress_events_published_in_step_order(self, tmp_path, claims_service, sample_note):
        async def _run():
            runtime, _ = _runtime(tmp_path, claims_service)
            item = await runtime.submit("note.txt", sample_note)
            subscription = runtime.broadcaster.subscribe(item.id)
            await runtime.initialize()
            await runtime.join()
            events = [event async for event in subscription]
            await runtime.close()
            return events

        events = asyncio.run(_run())

        assert [event.step for event in events] == [1, 2, 3, 4, 5, 5]
        assert events[-1].status == "completed"
        assert events[-1].message.startswith("Claim processing complete! Claim CLM-")
        assert all(event.status == "processing" for event in events[:-1])

    def test_many_items_respect_concurrency(self, tmp_path, claims_service, sample_note):
        reasoner = SamplingReasoner()

        async def _run():
            runtime, _ = _runtime(tmp_path, _service(claims_service, reasoner), max_concurrency=2)
            reasoner.work_items = runtime.work_items
            await runtime.initialize()
            for index in range(5):
                await runtime.submit(f"note-{index}.txt", sample_note)
            await runtime.join()
            await runtime.close()
            return runtime

        runtime = asyncio.run(_run())

        assert runtime.queue.peak_in_flight <= 2
        assert len(reasoner.samples) == 5
        assert min(reasoner.samples) >= 1
        assert max(reasoner.samples) == 2
        assert {item.status for item in runtime.work_items.list_all()} == {WorkItemStatus.COMPLETED}
        assert len(runtime.claim_records.list_all()) == 5


# =============================================================================
# Retries and failures
# =============================================================================


class TestRetries:
    def test_transient_failures_retry_with_backoff(self, tmp_path, claims_service, sample_note):
        reasoner = FlakyReasoner(failures=2)
        runtime, delays = _runtime(tmp_path, _service(claims_service, reasoner))
        item = asyncio.run(_process_one(runtime, sample_note))

        assert item.status == WorkItemStatus.COMPLETED
        assert item.retry_count == 2
        assert reasoner.calls == 3
        assert delays == [1.0, 2.0]

    def test_longer_retry_after_hint_wins(self, tmp_path, claims_service, sample_note):
        reasoner = FlakyReasoner(failures=2, retry_after_s=5.0)
        runtime, delays = _runtime(tmp_path, _service(claims_service, reasoner))
        item = asyncio.run(_process_one(runtime, sample_note))

        assert item.status == WorkItemStatus.COMPLETED
        assert delays == [5.0, 5.0]

    def test_shorter_retry_after_hint_keeps_backoff(self, tmp_path, claims_service, sample_note):
        reasoner = FlakyReasoner(failures=2, retry_after_s=1.5)
        runtime, delays = _runtime(tmp_path, _service(claims_service, reasoner))
        asyncio.run(_process_one(runtime, sample_note))

        assert delays == [1.5, 2.0]

    def test_retries_exhausted_marks_failed(self, tmp_path, claims_service, sample_note):
        reasoner = FlakyReasoner(failures=10)
        runtime, delays = _runtime(tmp_path, _service(claims_service, reasoner))
        item = asyncio.run(_process_one(runtime, sample_note))

        assert item.status == WorkItemStatus.FAILED
        assert item.error == "rate limited"
        assert item.retry_count == 3
        assert reasoner.calls == 4
        assert delays == [1.0, 2.0, 4.0]
        assert runtime.claim_records.list_all() == []
        assert runtime.audit_log.list_all()[0].action == "processing_failed"

    def test_permanent_failure_is_not_retried(self, tmp_path, claims_service, sample_note):
        reasoner = FlakyReasoner(failures=1, kind=ErrorKind.PERMANENT)
        runtime, delays = _runtime(tmp_path, _service(claims_service, reasoner))
        item = asyncio.run(_process_one(runtime, sample_note))

        assert item.status == WorkItemStatus.FAILED
        assert reasoner.calls == 1
        assert delays == []

    def test_timeout_fails_without_retry_by_default(self, tmp_path, claims_service, sample_note):
        reasoner = SlowReasoner()
        runtime, delays = _runtime(tmp_path, _service(claims_service, reasoner), item_timeout_s=0.05)
        item = asyncio.run(_process_one(runtime, sample_note))

        assert item.status == WorkItemStatus.FAILED
        assert item.error.startswith("Processing timeout")
        assert reasoner.calls == 1
        assert delays == []

    def test_timeout_retried_when_enabled(self, tmp_path, claims_service, sample_note):
        reasoner = SlowReasoner()
        runtime, delays = _runtime(
            tmp_path,
            _service(claims_service, reasoner),
            item_timeout_s=0.05,
            retry_on_timeout=True,
            max_retries=1,
        )
        item = asyncio.run(_process_one(runtime, sample_note))

        assert item.status == WorkItemStatus.FAILED
        assert reasoner.calls == 2
        assert delays == [1.0]

    def test_unexpected_error_fails_item(self, tmp_path, claims_service, sample_note):
        runtime, _ = _runtime(tmp_path, _service(claims_service, BrokenReasoner()))
        item = asyncio.run(_process_one(runtime, sample_note))

        assert item.status == WorkItemStatus.FAILED
        assert item.error == "Unexpected error: RuntimeError"

    def test_failure_publishes_error_event(self, tmp_path, claims_service, sample_note):
        async def _run():
            runtime, _ = _runtime(tmp_path, _service(claims_service, BrokenReasoner()))
            item = await runtime.submit("note.txt", sample_note)
            subscription = runtime.broadcaster.subscribe(item.id)
            await runtime.initialize()
            await runtime.join()
            events = [event async for event in subscription]
            await runtime.close()
            return events

        events = asyncio.run(_run())
        assert events[-1].status == "error"
        assert events[-1].message == "Processing failed: Unexpected error: RuntimeError"

    def test_claim_record_write_failure_fails_item(self, tmp_path, claims_service, sample_note):
        async def _failing_add(record):
            raise StoreIOError("disk full", operation="add", record_id=record.id)

        async def _run():
            runtime, _ = _runtime(tmp_path, claims_service)
            runtime.claim_records.add = _failing_add
            item = await runtime.submit("note.txt", sample_note)
            subscription = runtime.broadcaster.subscribe(item.id)
            await runtime.initialize()
            await runtime.join()
            events = [event async for event in subscription]
            await runtime.close()
            return runtime, runtime.work_items.get(item.id), events

        runtime, item, events = asyncio.run(_run())

        assert item.status == WorkItemStatus.FAILED
        assert item.error == "disk full"
        assert item.processing_completed_at is not None
        assert [event.status for event in events][-2:] == ["processing", "error"]
        assert events[-1].message == "Processing failed: disk full"
        assert runtime.claim_records.list_all() == []
        assert [entry.action for entry in runtime.audit_log.list_all()] == ["processing_failed", "note_uploaded"]


# =============================================================================
# Runtime lifecycle
# =============================================================================


class TestRuntime:
    def test_upload_before_initialize_stays_pending(self, tmp_path, claims_service, sample_note):
        async def _run():
            runtime, _ = _runtime(tmp_path, claims_service)
            item = await runtime.submit("note.txt", sample_note)
            status = runtime.status()
            await runtime.close()
            return runtime.work_items.get(item.id), status

        item, status = asyncio.run(_run())

        assert item.status == WorkItemStatus.PENDING
        assert status == {
            "initialized": False,
            "watcher_running": False,
            "queue": {"queued": 0, "processing": 0, "active_ids": []},
        }

    def test_initialize_recovers_interrupted_items(self, tmp_path, claims_service, sample_note):
        async def _run():
            runtime, _ = _runtime(tmp_path, claims_service)
            stale = WorkItem(filename="stale.txt", content=sample_note, status=WorkItemStatus.PROCESSING)
            done = WorkItem(filename="done.txt", content=sample_note, status=WorkItemStatus.FAILED)
            await runtime.work_items.upsert(stale)
            await runtime.work_items.upsert(done)

            queued = await runtime.initialize()
            again = await runtime.initialize()
            await runtime.join()
            await runtime.close()
            return runtime, stale.id, done.id, queued, again

        runtime, stale_id, done_id, queued, again = asyncio.run(_run())

        assert queued == 1
        assert again == 0
        assert runtime.initialized is True
        assert runtime.work_items.get(stale_id).status == WorkItemStatus.COMPLETED
        assert runtime.work_items.get(done_id).status == WorkItemStatus.FAILED

    def test_state_survives_restart(self, tmp_path, claims_service, sample_note):
        runtime, _ = _runtime(tmp_path, claims_service)
        item = asyncio.run(_process_one(runtime, sample_note))

        restarted, _ = _runtime(tmp_path, claims_service)
        assert restarted.work_items.get(item.id).status == WorkItemStatus.COMPLETED
        assert restarted.claim_records.get(item.claim_id) is not None
        assert len(restarted.audit_log.list_all()) == 3
