"""Tests for the sequential orchestrator and its first-row short-circuit"""
import pytest

from backend.validator.errors import ClassificationError, PipelineBusyError
from backend.validator.extract import load_records
from backend.validator.models import RunStatus, VerdictStatus
from backend.validator.pipeline import ValidationPipeline
from backend.validator.processor import RecordProcessor
from conftest import SHEET_CSV, FakeClassifier, FakeFetcher, make_verdict


def _pipeline(script=None, failing=()):
    fetcher = FakeFetcher(failing)
    classifier = FakeClassifier(script)
    return ValidationPipeline(RecordProcessor(fetcher, classifier)), fetcher, classifier


@pytest.fixture
def records():
    return load_records(SHEET_CSV)


def test_all_rows_processed_in_order(records):
    pipeline, fetcher, _ = _pipeline({"UTR002": make_verdict(VerdictStatus.MISMATCH)})

    state = pipeline.run(records)

    assert state.status is RunStatus.COMPLETED
    assert state.progress == (3, 3)
    assert [o.record.utr for o in state.outcomes] == ["UTR001", "UTR002", "UTR003"]
    assert state.outcomes[1].verdict.status is VerdictStatus.MISMATCH
    assert fetcher.calls == [r.screenshot_url for r in records]


def test_row_failures_are_isolated(records):
    pipeline, _, _ = _pipeline(failing={"https://img.example/2.png"})

    state = pipeline.run(records)

    assert state.status is RunStatus.COMPLETED
    assert len(state.outcomes) == 3
    assert state.outcomes[1].is_error
    assert not state.outcomes[2].is_error


def test_credential_failure_on_first_row_aborts(records, credential_error):
    pipeline, fetcher, classifier = _pipeline({"UTR001": credential_error})

    state = pipeline.run(records)

    assert state.status is RunStatus.ABORTED
    assert len(state.outcomes) == 1
    assert state.outcomes[0].record.utr == "UTR001"
    assert state.outcomes[0].error.startswith("Processing stopped due to critical error: Invalid API Key")
    assert state.critical_error.startswith("Critical Error: Invalid API Key")
    assert "Please check your application configuration." in state.critical_error
    assert len(classifier.calls) == 1
    assert fetcher.calls == ["https://img.example/1.png"]


def test_credential_failure_on_later_row_does_not_abort(records, credential_error):
    pipeline, _, classifier = _pipeline({"UTR002": credential_error})

    state = pipeline.run(records)

    assert state.status is RunStatus.COMPLETED
    assert len(state.outcomes) == 3
    assert len(classifier.calls) == 3
    assert "Invalid API Key" in state.outcomes[1].error
    assert state.critical_error is None


def test_other_first_row_failure_continues(records):
    pipeline, _, _ = _pipeline({"UTR001": ClassificationError("Validation request failed: 503 UNAVAILABLE")})

    state = pipeline.run(records)

    assert state.status is RunStatus.COMPLETED
    assert len(state.outcomes) == 3


def test_events_publish_progress_then_outcomes(records):
    pipeline, _, _ = _pipeline()

    events = list(pipeline.start(records))

    assert [e.kind for e in events] == ["progress", "outcome"] * 3 + ["completed"]
    progress = [(e.current, e.total) for e in events if e.kind == "progress"]
    assert progress == [(1, 3), (2, 3), (3, 3)]
    snapshots = [len(e.outcomes) for e in events if e.kind == "outcome"]
    assert snapshots == [1, 2, 3]
    assert events[0].message == "Processing row 1 of 3..."
    assert events[-1].percentage == 100


def test_progress_is_set_before_row_is_attempted(records):
    pipeline, _, _ = _pipeline()
    seen = []

    class Spy:
        def process(self, record):
            seen.append(pipeline.state.progress)
            return RecordProcessor(FakeFetcher(), FakeClassifier()).process(record)

    pipeline.processor = Spy()
    pipeline.run(records)

    assert seen == [(1, 3), (2, 3), (3, 3)]


def test_aborted_event_is_last(records, credential_error):
    pipeline, _, _ = _pipeline({"UTR001": credential_error})

    events = list(pipeline.start(records))

    assert [e.kind for e in events] == ["progress", "aborted"]
    assert len(events[-1].outcomes) == 1


def test_new_run_starts_clean(records, credential_error):
    pipeline, _, _ = _pipeline({"UTR001": credential_error})
    pipeline.run(records)
    assert pipeline.state.status is RunStatus.ABORTED

    pipeline.processor = RecordProcessor(FakeFetcher(), FakeClassifier())
    state = pipeline.run(records[1:])

    assert state.status is RunStatus.COMPLETED
    assert [o.record.utr for o in state.outcomes] == ["UTR002", "UTR003"]
    assert state.critical_error is None


def test_start_while_running_is_rejected(records):
    pipeline, _, _ = _pipeline()
    events = pipeline.start(records)
    next(events)

    with pytest.raises(PipelineBusyError):
        pipeline.start(records)

    events.close()
    assert pipeline.state.status is RunStatus.IDLE


def test_empty_run_completes():
    pipeline, _, _ = _pipeline()
    state = pipeline.run([])
    assert state.status is RunStatus.COMPLETED
    assert state.outcomes == []


def test_unconsumed_run_does_not_hold_pipeline(records):
    pipeline, _, _ = _pipeline()
    pipeline.start(records).close()

    assert pipeline.state.status is RunStatus.IDLE
    state = pipeline.run(records)

    assert state.status is RunStatus.COMPLETED
    assert len(state.outcomes) == 3
