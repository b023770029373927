"""
Validation Pipeline Orchestrator - Drives the RecordProcessor over a sheet.

Flow: start → (progress → process → outcome) per row → completed | aborted

Rows are processed strictly one at a time and in input order. The caller
consumes the event generator; every "outcome" event carries the full outcome
list so far, so a live view can simply re-render it.

A credential failure on the very first row stops the run: every later row
would fail the same way. Only row 0 is checked, so a transient failure on a
later row is never mistaken for a configuration problem.
"""
import logging
from dataclasses import dataclass, field
from typing import Iterator, List, Sequence, Tuple

from .classify import CREDENTIAL_ERROR_MARKER, GeminiReceiptClassifier
from .errors import PipelineBusyError
from .models import PaymentRecord, PipelineState, RecordOutcome, RunStatus
from .processor import ImageFetcher, RecordProcessor


@dataclass(frozen=True)
class RunEvent:
    kind: str                     # 'progress' | 'outcome' | 'completed' | 'aborted'
    current: int
    total: int
    message: str
    outcomes: Tuple[RecordOutcome, ...] = field(default_factory=tuple)

    @property
    def percentage(self) -> int:
        if not self.total:
            return 100
        return int(self.current * 100 / self.total)


class ValidationPipeline:
    """
    Sequential receipt validation with isolated per-row failures.

    States: idle → running → completed | aborted; a new start() from either
    terminal state begins a fresh run with no carried-over results.
    """

    def __init__(self, processor: RecordProcessor):
        self.processor = processor
        self.state = PipelineState()

    @classmethod
    def from_config(cls) -> "ValidationPipeline":
        return cls(RecordProcessor(ImageFetcher(), GeminiReceiptClassifier()))

    def start(self, records: Sequence[PaymentRecord]) -> Iterator[RunEvent]:
        self._ensure_idle()
        return self._drive(list(records))

    def run(self, records: Sequence[PaymentRecord]) -> PipelineState:
        for _ in self.start(records):
            pass
        return self.state

    def _ensure_idle(self) -> None:
        if self.state.status is RunStatus.RUNNING:
            raise PipelineBusyError("A validation run is already in progress.")

    def _drive(self, records: List[PaymentRecord]) -> Iterator[RunEvent]:
        # Run state is claimed on first next(); an unconsumed generator holds nothing.
        self._ensure_idle()
        total = len(records)
        state = self.state = PipelineState(status=RunStatus.RUNNING, total=total)
        logging.info(f"Validation run started: {total} rows")
        try:
            for index, record in enumerate(records):
                state.current = index + 1
                yield RunEvent("progress", state.current, total, f"Processing row {state.current} of {total}...")

                outcome = self.processor.process(record)

                if index == 0 and _is_critical(outcome):
                    self._abort(state, record, outcome)
                    yield RunEvent("aborted", state.current, total, state.critical_error, tuple(state.outcomes))
                    return

                state.outcomes.append(outcome)
                yield RunEvent("outcome", state.current, total, f"Row {state.current} done.", tuple(state.outcomes))

            state.status = RunStatus.COMPLETED
            logging.info(f"Validation run completed: {len(state.outcomes)} rows processed")
            yield RunEvent("completed", state.current, total,
                           f"Processing complete! {len(state.outcomes)} records validated.", tuple(state.outcomes))
        finally:
            if state.status is RunStatus.RUNNING:
                state.status = RunStatus.IDLE
                logging.warning(f"Validation run abandoned at row {state.current} of {total}")

    def _abort(self, state: PipelineState, record: PaymentRecord, outcome: RecordOutcome) -> None:
        message = outcome.error
        state.critical_error = (
            f"Critical Error: {message} Processing has been stopped. "
            "Please check your application configuration."
        )
        state.outcomes = [RecordOutcome(
            record=record,
            error=f"Processing stopped due to critical error: {message}",
            timestamp=outcome.timestamp,
        )]
        state.status = RunStatus.ABORTED
        logging.error(f"Validation run aborted on first row: {message}")


def _is_critical(outcome: RecordOutcome) -> bool:
    return outcome.is_error and CREDENTIAL_ERROR_MARKER in (outcome.error or "")
