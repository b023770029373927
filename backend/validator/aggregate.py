"""
Result Aggregator - Verdict tallies and export projections.

Buckets (mutually exclusive):
- Validated: receipt matches the declared payment
- Mismatch: receipt contradicts the declaration
- Needs Review: unreadable or ambiguous proof
- Error: row could not be processed

All projections are pure functions of the outcome list.
"""
from typing import List, Dict, Any, Sequence

from .models import RecordOutcome, VerdictStatus
from .schema import ChartSlice, CompactRow


BUCKETS = ["Validated", "Mismatch", "Needs Review", "Error"]

BUCKET_COLORS = {
    "Validated": "#22c55e",
    "Mismatch": "#ef4444",
    "Needs Review": "#f59e0b",
    "Error": "#6b7280",
}

_STATUS_BUCKETS = {
    VerdictStatus.VALIDATED: "Validated",
    VerdictStatus.MISMATCH: "Mismatch",
    VerdictStatus.NEEDS_REVIEW: "Needs Review",
}

PROCESSING_ERROR = "Processing Error"
CLIPBOARD_HEADERS = ["Validation Status", "Observations", "Last Validated"]

RECORD_COLUMNS = [
    ("User ID", "userId"),
    ("Name", "name"),
    ("Amount", "amount"),
    ("Campus Name", "campusName"),
    ("Payment Date", "paymentDate"),
    ("UTR", "utr"),
    ("Screenshot URL", "paymentScreenshotUrl"),
]

EXTRACTED_COLUMNS = [
    ("Extracted Student Name", "student_name"),
    ("Extracted Amount", "amount"),
    ("Extracted Campus", "campus"),
    ("Extracted Payment Date", "payment_date"),
    ("Extracted Transaction Details", "transaction_details"),
    ("Extracted Reference Number", "reference_number"),
    ("Extracted Proof Type", "proof_type"),
    ("Extracted Logo Present", "logo_present"),
    ("Extracted Stamp Present", "stamp_present"),
]


class ResultAggregator:
    """
    Tallies outcomes by verdict category. Verdict statuses outside the
    closed set are left uncounted.
    """

    def __init__(self):
        self.stats = {bucket: 0 for bucket in BUCKETS}
        self.error_rows: List[Dict[str, Any]] = []
        self.total = 0

    def assess(self, outcomes: Sequence[RecordOutcome]) -> Dict[str, int]:
        self.stats = {bucket: 0 for bucket in BUCKETS}
        self.error_rows = []
        self.total = len(outcomes)

        for idx, outcome in enumerate(outcomes):
            if outcome.is_error:
                self.stats["Error"] += 1
                self.error_rows.append({
                    "row": idx + 1,
                    "name": outcome.record.name,
                    "utr": outcome.record.utr,
                    "reason": outcome.error,
                })
                continue

            bucket = _STATUS_BUCKETS.get(outcome.verdict.status)
            if bucket:
                self.stats[bucket] += 1

        return self.get_stats()

    def get_stats(self) -> Dict[str, int]:
        return self.stats.copy()

    def get_chart_data(self) -> List[ChartSlice]:
        return [
            {"name": bucket, "value": self.stats[bucket], "color": BUCKET_COLORS[bucket]}
            for bucket in BUCKETS
            if self.stats[bucket] > 0
        ]

    def get_full_report(self) -> Dict[str, Any]:
        return {
            "stats": self.get_stats(),
            "chart": self.get_chart_data(),
            "error_rows": list(self.error_rows),
            "summary": {
                "total": self.total,
                "validated_count": self.stats["Validated"],
                "mismatch_count": self.stats["Mismatch"],
                "review_count": self.stats["Needs Review"],
                "error_count": self.stats["Error"],
            },
        }


def tally(outcomes: Sequence[RecordOutcome]) -> Dict[str, int]:
    return ResultAggregator().assess(outcomes)


def chart_data(outcomes: Sequence[RecordOutcome]) -> List[ChartSlice]:
    aggregator = ResultAggregator()
    aggregator.assess(outcomes)
    return aggregator.get_chart_data()


def status_label(outcome: RecordOutcome) -> str:
    if outcome.verdict is not None:
        return outcome.verdict.status.value
    return PROCESSING_ERROR


def observation_text(outcome: RecordOutcome) -> str:
    if outcome.verdict is not None and outcome.verdict.observations:
        return outcome.verdict.observations
    return outcome.error or ""


def compact_rows(outcomes: Sequence[RecordOutcome]) -> List[CompactRow]:
    """Status / observations / timestamp per row, quotes doubled for delimited pasting."""
    return [
        {
            "status": status_label(outcome),
            "observations": observation_text(outcome).replace('"', '""'),
            "timestamp": outcome.timestamp,
        }
        for outcome in outcomes
    ]


def clipboard_text(outcomes: Sequence[RecordOutcome]) -> str:
    """Tab-separated block ready to paste next to the source sheet."""
    lines = ["\t".join(CLIPBOARD_HEADERS)]
    for row in compact_rows(outcomes):
        lines.append("\t".join([row["status"], f'"{row["observations"]}"', row["timestamp"]]))
    return "\n".join(lines)


def full_rows(outcomes: Sequence[RecordOutcome]) -> List[Dict[str, Any]]:
    """Detailed report rows: source columns, extracted fields, verdict."""
    known_keys = {key for _, key in RECORD_COLUMNS}
    rows = []

    for outcome in outcomes:
        raw = outcome.record.raw
        row: Dict[str, Any] = {label: raw.get(key, "") for label, key in RECORD_COLUMNS}

        # Unrecognized source columns ride along under their normalized key
        for key, value in raw.items():
            if key not in known_keys and key:
                row[key] = value

        extracted = outcome.verdict.extracted if outcome.verdict is not None else None
        for label, attr in EXTRACTED_COLUMNS:
            if extracted is None:
                row[label] = ""
                continue
            value = getattr(extracted, attr)
            row[label] = value.value if hasattr(value, "value") else value

        row["Validation Status"] = status_label(outcome)
        row["Observations"] = observation_text(outcome)
        row["Last Validated"] = outcome.timestamp
        rows.append(row)

    return rows
