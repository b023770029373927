from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Optional, List, Dict, Any, Mapping

from .errors import MissingColumnsError
from .schema import RawRecord


TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime(TIMESTAMP_FORMAT)


class VerdictStatus(str, Enum):
    VALIDATED = "Receipt Validated"
    MISMATCH = "Mismatch Found"
    NEEDS_REVIEW = "Not Readable – Human Review Required"


class ProofType(str, Enum):
    UPI = "UPI"
    CHEQUE = "Cheque"
    BANK_SLIP = "Bank Slip"
    CAMPUS_RECEIPT = "Campus Receipt"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value: Any) -> "ProofType":
        text = str(value or "").strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        return cls.UNKNOWN


class RunStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass(frozen=True)
class StudentPaymentFacts:
    user_id: str
    name: str
    amount: str
    campus_name: str
    payment_date: str
    utr: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "userId": self.user_id,
            "name": self.name,
            "amount": self.amount,
            "campusName": self.campus_name,
            "paymentDate": self.payment_date,
            "utr": self.utr,
        }


@dataclass(frozen=True)
class PaymentRecord:
    """One sheet row after schema validation. `raw` keeps every source column."""
    name: str
    amount: str
    utr: str
    payment_date: str
    campus_name: str
    screenshot_url: str
    user_id: str = ""
    raw: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_raw(cls, raw: RawRecord) -> "PaymentRecord":
        return cls(
            name=raw.get("name", ""),
            amount=raw.get("amount", ""),
            utr=raw.get("utr", ""),
            payment_date=raw.get("paymentDate", ""),
            campus_name=raw.get("campusName", ""),
            screenshot_url=raw.get("paymentScreenshotUrl", ""),
            user_id=raw.get("userId", ""),
            raw=MappingProxyType(dict(raw)),
        )

    def to_facts(self) -> StudentPaymentFacts:
        return StudentPaymentFacts(
            user_id=self.user_id or "",
            name=self.name or "",
            amount=self.amount or "",
            campus_name=self.campus_name or "",
            payment_date=self.payment_date or "",
            utr=self.utr or "",
        )


@dataclass(frozen=True)
class ExtractedInformation:
    student_name: str = ""
    amount: str = ""
    campus: str = ""
    payment_date: str = ""
    transaction_details: str = ""
    reference_number: str = ""
    proof_type: ProofType = ProofType.UNKNOWN
    logo_present: bool = False
    stamp_present: bool = False


@dataclass(frozen=True)
class ValidationVerdict:
    status: VerdictStatus
    observations: str
    extracted: ExtractedInformation


@dataclass
class RecordOutcome:
    record: PaymentRecord
    timestamp: str
    verdict: Optional[ValidationVerdict] = None
    error: Optional[str] = None

    def __post_init__(self):
        if (self.verdict is None) == (self.error is None):
            raise ValueError("RecordOutcome needs exactly one of verdict or error")

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "originalData": dict(self.record.raw),
            "timestamp": self.timestamp,
        }
        if self.verdict is not None:
            info = self.verdict.extracted
            data["validation"] = {
                "Validation_Status": self.verdict.status.value,
                "Observations": self.verdict.observations,
                "Extracted_Information": {
                    "Student_Name": info.student_name,
                    "Amount": info.amount,
                    "Campus": info.campus,
                    "Payment_Date": info.payment_date,
                    "Transaction_Details": info.transaction_details,
                    "Reference_Number": info.reference_number,
                    "Proof_Type": info.proof_type.value,
                    "Logo_Present": info.logo_present,
                    "Stamp_Present": info.stamp_present,
                },
            }
        else:
            data["error"] = self.error
        return data


@dataclass
class PipelineState:
    """Transient state of a single run. A new instance is created per start."""
    status: RunStatus = RunStatus.IDLE
    current: int = 0
    total: int = 0
    outcomes: List[RecordOutcome] = field(default_factory=list)
    critical_error: Optional[str] = None

    @property
    def progress(self):
        return self.current, self.total


class RecordSchema:
    REQUIRED_COLUMNS = ["name", "amount", "utr", "paymentDate", "campusName", "paymentScreenshotUrl"]
    OPTIONAL_COLUMNS = ["userId"]

    @staticmethod
    def validate(records: List[RawRecord]) -> None:
        """
        Schema-level check against the first record only.
        Presence is key existence; an empty cell still counts.
        """
        first = records[0] if records else {}
        missing = [col for col in RecordSchema.REQUIRED_COLUMNS if col not in first]
        if missing:
            raise MissingColumnsError(missing)
