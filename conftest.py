import os
import tempfile

# Keep app logs and reports out of the working tree during tests
os.environ.setdefault("LOG_FILE", os.path.join(tempfile.mkdtemp(), "server.log"))
os.environ.setdefault("OUTPUT_FOLDER", tempfile.mkdtemp())

import pytest

from backend.validator.errors import ImageFetchError, InvalidCredentialsError
from backend.validator.models import (
    ExtractedInformation,
    PaymentRecord,
    ProofType,
    RecordOutcome,
    ValidationVerdict,
    VerdictStatus,
)
from backend.validator.processor import RecordProcessor


SHEET_CSV = """User ID,Name,Amount,UTR,Payment Date,Campus Name,Payment Screenshot URL
U1,Asha Rao,5000,UTR001,2024-06-01,North Campus,https://img.example/1.png
U2,"Doe, Jane",7500,UTR002,2024-06-02,South Campus,https://img.example/2.png
U3,Ravi Kumar,5000,UTR003,2024-06-03,North Campus,https://img.example/3.png"""


def make_record(name="Asha Rao", utr="UTR001", url="https://img.example/1.png", **extra):
    raw = {
        "userId": extra.pop("user_id", "U1"),
        "name": name,
        "amount": extra.pop("amount", "5000"),
        "utr": utr,
        "paymentDate": extra.pop("payment_date", "2024-06-01"),
        "campusName": extra.pop("campus_name", "North Campus"),
        "paymentScreenshotUrl": url,
    }
    raw.update(extra)
    return PaymentRecord.from_raw(raw)


def make_verdict(status=VerdictStatus.VALIDATED, observations="All details match."):
    return ValidationVerdict(
        status=status,
        observations=observations,
        extracted=ExtractedInformation(
            student_name="Asha Rao",
            amount="5000",
            campus="North Campus",
            payment_date="2024-06-01",
            transaction_details="UPI transfer to college account",
            reference_number="UTR001",
            proof_type=ProofType.UPI,
            logo_present=True,
            stamp_present=False,
        ),
    )


def make_outcome(status=None, error=None, observations="All details match.", record=None):
    record = record or make_record()
    if error is not None:
        return RecordOutcome(record=record, error=error, timestamp="2024-06-10 10:00:00")
    return RecordOutcome(
        record=record,
        verdict=make_verdict(status or VerdictStatus.VALIDATED, observations),
        timestamp="2024-06-10 10:00:00",
    )


class FakeFetcher:
    """Returns canned bytes; URLs listed in `failing` raise ImageFetchError."""

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.calls = []

    def fetch(self, url):
        self.calls.append(url)
        if url in self.failing:
            raise ImageFetchError("Failed to fetch image from URL: 404 Not Found")
        return b"\x89PNG fake", "image/png"


class FakeClassifier:
    """Looks up the verdict (or exception) to produce by declared UTR."""

    def __init__(self, script=None):
        self.script = script or {}
        self.calls = []

    def classify(self, image_bytes, media_type, facts):
        self.calls.append((image_bytes, media_type, facts))
        result = self.script.get(facts.utr, make_verdict())
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def classifier():
    return FakeClassifier()


@pytest.fixture
def processor(fetcher, classifier):
    return RecordProcessor(fetcher, classifier, clock=lambda: "2024-06-10 10:00:00")


@pytest.fixture
def credential_error():
    return InvalidCredentialsError("Invalid API Key. API key not valid. Please pass a valid API key.")
