"""
Classify Layer - Proof-of-payment verification through Gemini.

The classifier receives the screenshot bytes together with what the student
declared in the sheet, and asks the model for a structured JSON verdict.
Responses are mapped onto ValidationVerdict; anything outside the closed
status set is treated as needing human review.
"""
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import asdict
from typing import Any, Dict, Optional

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from .config import Config
from .errors import ClassificationError, InvalidCredentialsError
from .models import (
    ExtractedInformation,
    ProofType,
    StudentPaymentFacts,
    ValidationVerdict,
    VerdictStatus,
)
from .schema import ValidationResponsePayload


# Substring the pipeline looks for when deciding to stop a run
CREDENTIAL_ERROR_MARKER = "Invalid API Key"


VALIDATION_PROMPT = """You are a finance office assistant verifying student fee payments.

DECLARED BY THE STUDENT:
- User ID: {user_id}
- Student Name: {name}
- Amount: {amount}
- Campus: {campus_name}
- Payment Date: {payment_date}
- UTR / Reference Number: {utr}

TASK: Read the attached proof of payment (UPI screenshot, cheque, bank slip or
campus receipt) and extract what it shows. Then compare it with the declared details.

- "Receipt Validated": amount and reference number match, and name, campus and
  date are consistent with the declaration.
- "Mismatch Found": any of the declared details clearly contradict the proof.
- "Not Readable – Human Review Required": the image is blurry, cropped, not a
  payment proof, or too ambiguous to decide.

Use "Unknown" for Proof_Type when the document type cannot be told.
In Observations, state briefly which fields matched and which did not.
"""

_STRING = {"type": "STRING"}
_BOOLEAN = {"type": "BOOLEAN"}

RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "Extracted_Information": {
            "type": "OBJECT",
            "properties": {
                "Student_Name": _STRING,
                "Amount": _STRING,
                "Campus": _STRING,
                "Payment_Date": _STRING,
                "Transaction_Details": _STRING,
                "Reference_Number": _STRING,
                "Proof_Type": {"type": "STRING", "enum": [p.value for p in ProofType]},
                "Logo_Present": _BOOLEAN,
                "Stamp_Present": _BOOLEAN,
            },
            "required": [
                "Student_Name", "Amount", "Campus", "Payment_Date", "Transaction_Details",
                "Reference_Number", "Proof_Type", "Logo_Present", "Stamp_Present",
            ],
        },
        "Validation_Status": {"type": "STRING", "enum": [s.value for s in VerdictStatus]},
        "Observations": _STRING,
    },
    "required": ["Extracted_Information", "Validation_Status", "Observations"],
}


class ReceiptClassifier(ABC):
    @abstractmethod
    def classify(self, image_bytes: bytes, media_type: str, facts: StudentPaymentFacts) -> ValidationVerdict:
        pass


class GeminiReceiptClassifier(ReceiptClassifier):
    """
    Gemini-backed classifier. The client is created on first use so that a
    missing key surfaces as a credential error on the first record.
    """

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None,
                 client: Optional[genai.Client] = None, timeout: Optional[float] = None):
        self.api_key = api_key if api_key is not None else Config.GEMINI_API_KEY
        self.model = model or Config.GEMINI_MODEL
        self.timeout = timeout if timeout is not None else Config.GEMINI_TIMEOUT
        self._client = client

    def _get_client(self) -> genai.Client:
        if self._client is None:
            if not self.api_key:
                raise InvalidCredentialsError(f"{CREDENTIAL_ERROR_MARKER}: GEMINI_API_KEY is not configured.")
            # HttpOptions.timeout is in milliseconds
            self._client = genai.Client(
                api_key=self.api_key,
                http_options=types.HttpOptions(timeout=int(self.timeout * 1000)),
            )
        return self._client

    def classify(self, image_bytes: bytes, media_type: str, facts: StudentPaymentFacts) -> ValidationVerdict:
        client = self._get_client()
        contents = [
            types.Part.from_bytes(data=image_bytes, mime_type=media_type),
            VALIDATION_PROMPT.format(**asdict(facts)),
        ]
        config = types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=RESPONSE_SCHEMA,
            temperature=0,
        )

        try:
            response = client.models.generate_content(model=self.model, contents=contents, config=config)
        except genai_errors.APIError as e:
            if is_credential_error(e):
                raise InvalidCredentialsError(f"{CREDENTIAL_ERROR_MARKER}. {e.message or e}") from e
            raise ClassificationError(f"Validation request failed: {e}") from e

        text = response.text or ""
        if not text.strip():
            raise ClassificationError("Validation service returned an empty response.")

        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            logging.error(f"Unparsable classifier response: {text[:120]}")
            raise ClassificationError(f"Could not parse validation response: {e}") from e

        return parse_verdict(payload)


def is_credential_error(error: genai_errors.APIError) -> bool:
    message = str(error.message or error).lower()
    if error.code in (401, 403):
        return True
    return error.code == 400 and "api key" in message


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "yes", "1")


def _status_key(value: str) -> str:
    return " ".join(value.replace("–", "-").replace("—", "-").lower().split())


_STATUS_LOOKUP = {_status_key(s.value): s for s in VerdictStatus}


def parse_status(value: Any) -> VerdictStatus:
    status = _STATUS_LOOKUP.get(_status_key(str(value or "")))
    if status is None:
        logging.warning(f"Unknown validation status '{value}', routing to human review")
        return VerdictStatus.NEEDS_REVIEW
    return status


def parse_verdict(payload: ValidationResponsePayload) -> ValidationVerdict:
    if not isinstance(payload, dict):
        raise ClassificationError("Validation response is not a JSON object.")

    info: Dict[str, Any] = payload.get("Extracted_Information") or {}
    extracted = ExtractedInformation(
        student_name=str(info.get("Student_Name") or ""),
        amount=str(info.get("Amount") or ""),
        campus=str(info.get("Campus") or ""),
        payment_date=str(info.get("Payment_Date") or ""),
        transaction_details=str(info.get("Transaction_Details") or ""),
        reference_number=str(info.get("Reference_Number") or ""),
        proof_type=ProofType.parse(info.get("Proof_Type")),
        logo_present=_as_bool(info.get("Logo_Present", False)),
        stamp_present=_as_bool(info.get("Stamp_Present", False)),
    )
    return ValidationVerdict(
        status=parse_status(payload.get("Validation_Status")),
        observations=str(payload.get("Observations") or ""),
        extracted=extracted,
    )
