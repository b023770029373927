"""
Validator Errors - Exception taxonomy for the receipt validation pipeline.

Input errors are fatal to a run and raised before any record is processed.
Record errors are caught by the RecordProcessor and stored on the outcome.
"""
from typing import List


class ValidatorError(Exception):
    """Base class for all validator errors."""


# ─────────────────────────────────────────────────────────────
# Input Errors (fatal, raised before processing starts)
# ─────────────────────────────────────────────────────────────

class InputError(ValidatorError):
    pass


class EmptyInputError(InputError):
    def __init__(self, message: str = "The fetched data is empty or invalid. Please check the Google Sheet."):
        super().__init__(message)


class EmptyResultError(InputError):
    def __init__(self, message: str = "The file is empty or could not be parsed correctly."):
        super().__init__(message)


class MissingColumnsError(InputError):
    def __init__(self, missing: List[str]):
        self.missing = list(missing)
        super().__init__(
            f"The sheet is missing required columns: {', '.join(self.missing)}. "
            "Please correct the sheet and re-fetch."
        )


class SheetFetchError(InputError):
    pass


class InvalidRequestError(InputError):
    """Request body is not a JSON object, or a field has the wrong type."""


# ─────────────────────────────────────────────────────────────
# Record Errors (isolated to one row)
# ─────────────────────────────────────────────────────────────

class RecordError(ValidatorError):
    pass


class MissingImageReferenceError(RecordError):
    def __init__(self, message: str = '"paymentScreenshotUrl" is missing or empty for this row.'):
        super().__init__(message)


class ImageFetchError(RecordError):
    pass


class ClassificationError(RecordError):
    pass


class InvalidCredentialsError(ClassificationError):
    """Raised when the classification service rejects the configured API key."""


class PipelineBusyError(ValidatorError):
    pass
