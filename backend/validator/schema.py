"""
Receipt Schema - TypedDict definitions for the data crossing module boundaries.

RawRecord is what the CSV parser emits; the *Payload types mirror the JSON
document the classification model is asked to return.
"""
from typing import TypedDict, Dict

# Normalized header key -> cell value
RawRecord = Dict[str, str]


class ExtractedInformationPayload(TypedDict):
    """What the model read off the proof image"""
    Student_Name: str
    Amount: str
    Campus: str
    Payment_Date: str
    Transaction_Details: str
    Reference_Number: str
    Proof_Type: str               # 'UPI' | 'Cheque' | 'Bank Slip' | 'Campus Receipt' | 'Unknown'
    Logo_Present: bool
    Stamp_Present: bool


class ValidationResponsePayload(TypedDict):
    """Top-level classifier response"""
    Extracted_Information: ExtractedInformationPayload
    Validation_Status: str
    Observations: str


class ChartSlice(TypedDict):
    name: str
    value: int
    color: str


class CompactRow(TypedDict):
    status: str
    observations: str
    timestamp: str
