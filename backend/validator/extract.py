"""
Extract Layer - Sheet retrieval, header normalization and quote-aware CSV parsing.

The parser is deliberately tolerant: short rows are padded with empty strings,
surplus cells are dropped, and quoted cells may contain the delimiter.
"""
import re
import hashlib
import logging
from abc import ABC, abstractmethod
from typing import List

import requests

from .config import Config
from .errors import EmptyInputError, EmptyResultError, SheetFetchError
from .models import PaymentRecord, RecordSchema
from .schema import RawRecord


# Delimiter is a separator only when an even number of quotes follows it on the line
_FIELD_SPLIT = re.compile(r',(?=(?:(?:[^"]*"){2})*[^"]*$)')
_WORD_SPLIT = re.compile(r'[^A-Za-z0-9]+')


def normalize_header(header: str) -> str:
    """
    Map a raw column header onto a lowerCamelCase field key.

    "Payment Date" -> "paymentDate", "payment_screenshot_url" -> "paymentScreenshotUrl",
    "UTR" -> "utr". Keys that are already normalized come back unchanged.
    """
    words = [w for w in _WORD_SPLIT.split(header.strip().replace('"', '')) if w]
    if not words:
        return ""

    # Mixed-case first word is already camel-cased; keep its humps
    first = words[0]
    if first.lower() == first or first.upper() == first:
        first = first.lower()
    else:
        first = first[0].lower() + first[1:]

    return first + "".join(w.capitalize() for w in words[1:])


def split_line(line: str) -> List[str]:
    return [_clean_cell(cell) for cell in _FIELD_SPLIT.split(line)]


def _clean_cell(cell: str) -> str:
    value = cell.strip()
    if len(value) >= 2 and value[0] == '"' and value[-1] == '"':
        value = value[1:-1]
    return value.replace('""', '"').strip()


def get_text_hash(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class BaseParser(ABC):
    @abstractmethod
    def parse(self, text: str) -> List[RawRecord]:
        pass


class CSVTextParser(BaseParser):
    def parse(self, text: str) -> List[RawRecord]:
        """
        Parse raw CSV text into header-keyed records.

        Raises:
            EmptyInputError: fewer than two lines (no header or no data rows)
            EmptyResultError: no data records after line splitting
        """
        lines = [line for line in (text or "").strip().splitlines() if line.strip()]
        if len(lines) < 2:
            raise EmptyInputError()

        headers = [normalize_header(h) for h in split_line(lines[0])]
        records: List[RawRecord] = []

        for line in lines[1:]:
            values = split_line(line)
            record = {}
            for idx, header in enumerate(headers):
                record[header] = values[idx] if idx < len(values) else ""
            records.append(record)

        if not records:
            raise EmptyResultError()

        logging.info(f"Parsed {len(records)} rows with columns: {headers}")
        return records


class ParserFactory:
    @staticmethod
    def get_parser(file_type: str) -> BaseParser:
        ft = file_type.lower()
        if ft == 'csv':
            return CSVTextParser()
        else:
            raise ValueError(f"Unsupported file type: {file_type}")


class SheetFetcher:
    """Fetches a Google Sheet that was published to the web as CSV."""

    def __init__(self, timeout: float = Config.SHEET_TIMEOUT):
        self.timeout = timeout

    def fetch(self, sheet_url: str) -> str:
        if not isinstance(sheet_url, str) or not sheet_url.strip():
            raise SheetFetchError("Please enter a Google Sheet URL.")

        logging.info(f"Fetching sheet: {sheet_url}")
        try:
            response = requests.get(sheet_url.strip(), timeout=self.timeout)
        except requests.RequestException as e:
            raise SheetFetchError(f"Failed to fetch from URL. {e}") from e

        if not response.ok:
            raise SheetFetchError(
                f"Failed to fetch from URL. Failed to fetch data (Status: {response.status_code}). "
                "Ensure the URL is correct and the sheet is published to the web."
            )
        return response.content.decode("utf-8-sig", errors="replace")


def load_records(text: str, file_type: str = "csv") -> List[PaymentRecord]:
    """Parse, schema-check and type the rows of a sheet export."""
    raw_records = ParserFactory.get_parser(file_type).parse(text)
    RecordSchema.validate(raw_records)
    return [PaymentRecord.from_raw(raw) for raw in raw_records]
