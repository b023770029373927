"""
Record Processor - Turns one sheet row into one RecordOutcome.

Steps: check screenshot reference → fetch image → project declared facts →
classify. Every failure along the way is captured on the outcome; nothing
raised here reaches the pipeline.
"""
import logging
import mimetypes
from typing import Callable, Tuple

import requests

from .classify import ReceiptClassifier
from .config import Config
from .errors import ImageFetchError, MissingImageReferenceError, RecordError
from .models import PaymentRecord, RecordOutcome, utc_timestamp


DEFAULT_MEDIA_TYPE = "image/jpeg"


class ImageFetcher:
    """Downloads a proof-of-payment image and reports its media type."""

    def __init__(self, timeout: float = Config.IMAGE_TIMEOUT):
        self.timeout = timeout

    def fetch(self, url: str) -> Tuple[bytes, str]:
        try:
            response = requests.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise ImageFetchError(f"Failed to fetch image from URL: {e}") from e

        if not response.ok:
            raise ImageFetchError(
                f"Failed to fetch image from URL: {response.status_code} {response.reason or ''}".rstrip()
            )

        media_type = response.headers.get("Content-Type", "").split(";")[0].strip()
        if not media_type or media_type == "application/octet-stream":
            media_type = mimetypes.guess_type(url)[0] or DEFAULT_MEDIA_TYPE
        return response.content, media_type


class RecordProcessor:
    def __init__(self, image_fetcher: ImageFetcher, classifier: ReceiptClassifier,
                 clock: Callable[[], str] = utc_timestamp):
        self.image_fetcher = image_fetcher
        self.classifier = classifier
        self.clock = clock

    def process(self, record: PaymentRecord) -> RecordOutcome:
        try:
            url = (record.screenshot_url or "").strip()
            if not url:
                raise MissingImageReferenceError()

            image_bytes, media_type = self.image_fetcher.fetch(url)
            facts = record.to_facts()
            verdict = self.classifier.classify(image_bytes, media_type, facts)

        except RecordError as e:
            logging.warning(f"Row failed ({record.name or 'unnamed'}): {e}")
            return RecordOutcome(record=record, error=str(e), timestamp=self.clock())
        except Exception as e:
            logging.exception("RECORD_ERROR")
            return RecordOutcome(record=record, error=str(e) or e.__class__.__name__, timestamp=self.clock())

        logging.info(f"Row validated ({record.name or 'unnamed'}): {verdict.status.value}")
        return RecordOutcome(record=record, verdict=verdict, timestamp=self.clock())
