"""
Purpose: Structured text extraction from photographed medical documents,
plus a best-effort archive of every analysis made during chat.

What is inside:
- DocumentExtractor.extract(attachment, prompt) -> str (raises ProviderError)
- DocumentExtractor.digitize_prescription(attachment) -> DigitizeResult
- DocumentArchive.save(name, content) / records()

Testing: Fake provider records the outgoing ProviderRequest.
"""

from __future__ import annotations
import json
import logging
import time
from dataclasses import dataclass
from typing import Optional

from ..errors import PersistenceError, ProviderError
from ..interfaces import KeyValueStore, ModelProvider, PromptFactory, SecurityGuard
from ..models import Attachment, DocumentRecord, GenerationSettings
from ..persistence.session_store import DOCUMENTS_KEY
from ..prompts import DefaultPromptFactory
from .request_builder import build_request
from .security import DefaultSecurity

logger = logging.getLogger(__name__)

EXTRACTION_FALLBACK = "Sorry, I couldn't analyze the image. Please try again."
NO_FILE_MESSAGE = "Please select an image or PDF file first."

_ARCHIVE_ERRORS = (PersistenceError, OSError, ValueError, TypeError)


@dataclass
class DigitizeResult:
    text: str = ""
    error: str = ""

    @property
    def ok(self) -> bool:
        return not self.error


class DocumentExtractor:
    def __init__(
        self,
        provider: ModelProvider,
        settings: GenerationSettings,
        *,
        prompts: Optional[PromptFactory] = None,
        security: Optional[SecurityGuard] = None,
    ) -> None:
        self.provider = provider
        self.settings = settings
        self.prompts: PromptFactory = prompts or DefaultPromptFactory()
        self.security: SecurityGuard = security or DefaultSecurity()

    def extract(self, attachment: Attachment, prompt: Optional[str] = None) -> str:
        request = build_request(
            prompt or self.prompts.document_prompt(), attachment=attachment
        )
        return self.provider.generate(request, self.settings)

    def digitize_prescription(self, attachment: Optional[Attachment]) -> DigitizeResult:
        if attachment is None:
            return DigitizeResult(error=NO_FILE_MESSAGE)
        try:
            self.security.validate_attachment(attachment)
        except ValueError as e:
            return DigitizeResult(error=str(e))
        try:
            text = self.extract(attachment, self.prompts.prescription_prompt())
        except ProviderError:
            logger.warning(
                "prescription_digitize_failed",
                extra={"file": attachment.name},
                exc_info=True,
            )
            return DigitizeResult(text=EXTRACTION_FALLBACK)
        return DigitizeResult(text=text)


class DocumentArchive:
    def __init__(self, store: KeyValueStore, key: str = DOCUMENTS_KEY) -> None:
        self.store = store
        self.key = key

    def _entries(self) -> list:
        """Raw stored entries; unreadable ones are kept untouched on save."""
        raw = self.store.get(self.key)
        items = json.loads(raw) if raw else []
        if not isinstance(items, list):
            raise ValueError("Stored documents are not a list")
        return items

    def records(self) -> list[DocumentRecord]:
        try:
            items = self._entries()
        except _ARCHIVE_ERRORS:
            logger.warning("document_archive_read_failed", exc_info=True)
            return []
        records = []
        for item in items:
            try:
                records.append(DocumentRecord.from_dict(item))
            except (KeyError, TypeError, ValueError):
                logger.warning(
                    "document_record_skipped", extra={"entry": repr(item)[:80]}
                )
        return records

    def save(self, name: str, content: str) -> Optional[DocumentRecord]:
        try:
            items = self._entries()
        except _ARCHIVE_ERRORS:
            # never overwrite an archive that could not be read
            logger.warning(
                "document_archive_unreadable", extra={"file": name}, exc_info=True
            )
            return None

        now_ms = int(time.time() * 1000)
        taken = {item.get("id") for item in items if isinstance(item, dict)}
        doc_id, n = f"doc-{now_ms}", 1
        while doc_id in taken:
            doc_id, n = f"doc-{now_ms}-{n}", n + 1
        record = DocumentRecord(
            id=doc_id, name=name, content=content, timestamp=now_ms
        )
        items.append(record.to_dict())
        try:
            self.store.set(self.key, json.dumps(items, ensure_ascii=False))
        except _ARCHIVE_ERRORS:
            logger.warning(
                "document_archive_save_failed", extra={"file": name}, exc_info=True
            )
            return None
        return record
