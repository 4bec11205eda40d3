"""
Converters used by the Streamlit client.

Both implementations share one contract, ``submit(upload) -> outcome``:
``RemoteConverter`` posts the file to the conversion proxy, while
``LocalConverter`` extracts text and builds the DOCX in-process, reporting
per-page progress to an optional callback. Each validates the upload
before doing any work.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Protocol

import requests

from pdf_word_service.conversion import local
from pdf_word_service.conversion.errors import PDF_MIME
from pdf_word_service.conversion.local import ProgressCallback

logger = logging.getLogger(__name__)

REMOTE_MAX_MB = 25
LOCAL_MAX_MB = 10


@dataclass(frozen=True)
class UploadedFile:
    name: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class ConversionOutcome:
    success: bool
    error: str | None = None
    # remote converter
    download_url: str | None = None
    filename: str | None = None
    # local converter
    document: bytes | None = None


def validate_upload(upload: UploadedFile | None, max_mb: int) -> str | None:
    """Return a user-facing error message, or None if the upload is acceptable."""
    if upload is None:
        return "Please select a PDF file first"
    if upload.content_type != PDF_MIME:
        return "Please select a PDF file"
    if upload.size > max_mb * 1024 * 1024:
        return f"File size must be less than {max_mb}MB"
    return None


class Converter(Protocol):
    max_mb: int

    def submit(self, upload: UploadedFile, progress: ProgressCallback | None = None) -> ConversionOutcome:
        ...

    def fetch(self, outcome: ConversionOutcome) -> bytes:
        ...


class RemoteConverter:
    max_mb = REMOTE_MAX_MB

    def __init__(self, api_base: str, *, timeout: float = 120.0, session: requests.Session | None = None) -> None:
        self._base = api_base.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()

    def submit(self, upload: UploadedFile, progress: ProgressCallback | None = None) -> ConversionOutcome:
        error = validate_upload(upload, self.max_mb)
        if error:
            return ConversionOutcome(success=False, error=error)
        # The proxy reports no progress; the whole wait is a single request.
        files = {"pdf": (upload.name, upload.data, upload.content_type)}
        try:
            resp = self._session.post(f"{self._base}/convert", files=files, timeout=self._timeout)
        except requests.RequestException as e:
            logger.warning("Convert request failed: %s", e)
            return ConversionOutcome(success=False, error=f"Network error: {e}")
        try:
            body = resp.json()
        except ValueError:
            return ConversionOutcome(success=False, error=f"Server error: {resp.status_code}")
        if resp.ok and body.get("success"):
            return ConversionOutcome(
                success=True,
                download_url=str(body["downloadUrl"]),
                filename=str(body.get("filename") or ""),
            )
        return ConversionOutcome(success=False, error=str(body.get("error") or f"Server error: {resp.status_code}"))

    def fetch(self, outcome: ConversionOutcome) -> bytes:
        if not outcome.download_url:
            raise ValueError("No document to download")
        resp = self._session.get(f"{self._base}{outcome.download_url}", timeout=self._timeout)
        resp.raise_for_status()
        return resp.content


class LocalConverter:
    max_mb = LOCAL_MAX_MB

    def submit(self, upload: UploadedFile, progress: ProgressCallback | None = None) -> ConversionOutcome:
        error = validate_upload(upload, self.max_mb)
        if error:
            return ConversionOutcome(success=False, error=error)
        try:
            document = local.convert_pdf_bytes(upload.data, upload.name, progress=progress)
        except Exception as e:
            logger.exception("Local conversion failed")
            return ConversionOutcome(success=False, error=str(e) or "Conversion failed")
        return ConversionOutcome(success=True, filename=local.docx_name(upload.name), document=document)

    def fetch(self, outcome: ConversionOutcome) -> bytes:
        if outcome.document is None:
            raise ValueError("No document to download")
        return outcome.document


def make_converter(mode: str | None = None) -> Converter:
    """Pick the converter from DOC_SERVICE_UI_MODE (``remote`` or ``local``)."""
    mode = (mode or os.getenv("DOC_SERVICE_UI_MODE", "remote")).strip().lower()
    if mode == "local":
        return LocalConverter()
    if mode == "remote":
        api_base = os.getenv("DOC_SERVICE_API_BASE", os.getenv("API_BASE", "http://localhost:3000"))
        return RemoteConverter(api_base)
    raise ValueError(f"unknown converter mode: {mode}")
