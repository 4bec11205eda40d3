import time
from dataclasses import dataclass
from typing import Callable

from pdf_word_service.conversion.local import ProgressCallback

from .converters import ConversionOutcome, Converter, UploadedFile, validate_upload

NOTICE_TTL_SEC = 5.0

QUOTA_NOTICE = "Daily conversion limit reached. Please try again tomorrow."
NETWORK_NOTICE = "Could not reach the conversion server. Please check your connection and try again."


class SessionState:
    IDLE = "idle"
    FILE_SELECTED = "file_selected"
    CONVERTING = "converting"
    READY = "ready"


class NoticeKind:
    SUCCESS = "success"
    QUOTA = "quota"
    NETWORK = "network"
    ERROR = "error"


@dataclass(frozen=True)
class Notice:
    message: str
    kind: str
    created_at: float

    @property
    def persistent(self) -> bool:
        return self.kind != NoticeKind.SUCCESS

    def visible(self, now: float) -> bool:
        return self.persistent or now - self.created_at < NOTICE_TTL_SEC


def classify_error(message: str) -> str:
    lower = message.lower()
    if "limit" in lower or "quota" in lower:
        return NoticeKind.QUOTA
    if any(k in lower for k in ("network", "connect", "timed out", "fetch")):
        return NoticeKind.NETWORK
    return NoticeKind.ERROR


def error_notice_text(kind: str, message: str) -> str:
    if kind == NoticeKind.QUOTA:
        return QUOTA_NOTICE
    if kind == NoticeKind.NETWORK:
        return NETWORK_NOTICE
    return f"Conversion failed: {message}"


class ConversionSession:
    """UI state for one converter: idle -> file_selected -> converting -> ready.

    A failed conversion returns to file_selected so the same file can be
    resubmitted; downloading (or clearing) resets everything to idle.
    """

    def __init__(self, converter: Converter, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.converter = converter
        self._clock = clock
        self.state = SessionState.IDLE
        self.upload: UploadedFile | None = None
        self.outcome: ConversionOutcome | None = None
        self._notice: Notice | None = None

    def _notify(self, message: str, kind: str) -> None:
        self._notice = Notice(message, kind, self._clock())

    @property
    def notice(self) -> Notice | None:
        if self._notice is not None and not self._notice.visible(self._clock()):
            self._notice = None
        return self._notice

    def select(self, upload: UploadedFile | None) -> bool:
        error = validate_upload(upload, self.converter.max_mb)
        if error:
            self.state = SessionState.IDLE
            self.upload = None
            self.outcome = None
            self._notify(error, NoticeKind.ERROR)
            return False
        self.upload = upload
        self.outcome = None
        self.state = SessionState.FILE_SELECTED
        self._notify('File selected. Click "Convert to Word" to proceed.', NoticeKind.SUCCESS)
        return True

    def sync_selection(self, upload: UploadedFile | None) -> None:
        """Follow the file currently held by the uploader widget.

        A removed file clears the session; a different file replaces the
        current one. The same file again is a no-op, so a finished
        conversion survives reruns.
        """
        if upload is None:
            if self.state != SessionState.IDLE:
                self.clear()
            return
        current = self.upload
        if current is not None and current.name == upload.name and current.data == upload.data:
            return
        if self.state == SessionState.CONVERTING:
            return
        self.select(upload)

    def convert(self, progress: ProgressCallback | None = None) -> ConversionOutcome:
        if self.state != SessionState.FILE_SELECTED or self.upload is None:
            self._notify("Please select a PDF file first", NoticeKind.ERROR)
            return ConversionOutcome(success=False, error="Please select a PDF file first")
        self.state = SessionState.CONVERTING
        outcome = self.converter.submit(self.upload, progress)
        if outcome.success:
            self.outcome = outcome
            self.state = SessionState.READY
            self._notify("PDF successfully converted to Word! Click \"Download Word File\" to save.", NoticeKind.SUCCESS)
        else:
            self.state = SessionState.FILE_SELECTED
            message = outcome.error or "Unknown error"
            kind = classify_error(message)
            self._notify(error_notice_text(kind, message), kind)
        return outcome

    def fetch_document(self) -> tuple[bytes, str]:
        """Return the converted bytes and a file name.

        If fetching fails the result is dropped and the session returns to
        file_selected, so the same file can be converted again.
        """
        if self.state != SessionState.READY or self.outcome is None:
            raise RuntimeError("No document to download")
        try:
            data = self.converter.fetch(self.outcome)
        except Exception as e:
            self.outcome = None
            self.state = SessionState.FILE_SELECTED
            kind = classify_error(str(e))
            self._notify(NETWORK_NOTICE if kind == NoticeKind.NETWORK else f"Download failed: {e}", kind)
            raise
        return data, self.outcome.filename or "converted-document.docx"

    def download(self) -> tuple[bytes, str]:
        """Fetch the converted document and reset for the next conversion."""
        result = self.fetch_document()
        self.reset()
        return result

    def reset(self) -> None:
        self.state = SessionState.IDLE
        self.upload = None
        self.outcome = None
        self._notice = None

    clear = reset
