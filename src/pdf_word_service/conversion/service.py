import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

from .errors import (
    PDF_MIME,
    ConversionError,
    ConversionFailedError,
    ConversionTimeoutError,
    FileTooLargeError,
    InvalidFileTypeError,
    ServerConfigurationError,
    UpstreamError,
    map_upstream_error,
)
from .interfaces import ArtifactStore, ConversionGateway, StoredArtifact

logger = logging.getLogger(__name__)

IMPORT_TASK = "import-upload"
CONVERT_TASK = "convert-task"
EXPORT_TASK = "export-task"


class JobStatus:
    PENDING = "pending"
    UPLOADING = "uploading"
    CONVERTING = "converting"
    FINISHED = "finished"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass
class ConversionJob:
    tag: str
    status: str = JobStatus.PENDING
    external_id: str | None = None
    result_url: str | None = None
    error: str | None = None


def job_tasks() -> dict[str, dict[str, object]]:
    """Task graph for one PDF to DOCX job: import, convert, export."""
    return {
        IMPORT_TASK: {"operation": "import/upload"},
        CONVERT_TASK: {
            "operation": "convert",
            "input": [IMPORT_TASK],
            "output_format": "docx",
            "engine": "libreoffice",
            "optimize_print": True,
            "pdf_a": False,
        },
        EXPORT_TASK: {
            "operation": "export/url",
            "input": [CONVERT_TASK],
            "inline": False,
            "archive_multiple_files": False,
        },
    }


def _find_task(job_data: dict[str, object], name: str) -> dict[str, object] | None:
    for task in job_data.get("tasks") or []:  # type: ignore[union-attr]
        if isinstance(task, dict) and task.get("name") == name:
            return task
    return None


def _upload_form(job_data: dict[str, object]) -> tuple[str, dict[str, object]]:
    task = _find_task(job_data, IMPORT_TASK)
    result = (task or {}).get("result") or {}
    form = result.get("form") if isinstance(result, dict) else None
    if not isinstance(form, dict) or not form.get("url"):
        raise ConversionFailedError("Failed to get upload URL from the conversion service")
    return str(form["url"]), dict(form.get("parameters") or {})


def _finished_export_url(job_data: dict[str, object]) -> str | None:
    task = _find_task(job_data, EXPORT_TASK)
    if not task or task.get("status") != "finished":
        return None
    result = task.get("result") or {}
    files = result.get("files") if isinstance(result, dict) else None
    if not files:
        return None
    return str(files[0]["url"])


class ConversionService:
    """Drives one PDF to DOCX conversion per request through the external API.

    Each call to ``convert`` runs its own sequential poll loop; nothing is
    shared between concurrent requests except the artifact store.
    """

    def __init__(
        self,
        gateway: ConversionGateway,
        store: ArtifactStore,
        *,
        max_upload_mb: int = 25,
        poll_interval_sec: float = 1.0,
        max_poll_attempts: int = 30,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._gateway = gateway
        self._store = store
        self._max_upload_mb = max_upload_mb
        self._poll_interval = poll_interval_sec
        self._max_attempts = max_poll_attempts
        self._sleep = sleep

    @property
    def store(self) -> ArtifactStore:
        return self._store

    def check_content_type(self, content_type: str | None) -> None:
        if (content_type or "").strip().lower() != PDF_MIME:
            raise InvalidFileTypeError()

    async def read_upload(self, reader: Callable[[int], Awaitable[bytes]]) -> bytes:
        """Read an upload stream into memory, enforcing the size limit."""
        buf = bytearray()
        CHUNK = 1024 * 1024
        max_bytes = self._max_upload_mb * 1024 * 1024
        while True:
            chunk = await reader(CHUNK)
            if not chunk:
                break
            buf.extend(chunk)
            if len(buf) > max_bytes:
                raise FileTooLargeError(self._max_upload_mb)
        return bytes(buf)

    async def convert(self, *, filename: str, content_type: str, data: bytes) -> tuple[ConversionJob, StoredArtifact]:
        if not self._gateway.is_configured():
            logger.error("Conversion service credential is missing")
            raise ServerConfigurationError()

        job = ConversionJob(tag=f"pdf_to_word_{int(time.time() * 1000)}")
        try:
            created = await asyncio.to_thread(self._gateway.create_job, job.tag)
            external_id = str(created["id"])
            job.external_id = external_id
            logger.info("Job created: %s", external_id)

            url, parameters = _upload_form(created)
            job.status = JobStatus.UPLOADING
            logger.info("Uploading PDF file (%d bytes)", len(data))
            await asyncio.to_thread(self._gateway.upload, url, parameters, filename, content_type, data)

            job.status = JobStatus.CONVERTING
            job.result_url = await self._wait_for_result(external_id)

            logger.info("Conversion successful, downloading result")
            output = await asyncio.to_thread(self._gateway.download, job.result_url)
            artifact = await asyncio.to_thread(self._store.put, output)
        except UpstreamError as e:
            logger.error("Conversion error: %s", e)
            job.status = JobStatus.FAILED
            job.error = str(e)
            raise map_upstream_error(e) from e
        except ConversionTimeoutError as e:
            logger.error("Conversion error: %s", e.message)
            job.status = JobStatus.TIMED_OUT
            job.error = e.message
            raise
        except ConversionError as e:
            logger.error("Conversion error: %s", e.message)
            job.status = JobStatus.FAILED
            job.error = e.message
            raise
        except Exception as e:
            logger.exception("Unexpected conversion error")
            job.status = JobStatus.FAILED
            job.error = str(e)
            raise ConversionError() from e

        job.status = JobStatus.FINISHED
        logger.info("Stored artifact %s (%d bytes)", artifact.filename, artifact.size_bytes)
        return job, artifact

    async def _wait_for_result(self, job_id: str) -> str:
        for attempt in range(1, self._max_attempts + 1):
            await self._sleep(self._poll_interval)
            status = await asyncio.to_thread(self._gateway.get_job, job_id)
            url = _finished_export_url(status)
            if url:
                logger.info("Job %s finished after %d poll(s)", job_id, attempt)
                return url
            if status.get("status") == "error":
                raise ConversionFailedError()
        raise ConversionTimeoutError()

    def find_artifact(self, filename: str) -> StoredArtifact | None:
        return self._store.get(filename)
