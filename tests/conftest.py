"""
Shared test configuration and fixtures.
"""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import fitz
import pytest
from fastapi.testclient import TestClient

from pdf_word_service.conversion import ConversionService, UpstreamError
from pdf_word_service.conversion.adapters import LocalArtifactStore
from pdf_word_service.webapi import app, get_service

DOCX_BYTES = b"PK\x03\x04 fake docx payload"


class FakeClock:
    def __init__(self) -> None:
        self.current = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


class FakeGateway:
    """In-memory stand-in for the external job API.

    The export task reports finished on poll number ``finish_on``; set
    ``fail`` to ``{method_name: UpstreamError}`` to make a call fail.
    """

    def __init__(self, *, configured: bool = True, finish_on: int = 1, job_error_on: int | None = None) -> None:
        self.configured = configured
        self.finish_on = finish_on
        self.job_error_on = job_error_on
        self.fail: dict[str, Exception] = {}
        self.calls: list[str] = []
        self.polls = 0
        self.uploaded: dict[str, object] = {}

    def _record(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail:
            raise self.fail[name]

    def is_configured(self) -> bool:
        return self.configured

    def create_job(self, tag: str) -> dict[str, object]:
        self._record("create_job")
        return {
            "id": "job-123",
            "tag": tag,
            "tasks": [
                {
                    "name": "import-upload",
                    "status": "waiting",
                    "result": {"form": {"url": "https://upload.example/abc", "parameters": {"expires": 1, "signature": "s"}}},
                },
                {"name": "convert-task", "status": "waiting"},
                {"name": "export-task", "status": "waiting"},
            ],
        }

    def upload(self, url, parameters, filename, content_type, data) -> None:
        self._record("upload")
        self.uploaded = {"url": url, "parameters": parameters, "filename": filename, "data": data}

    def get_job(self, job_id: str) -> dict[str, object]:
        self._record("get_job")
        self.polls += 1
        if self.job_error_on is not None and self.polls >= self.job_error_on:
            return {"id": job_id, "status": "error", "tasks": []}
        if self.polls >= self.finish_on:
            export = {
                "name": "export-task",
                "status": "finished",
                "result": {"files": [{"filename": "out.docx", "url": "https://storage.example/out.docx"}]},
            }
            return {"id": job_id, "status": "finished", "tasks": [export]}
        return {"id": job_id, "status": "processing", "tasks": [{"name": "export-task", "status": "waiting"}]}

    def download(self, url: str) -> bytes:
        self._record("download")
        return DOCX_BYTES


async def no_sleep(seconds: float) -> None:
    return None


def make_pdf(*pages: str) -> bytes:
    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        if text:
            page.insert_text((72, 72), text)
    data = doc.tobytes()
    doc.close()
    return data


def upstream(status: int, message: str | None = None) -> UpstreamError:
    return UpstreamError(status, message)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(tmp_path: Path, clock: FakeClock) -> LocalArtifactStore:
    return LocalArtifactStore(str(tmp_path / "temp"), ttl_sec=300, clock=clock)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def service(gateway: FakeGateway, store: LocalArtifactStore) -> ConversionService:
    return ConversionService(gateway, store, max_upload_mb=25, sleep=no_sleep)


@pytest.fixture
def client(service: ConversionService):
    app.dependency_overrides[get_service] = lambda: service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def pdf_bytes() -> bytes:
    return make_pdf("Hello from page one")
