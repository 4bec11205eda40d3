"""
HTTP-level tests for the conversion proxy endpoints.
"""

import asyncio
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from pdf_word_service import webapi
from pdf_word_service.conversion import ConversionService
from pdf_word_service.webapi import app, get_service, sweep_expired

from conftest import DOCX_BYTES, FakeGateway, no_sleep, upstream


def _post_pdf(client: TestClient, data: bytes, content_type: str = "application/pdf", name: str = "doc.pdf"):
    return client.post("/convert", files={"pdf": (name, data, content_type)})


class TestHealth:
    def test_health(self, client: TestClient):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "OK", "message": "PDF to Word Converter API is running"}


class TestConvertValidation:
    def test_missing_file(self, client: TestClient, gateway: FakeGateway):
        response = client.post("/convert", files={"other": ("x.txt", b"abc", "text/plain")})
        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "No PDF file uploaded"}
        assert gateway.calls == []

    def test_text_field_instead_of_file(self, client: TestClient, gateway: FakeGateway):
        response = client.post("/convert", data={"pdf": "not a file"})
        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "No PDF file uploaded"}
        assert gateway.calls == []

    @pytest.mark.parametrize("content_type", ["text/plain", "image/png", "application/octet-stream"])
    def test_wrong_type_rejected_before_upstream(self, client: TestClient, gateway: FakeGateway, content_type: str):
        response = _post_pdf(client, b"%PDF-1.4", content_type=content_type)
        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Only PDF files are allowed"}
        assert gateway.calls == []

    def test_too_large_rejected_before_upstream(self, store, gateway: FakeGateway):
        service = ConversionService(gateway, store, max_upload_mb=1, sleep=no_sleep)
        app.dependency_overrides[get_service] = lambda: service
        try:
            with TestClient(app) as client:
                response = _post_pdf(client, b"0" * (1024 * 1024 + 1))
        finally:
            app.dependency_overrides.clear()
        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "File size exceeds 1MB limit"}
        assert gateway.calls == []

    def test_missing_credential_is_configuration_error(self, store, pdf_bytes: bytes):
        gateway = FakeGateway(configured=False)
        service = ConversionService(gateway, store, sleep=no_sleep)
        app.dependency_overrides[get_service] = lambda: service
        try:
            with TestClient(app) as client:
                response = _post_pdf(client, pdf_bytes)
        finally:
            app.dependency_overrides.clear()
        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "Server configuration error"}
        assert gateway.calls == []


class TestConvert:
    def test_success_returns_download_handle(self, client: TestClient, gateway: FakeGateway, pdf_bytes: bytes):
        response = _post_pdf(client, pdf_bytes)
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "PDF successfully converted to Word"
        assert body["downloadUrl"] == f"/download/{body['filename']}"
        assert body["filename"].startswith("converted_") and body["filename"].endswith(".docx")
        assert gateway.calls == ["create_job", "upload", "get_job", "download"]
        assert gateway.uploaded["data"] == pdf_bytes
        assert gateway.uploaded["filename"] == "doc.pdf"

    @pytest.mark.parametrize("method", ["create_job", "upload", "get_job", "download"])
    def test_quota_exceeded_on_any_call(self, client: TestClient, gateway: FakeGateway, pdf_bytes: bytes, method: str):
        gateway.fail[method] = upstream(402, "Payment required")
        response = _post_pdf(client, pdf_bytes)
        assert response.status_code == 402
        assert response.json() == {
            "success": False,
            "error": "Daily conversion limit reached. Please try again tomorrow.",
        }

    def test_upstream_auth_failure_does_not_leak(self, client: TestClient, gateway: FakeGateway, pdf_bytes: bytes):
        gateway.fail["create_job"] = upstream(401, "Invalid API key sk-secret")
        response = _post_pdf(client, pdf_bytes)
        assert response.status_code == 500
        assert response.json()["error"] == "Server configuration error. Please contact administrator."
        assert "sk-secret" not in response.text

    def test_upstream_validation_message_passed_through(self, client: TestClient, gateway: FakeGateway, pdf_bytes: bytes):
        gateway.fail["create_job"] = upstream(422, "The given data was invalid.")
        response = _post_pdf(client, pdf_bytes)
        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "The given data was invalid."}

    def test_remote_job_error(self, client: TestClient, gateway: FakeGateway, pdf_bytes: bytes):
        gateway.job_error_on = 2
        gateway.finish_on = 10
        response = _post_pdf(client, pdf_bytes)
        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "Conversion job failed"}
        assert gateway.polls == 2
        assert "download" not in gateway.calls

    def test_timeout(self, client: TestClient, gateway: FakeGateway, pdf_bytes: bytes, store):
        gateway.finish_on = 31
        response = _post_pdf(client, pdf_bytes)
        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "Conversion timeout or failed"}
        assert gateway.polls == 30
        assert store.purge_expired() == 0


class TestDownload:
    def test_unknown_filename(self, client: TestClient):
        response = client.get("/download/converted_1700000000000_deadbeef.docx")
        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "File not found or expired"}

    def test_arbitrary_filename_not_served(self, client: TestClient, store):
        Path(store._base).mkdir(parents=True, exist_ok=True)
        (Path(store._base) / "secret.txt").write_text("nope")
        response = client.get("/download/secret.txt")
        assert response.status_code == 404

    def test_download_then_expiry(self, client: TestClient, clock, pdf_bytes: bytes):
        filename = _post_pdf(client, pdf_bytes).json()["filename"]

        response = client.get(f"/download/{filename}")
        assert response.status_code == 200
        assert response.content == DOCX_BYTES
        assert "converted-document.docx" in response.headers["content-disposition"]

        # Still available after a download; removal is time-based only.
        clock.advance(299)
        assert client.get(f"/download/{filename}").status_code == 200

        clock.advance(1)
        response = client.get(f"/download/{filename}")
        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "File not found or expired"}


class TestExpirySweep:
    def test_sweep_removes_expired_artifacts(self, store, clock):
        artifact = store.put(DOCX_BYTES)
        clock.advance(299)
        assert sweep_expired(store) == 0
        assert Path(artifact.path).exists()

        clock.advance(1)
        assert sweep_expired(store) == 1
        assert not Path(artifact.path).exists()
        assert store.get(artifact.filename) is None

    def test_sweep_survives_store_failure(self):
        class BrokenStore:
            def purge_expired(self) -> int:
                raise RuntimeError("disk went away")

        assert sweep_expired(BrokenStore()) == 0

    def test_startup_sweeps_the_overridden_store(self, service: ConversionService, monkeypatch):
        swept = []

        def fake_loop(store, interval_sec):
            swept.append((store, interval_sec))
            return asyncio.sleep(0)

        monkeypatch.setattr(webapi, "_sweep_loop", fake_loop)
        app.dependency_overrides[get_service] = lambda: service
        try:
            with TestClient(app):
                pass
        finally:
            app.dependency_overrides.clear()
        assert swept == [(service.store, webapi.CLEANUP_INTERVAL_SEC)]
