import asyncio
import logging
import os

from fastapi import Depends, FastAPI, File, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse

from pdf_word_service import __version__
from pdf_word_service.conversion import ArtifactStore, ConversionError, ConversionService
from pdf_word_service.conversion.adapters import CloudConvertGateway, LocalArtifactStore
from pdf_word_service.conversion.errors import MissingFileError
from pdf_word_service.logging_config import setup_logging

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="PDF to Word Converter",
    version=os.getenv("DOC_SERVICE_VERSION", __version__),
    description=(
        "Converts uploaded PDF files to Word documents through an external "
        "conversion service and serves the result for a short time."
    ),
)

# Global configuration defaults
CLOUDCONVERT_API_KEY = os.getenv("CLOUDCONVERT_API_KEY")
CLOUDCONVERT_API_URL = os.getenv("CLOUDCONVERT_API_URL", "https://api.cloudconvert.com/v2")
MAX_UPLOAD_MB = int(os.getenv("MAX_UPLOAD_MB", "25"))
STORAGE_DIR = os.getenv("STORAGE_DIR", "./temp")
ARTIFACT_TTL_SEC = float(os.getenv("ARTIFACT_TTL_SEC", "300"))
CLEANUP_INTERVAL_SEC = float(os.getenv("CLEANUP_INTERVAL_SEC", "30"))
POLL_INTERVAL_SEC = float(os.getenv("POLL_INTERVAL_SEC", "1"))
POLL_MAX_ATTEMPTS = int(os.getenv("POLL_MAX_ATTEMPTS", "30"))
HTTP_TIMEOUT_SEC = float(os.getenv("HTTP_TIMEOUT_SEC", "60"))

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
DOWNLOAD_NAME = "converted-document.docx"

SERVICE: ConversionService | None = None
SWEEPER: asyncio.Task | None = None


def build_service() -> ConversionService:
    gateway = CloudConvertGateway(CLOUDCONVERT_API_KEY, base_url=CLOUDCONVERT_API_URL, timeout=HTTP_TIMEOUT_SEC)
    store = LocalArtifactStore(STORAGE_DIR, ttl_sec=ARTIFACT_TTL_SEC)
    return ConversionService(
        gateway,
        store,
        max_upload_mb=MAX_UPLOAD_MB,
        poll_interval_sec=POLL_INTERVAL_SEC,
        max_poll_attempts=POLL_MAX_ATTEMPTS,
    )


def get_service() -> ConversionService:
    global SERVICE
    if SERVICE is None:
        SERVICE = build_service()
    return SERVICE


def sweep_expired(store: ArtifactStore) -> int:
    """Run one cleanup pass; failures are logged, never raised."""
    try:
        removed = store.purge_expired()
    except Exception:
        logger.exception("Artifact cleanup failed")
        return 0
    if removed:
        logger.info("Removed %d expired artifact(s)", removed)
    return removed


async def _sweep_loop(store: ArtifactStore, interval_sec: float) -> None:
    while True:
        await asyncio.sleep(interval_sec)
        sweep_expired(store)


@app.on_event("startup")
async def _startup() -> None:
    global SWEEPER
    if not CLOUDCONVERT_API_KEY:
        logger.error("CLOUDCONVERT_API_KEY is not set; conversions will fail")
    provider = app.dependency_overrides.get(get_service, get_service)
    SWEEPER = asyncio.create_task(_sweep_loop(provider().store, CLEANUP_INTERVAL_SEC))


@app.on_event("shutdown")
async def _shutdown() -> None:
    global SWEEPER
    if SWEEPER is not None:
        SWEEPER.cancel()
        SWEEPER = None


@app.exception_handler(ConversionError)
async def _conversion_error(request: Request, exc: ConversionError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.message})


@app.exception_handler(RequestValidationError)
async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    # A "pdf" part that is not a file counts as a missing upload.
    logger.info("Rejected malformed upload: %s", exc.errors())
    return JSONResponse(status_code=400, content={"success": False, "error": MissingFileError.default_message})


@app.exception_handler(Exception)
async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Server error: %s", exc)
    return JSONResponse(status_code=500, content={"success": False, "error": "Internal server error"})


@app.get("/health")
def health() -> dict[str, str]:
    """Basic health check endpoint."""
    return {"status": "OK", "message": "PDF to Word Converter API is running"}


@app.post("/convert")
async def convert(pdf: UploadFile | None = File(None), service: ConversionService = Depends(get_service)) -> JSONResponse:
    """Convert an uploaded PDF to DOCX.

    Accepts multipart/form-data with a single part named "pdf". Blocks until
    the external job finishes, fails or times out, then returns a download
    path valid for a limited time.
    """
    logger.info("Conversion request received")
    if pdf is None:
        raise MissingFileError()
    service.check_content_type(pdf.content_type)
    data = await service.read_upload(pdf.read)

    _, artifact = await service.convert(
        filename=pdf.filename or "upload.pdf",
        content_type=pdf.content_type or "application/pdf",
        data=data,
    )
    return JSONResponse(
        content={
            "success": True,
            "message": "PDF successfully converted to Word",
            "downloadUrl": f"/download/{artifact.filename}",
            "filename": artifact.filename,
        }
    )


@app.get("/download/{filename}")
async def download(filename: str, service: ConversionService = Depends(get_service)):
    artifact = service.find_artifact(filename)
    if artifact is None:
        return JSONResponse(status_code=404, content={"success": False, "error": "File not found or expired"})
    # Removal stays with the TTL; a download in flight may race it.
    return FileResponse(artifact.path, media_type=DOCX_MIME, filename=DOWNLOAD_NAME)


def run() -> None:
    """Run an ASGI server using uvicorn.

    Exposes the app at host:port (default 0.0.0.0:3000). Set PORT env var to override.
    """
    import uvicorn

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "3000"))
    reload = os.getenv("RELOAD", "true").lower() in {"1", "true", "yes", "on"}

    logger.info("Server running on port %d", port)
    uvicorn.run("pdf_word_service.webapi:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    run()
