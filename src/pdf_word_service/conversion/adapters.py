import logging
import re
import secrets
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path

import requests

from .errors import ConversionFailedError, UpstreamError
from .interfaces import ArtifactStore, Clock, ConversionGateway, StoredArtifact
from .service import job_tasks

logger = logging.getLogger(__name__)


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class CloudConvertGateway(ConversionGateway):
    """Blocking client for the CloudConvert v2 job API."""

    def __init__(
        self,
        api_key: str | None,
        *,
        base_url: str = "https://api.cloudconvert.com/v2",
        timeout: float = 60.0,
        session: requests.Session | None = None,
    ) -> None:
        self._api_key = api_key
        self._base = base_url.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()

    def is_configured(self) -> bool:
        return bool(self._api_key)

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}"}

    def _send(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            resp = self._session.request(method, url, timeout=self._timeout, **kwargs)
        except requests.RequestException as e:
            raise ConversionFailedError("Could not reach the conversion service") from e
        if resp.status_code >= 400:
            raise UpstreamError(resp.status_code, _error_message(resp))
        return resp

    def create_job(self, tag: str) -> dict[str, object]:
        resp = self._send(
            "POST",
            f"{self._base}/jobs",
            json={"tasks": job_tasks(), "tag": tag},
            headers=self._auth_headers(),
        )
        return resp.json()["data"]

    def upload(self, url: str, parameters: dict[str, object], filename: str, content_type: str, data: bytes) -> None:
        # The signed form fields must precede the file part.
        fields = {k: str(v) for k, v in parameters.items()}
        self._send("POST", url, data=fields, files={"file": (filename, data, content_type)})

    def get_job(self, job_id: str) -> dict[str, object]:
        resp = self._send("GET", f"{self._base}/jobs/{job_id}", headers=self._auth_headers())
        return resp.json()["data"]

    def download(self, url: str) -> bytes:
        return self._send("GET", url).content


def _error_message(resp: requests.Response) -> str | None:
    try:
        body = resp.json()
    except ValueError:
        return None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return None


_ARTIFACT_NAME = re.compile(r"converted_\d+_[0-9a-f]{8}\.docx")


class LocalArtifactStore(ArtifactStore):
    """Keeps converted documents in a directory for a fixed time window.

    Expiry times live in memory; files on disk without an index entry (for
    example left over from a previous process) are removed by
    ``purge_expired`` once they are older than the TTL.
    """

    def __init__(self, storage_dir: str, *, ttl_sec: float = 300, clock: Clock | None = None) -> None:
        self._base = Path(storage_dir).resolve()
        self._ttl = timedelta(seconds=ttl_sec)
        self._clock = clock or SystemClock()
        self._index: dict[str, StoredArtifact] = {}
        self._lock = threading.Lock()

    def _new_name(self, now: datetime) -> str:
        return f"converted_{int(now.timestamp() * 1000)}_{secrets.token_hex(4)}.docx"

    def put(self, data: bytes) -> StoredArtifact:
        self._base.mkdir(parents=True, exist_ok=True)
        now = self._clock.now()
        name = self._new_name(now)
        path = self._base / name
        with path.open("wb") as f:
            f.write(data)
        artifact = StoredArtifact(
            filename=name,
            path=str(path),
            size_bytes=len(data),
            created_at=now,
            expires_at=now + self._ttl,
        )
        with self._lock:
            self._index[name] = artifact
        return artifact

    def get(self, filename: str) -> StoredArtifact | None:
        if not _ARTIFACT_NAME.fullmatch(filename):
            return None
        with self._lock:
            artifact = self._index.get(filename)
        if artifact is None:
            return None
        if self._clock.now() >= artifact.expires_at:
            self.delete(filename)
            return None
        if not Path(artifact.path).exists():
            return None
        return artifact

    def delete(self, filename: str) -> None:
        with self._lock:
            artifact = self._index.pop(filename, None)
        path = Path(artifact.path) if artifact else self._base / filename
        try:
            path.unlink(missing_ok=True)
        except OSError:
            logger.warning("Failed to remove artifact %s", filename, exc_info=True)
            return
        if artifact is not None:
            logger.info("Cleaned up temp file: %s", filename)

    def purge_expired(self) -> int:
        now = self._clock.now()
        with self._lock:
            expired = [name for name, a in self._index.items() if now >= a.expires_at]
            known = set(self._index)
        for name in expired:
            self.delete(name)
        removed = len(expired)
        if not self._base.exists():
            return removed
        cutoff = (now - self._ttl).timestamp()
        for path in self._base.iterdir():
            if path.name in known or not _ARTIFACT_NAME.fullmatch(path.name):
                continue
            try:
                if path.stat().st_mtime <= cutoff:
                    path.unlink()
                    removed += 1
            except OSError:
                logger.warning("Failed to remove orphaned artifact %s", path.name, exc_info=True)
        return removed
