from dataclasses import dataclass
from datetime import datetime
from typing import Protocol


class ConversionGateway(Protocol):
    """Client for the external job-based conversion API.

    All calls are blocking; callers should offload to threads if needed.
    Non-2xx responses raise ``UpstreamError``.
    """

    def is_configured(self) -> bool:
        ...

    def create_job(self, tag: str) -> dict[str, object]:
        """Declare the import/convert/export job and return its ``data`` payload."""

    def upload(self, url: str, parameters: dict[str, object], filename: str, content_type: str, data: bytes) -> None:
        ...

    def get_job(self, job_id: str) -> dict[str, object]:
        ...

    def download(self, url: str) -> bytes:
        ...


class Clock(Protocol):
    def now(self) -> datetime:
        ...


@dataclass(frozen=True)
class StoredArtifact:
    filename: str
    path: str
    size_bytes: int
    created_at: datetime
    expires_at: datetime


class ArtifactStore(Protocol):
    def put(self, data: bytes) -> StoredArtifact:
        ...

    def get(self, filename: str) -> StoredArtifact | None:
        ...

    def delete(self, filename: str) -> None:
        ...

    def purge_expired(self) -> int:
        ...
