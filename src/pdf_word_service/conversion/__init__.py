"""
Domain layer for PDF to Word conversion.
Provides gateway interfaces, the proxy orchestration service and the
transient artifact store, so front-ends (HTTP or others) can share the same
core logic.
"""

from .errors import ConversionError, UpstreamError
from .interfaces import ArtifactStore, Clock, ConversionGateway, StoredArtifact
from .service import ConversionJob, ConversionService, JobStatus
