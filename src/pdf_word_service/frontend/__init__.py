from .converters import (
    ConversionOutcome,
    Converter,
    LocalConverter,
    RemoteConverter,
    UploadedFile,
    make_converter,
    validate_upload,
)
from .session import ConversionSession, Notice, NoticeKind, SessionState, classify_error
