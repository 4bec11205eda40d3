"""Error taxonomy for the conversion proxy.

Every ``ConversionError`` carries the HTTP status and a message that is safe
to show to the caller. ``UpstreamError`` is raised by gateways and never
reaches the caller directly; the service maps it onto the taxonomy.
"""

PDF_MIME = "application/pdf"

QUOTA_MESSAGE = "Daily conversion limit reached. Please try again tomorrow."
CONFIG_MESSAGE = "Server configuration error"
UPSTREAM_AUTH_MESSAGE = "Server configuration error. Please contact administrator."


class ConversionError(Exception):
    status_code = 500
    default_message = "An unexpected error occurred during conversion"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class MissingFileError(ConversionError):
    status_code = 400
    default_message = "No PDF file uploaded"


class InvalidFileTypeError(ConversionError):
    status_code = 400
    default_message = "Only PDF files are allowed"


class FileTooLargeError(ConversionError):
    status_code = 400

    def __init__(self, limit_mb: int) -> None:
        super().__init__(f"File size exceeds {limit_mb}MB limit")
        self.limit_mb = limit_mb


class ServerConfigurationError(ConversionError):
    status_code = 500
    default_message = CONFIG_MESSAGE


class QuotaExceededError(ConversionError):
    status_code = 402
    default_message = QUOTA_MESSAGE


class UpstreamValidationError(ConversionError):
    status_code = 400


class ConversionFailedError(ConversionError):
    status_code = 500
    default_message = "Conversion job failed"


class ConversionTimeoutError(ConversionFailedError):
    default_message = "Conversion timeout or failed"


class UpstreamError(Exception):
    """An HTTP error response from the external conversion service."""

    def __init__(self, status_code: int, message: str | None = None) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"upstream returned {status_code}: {message or 'no message'}")


def map_upstream_error(err: UpstreamError) -> ConversionError:
    """Translate an upstream HTTP failure into a caller-safe error."""
    if err.status_code == 402:
        return QuotaExceededError()
    if err.status_code == 401:
        return ServerConfigurationError(UPSTREAM_AUTH_MESSAGE)
    if err.message:
        return UpstreamValidationError(err.message)
    return ConversionError()
