"""Error taxonomy for a check run.

Every fatal condition is an ``SSRCheckError`` carrying the process exit code
the runner returns for it. Library exceptions are wrapped at the component
boundary with ``raise ... from exc``.
"""


class SSRCheckError(Exception):
    exit_code = 1

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(SSRCheckError):
    """Config file or environment is unusable (detected before any I/O)."""

    exit_code = 2


class EnvironmentCheckError(SSRCheckError):
    """Preflight failure: root user, missing command, bad positions file."""

    exit_code = 2


class FetchError(SSRCheckError):
    """SSR list could not be downloaded after the bounded retries."""

    exit_code = 3


class EmptyPayloadError(FetchError):
    """Download succeeded but the document was empty."""

    exit_code = 4


class SoftBlockError(SSRCheckError):
    """Upstream returned its framing-denial page instead of the list."""

    exit_code = 5

    def __init__(self, message: str, excerpt: str = "") -> None:
        super().__init__(message)
        self.excerpt = excerpt


class DeliveryError(SSRCheckError):
    """Notification email could not be submitted."""

    exit_code = 6
