from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    CONFIG = "config"
    UPSTREAM = "upstream"
    INVARIANT = "invariant"


class ServiceError(Exception):
    """Base for every error the service reports. Carries its kind and the original message."""

    kind: ErrorKind

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigError(ServiceError):
    """Missing or unusable configuration. Fatal at startup."""

    kind = ErrorKind.CONFIG


class UpstreamError(ServiceError):
    """Network, authorization or API failure reported by the music provider."""

    kind = ErrorKind.UPSTREAM

    def __init__(self, message: str, status: Optional[int] = None, timeout: bool = False) -> None:
        super().__init__(message)
        self.status = status
        self.timeout = timeout


class RateLimited(UpstreamError):
    """Provider rate limit hit. Includes the suggested wait in seconds."""

    def __init__(self, retry_after_s: int, message: str = "Rate limited") -> None:
        super().__init__(message, status=429)
        self.retry_after_s = retry_after_s


class InvariantViolation(ServiceError):
    """A state the requested scopes should make impossible, e.g. an episode while playing."""

    kind = ErrorKind.INVARIANT
