"""flagcache exceptions."""

from typing import Optional


class FlagCacheError(Exception):
    """Base exception for flagcache errors.

    Any instance of this class has already been classified and is passed
    through unchanged by outer layers.
    """

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class RemoteUnavailableError(FlagCacheError):
    """Raised when the remote evaluation service cannot be reached or answers with an error."""

    pass


class InvalidSignatureError(FlagCacheError):
    """Raised when a remote response carries a missing or invalid signature."""

    pass


class ConfigurationError(FlagCacheError):
    """Raised when flagcache is misconfigured."""

    pass


def classify(error: BaseException) -> FlagCacheError:
    """Return error as a FlagCacheError.

    Errors that are already classified pass through unchanged; anything else
    becomes a RemoteUnavailableError.
    """
    if isinstance(error, FlagCacheError):
        return error
    wrapped = RemoteUnavailableError(f"Remote evaluation failed: {error}")
    wrapped.__cause__ = error
    return wrapped
