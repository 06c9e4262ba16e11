"""Error kinds raised by the cache.

Hard errors abort the enclosing operation. ``FetchStatusError`` is the one
soft kind: batch fetches embed it per item instead of raising it.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from imagecache.models.cache import CacheRecord


class ErrorCode(StrEnum):
    NOT_FOUND = "NOT_FOUND"
    NOT_A_FILE = "NOT_A_FILE"
    MALFORMED_RECORD = "MALFORMED_RECORD"
    IO_ERROR = "IO_ERROR"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    EMPTY_DIRECTORY = "EMPTY_DIRECTORY"
    UNKNOWN_OPTION = "UNKNOWN_OPTION"
    INVALID_OPTION = "INVALID_OPTION"
    FETCH_STATUS = "FETCH_STATUS"
    PARTIAL_FETCH = "PARTIAL_FETCH"


class ImageCacheError(Exception):
    """Base class for every expected failure condition.

    Subclasses pin ``code`` and the default ``recoverable`` flag so callers
    can tell "this URL could not be reached" apart from "the cache is
    unusable" with an ``except`` clause instead of inspecting messages.
    """

    code: ErrorCode
    recoverable: bool = False

    def __init__(
        self,
        message: str,
        suggestion: str = "",
        *,
        recoverable: bool | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion
        if recoverable is not None:
            self.recoverable = recoverable

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "suggestion": self.suggestion,
                "recoverable": self.recoverable,
            }
        }


class NotFoundError(ImageCacheError):
    code = ErrorCode.NOT_FOUND


class NotAFileError(ImageCacheError):
    code = ErrorCode.NOT_A_FILE


class MalformedRecordError(ImageCacheError):
    code = ErrorCode.MALFORMED_RECORD


class StorageError(ImageCacheError):
    code = ErrorCode.IO_ERROR


class TransportError(ImageCacheError):
    code = ErrorCode.TRANSPORT_ERROR
    recoverable = True


class EmptyDirectoryError(ImageCacheError):
    code = ErrorCode.EMPTY_DIRECTORY


class UnknownOptionError(ImageCacheError):
    code = ErrorCode.UNKNOWN_OPTION


class InvalidOptionError(ImageCacheError):
    code = ErrorCode.INVALID_OPTION


class FetchStatusError(ImageCacheError):
    """A non-200 response for a single URL."""

    code = ErrorCode.FETCH_STATUS
    recoverable = True

    def __init__(self, url: str, status_code: int, status_message: str) -> None:
        super().__init__(
            f"HTTP {status_code} {status_message} fetching {url}".rstrip(),
            suggestion="Check that the image URL is reachable and retry it later.",
        )
        self.url = url
        self.status_code = status_code
        self.status_message = status_message


class PartialFetchError(ImageCacheError):
    """Raised by ``CacheService.set`` after storing every URL that succeeded."""

    code = ErrorCode.PARTIAL_FETCH
    recoverable = True

    def __init__(
        self,
        failures: list[FetchStatusError],
        stored: list[CacheRecord],
    ) -> None:
        urls = ", ".join(failure.url for failure in failures)
        super().__init__(
            f"{len(failures)} of {len(failures) + len(stored)} URLs could not be fetched: {urls}",
            suggestion="The remaining URLs were cached; retry the failed ones individually.",
        )
        self.failures = failures
        self.stored = stored

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["error"]["failures"] = [
            {
                "url": failure.url,
                "status_code": failure.status_code,
                "status_message": failure.status_message,
            }
            for failure in self.failures
        ]
        return payload
