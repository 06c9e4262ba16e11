"""Unit tests for imagecache.errors."""

from __future__ import annotations

import pytest

from imagecache.errors import (
    EmptyDirectoryError,
    ErrorCode,
    FetchStatusError,
    ImageCacheError,
    InvalidOptionError,
    MalformedRecordError,
    NotAFileError,
    NotFoundError,
    PartialFetchError,
    StorageError,
    TransportError,
    UnknownOptionError,
)
from imagecache.models.cache import CacheRecord


@pytest.mark.parametrize(
    ("cls", "code"),
    [
        (NotFoundError, ErrorCode.NOT_FOUND),
        (NotAFileError, ErrorCode.NOT_A_FILE),
        (MalformedRecordError, ErrorCode.MALFORMED_RECORD),
        (StorageError, ErrorCode.IO_ERROR),
        (TransportError, ErrorCode.TRANSPORT_ERROR),
        (EmptyDirectoryError, ErrorCode.EMPTY_DIRECTORY),
        (UnknownOptionError, ErrorCode.UNKNOWN_OPTION),
        (InvalidOptionError, ErrorCode.INVALID_OPTION),
    ],
)
def test_each_kind_has_its_code(cls: type[ImageCacheError], code: ErrorCode) -> None:
    exc = cls("boom")
    assert isinstance(exc, ImageCacheError)
    assert exc.code == code
    assert str(exc) == "boom"


def test_to_dict_envelope() -> None:
    exc = StorageError("disk full", suggestion="Free some space.")
    assert exc.to_dict() == {
        "error": {
            "code": "IO_ERROR",
            "message": "disk full",
            "suggestion": "Free some space.",
            "recoverable": False,
        }
    }


def test_recoverable_override() -> None:
    assert TransportError("x").recoverable is True
    assert TransportError("x", recoverable=False).recoverable is False
    # Overriding an instance leaves the class default alone
    assert TransportError("y").recoverable is True


def test_fetch_status_error() -> None:
    exc = FetchStatusError("https://example.com/a.png", 404, "Not Found")
    assert exc.code == ErrorCode.FETCH_STATUS
    assert exc.recoverable is True
    assert exc.status_code == 404
    assert exc.message == "HTTP 404 Not Found fetching https://example.com/a.png"


def test_partial_fetch_error_report() -> None:
    stored = CacheRecord(
        url="https://example.com/ok.png",
        hash_key="k",
        data="data:image/png;base64,AA==",
    )
    failure = FetchStatusError("https://example.com/gone.png", 410, "Gone")
    exc = PartialFetchError([failure], [stored])
    assert exc.stored == [stored]
    assert "1 of 2 URLs" in exc.message
    assert exc.to_dict()["error"]["failures"] == [
        {"url": "https://example.com/gone.png", "status_code": 410, "status_message": "Gone"}
    ]
