"""Error types raised by the Twelve Data provider."""

from __future__ import annotations

from typing import Any, Optional


class TwelveDataError(RuntimeError):
    """Base error for every Twelve Data failure.

    ``payload`` holds a redacted description of the failing call. It must never
    contain the API key.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        detail: Optional[str] = None,
        payload: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.detail = detail
        self.payload = payload


class TwelveDataInvalidArgumentError(TwelveDataError, ValueError):
    """Raised when a request parameter is outside its enumeration or range."""


class TwelveDataNotConfiguredError(TwelveDataError):
    """Raised when no API key can be resolved."""


class TwelveDataRemoteError(TwelveDataError):
    """Raised when the API answers with a status other than ``ok``."""


class TwelveDataMalformedDataError(TwelveDataError):
    """Raised when a response value cannot be parsed as a number or date."""


class TwelveDataUnsupportedFormatError(TwelveDataError):
    """Raised when the time-indexed representation is disabled."""
