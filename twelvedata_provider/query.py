"""Validation and query-string construction for ``/time_series``.

Nothing in this module touches the network. A :class:`TimeSeriesRequest` is
checked against the fixed enumerations and ranges, then serialized into the
ordered parameter mapping the API expects. Optional parameters are emitted only
when they carry a non-default value, so two requests that differ only in
defaulted fields produce the same URL.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import httpx

from twelvedata_provider.errors import TwelveDataInvalidArgumentError, TwelveDataNotConfiguredError
from twelvedata_provider.models import (
    DEFAULT_DP,
    DEFAULT_ORDER,
    INTERVALS,
    MAX_DP,
    MAX_OUTPUTSIZE,
    MIN_DP,
    MIN_OUTPUTSIZE,
    SECURITY_TYPES,
    SORT_ORDERS,
    DateBound,
    TimeSeriesRequest,
    coerce_output_format,
)

TIME_SERIES_PATH = "/time_series"

# Timezone sentinels understood by the API in addition to IANA names.
TIMEZONE_SENTINELS = frozenset({"Exchange", "UTC"})

QUERY_KEYS: tuple[str, ...] = (
    "symbol",
    "interval",
    "exchange",
    "country",
    "type",
    "outputsize",
    "dp",
    "order",
    "timezone",
    "start_date",
    "end_date",
    "previous_close",
    "apikey",
)


def _invalid(message: str, **payload: Any) -> TwelveDataInvalidArgumentError:
    return TwelveDataInvalidArgumentError(message, payload=payload or None)


def _check_member(name: str, value: Any, allowed: tuple[str, ...]) -> str:
    if not isinstance(value, str) or value not in allowed:
        raise _invalid(f"{name} must be one of {list(allowed)}, got {value!r}.", field=name)
    return value


def _check_int_range(name: str, value: Any, low: int, high: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise _invalid(f"{name} must be an integer, got {value!r}.", field=name)
    if not low <= value <= high:
        raise _invalid(f"{name} must be between {low} and {high}, got {value}.", field=name)
    return value


def _optional_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def validate_timezone(value: str) -> str:
    """Accept ``Exchange``, ``UTC`` or any IANA zone known to :mod:`zoneinfo`."""
    text = str(value).strip()
    if text in TIMEZONE_SENTINELS:
        return text
    try:
        ZoneInfo(text)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise _invalid(f"timezone must be 'Exchange', 'UTC' or an IANA zone name, got {value!r}.", field="timezone") from exc
    return text


def format_date_bound(name: str, value: DateBound) -> str:
    """Serialize a start/end bound as ISO 8601 with a ``T`` date-time separator."""
    if isinstance(value, datetime):
        return value.isoformat(timespec="seconds")
    if isinstance(value, date):
        return value.isoformat()

    text = str(value).strip()
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise _invalid(f"{name} must be an ISO 8601 date or date-time, got {value!r}.", field=name) from exc

    if len(text) == 10:
        return parsed.date().isoformat()
    return text.replace(" ", "T", 1)


def validate_request(request: TimeSeriesRequest) -> TimeSeriesRequest:
    """Raise :class:`TwelveDataInvalidArgumentError` for any out-of-range field."""
    if not _optional_text(request.symbol):
        raise _invalid("symbol is required.", field="symbol")
    _check_member("interval", request.interval, INTERVALS)
    coerce_output_format(request.output_format)
    if request.security_type is not None:
        _check_member("security_type", request.security_type, SECURITY_TYPES)
    if request.outputsize is not None:
        _check_int_range("outputsize", request.outputsize, MIN_OUTPUTSIZE, MAX_OUTPUTSIZE)
    _check_int_range("dp", request.dp, MIN_DP, MAX_DP)
    _check_member("order", request.order, SORT_ORDERS)
    if request.timezone is not None:
        validate_timezone(request.timezone)
    if request.start_date is not None:
        format_date_bound("start_date", request.start_date)
    if request.end_date is not None:
        format_date_bound("end_date", request.end_date)
    return request


def build_query_params(request: TimeSeriesRequest, *, api_key: Optional[str] = None) -> dict[str, str]:
    """Return the ordered query parameters for ``request``.

    ``request.apikey`` wins over ``api_key``; one of the two must be non-empty.
    """
    validate_request(request)

    key = _optional_text(request.apikey) or _optional_text(api_key)
    if not key:
        raise TwelveDataNotConfiguredError("No Twelve Data API key configured; refusing to build a query without one.")

    params: dict[str, str] = {
        "symbol": str(request.symbol).strip(),
        "interval": request.interval,
    }

    exchange = _optional_text(request.exchange)
    if exchange:
        params["exchange"] = exchange
    country = _optional_text(request.country)
    if country:
        params["country"] = country
    if request.security_type is not None:
        params["type"] = request.security_type
    if request.outputsize is not None:
        params["outputsize"] = str(request.outputsize)
    if request.dp != DEFAULT_DP:
        params["dp"] = str(request.dp)
    if request.order != DEFAULT_ORDER:
        params["order"] = request.order
    if request.timezone is not None:
        params["timezone"] = validate_timezone(request.timezone)
    if request.start_date is not None:
        params["start_date"] = format_date_bound("start_date", request.start_date)
    if request.end_date is not None:
        params["end_date"] = format_date_bound("end_date", request.end_date)
    if request.previous_close:
        params["previous_close"] = "true"

    params["apikey"] = key
    return params


def build_url(request: TimeSeriesRequest, *, api_key: Optional[str] = None, base_url: str) -> str:
    """Return the complete ``GET`` URL for ``request``."""
    params = build_query_params(request, api_key=api_key)
    return str(httpx.URL(f"{base_url.rstrip('/')}{TIME_SERIES_PATH}", params=params))
