"""Turn a parsed ``/time_series`` response into a :class:`NormalizedSeries`.

The steps run strictly in order and any failure aborts the rest:

1. status check (``status`` must be ``"ok"``)
2. temporal parsing of the first column
3. float coercion of every other column
4. metadata attachment
5. output format selection
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone as dt_timezone
from typing import Any, Mapping, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import pandas as pd

from twelvedata_provider.errors import (
    TwelveDataInvalidArgumentError,
    TwelveDataMalformedDataError,
    TwelveDataRemoteError,
)
from twelvedata_provider.formats import NativeTimeIndex, SeriesFormatter, tabular
from twelvedata_provider.models import INTERVALS, NormalizedSeries, coerce_output_format, is_intraday

logger = logging.getLogger(__name__)

VALUES_FIELD = "values"
META_FIELD = "meta"
DEFAULT_TIME_COLUMN = "datetime"


def check_status(payload: Any) -> Mapping[str, Any]:
    """Raise :class:`TwelveDataRemoteError` unless ``payload["status"] == "ok"``."""
    if not isinstance(payload, Mapping):
        raise TwelveDataMalformedDataError(
            "Twelve Data response was not a JSON object.",
            payload={"type": type(payload).__name__},
        )

    status = payload.get("status")
    if status == "ok":
        return payload

    message = payload.get("message")
    if not isinstance(message, str) or not message.strip():
        message = f"Twelve Data request failed (status={status!r})."
    code = payload.get("code")
    raise TwelveDataRemoteError(
        message,
        status_code=code if isinstance(code, int) and not isinstance(code, bool) else None,
        detail=message,
        payload={"status": status, "code": code},
    )


def _series_zone(meta: Mapping[str, Any], request_timezone: Optional[str], default_timezone: str) -> str:
    if request_timezone and request_timezone != "Exchange":
        zone = request_timezone
    else:
        zone = meta.get("exchange_timezone") or default_timezone

    try:
        ZoneInfo(str(zone))
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise TwelveDataMalformedDataError(f"Unknown timezone {zone!r} in response.", payload={"timezone": zone}) from exc
    return str(zone)


def _to_datetimes(column: pd.Series, name: str) -> pd.Series:
    try:
        parsed = pd.to_datetime(column, format="ISO8601")
    except (ValueError, TypeError) as exc:
        raise TwelveDataMalformedDataError(
            f"Column {name!r} contains values that are not dates or date-times.",
            detail=str(exc),
            payload={"column": name},
        ) from exc
    if parsed.isna().any():
        raise TwelveDataMalformedDataError(f"Column {name!r} has missing dates.", payload={"column": name})
    return parsed


def _repeated_hour_flags(naive: pd.Series, ambiguous: pd.Series) -> tuple[pd.Series, pd.Series]:
    """Pick daylight or standard time for wall-clock times repeated at fall-back.

    In time order the first of a repeated pair is the daylight-saving reading.
    Rows may arrive newest first, so the direction is taken from the series
    itself. Returns the per-row flags and a mask of ambiguous rows that do not
    come in pairs.
    """
    flags = pd.Series(True, index=naive.index)
    repeated = naive[ambiguous]
    descending = len(naive) > 1 and naive.iloc[0] > naive.iloc[-1]
    seen = repeated.groupby(repeated).cumcount()
    pairs = repeated.groupby(repeated).transform("size").eq(2)
    flags[ambiguous] = seen.eq(1) if descending else seen.eq(0)
    unresolved = pd.Series(False, index=naive.index)
    unresolved[ambiguous] = ~pairs
    return flags, unresolved


def parse_zoned_datetimes(column: pd.Series, name: str, zone: str) -> pd.Series:
    """Parse to tz-aware timestamps in ``zone``.

    Naive strings are read as wall-clock times in ``zone``; strings carrying an
    offset are converted into it. A wall-clock hour that repeats at the end of
    daylight saving is resolved from row order.
    """
    parsed = _to_datetimes(column, name)
    if parsed.dt.tz is not None:
        return parsed.dt.tz_convert(zone)

    localized = parsed.dt.tz_localize(zone, ambiguous="NaT", nonexistent="NaT")
    bad = localized.isna()
    if bad.any():
        ambiguous = bad & parsed.dt.tz_localize(zone, ambiguous=[True] * len(parsed), nonexistent="NaT").notna()
        flags, unresolved = _repeated_hour_flags(parsed, ambiguous)
        localized = parsed.dt.tz_localize(zone, ambiguous=flags.to_numpy(), nonexistent="NaT")
        bad = localized.isna() | unresolved

    if bad.any():
        examples = column[bad].tolist()[:3]
        raise TwelveDataMalformedDataError(
            f"Column {name!r} holds wall-clock times that are ambiguous or missing in {zone}.",
            payload={"column": name, "timezone": zone, "examples": examples},
        )
    return localized


def parse_calendar_dates(column: pd.Series, name: str) -> pd.Series:
    """Parse to :class:`datetime.date` values with no time-of-day component."""
    parsed = _to_datetimes(column, name)
    return pd.Series(parsed.dt.date, index=column.index, name=name, dtype=object)


def coerce_numeric(frame: pd.DataFrame, columns: list[str]) -> pd.DataFrame:
    out = frame.copy()
    for col in columns:
        blank = out[col].isna() | out[col].astype(str).str.strip().eq("")
        if blank.any():
            raise TwelveDataMalformedDataError(
                f"Column {col!r} has empty or null values.",
                payload={"column": col, "rows": blank[blank].index.tolist()[:3]},
            )
        try:
            out[col] = pd.to_numeric(out[col], errors="raise").astype("float64")
        except (ValueError, TypeError) as exc:
            raise TwelveDataMalformedDataError(
                f"Column {col!r} contains non-numeric values.",
                detail=str(exc),
                payload={"column": col},
            ) from exc
    return out


def _values_frame(payload: Mapping[str, Any]) -> tuple[pd.DataFrame, str]:
    records = payload.get(VALUES_FIELD)
    if not isinstance(records, list):
        raise TwelveDataMalformedDataError(
            f"Twelve Data response has no {VALUES_FIELD!r} list.",
            payload={"keys": sorted(str(k) for k in payload.keys())[:10]},
        )
    for i, record in enumerate(records):
        if not isinstance(record, Mapping):
            raise TwelveDataMalformedDataError(f"Record {i} is not an object.", payload={"index": i})

    if not records:
        return pd.DataFrame({DEFAULT_TIME_COLUMN: pd.Series([], dtype=object)}), DEFAULT_TIME_COLUMN

    frame = pd.DataFrame.from_records([dict(r) for r in records])
    time_column = str(next(iter(records[0]), DEFAULT_TIME_COLUMN))
    if time_column not in frame.columns:
        raise TwelveDataMalformedDataError("First record has no fields.", payload={"index": 0})
    ordered = [time_column] + [c for c in frame.columns if c != time_column]
    return frame[ordered].copy(), time_column


def normalize_time_series(
    payload: Any,
    *,
    interval: str,
    output_format: str = "tabular",
    timezone: Optional[str] = None,
    formatter: Optional[SeriesFormatter] = None,
    default_timezone: str = "UTC",
    accessed: Optional[datetime] = None,
) -> Union[Mapping[str, Any], NormalizedSeries]:
    """Normalize a parsed response.

    ``timezone`` is the zone the request asked for, if any. When it names a
    zone other than ``Exchange`` the API reports intraday values in that zone,
    so it takes precedence over ``meta["exchange_timezone"]``; otherwise the
    exchange zone is used, then ``default_timezone``.

    Returns the payload object itself for ``output_format="raw"``.
    """
    output_format = coerce_output_format(output_format)
    checked = check_status(payload)
    if output_format == "raw":
        return payload

    if interval not in INTERVALS:
        raise TwelveDataInvalidArgumentError(f"interval must be one of {list(INTERVALS)}, got {interval!r}.")

    meta_raw = checked.get(META_FIELD) or {}
    if not isinstance(meta_raw, Mapping):
        raise TwelveDataMalformedDataError(f"Twelve Data {META_FIELD!r} was not an object.")
    meta = dict(meta_raw)

    frame, time_column = _values_frame(checked)
    intraday = is_intraday(interval)
    if intraday:
        zone = _series_zone(meta, timezone, default_timezone)
        frame[time_column] = parse_zoned_datetimes(frame[time_column], time_column, zone)
    else:
        frame[time_column] = parse_calendar_dates(frame[time_column], time_column)

    frame = coerce_numeric(frame, [c for c in frame.columns if c != time_column])
    stamp = accessed or datetime.now(dt_timezone.utc)

    if output_format == "time-indexed":
        data = (formatter or NativeTimeIndex()).time_indexed(frame, time_column, intraday=intraday)
    else:
        data = tabular(frame)

    logger.debug(
        "Normalized Twelve Data series",
        extra={
            "context": {
                "td_symbol": meta.get("symbol"),
                "td_interval": interval,
                "td_output_format": output_format,
                "td_rows": len(data),
            }
        },
    )
    return NormalizedSeries(
        data=data,
        meta=meta,
        accessed=stamp,
        interval=interval,
        output_format=output_format,
        time_column=time_column,
    )
