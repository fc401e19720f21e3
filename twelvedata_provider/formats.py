"""Output shaping for normalized series.

The time-indexed representation is a capability chosen once, in configuration:

* ``native``: the temporal column becomes a pandas index.
* ``fallback``: time-indexed requests silently return the tabular frame.
* ``unavailable``: time-indexed requests raise
  :class:`~twelvedata_provider.errors.TwelveDataUnsupportedFormatError`.
"""

from __future__ import annotations

import logging
from typing import Literal, Protocol

import pandas as pd

from twelvedata_provider.errors import TwelveDataInvalidArgumentError, TwelveDataUnsupportedFormatError

logger = logging.getLogger(__name__)

TimeIndexSupport = Literal["native", "fallback", "unavailable"]
TIME_INDEX_SUPPORT_MODES: tuple[str, ...] = ("native", "fallback", "unavailable")


class SeriesFormatter(Protocol):
    mode: str

    def time_indexed(self, frame: pd.DataFrame, time_column: str, *, intraday: bool) -> pd.DataFrame: ...


def tabular(frame: pd.DataFrame) -> pd.DataFrame:
    """Tabular output keeps the response row order and a default RangeIndex."""
    return frame.reset_index(drop=True)


class NativeTimeIndex:
    mode = "native"

    def time_indexed(self, frame: pd.DataFrame, time_column: str, *, intraday: bool) -> pd.DataFrame:
        if intraday:
            index = pd.DatetimeIndex(frame[time_column], name=time_column)
        else:
            # Calendar dates become a tz-naive DatetimeIndex at midnight.
            index = pd.DatetimeIndex(pd.to_datetime(frame[time_column]), name=time_column)
        out = frame.drop(columns=[time_column])
        out.index = index
        return out


class TabularFallback:
    mode = "fallback"

    def time_indexed(self, frame: pd.DataFrame, time_column: str, *, intraday: bool) -> pd.DataFrame:
        logger.info("Time-indexed output disabled; returning tabular frame")
        return tabular(frame)


class UnavailableTimeIndex:
    mode = "unavailable"

    def time_indexed(self, frame: pd.DataFrame, time_column: str, *, intraday: bool) -> pd.DataFrame:
        raise TwelveDataUnsupportedFormatError(
            "Time-indexed output is not available in this configuration.",
            payload={"time_index_support": self.mode},
        )


_FORMATTERS: dict[str, type] = {
    "native": NativeTimeIndex,
    "fallback": TabularFallback,
    "unavailable": UnavailableTimeIndex,
}


def resolve_formatter(mode: str) -> SeriesFormatter:
    cls = _FORMATTERS.get(str(mode or "").strip().lower())
    if cls is None:
        raise TwelveDataInvalidArgumentError(
            f"time_index_support must be one of {list(TIME_INDEX_SUPPORT_MODES)}, got {mode!r}."
        )
    return cls()
