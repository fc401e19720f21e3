"""Request and result types for the Twelve Data time-series endpoint."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from types import MappingProxyType
from typing import Any, Literal, Mapping, Optional, Union

import pandas as pd

from twelvedata_provider.errors import TwelveDataInvalidArgumentError

Interval = Literal["1min", "5min", "15min", "30min", "45min", "1h", "2h", "4h", "1day", "1week", "1month"]
OutputFormat = Literal["tabular", "time-indexed", "raw"]
SecurityType = Literal["Stock", "Index", "ETF", "REIT"]
SortOrder = Literal["ASC", "DESC"]

INTERVALS: tuple[str, ...] = (
    "1min",
    "5min",
    "15min",
    "30min",
    "45min",
    "1h",
    "2h",
    "4h",
    "1day",
    "1week",
    "1month",
)
INTRADAY_INTERVALS: tuple[str, ...] = ("1min", "5min", "15min", "30min", "45min", "1h", "2h", "4h")
OUTPUT_FORMATS: tuple[str, ...] = ("tabular", "time-indexed", "raw")
SECURITY_TYPES: tuple[str, ...] = ("Stock", "Index", "ETF", "REIT")
SORT_ORDERS: tuple[str, ...] = ("ASC", "DESC")

# Names used by the R and xts world; accepted so callers can keep them.
_OUTPUT_FORMAT_ALIASES: dict[str, str] = {
    "data.frame": "tabular",
    "dataframe": "tabular",
    "xts": "time-indexed",
}

DEFAULT_DP = 5
DEFAULT_ORDER = "ASC"
MIN_OUTPUTSIZE = 1
MAX_OUTPUTSIZE = 5000
MIN_DP = 0
MAX_DP = 11

DateBound = Union[str, date, datetime]


def is_intraday(interval: str) -> bool:
    """Return True for sub-daily intervals (minutes and hours, not ``1month``)."""
    return interval in INTRADAY_INTERVALS


def coerce_output_format(value: str) -> str:
    text = str(value or "").strip()
    text = _OUTPUT_FORMAT_ALIASES.get(text, text)
    if text not in OUTPUT_FORMATS:
        raise TwelveDataInvalidArgumentError(
            f"output_format must be one of {list(OUTPUT_FORMATS)}, got {value!r}."
        )
    return text


@dataclass(frozen=True)
class TimeSeriesRequest:
    """Parameters of a single ``/time_series`` call.

    Only ``symbol`` and ``interval`` are required. Every optional field left at
    its default is omitted from the query string. ``apikey`` overrides the key
    held by the client configuration for this one call.
    """

    symbol: str
    interval: Interval = "1day"
    output_format: OutputFormat = "tabular"
    exchange: Optional[str] = None
    country: Optional[str] = None
    security_type: Optional[SecurityType] = None
    outputsize: Optional[int] = None
    dp: int = DEFAULT_DP
    order: SortOrder = DEFAULT_ORDER
    timezone: Optional[str] = None
    start_date: Optional[DateBound] = None
    end_date: Optional[DateBound] = None
    previous_close: bool = False
    apikey: Optional[str] = field(default=None, repr=False)


@dataclass(frozen=True, eq=False)
class NormalizedSeries:
    """A parsed time series plus the metadata block returned alongside it.

    ``data`` holds one row per record of the response, in response order. For
    the tabular format the first column is the temporal column; for the
    time-indexed format that column is the index. ``meta`` is a read-only copy
    of the response ``meta`` object and ``accessed`` is the UTC time at which
    the response was normalized.
    """

    data: pd.DataFrame
    meta: Mapping[str, Any]
    accessed: datetime
    interval: str
    output_format: str
    time_column: str = "datetime"

    def __post_init__(self) -> None:
        if not isinstance(self.meta, MappingProxyType):
            object.__setattr__(self, "meta", MappingProxyType(dict(self.meta)))

    def __len__(self) -> int:
        return len(self.data)

    @property
    def symbol(self) -> Optional[str]:
        return self.meta.get("symbol")

    @property
    def currency(self) -> Optional[str]:
        return self.meta.get("currency")

    @property
    def exchange_timezone(self) -> Optional[str]:
        return self.meta.get("exchange_timezone")
