"""Twelve Data time-series provider.

The official Twelve Data SDK is distributed as :mod:`twelvedata`; this package
is named :mod:`twelvedata_provider` so it never shadows it.

The public entry points are :class:`~twelvedata_provider.client.TwelveDataClient`
and the module-level :func:`~twelvedata_provider.client.time_series` shortcut.
"""

from twelvedata_provider.client import TwelveDataClient, get_default_client, reset_default_client, time_series
from twelvedata_provider.config import TwelveDataConfig, resolve_api_key, save_api_key
from twelvedata_provider.errors import (
    TwelveDataError,
    TwelveDataInvalidArgumentError,
    TwelveDataMalformedDataError,
    TwelveDataNotConfiguredError,
    TwelveDataRemoteError,
    TwelveDataUnsupportedFormatError,
)
from twelvedata_provider.models import NormalizedSeries, TimeSeriesRequest
from twelvedata_provider.normalize import normalize_time_series
from twelvedata_provider.query import build_query_params, build_url

__all__ = [
    "TwelveDataClient",
    "TwelveDataConfig",
    "TimeSeriesRequest",
    "NormalizedSeries",
    "time_series",
    "get_default_client",
    "reset_default_client",
    "resolve_api_key",
    "save_api_key",
    "build_query_params",
    "build_url",
    "normalize_time_series",
    "TwelveDataError",
    "TwelveDataInvalidArgumentError",
    "TwelveDataNotConfiguredError",
    "TwelveDataRemoteError",
    "TwelveDataMalformedDataError",
    "TwelveDataUnsupportedFormatError",
]
