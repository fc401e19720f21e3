"""Twelve Data ``/time_series`` client.

Typical usage::

    from twelvedata_provider import TwelveDataClient, TwelveDataConfig

    with TwelveDataClient(TwelveDataConfig.from_env()) as td:
        series = td.time_series("SPY", "5min", outputsize=500)
        print(series.meta["exchange_timezone"], len(series))
        print(series.data.head())

Each call is one blocking GET. There is no retry, pagination, caching or rate
limiting: API errors surface as :class:`TwelveDataRemoteError` with the API's
own message.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Mapping, Optional, Union

import httpx

from twelvedata_provider.config import TwelveDataConfig
from twelvedata_provider.errors import (
    TwelveDataError,
    TwelveDataMalformedDataError,
    TwelveDataRemoteError,
)
from twelvedata_provider.formats import resolve_formatter
from twelvedata_provider.logging_config import REDACTED, redact_api_key
from twelvedata_provider.models import DEFAULT_DP, DEFAULT_ORDER, DateBound, NormalizedSeries, TimeSeriesRequest
from twelvedata_provider.normalize import normalize_time_series
from twelvedata_provider.query import build_url, validate_request

logger = logging.getLogger(__name__)


class TwelveDataClient:
    """Client for the Twelve Data time-series endpoint.

    Parameters
    ----------
    config : TwelveDataConfig
        API key, base URL, timeout and output options. The key may be empty
        when every call passes its own ``apikey``.
    http_client : httpx.Client, optional
        Injected transport. A client passed in is not closed by :meth:`close`.
    """

    def __init__(self, config: TwelveDataConfig, *, http_client: Optional[httpx.Client] = None) -> None:
        self.config = config
        self._formatter = resolve_formatter(config.time_index_support)
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(timeout=httpx.Timeout(config.timeout_seconds), trust_env=False)

    def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        if self._owns_client:
            self._http.close()

    def __enter__(self) -> "TwelveDataClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _redact(self, text: str) -> str:
        out = text
        api_key = str(self.config.api_key or "")
        if api_key:
            out = out.replace(api_key, REDACTED)
        return redact_api_key(out)

    def _log(self, level: int, message: str, **context: Any) -> None:
        if not logger.isEnabledFor(level):
            return
        safe_context = {
            k: (self._redact(v) if isinstance(v, str) else v) for k, v in context.items() if v is not None
        }
        logger.log(level, message, extra={"context": safe_context})

    def build_url(self, request: TimeSeriesRequest) -> str:
        return build_url(request, api_key=self.config.api_key, base_url=self.config.base_url)

    def fetch(self, request: TimeSeriesRequest) -> Any:
        """Issue the GET for ``request`` and return the parsed JSON body."""
        url = self.build_url(request)
        safe_url = self._redact(url)
        started = time.monotonic()
        self._log(
            logging.DEBUG,
            "Twelve Data request started",
            td_event="request_start",
            td_symbol=request.symbol,
            td_interval=request.interval,
            td_url=safe_url,
        )

        try:
            response = self._http.get(url)
        except httpx.TimeoutException as exc:
            self._log(logging.ERROR, "Twelve Data request timed out", td_event="request_failed", td_url=safe_url)
            raise TwelveDataError("Twelve Data request timed out.", payload={"url": safe_url}) from exc
        except httpx.HTTPError as exc:
            self._log(
                logging.ERROR,
                "Twelve Data request failed",
                td_event="request_failed",
                td_url=safe_url,
                td_error_type=type(exc).__name__,
            )
            raise TwelveDataError(
                f"Twelve Data call failed: {type(exc).__name__}: {self._redact(str(exc))}",
                payload={"url": safe_url},
            ) from exc

        status_code = int(response.status_code)
        try:
            payload = response.json()
        except ValueError as exc:
            snippet = (response.text or "").strip().replace("\n", " ")
            if len(snippet) > 200:
                snippet = snippet[:200] + "..."
            if status_code >= 400:
                raise TwelveDataError(
                    f"Twelve Data HTTP error (status={status_code}).",
                    status_code=status_code,
                    detail=snippet or response.reason_phrase,
                    payload={"url": safe_url, "status_code": status_code},
                ) from exc
            raise TwelveDataMalformedDataError(
                "Failed to parse JSON response from Twelve Data.",
                status_code=status_code,
                payload={"url": safe_url, "snippet": snippet},
            ) from exc

        if status_code >= 400 and not (isinstance(payload, Mapping) and "status" in payload):
            detail = str(payload.get("message") or "") if isinstance(payload, Mapping) else ""
            raise TwelveDataError(
                detail or f"Twelve Data HTTP error (status={status_code}).",
                status_code=status_code,
                detail=detail or None,
                payload={"url": safe_url, "status_code": status_code},
            )

        self._log(
            logging.DEBUG,
            "Twelve Data request succeeded",
            td_event="request_success",
            td_symbol=request.symbol,
            td_interval=request.interval,
            td_status_code=status_code,
            td_elapsed_ms=round((time.monotonic() - started) * 1000.0, 1),
        )
        return payload

    def get_time_series(self, request: TimeSeriesRequest) -> Union[Mapping[str, Any], NormalizedSeries]:
        """Fetch and normalize ``request`` into its requested output format."""
        validate_request(request)
        payload = self.fetch(request)
        try:
            return normalize_time_series(
                payload,
                interval=request.interval,
                output_format=request.output_format,
                timezone=request.timezone,
                formatter=self._formatter,
                default_timezone=self.config.default_timezone,
            )
        except TwelveDataRemoteError as exc:
            self._log(
                logging.WARNING,
                "Twelve Data returned an error payload",
                td_event="remote_error",
                td_symbol=request.symbol,
                td_interval=request.interval,
                td_code=exc.status_code,
                td_message=exc.message,
            )
            raise

    def time_series(
        self,
        symbol: str,
        interval: str = "1day",
        *,
        output_format: str = "tabular",
        outputsize: Optional[int] = None,
        exchange: Optional[str] = None,
        country: Optional[str] = None,
        security_type: Optional[str] = None,
        dp: int = DEFAULT_DP,
        order: str = DEFAULT_ORDER,
        timezone: Optional[str] = None,
        start_date: Optional[DateBound] = None,
        end_date: Optional[DateBound] = None,
        previous_close: bool = False,
        apikey: Optional[str] = None,
    ) -> Union[Mapping[str, Any], NormalizedSeries]:
        """Retrieve OHLCV data for ``symbol``.

        Returns a :class:`NormalizedSeries` for ``tabular`` and
        ``time-indexed`` output, or the parsed JSON object for ``raw``.
        """
        request = TimeSeriesRequest(
            symbol=symbol,
            interval=interval,
            output_format=output_format,
            exchange=exchange,
            country=country,
            security_type=security_type,
            outputsize=outputsize,
            dp=dp,
            order=order,
            timezone=timezone,
            start_date=start_date,
            end_date=end_date,
            previous_close=previous_close,
            apikey=apikey,
        )
        return self.get_time_series(request)


_default_lock = threading.Lock()
_default_client: Optional[TwelveDataClient] = None


def get_default_client() -> TwelveDataClient:
    """Return the process-wide client, built from the environment on first use."""
    global _default_client
    if _default_client is None:
        with _default_lock:
            if _default_client is None:
                _default_client = TwelveDataClient(TwelveDataConfig.from_env(require_api_key=False))
    return _default_client


def reset_default_client() -> None:
    global _default_client
    with _default_lock:
        if _default_client is not None:
            _default_client.close()
        _default_client = None


def time_series(symbol: str, interval: str = "1day", **kwargs: Any) -> Union[Mapping[str, Any], NormalizedSeries]:
    """Module-level shortcut for :meth:`TwelveDataClient.time_series`."""
    return get_default_client().time_series(symbol, interval, **kwargs)
