from __future__ import annotations

import argparse
import json
import os
import sys
from typing import Optional, Sequence

from dotenv import load_dotenv

from twelvedata_provider.client import TwelveDataClient
from twelvedata_provider.config import TwelveDataConfig, save_api_key
from twelvedata_provider.logging_config import configure_logging
from twelvedata_provider.models import INTERVALS, OUTPUT_FORMATS, SECURITY_TYPES, SORT_ORDERS, NormalizedSeries


def _maybe_load_dotenv() -> None:
    raw = os.environ.get("DISABLE_DOTENV")
    if raw is not None and raw.strip().lower() in {"1", "true", "t", "yes", "y", "on"}:
        return
    load_dotenv(override=False)


def _build_client() -> TwelveDataClient:
    return TwelveDataClient(TwelveDataConfig.from_env(require_api_key=False))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="twelvedata-provider", description="Fetch time series from Twelve Data.")
    sub = parser.add_subparsers(dest="command", required=True)

    series = sub.add_parser("series", help="Fetch a time series and print it as CSV (or JSON for raw).")
    series.add_argument("symbol", help="Symbol understood by Twelve Data, e.g. SPY or EUR/USD.")
    series.add_argument("-i", "--interval", default="1day", choices=INTERVALS)
    series.add_argument("-f", "--format", dest="output_format", default="tabular", choices=OUTPUT_FORMATS)
    series.add_argument("-n", "--outputsize", type=int, default=None, help="Number of data points (1-5000).")
    series.add_argument("--exchange", default=None)
    series.add_argument("--country", default=None)
    series.add_argument("--type", dest="security_type", default=None, choices=SECURITY_TYPES)
    series.add_argument("--dp", type=int, default=5, help="Decimal places (0-11).")
    series.add_argument("--order", default="ASC", choices=SORT_ORDERS)
    series.add_argument("--timezone", default=None, help="'Exchange', 'UTC' or an IANA zone name.")
    series.add_argument("--start-date", default=None)
    series.add_argument("--end-date", default=None)
    series.add_argument("--previous-close", action="store_true")
    series.add_argument("--apikey", default=None, help="API key override for this call.")

    set_key = sub.add_parser("set-key", help="Store an API key in the Twelve Data config file.")
    set_key.add_argument("api_key")
    set_key.add_argument("--config", default=None, help="Config file path override.")
    return parser


def _run_series(args: argparse.Namespace) -> None:
    with _build_client() as client:
        result = client.time_series(
            args.symbol,
            args.interval,
            output_format=args.output_format,
            outputsize=args.outputsize,
            exchange=args.exchange,
            country=args.country,
            security_type=args.security_type,
            dp=args.dp,
            order=args.order,
            timezone=args.timezone,
            start_date=args.start_date,
            end_date=args.end_date,
            previous_close=bool(args.previous_close),
            apikey=args.apikey,
        )

    if isinstance(result, NormalizedSeries):
        result.data.to_csv(sys.stdout, index=result.output_format == "time-indexed")
    else:
        print(json.dumps(result, indent=2, ensure_ascii=False))


def main(argv: Optional[Sequence[str]] = None) -> int:
    _maybe_load_dotenv()
    configure_logging()
    args = _build_parser().parse_args(list(argv) if argv is not None else None)

    try:
        if args.command == "set-key":
            path = save_api_key(args.api_key, config_path=args.config)
            print(f"config={path}")
        else:
            _run_series(args)
        return 0
    except Exception as exc:
        message = str(exc).strip() or exc.__class__.__name__
        print(f"Error: {message}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
