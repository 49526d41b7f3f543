"""
Command-line interface for the application.

Computes Chill and GDD results on demand (JSON on stdout), lists a farm's
sensors and refreshes the snapshot store. Exit codes: 0 ok, 1 storage
failure, 2 invalid parameter.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any

from agroclimate import __version__
from agroclimate.config import get_settings
from agroclimate.engine import IndexEngine
from agroclimate.flows.refresh import refresh_all
from agroclimate.logging_config import configure_logging
from agroclimate.params import InvalidParameterError, parse_chill_query, parse_farm, parse_gdd_query
from agroclimate.schemas import to_payload
from agroclimate.sources import build_source
from agroclimate.sources.base import SourceError

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_SOURCE_ERROR = 1
EXIT_INVALID_PARAMETER = 2


def _add_range_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("farm", help="Farm identifier")
    parser.add_argument("--year", default=None, help="Campaign year (default: current)")
    parser.add_argument("--sensor", default=None, help="Only this sensor")
    parser.add_argument(
        "--range",
        dest="range_mode",
        default=None,
        help="'campaign' (default) or 'custom'",
    )
    parser.add_argument("--start-date", default=None, help="Custom range start, YYYY-MM-DD")
    parser.add_argument("--end-date", default=None, help="Custom range end, YYYY-MM-DD")
    parser.add_argument("--merge", default=None, help="Sensor merge: 'mean' (default) or 'sum'")


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="agroclimate",
        description="Chill hours and growing degree days from farm sensor readings",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("info", help="Show application info")

    sensors_parser = subparsers.add_parser("sensors", help="List a farm's sensors")
    sensors_parser.add_argument("farm", help="Farm identifier")

    chill_parser = subparsers.add_parser("chill", help="Compute chill hours / units")
    _add_range_options(chill_parser)
    chill_parser.add_argument("--mode", default=None, help="'delta' (default), 'fixed' or 'utah'")
    chill_parser.add_argument("--sample-minutes", default=None, help="Fixed/Utah sampling step")
    chill_parser.add_argument("--max-gap-minutes", default=None, help="Delta gap cap")
    chill_parser.add_argument(
        "--allow-negative",
        action="store_true",
        help="Utah: keep negative daily totals",
    )

    gdd_parser = subparsers.add_parser("gdd", help="Compute growing degree days")
    _add_range_options(gdd_parser)
    gdd_parser.add_argument("--base-temp", default=None, help="Base temperature in C")

    refresh_parser = subparsers.add_parser("refresh", help="Recompute index snapshots")
    refresh_parser.add_argument(
        "--farm",
        action="append",
        default=None,
        help="Only this farm (repeatable; default: all configured)",
    )
    refresh_parser.add_argument(
        "--force",
        action="store_true",
        help="Recompute even if the snapshot is still fresh",
    )

    return parser


def query_params(args: argparse.Namespace) -> dict[str, Any]:
    """Map parsed options to request parameter names, dropping unset ones."""
    names = {
        "year": "year",
        "sensor": "sensor",
        "range_mode": "range",
        "start_date": "startDate",
        "end_date": "endDate",
        "merge": "merge",
        "mode": "mode",
        "sample_minutes": "sampleMinutes",
        "max_gap_minutes": "maxGapMinutes",
        "base_temp": "baseTemp",
    }
    params: dict[str, Any] = {}
    for attr, name in names.items():
        value = getattr(args, attr, None)
        if value is not None:
            params[name] = value
    if getattr(args, "allow_negative", False):
        params["allowNegative"] = "true"
    return params


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def cmd_info(_args: argparse.Namespace) -> int:
    """Handle the 'info' command."""
    settings = get_settings()
    print(f"Application: {settings.app_name}")
    print(f"Version: {__version__}")
    print(f"Environment: {settings.app_env}")
    print(f"Debug: {settings.debug}")
    print(f"Timezone: {settings.timezone}")
    print(f"Farms: {', '.join(settings.farms)}")
    print(f"Source: {settings.source_url or settings.db_dir}")
    return EXIT_OK


def cmd_sensors(args: argparse.Namespace) -> int:
    """Handle the 'sensors' command."""
    settings = get_settings()
    farm_id = parse_farm(args.farm, settings.farms)
    _print_json(build_source(settings).list_sensors(farm_id))
    return EXIT_OK


def cmd_chill(args: argparse.Namespace) -> int:
    """Handle the 'chill' command."""
    settings = get_settings()
    query = parse_chill_query(args.farm, query_params(args), settings)
    engine = IndexEngine.from_settings(settings, build_source(settings))
    _print_json(to_payload(engine.chill(query)))
    return EXIT_OK


def cmd_gdd(args: argparse.Namespace) -> int:
    """Handle the 'gdd' command."""
    settings = get_settings()
    query = parse_gdd_query(args.farm, query_params(args), settings)
    engine = IndexEngine.from_settings(settings, build_source(settings))
    _print_json(to_payload(engine.gdd(query)))
    return EXIT_OK


def cmd_refresh(args: argparse.Namespace) -> int:
    """Handle the 'refresh' command: recompute stale snapshots."""
    settings = get_settings()
    farms = [parse_farm(f, settings.farms) for f in args.farm] if args.farm else None
    result = refresh_all(farms=farms, force=args.force)
    _print_json(result)
    return EXIT_SOURCE_ERROR if result.get("failed") else EXIT_OK


def main() -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args()

    configure_logging("DEBUG" if args.debug else None)

    if args.command is None:
        parser.print_help()
        return EXIT_OK

    commands = {
        "info": cmd_info,
        "sensors": cmd_sensors,
        "chill": cmd_chill,
        "gdd": cmd_gdd,
        "refresh": cmd_refresh,
    }

    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        return EXIT_SOURCE_ERROR

    try:
        return handler(args)
    except InvalidParameterError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_INVALID_PARAMETER
    except SourceError as exc:
        logger.error("Storage failure: %s", exc, extra={"reason": "source_error"})
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_SOURCE_ERROR


if __name__ == "__main__":
    sys.exit(main())
