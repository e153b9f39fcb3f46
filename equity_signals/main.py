"""CLI entry point for the equity signals toolkit."""

from __future__ import annotations

import argparse
import datetime
import json
import logging
import sys
from pathlib import Path
from typing import Any

from equity_signals.config import ReitFlags, ValuationConfig
from equity_signals.data.fmp import auto_select_provider
from equity_signals.errors import (
    EquitySignalsError,
    SymbolNotFoundError,
    UpstreamUnavailableError,
)
from equity_signals.runner import (
    analyze_quick_scores,
    analyze_reit,
    build_quick_scores_payload,
    build_reit_payload,
)

logger = logging.getLogger(__name__)

EXIT_ERROR = 1
EXIT_NOT_FOUND = 2


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Argument list (defaults to sys.argv[1:]).

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        prog="equity-signals",
        description="REIT valuation and sector scoring toolkit",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # reit command
    reit_parser = subparsers.add_parser(
        "reit", help="Value a REIT (DDM, FFO, NAV) from live FMP data"
    )
    reit_parser.add_argument("symbol", help="Ticker symbol (e.g. O)")
    reit_parser.add_argument(
        "--as-of",
        type=datetime.date.fromisoformat,
        default=None,
        help="Valuation date for the dividend CAGR window (default: today)",
    )
    reit_parser.add_argument(
        "--no-profile",
        action="store_true",
        help="Disable growth/income profile detection",
    )
    reit_parser.add_argument(
        "--no-confidence",
        action="store_true",
        help="Omit FFO and NAV confidence badges",
    )
    reit_parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write JSON to this file instead of stdout",
    )
    reit_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    # score command
    score_parser = subparsers.add_parser(
        "score", help="Compute sector context and data quality scores"
    )
    score_parser.add_argument(
        "input",
        type=Path,
        help="JSON file with compositeScore, sector, indicators and benchmarks",
    )
    score_parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write JSON to this file instead of stdout",
    )
    score_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    return parser.parse_args(argv)


def _write_json(payload: dict[str, Any], output: Path | None) -> None:
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    if output is None:
        print(text)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text + "\n", encoding="utf-8")
    logger.info("Written to %s", output)


def run_reit(args: argparse.Namespace) -> None:
    """Execute the reit command.

    Args:
        args: Parsed CLI arguments.
    """
    config = ValuationConfig(
        flags=ReitFlags(
            enable_confidence_badges=not args.no_confidence,
            enable_profile_detection=not args.no_profile,
        )
    )
    provider = auto_select_provider()
    analysis = analyze_reit(args.symbol.upper(), provider, config, as_of=args.as_of)
    _write_json(build_reit_payload(analysis), args.output)


def run_score(args: argparse.Namespace) -> None:
    """Execute the score command.

    The input file holds ``compositeScore``, ``sector`` and
    ``indicators``, plus optional ``calculatedMetrics``,
    ``benchmarkComparisons``, ``benchmarkMetadata``,
    ``currentDataPeriod``, ``benchmarkAsOf`` and ``statements`` (upstream
    ratios and statements used to fill placeholder indicators).

    Args:
        args: Parsed CLI arguments.
    """
    with args.input.open(encoding="utf-8") as f:
        document = json.load(f)

    scores = analyze_quick_scores(
        composite_score=float(document["compositeScore"]),
        sector=str(document.get("sector") or ""),
        indicators=document.get("indicators") or {},
        calculated_by_label=document.get("calculatedMetrics"),
        benchmark_comparisons=document.get("benchmarkComparisons"),
        benchmark_metadata=document.get("benchmarkMetadata"),
        current_data_period=document.get("currentDataPeriod"),
        benchmark_as_of=document.get("benchmarkAsOf"),
        statements=document.get("statements"),
    )
    _write_json(build_quick_scores_payload(scores), args.output)


def main(argv: list[str] | None = None) -> None:
    """Main entry point.

    Args:
        argv: Argument list (defaults to sys.argv[1:]).
    """
    args = _parse_args(argv)

    # Configure logging
    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        if args.command == "reit":
            run_reit(args)
        elif args.command == "score":
            run_score(args)
        else:
            logger.error("Unknown command: %s", args.command)
            sys.exit(EXIT_ERROR)
    except SymbolNotFoundError as e:
        logger.error("Symbol not found: %s", e.symbol)
        sys.exit(EXIT_NOT_FOUND)
    except UpstreamUnavailableError as e:
        logger.error("Upstream data unavailable: %s", e)
        sys.exit(EXIT_ERROR)
    except EquitySignalsError as e:
        logger.error("Valuation failed: %s", e)
        sys.exit(EXIT_ERROR)
    except (OSError, KeyError, TypeError, ValueError) as e:
        logger.error("Invalid input: %s", e)
        sys.exit(EXIT_ERROR)


if __name__ == "__main__":
    main()
