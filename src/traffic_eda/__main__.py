"""
CLI Entrypoint for Traffic Analysis
===================================

This is the module that runs when you execute `python -m traffic_eda`
(or the `traffic-eda` console script installed by pip).

EXECUTION FLOW:
---------------
1. main() parses the sub-command and its options
2. Configuration is loaded and validated (fail fast)
3. EXTRACT:   the raw table is read from INPUT_PATH
4. TRANSFORM: headers normalized, date/hour derived, rows validated
5. ANALYZE:   the requested analysis runs over the observations
6. LOAD:      results rounded, written to OUTPUT_DIR, optionally uploaded

EXIT CODES:
-----------
Each phase has its own exit code so a failing cron job tells you where it
failed without reading the logs.

Usage:
    python -m traffic_eda peak-hours [--area A] [--location L] [--tie-policy all|first] [-v]
    python -m traffic_eda peak-days  [--area A] [--location L] [--tie-policy all|first] [-v]
    python -m traffic_eda report NAME [NAME ...] [-v]
    python -m traffic_eda report --all [-v]
    python -m traffic_eda list-reports
    python -m traffic_eda validate
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Callable, Sequence
from dataclasses import replace

import pandas as pd

from .config import TIE_POLICIES, Config, ConfigError, load_config
from .extract import ExtractionError, extract
from .load import LoadError, format_report, save_report_csv, upload_to_gcs
from .logging_config import setup_logging
from .peak_hours import (
    PeakFilter,
    PeakHourError,
    compute_peak_day_metrics,
    compute_peak_hours,
)
from .reports import REPORTS, ReportError, run_report
from .transform import MalformedObservationError, transform

# =============================================================================
# EXIT CODES
# =============================================================================

EXIT_SUCCESS = 0  # Everything worked
EXIT_CONFIG_ERROR = 1  # Missing/invalid env vars
EXIT_EXTRACTION_ERROR = 2  # Couldn't read the input table
EXIT_MALFORMED_DATA = 3  # Rows without a usable date/hour or metric
EXIT_ANALYSIS_ERROR = 4  # Empty input, filter matching nothing, bad report
EXIT_LOAD_ERROR = 5  # Couldn't write or upload a report

# An analysis takes validated observations and the run config, returns a table
Analysis = Callable[[pd.DataFrame, Config], pd.DataFrame]


# =============================================================================
# PIPELINE EXECUTION
# =============================================================================


def run_pipeline(
    analyses: Sequence[tuple[str, Analysis]],
    verbose: bool = False,
    tie_policy: str | None = None,
) -> int:
    """
    Run Extract -> Transform -> Analyze -> Load for one or more analyses.

    The table is read and validated once, then every analysis runs over the
    same observations. The pipeline stops at the first failing phase.

    Args:
        analyses: (report name, analysis function) pairs
        verbose: Enable DEBUG-level logging
        tie_policy: Overrides PEAK_TIE_POLICY when given

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    logger = setup_logging(verbose)
    logger.info("Starting traffic analysis")

    # -------------------------------------------------------------------------
    # CONFIGURATION PHASE
    # -------------------------------------------------------------------------
    try:
        config = load_config()
        if tie_policy:
            config = replace(config, tie_policy=tie_policy)
        logger.info(f"Configuration loaded: input={config.input_path}, tie_policy={config.tie_policy}")
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIG_ERROR

    # -------------------------------------------------------------------------
    # EXTRACT PHASE
    # -------------------------------------------------------------------------
    try:
        logger.info("=== EXTRACT PHASE ===")
        raw = extract(config.input_path)
    except ExtractionError as e:
        logger.error(f"Extraction failed: {e}")
        return EXIT_EXTRACTION_ERROR

    # -------------------------------------------------------------------------
    # TRANSFORM PHASE
    # -------------------------------------------------------------------------
    try:
        logger.info("=== TRANSFORM PHASE ===")
        observations = transform(raw)
    except MalformedObservationError as e:
        logger.error(f"Malformed observations: {e}")
        return EXIT_MALFORMED_DATA

    # -------------------------------------------------------------------------
    # ANALYZE PHASE
    # -------------------------------------------------------------------------
    results: list[tuple[str, pd.DataFrame]] = []
    try:
        logger.info("=== ANALYZE PHASE ===")
        for name, analysis in analyses:
            results.append((name, analysis(observations, config)))
    except MalformedObservationError as e:
        logger.error(f"Malformed observations: {e}")
        return EXIT_MALFORMED_DATA
    except (PeakHourError, ReportError) as e:
        logger.error(f"Analysis failed: {e}")
        return EXIT_ANALYSIS_ERROR

    # -------------------------------------------------------------------------
    # LOAD PHASE
    # -------------------------------------------------------------------------
    try:
        logger.info("=== LOAD PHASE ===")
        for name, result in results:
            formatted = format_report(result, config.round_decimals)
            logger.info(f"{name}:\n{formatted.to_string(index=False)}")
            csv_path = save_report_csv(formatted, config.output_dir, name)

            destination = config.output_gcs_location
            if destination is not None:
                bucket_name, prefix = destination
                upload_to_gcs(csv_path, bucket_name, f"{prefix}/{csv_path.name}")
    except LoadError as e:
        logger.error(f"Load failed: {e}")
        return EXIT_LOAD_ERROR

    logger.info("=== ANALYSIS COMPLETE ===")
    return EXIT_SUCCESS


def _peak_hours_analysis(peak_filter: PeakFilter) -> Analysis:
    def analysis(observations: pd.DataFrame, config: Config) -> pd.DataFrame:
        return compute_peak_hours(observations, peak_filter, config.tie_policy)

    return analysis


def _peak_days_analysis(peak_filter: PeakFilter) -> Analysis:
    def analysis(observations: pd.DataFrame, config: Config) -> pd.DataFrame:
        return compute_peak_day_metrics(observations, peak_filter, config.tie_policy)

    return analysis


def _report_analysis(name: str) -> Analysis:
    def analysis(observations: pd.DataFrame, config: Config) -> pd.DataFrame:
        return run_report(name, observations, config.tie_policy)

    return analysis


def list_reports() -> int:
    """Log every registered report name with its description."""
    logger = setup_logging()
    logger.info("Available reports:")
    for report in REPORTS.values():
        logger.info(f"  {report.name:28} {report.description}")
    return EXIT_SUCCESS


def validate_config() -> int:
    """
    Validate configuration without reading any data.

    Returns:
        Exit code (0 if configuration is valid)
    """
    logger = setup_logging(verbose=True)
    logger.info("Validating configuration...")

    try:
        config = load_config()
    except ConfigError as e:
        logger.error(f"Configuration invalid: {e}")
        return EXIT_CONFIG_ERROR

    logger.info("Configuration is valid:")
    logger.info(f"  Input: {config.input_path}")
    logger.info(f"  Output directory: {config.output_dir}")
    logger.info(f"  Upload to: {config.output_gcs_uri or '(disabled)'}")
    logger.info(f"  Peak tie policy: {config.tie_policy}")
    logger.info(f"  Rounding: {config.round_decimals} decimals")
    return EXIT_SUCCESS


# =============================================================================
# CLI ARGUMENT PARSING
# =============================================================================


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose (debug) logging",
    )


def _add_peak_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--area", help="Only use observations from this area (exact match)")
    parser.add_argument("--location", help="Only use observations from this location (exact match)")
    parser.add_argument(
        "--tie-policy",
        choices=TIE_POLICIES,
        help="Report every tied peak hour ('all') or only the earliest ('first'). "
        "Default: PEAK_TIE_POLICY or 'all'",
    )
    _add_common_arguments(parser)


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser with its sub-commands."""
    parser = argparse.ArgumentParser(
        prog="traffic_eda",
        description="Traffic exploratory analysis - peak hours and grouping reports",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    peak_parser = subparsers.add_parser(
        "peak-hours", help="Peak hour of each day with its vehicle count and speed"
    )
    _add_peak_arguments(peak_parser)

    days_parser = subparsers.add_parser(
        "peak-days", help="Daily averages restricted to each day's peak hour(s)"
    )
    _add_peak_arguments(days_parser)

    report_parser = subparsers.add_parser("report", help="Run one or more grouping reports")
    report_parser.add_argument("names", nargs="*", metavar="NAME", help="Report name(s)")
    report_parser.add_argument("--all", action="store_true", help="Run every registered report")
    report_parser.add_argument(
        "--tie-policy",
        choices=TIE_POLICIES,
        help="Tie policy for reports that select peak hours",
    )
    _add_common_arguments(report_parser)

    subparsers.add_parser("list-reports", help="List available grouping reports")
    subparsers.add_parser("validate", help="Validate configuration without reading data")

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """
    Parse arguments and dispatch to the right function.

    Args:
        argv: Arguments without the program name (defaults to sys.argv[1:])

    Returns:
        Exit code to pass to sys.exit()
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command in ("peak-hours", "peak-days"):
        peak_filter = PeakFilter(area=args.area, location=args.location)
        if args.command == "peak-hours":
            analyses = [("peak_hours", _peak_hours_analysis(peak_filter))]
        else:
            analyses = [("peak_day_metrics", _peak_days_analysis(peak_filter))]
        return run_pipeline(analyses, verbose=args.verbose, tie_policy=args.tie_policy)

    if args.command == "report":
        names = list(REPORTS) if args.all else args.names
        if not names:
            parser.error("report: give at least one NAME or --all")
        unknown = [name for name in names if name not in REPORTS]
        if unknown:
            parser.error(f"report: unknown report(s) {', '.join(unknown)}; see list-reports")
        analyses = [(name, _report_analysis(name)) for name in names]
        return run_pipeline(analyses, verbose=args.verbose, tie_policy=args.tie_policy)

    if args.command == "list-reports":
        return list_reports()

    if args.command == "validate":
        return validate_config()

    parser.print_help()
    return EXIT_SUCCESS


if __name__ == "__main__":
    sys.exit(main())
