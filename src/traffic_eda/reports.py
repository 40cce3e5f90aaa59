"""
Grouping Reports
================

Named reports that relate the traffic metrics (vehicle count, average speed)
to one contextual column at a time: location, area, weather, visibility,
temperature, humidity, wind, signal status, roadwork and accidents.

Each report is registered in REPORTS under a short name so the CLI can run
one (`report weather_impact`) or all of them (`report --all`).

    name                         groups by                     ordered by
    ---------------------------  ----------------------------  ---------------------
    speed_by_location            location                      avg_speed desc
    vehicles_by_area             area                          avg_vehicle_count desc
    extreme_congestion_by_date   date (congestion == Extreme)  date
    daily_trends                 date                          date
    weather_impact               weather_condition             key
    visibility_impact            visibility_level              key
    temperature_impact           temperature                   key
    humidity_impact              humidity                      key
    wind_speed_impact            wind_speed                    key
    signal_status_impact         traffic_signal_status         key
    roadwork_impact              roadwork                      key
    accident_level_impact        accident_level                key
    area_location_comparison     area, location                keys
    peak_day_metrics             see peak_hours.py             date
    roadwork_period              During/Before Roadwork        period

Rows with a missing grouping value form their own group, the same way a SQL
GROUP BY keeps NULL. Results are not rounded.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass

import pandas as pd

from .config import TiePolicy
from .logging_config import get_logger
from .peak_hours import EmptyInputError, compute_peak_day_metrics

ReportBuilder = Callable[[pd.DataFrame, TiePolicy], pd.DataFrame]

_METRIC_AGGREGATIONS = {
    "avg_vehicle_count": ("vehicle_count", "mean"),
    "avg_speed": ("average_speed", "mean"),
}

BOTH_METRICS = ("avg_vehicle_count", "avg_speed")


class ReportError(Exception):
    """Raised for an unknown report name or a table lacking the report's columns."""


@dataclass(frozen=True)
class Report:
    """
    A named grouping report.

    ATTRIBUTES:
    -----------
    - name: registry key, also the output file stem (<name>.csv)
    - description: one line shown by `list-reports`
    - columns: source columns the report needs beyond the core observation columns
    - builder: callable (observations, tie_policy) -> report DataFrame
    """

    name: str
    description: str
    columns: tuple[str, ...]
    builder: ReportBuilder


# =============================================================================
# BUILDING BLOCKS
# =============================================================================


def average_by(
    df: pd.DataFrame,
    keys: Sequence[str],
    metrics: Sequence[str] = BOTH_METRICS,
    order_by: str | None = None,
    descending: bool = False,
) -> pd.DataFrame:
    """
    Average the requested metrics per group.

    Args:
        df: Validated observations
        keys: Grouping columns
        metrics: Any of "avg_vehicle_count", "avg_speed"
        order_by: Result column to sort on; defaults to the keys
        descending: Sort direction for order_by

    Returns:
        One row per group: keys followed by metrics
    """
    result = (
        df.groupby(list(keys), dropna=False, sort=True)
        .agg(**{metric: _METRIC_AGGREGATIONS[metric] for metric in metrics})
        .reset_index()
    )
    if order_by is not None:
        result = result.sort_values(order_by, ascending=not descending, kind="mergesort")
    return result.reset_index(drop=True)


def _averages(
    keys: Sequence[str],
    metrics: Sequence[str] = BOTH_METRICS,
    order_by: str | None = None,
    descending: bool = False,
) -> ReportBuilder:
    def build(df: pd.DataFrame, tie_policy: TiePolicy) -> pd.DataFrame:
        return average_by(df, keys, metrics, order_by=order_by, descending=descending)

    return build


def extreme_congestion_by_date(df: pd.DataFrame, tie_policy: TiePolicy = "all") -> pd.DataFrame:
    """Count of observations per date whose congestion level is "Extreme"."""
    extreme = df[df["congestion_level"] == "Extreme"]
    return (
        extreme.groupby("date", sort=True)
        .size()
        .reset_index(name="extreme_congestion_frequency")
    )


def roadwork_period(df: pd.DataFrame, tie_policy: TiePolicy = "all") -> pd.DataFrame:
    """Compare metrics while roadwork is reported ("Yes") against all other rows."""
    labelled = df.assign(
        roadwork_period=df["roadwork"].eq("Yes").map(
            {True: "During Roadwork", False: "Before Roadwork"}
        )
    )
    return average_by(labelled, ["roadwork_period"])


def peak_day_metrics(df: pd.DataFrame, tie_policy: TiePolicy = "all") -> pd.DataFrame:
    return compute_peak_day_metrics(df, tie_policy=tie_policy)


# =============================================================================
# REGISTRY
# =============================================================================


def _register(*reports: Report) -> dict[str, Report]:
    return {report.name: report for report in reports}


REPORTS: dict[str, Report] = _register(
    Report(
        "speed_by_location",
        "Average speed recorded at each location",
        ("location",),
        _averages(["location"], ["avg_speed"], order_by="avg_speed", descending=True),
    ),
    Report(
        "vehicles_by_area",
        "Average number of vehicles for each area",
        ("area",),
        _averages(["area"], ["avg_vehicle_count"], order_by="avg_vehicle_count", descending=True),
    ),
    Report(
        "extreme_congestion_by_date",
        "How often Extreme congestion is recorded on each date",
        ("congestion_level",),
        extreme_congestion_by_date,
    ),
    Report(
        "daily_trends",
        "Average vehicle count and speed for each day",
        (),
        _averages(["date"]),
    ),
    Report(
        "weather_impact",
        "Vehicle count and speed by weather condition",
        ("weather_condition",),
        _averages(["weather_condition"]),
    ),
    Report(
        "visibility_impact",
        "Vehicle count and speed by visibility level",
        ("visibility_level",),
        _averages(["visibility_level"]),
    ),
    Report(
        "temperature_impact",
        "Vehicle count and speed by temperature (C)",
        ("temperature",),
        _averages(["temperature"]),
    ),
    Report(
        "humidity_impact",
        "Vehicle count and speed by humidity (%)",
        ("humidity",),
        _averages(["humidity"]),
    ),
    Report(
        "wind_speed_impact",
        "Vehicle count and speed by wind speed (km/h)",
        ("wind_speed",),
        _averages(["wind_speed"]),
    ),
    Report(
        "signal_status_impact",
        "Vehicle count and speed by traffic signal status",
        ("traffic_signal_status",),
        _averages(["traffic_signal_status"]),
    ),
    Report(
        "roadwork_impact",
        "Vehicle count and speed with and without roadwork",
        ("roadwork",),
        _averages(["roadwork"]),
    ),
    Report(
        "accident_level_impact",
        "Vehicle count and speed by accident level",
        ("accident_level",),
        _averages(["accident_level"]),
    ),
    Report(
        "area_location_comparison",
        "Vehicle count and speed across areas and locations",
        ("area", "location"),
        _averages(["area", "location"]),
    ),
    Report(
        "peak_day_metrics",
        "Average vehicle count and speed during each day's peak hour(s)",
        (),
        peak_day_metrics,
    ),
    Report(
        "roadwork_period",
        "Vehicle count and speed during roadwork versus before it",
        ("roadwork",),
        roadwork_period,
    ),
)


# =============================================================================
# ENTRY POINT
# =============================================================================


def run_report(name: str, observations: pd.DataFrame, tie_policy: TiePolicy = "all") -> pd.DataFrame:
    """
    Run one registered report over validated observations.

    Args:
        name: Key of REPORTS
        observations: Output of transform.transform()
        tie_policy: Passed to reports that select peak hours

    Returns:
        Unrounded report table

    Raises:
        ReportError: If the name is unknown or required columns are missing
        EmptyInputError: If there are no observations
    """
    logger = get_logger()

    try:
        report = REPORTS[name]
    except KeyError as e:
        raise ReportError(
            f"Unknown report '{name}'. Available reports: {', '.join(REPORTS)}"
        ) from e

    if observations.empty:
        raise EmptyInputError(f"No observations to run report '{name}' on")

    required = {"date", "vehicle_count", "average_speed", *report.columns}
    missing = required - set(observations.columns)
    if missing:
        raise ReportError(f"Report '{name}' needs columns missing from the input: {sorted(missing)}")

    logger.debug(f"Running report '{name}': {report.description}")
    result = report.builder(observations, tie_policy)
    logger.info(f"Report '{name}' produced {len(result)} rows")
    return result
