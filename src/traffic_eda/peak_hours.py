"""
Peak Hour Analysis
==================

For every calendar date, find the hour with the highest average vehicle
count and describe it.

THE TWO-STAGE AGGREGATION:
--------------------------
1. Bucket:   group observations by (date, hour) and average the vehicle
             count and speed of each bucket
2. Select:   per date, keep the bucket(s) whose average vehicle count equals
             that date's maximum
3. Roll up:  over the raw observations of each selected bucket, compute
             max/mean vehicle count and max/mean speed

    observations --bucket--> (date, hour) averages --select--> peak buckets
         |                                                         |
         +---------------------- roll up over raw rows <-----------+

TIES:
-----
Two hours of the same date can share the exact maximum average. The tie
policy decides what is reported:

- "all":   every tied hour gets its own row (several rows for that date)
- "first": only the lowest-numbered tied hour is reported

"all" is the default. Either way the choice is explicit; nothing depends
on row order.

PURITY:
-------
Both entry points are pure functions of their input. The bucket table and
the peak selection are local DataFrames released when the call returns.
Numbers are NOT rounded here; rounding is a presentation concern handled in
load.py.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Union

import pandas as pd

from .config import TIE_POLICIES, TiePolicy
from .logging_config import get_logger
from .transform import derive_date_and_hour, validate_observations

Observations = Union[pd.DataFrame, Iterable[Mapping[str, Any]]]

PEAK_HOUR_COLUMNS = [
    "date",
    "peak_hour",
    "max_vehicle_count",
    "avg_vehicle_count",
    "max_speed",
    "avg_speed",
]

PEAK_DAY_COLUMNS = ["date", "peak_hours", "avg_vehicle_count", "avg_speed"]

# =============================================================================
# CUSTOM EXCEPTIONS
# =============================================================================


class PeakHourError(Exception):
    """Base class for peak-hour analysis failures."""


class EmptyInputError(PeakHourError):
    """
    Raised when there are no observations to analyze.

    An empty table is reported instead of returning an empty result, so a
    broken export can't masquerade as a quiet day.
    """


class InvalidFilterError(PeakHourError):
    """
    Raised when an area/location filter matches zero observations.

    Usually a typo in --area/--location, or a filter on a column the source
    table doesn't have.
    """


# =============================================================================
# FILTER
# =============================================================================


@dataclass(frozen=True)
class PeakFilter:
    """
    Exact-match predicate on area and/or location.

    A field left as None does not filter. PeakFilter() matches everything.
    """

    area: str | None = None
    location: str | None = None

    @property
    def is_empty(self) -> bool:
        return self.area is None and self.location is None

    def describe(self) -> str:
        parts = [f"{name}={value!r}" for name, value in self.predicates()]
        return ", ".join(parts) if parts else "no filter"

    def predicates(self) -> list[tuple[str, str]]:
        return [
            (name, value)
            for name, value in (("area", self.area), ("location", self.location))
            if value is not None
        ]


# =============================================================================
# PRIMITIVES
# =============================================================================


def prepare_observations(observations: Observations) -> pd.DataFrame:
    """
    Accept a DataFrame or an iterable of records and validate it.

    Records need `date`, `vehicle_count` and `average_speed` plus either an
    `hour` or a `timestamp` field.

    Raises:
        EmptyInputError: If there are no observations
        MalformedObservationError: If a record lacks a usable date/hour or metric
    """
    if isinstance(observations, pd.DataFrame):
        df = observations
    else:
        df = pd.DataFrame(list(observations))

    if df.empty:
        raise EmptyInputError("No observations supplied")

    return validate_observations(derive_date_and_hour(df))


def apply_filter(df: pd.DataFrame, peak_filter: PeakFilter | None) -> pd.DataFrame:
    """
    Keep the observations matching every predicate of peak_filter.

    Raises:
        InvalidFilterError: If the filter names a missing column or matches nothing
    """
    if peak_filter is None or peak_filter.is_empty:
        return df

    mask = pd.Series(True, index=df.index)
    for column, value in peak_filter.predicates():
        if column not in df.columns:
            raise InvalidFilterError(
                f"Cannot filter on {column}: observations have no '{column}' column"
            )
        mask &= df[column] == value

    filtered = df[mask]
    if filtered.empty:
        raise InvalidFilterError(f"No observations match {peak_filter.describe()}")

    get_logger().debug(f"Filter {peak_filter.describe()} kept {len(filtered)} of {len(df)} rows")
    return filtered


def bucket_observations(df: pd.DataFrame) -> pd.DataFrame:
    """
    Average vehicle count and speed per (date, hour) bucket.

    Returns:
        One row per bucket: date, hour, avg_vehicle_count, avg_speed
    """
    return (
        df.groupby(["date", "hour"], sort=True)
        .agg(
            avg_vehicle_count=("vehicle_count", "mean"),
            avg_speed=("average_speed", "mean"),
        )
        .reset_index()
    )


def select_peak_buckets(buckets: pd.DataFrame, tie_policy: TiePolicy = "all") -> pd.DataFrame:
    """
    Pick each date's bucket(s) with the maximum average vehicle count.

    Args:
        buckets: Output of bucket_observations()
        tie_policy: "all" keeps every tied hour, "first" keeps the lowest hour

    Returns:
        Selected buckets ordered by date, hour

    Raises:
        ValueError: If tie_policy is not a known policy
    """
    if tie_policy not in TIE_POLICIES:
        raise ValueError(f"Unknown tie policy {tie_policy!r}; expected one of {TIE_POLICIES}")

    # max() returns one of the bucket values, so equality is exact
    day_max = buckets.groupby("date")["avg_vehicle_count"].transform("max")
    peaks = buckets[buckets["avg_vehicle_count"] == day_max]
    peaks = peaks.sort_values(["date", "hour"])

    if tie_policy == "first":
        peaks = peaks.drop_duplicates(subset="date", keep="first")

    return peaks.reset_index(drop=True)


# =============================================================================
# ENTRY POINTS
# =============================================================================


def compute_peak_hours(
    observations: Observations,
    peak_filter: PeakFilter | None = None,
    tie_policy: TiePolicy = "all",
) -> pd.DataFrame:
    """
    Summarize the peak hour of every date.

    Args:
        observations: Observations as a DataFrame or iterable of records
        peak_filter: Optional area/location restriction applied first
        tie_policy: How tied peak hours are reported ("all" or "first")

    Returns:
        DataFrame with columns date, peak_hour, max_vehicle_count,
        avg_vehicle_count, max_speed, avg_speed; ordered by date ascending,
        then max_vehicle_count descending, then peak_hour ascending.

    Raises:
        EmptyInputError: If no observations are supplied
        InvalidFilterError: If the filter matches no observations
        MalformedObservationError: If observations fail validation
    """
    logger = get_logger()

    df = apply_filter(prepare_observations(observations), peak_filter)
    peaks = select_peak_buckets(bucket_observations(df), tie_policy)

    in_peak = df.merge(peaks[["date", "hour"]], on=["date", "hour"], how="inner")
    result = (
        in_peak.groupby(["date", "hour"], sort=True)
        .agg(
            max_vehicle_count=("vehicle_count", "max"),
            avg_vehicle_count=("vehicle_count", "mean"),
            max_speed=("average_speed", "max"),
            avg_speed=("average_speed", "mean"),
        )
        .reset_index()
        .rename(columns={"hour": "peak_hour"})
    )
    result = result.sort_values(
        ["date", "max_vehicle_count", "peak_hour"],
        ascending=[True, False, True],
        kind="mergesort",
    ).reset_index(drop=True)

    described = peak_filter.describe() if peak_filter else "no filter"
    logger.info(
        f"Computed {len(result)} peak-hour rows for {result['date'].nunique()} dates",
        extra={"extra_data": {"filter": described, "tie_policy": tie_policy}},
    )
    return result[PEAK_HOUR_COLUMNS]


def compute_peak_day_metrics(
    observations: Observations,
    peak_filter: PeakFilter | None = None,
    tie_policy: TiePolicy = "all",
) -> pd.DataFrame:
    """
    Daily averages restricted to the peak hour(s) of each date.

    Unlike compute_peak_hours(), the averages are taken over all of a date's
    observations whose hour is one of its peak hours, pooled together, so a
    date with two tied peak hours gets a single row.

    Returns:
        DataFrame with columns date, peak_hours (tuple of ints),
        avg_vehicle_count, avg_speed; ordered by date.

    Raises:
        Same as compute_peak_hours()
    """
    logger = get_logger()

    df = apply_filter(prepare_observations(observations), peak_filter)
    peaks = select_peak_buckets(bucket_observations(df), tie_policy)

    in_peak = df.merge(peaks[["date", "hour"]], on=["date", "hour"], how="inner")
    averages = (
        in_peak.groupby("date", sort=True)
        .agg(
            avg_vehicle_count=("vehicle_count", "mean"),
            avg_speed=("average_speed", "mean"),
        )
        .reset_index()
    )
    peak_hours = (
        peaks.groupby("date", sort=True)["hour"]
        .agg(lambda hours: tuple(int(h) for h in hours))
        .rename("peak_hours")
        .reset_index()
    )
    result = averages.merge(peak_hours, on="date", how="inner")
    result = result.sort_values("date", kind="mergesort").reset_index(drop=True)

    logger.info(f"Computed peak-hour daily metrics for {len(result)} dates")
    return result[PEAK_DAY_COLUMNS]
