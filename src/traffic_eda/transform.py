"""
Transform Module - Observation Cleaning and Validation
======================================================

This module turns the raw table read by extract.py into observations that
the analysis modules can rely on.

TRANSFORMATION PIPELINE:
------------------------
1. Normalize column names -> "Average Speed (in km/h)" becomes "average_speed"
2. Derive date and hour   -> hour of day taken from the Timestamp/Time column
3. Validate observations  -> parseable dates, whole hours 0-23, numeric metrics

After transform() every row has exactly one (date, hour) pair, and
vehicle_count / average_speed are numeric. Contextual columns (weather,
visibility, roadwork, ...) are carried through untouched for reports.py.

IMMUTABILITY PRINCIPLE:
-----------------------
Each function returns a NEW DataFrame rather than modifying its input.
The aggregations downstream are pure functions of the observations, which
only holds if nobody mutates the frame they were handed.

TIMESTAMPS:
-----------
The source has a separate Date column and a time-of-day column that is
called "Timestamp" in some exports and "Time" in others. Only the hour is
taken from it. If there is no Date column, the timestamp must be a full
datetime and the date is taken from it as well.
"""

from __future__ import annotations

import re
from datetime import time

import pandas as pd

from .logging_config import get_logger

# Columns every observation must carry after transform()
OBSERVATION_COLUMNS = ["date", "hour", "area", "location", "vehicle_count", "average_speed"]

# Columns the aggregators cannot work without
REQUIRED_COLUMNS = {"date", "hour", "vehicle_count", "average_speed"}

METRIC_COLUMNS = ("vehicle_count", "average_speed")

# =============================================================================
# CUSTOM EXCEPTION
# =============================================================================


class MalformedObservationError(Exception):
    """
    Raised when observations cannot be used for analysis.

    Examples:
    - No Date/Timestamp column to derive the (date, hour) pair from
    - Dates or times that do not parse
    - Hours outside 0-23
    - Non-numeric or missing vehicle counts or speeds

    These usually mean the source export is broken, so they are reported
    with a count of offending rows rather than silently dropped.
    """


# =============================================================================
# COLUMN NAMES
# =============================================================================


def normalize_column_name(name: object) -> str:
    """
    Convert a source header into a snake_case column name.

    Parenthesised unit suffixes are dropped, so "Temperature (in C)" and
    "Wind Speed (in km/h)" become "temperature" and "wind_speed".
    """
    text = str(name).strip().lower()
    text = re.sub(r"\(.*?\)", "", text)
    return re.sub(r"[^0-9a-z]+", "_", text).strip("_")


def normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    """
    Return a copy of df with normalized column names.

    "time" is accepted as an alias for "timestamp".

    Raises:
        MalformedObservationError: If two headers normalize to the same name
    """
    df = df.copy()
    df.columns = [normalize_column_name(c) for c in df.columns]

    if "timestamp" not in df.columns and "time" in df.columns:
        df = df.rename(columns={"time": "timestamp"})

    duplicated = df.columns[df.columns.duplicated()].tolist()
    if duplicated:
        raise MalformedObservationError(
            f"Columns collide after normalization: {sorted(set(duplicated))}"
        )
    return df


# =============================================================================
# DATE / HOUR DERIVATION
# =============================================================================


def _parse_timestamps(values: pd.Series) -> pd.Series:
    """Parse datetimes, time-of-day strings or datetime.time objects."""
    if pd.api.types.is_datetime64_any_dtype(values):
        return values
    # str() of a datetime.time is "HH:MM:SS", which parses as today at that time
    return pd.to_datetime(values.astype(str), errors="coerce", format="mixed")


TIME_ONLY_FORMATS = ("%H:%M:%S.%f", "%H:%M:%S", "%H:%M")


def _is_time_only(values: pd.Series) -> pd.Series:
    """Flag values that hold a time of day with no calendar date."""
    if pd.api.types.is_datetime64_any_dtype(values):
        return pd.Series(False, index=values.index)
    text = values.astype(str).str.strip()
    time_only = values.map(lambda v: isinstance(v, time)).astype(bool)
    for fmt in TIME_ONLY_FORMATS:
        time_only |= pd.to_datetime(text, format=fmt, errors="coerce").notna()
    return time_only


def derive_date_and_hour(df: pd.DataFrame) -> pd.DataFrame:
    """
    Add the `hour` column (and `date` when missing) from the timestamp.

    Rows that already carry an `hour` column are left alone, which lets
    callers pass pre-bucketed observations straight to the aggregators.

    Args:
        df: DataFrame with normalized column names

    Returns:
        DataFrame with `date` and `hour` columns

    Raises:
        MalformedObservationError: If no timestamp is available, it fails to parse,
            or the date must come from timestamps that are only times of day
    """
    logger = get_logger()
    df = df.copy()

    if "hour" in df.columns and "date" in df.columns:
        return df

    if "timestamp" not in df.columns:
        raise MalformedObservationError(
            "Cannot derive hour of day: no 'Timestamp' or 'Time' column found. "
            f"Found columns: {list(df.columns)}"
        )

    parsed = _parse_timestamps(df["timestamp"])
    null_count = int(parsed.isna().sum())
    if null_count > 0:
        raise MalformedObservationError(
            f"Failed to parse {null_count} timestamp values. "
            "Check that the Timestamp/Time column holds times of day."
        )

    if "hour" not in df.columns:
        df["hour"] = parsed.dt.hour
    if "date" not in df.columns:
        time_only = int(_is_time_only(df["timestamp"]).sum())
        if time_only > 0:
            raise MalformedObservationError(
                f"Cannot derive date: {time_only} timestamp values are times of day "
                "with no date part. Add a Date column or use full datetimes."
            )
        df["date"] = parsed.dt.date

    logger.debug(f"Derived hour of day for {len(df)} observations")
    return df


# =============================================================================
# VALIDATION
# =============================================================================


def validate_observations(df: pd.DataFrame) -> pd.DataFrame:
    """
    Validate observations and coerce them to their analysis types.

    After this function:
    - `date` holds datetime.date values
    - `hour` holds ints in 0-23
    - `vehicle_count` and `average_speed` are numeric

    FAIL VS WARN:
    -------------
    - Missing columns, unparseable values: FAIL (the (date, hour) pair or
      the metrics would be wrong)
    - Negative counts or speeds: WARN (suspicious, but kept)

    Args:
        df: Observations with normalized column names

    Returns:
        Validated copy of the observations

    Raises:
        MalformedObservationError: If any check fails
    """
    logger = get_logger()

    missing = REQUIRED_COLUMNS - set(df.columns)
    if missing:
        raise MalformedObservationError(
            f"Missing required observation columns: {sorted(missing)}"
        )

    df = df.copy()

    # -------------------------------------------------------------------------
    # Date
    # -------------------------------------------------------------------------
    dates = pd.to_datetime(df["date"], errors="coerce")
    null_count = int(dates.isna().sum())
    if null_count > 0:
        raise MalformedObservationError(f"Found {null_count} unparseable or missing dates")
    df["date"] = dates.dt.date

    # -------------------------------------------------------------------------
    # Hour
    # -------------------------------------------------------------------------
    hours = pd.to_numeric(df["hour"], errors="coerce")
    invalid = hours.isna() | (hours % 1 != 0) | (hours < 0) | (hours > 23)
    invalid_count = int(invalid.sum())
    if invalid_count > 0:
        raise MalformedObservationError(
            f"Found {invalid_count} hours that are missing or outside 0-23"
        )
    df["hour"] = hours.astype(int)

    # -------------------------------------------------------------------------
    # Metrics
    # -------------------------------------------------------------------------
    for col in METRIC_COLUMNS:
        values = pd.to_numeric(df[col], errors="coerce")
        null_count = int(values.isna().sum())
        if null_count > 0:
            raise MalformedObservationError(
                f"Found {null_count} non-numeric or missing values in '{col}'"
            )
        if (values < 0).any():
            logger.warning(f"Found negative values in '{col}' - this may indicate data issues")
        df[col] = values

    logger.debug(f"Validated {len(df)} observations")
    return df


# =============================================================================
# ORCHESTRATION
# =============================================================================


def transform(df: pd.DataFrame) -> pd.DataFrame:
    """
    Apply all transformations to the raw table.

    Args:
        df: Raw DataFrame from extraction

    Returns:
        Validated observations, core columns first, contextual columns after
    """
    logger = get_logger()
    logger.info("Starting observation transform")

    df = normalize_columns(df)
    df = derive_date_and_hour(df)
    df = validate_observations(df)

    leading = [c for c in OBSERVATION_COLUMNS if c in df.columns]
    trailing = [c for c in df.columns if c not in leading]
    df = df[leading + trailing]

    logger.info(f"Transform complete: {len(df)} observations over {df['date'].nunique()} dates")
    return df
