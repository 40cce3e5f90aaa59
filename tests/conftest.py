"""Pytest configuration and fixtures."""

from __future__ import annotations

import sys
from pathlib import Path

import pandas as pd
import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


SOURCE_COLUMNS = [
    "Date",
    "Timestamp",
    "Area",
    "Location",
    "Vehicle Count",
    "Average Speed (in km/h)",
    "Congestion Level",
    "Weather Condition",
    "Visibility Level",
    "Temperature (in C)",
    "Humidity (in %)",
    "Wind Speed (in km/h)",
    "Traffic Signal Status",
    "Roadwork",
    "Accident Level",
]

SOURCE_ROWS = [
    ["2024-01-01", "08:10:00", "Madhapur", "B", 100, 40.0, "High", "Clear", "High", 24.5, 60, 10.0, "Green", "No", "No Accident"],
    ["2024-01-01", "08:40:00", "Madhapur", "B", 120, 36.0, "Extreme", "Clear", "High", 25.0, 62, 12.0, "Red", "No", "No Accident"],
    ["2024-01-01", "09:05:00", "Madhapur", "B", 150, 30.0, "Extreme", "Rain", "Low", 22.0, 80, 18.0, "Red", "Yes", "Minor"],
    ["2024-01-01", "09:30:00", "Gachibowli", "D", 90, 45.0, "Low", "Clear", "High", 23.0, 55, 8.0, "Green", "No", "No Accident"],
    ["2024-01-02", "08:15:00", "Madhapur", "B", 80, 50.0, "Low", "Clear", "High", 26.0, 50, 5.0, "Green", "No", "No Accident"],
    ["2024-01-02", "17:45:00", "Madhapur", "B", 140, 28.0, "Extreme", "Fog", "Low", 21.5, 85, 20.0, "Red", "Yes", "Major"],
    ["2024-01-02", "17:50:00", "Gachibowli", "D", 60, 52.0, "Low", "Fog", "Low", 21.5, 85, 20.0, "Yellow", "No", "No Accident"],
    ["2024-01-02", "18:05:00", "Gachibowli", "D", 70, 48.0, "High", "Clear", "High", 22.0, 70, 15.0, "Green", "No", "No Accident"],
]


@pytest.fixture
def raw_traffic_data() -> pd.DataFrame:
    """Traffic table as exported from the monitoring system, source headers intact."""
    return pd.DataFrame(SOURCE_ROWS, columns=SOURCE_COLUMNS)


@pytest.fixture
def observations(raw_traffic_data: pd.DataFrame) -> pd.DataFrame:
    """Validated observations built from the raw table."""
    from traffic_eda.transform import transform

    return transform(raw_traffic_data)


@pytest.fixture
def traffic_csv(tmp_path: Path, raw_traffic_data: pd.DataFrame) -> Path:
    """The raw table written to a CSV file."""
    path = tmp_path / "traffic.csv"
    raw_traffic_data.to_csv(path, index=False)
    return path
