"""Unit tests for transformation module."""

from __future__ import annotations

from datetime import date, time

import pandas as pd
import pytest

from traffic_eda.transform import (
    MalformedObservationError,
    derive_date_and_hour,
    normalize_column_name,
    normalize_columns,
    transform,
    validate_observations,
)


class TestNormalizeColumnName:
    """Tests for header normalization."""

    @pytest.mark.parametrize(
        ("header", "expected"),
        [
            ("Vehicle Count", "vehicle_count"),
            ("Average Speed (in km/h)", "average_speed"),
            ("Temperature (in C)", "temperature"),
            ("Humidity (in %)", "humidity"),
            ("  Traffic Signal Status ", "traffic_signal_status"),
            ("DATE", "date"),
        ],
    )
    def test_normalizes_source_headers(self, header, expected):
        assert normalize_column_name(header) == expected


class TestNormalizeColumns:
    """Tests for DataFrame column normalization."""

    def test_time_is_alias_for_timestamp(self):
        df = pd.DataFrame({"Date": ["2024-01-01"], "Time": ["08:00:00"]})
        result = normalize_columns(df)

        assert list(result.columns) == ["date", "timestamp"]

    def test_raises_on_colliding_headers(self):
        df = pd.DataFrame([[1, 2]], columns=["Vehicle Count", "vehicle count"])
        with pytest.raises(MalformedObservationError, match="collide"):
            normalize_columns(df)

    def test_does_not_modify_original(self):
        df = pd.DataFrame({"Vehicle Count": [1]})
        normalize_columns(df)

        assert list(df.columns) == ["Vehicle Count"]


class TestDeriveDateAndHour:
    """Tests for hour-of-day derivation."""

    def test_hour_from_time_strings(self):
        df = pd.DataFrame({"date": ["2024-01-01", "2024-01-01"], "timestamp": ["08:15:00", "23:59:59"]})
        result = derive_date_and_hour(df)

        assert result["hour"].tolist() == [8, 23]

    def test_hour_from_time_objects(self):
        """Excel exports can hand us datetime.time values."""
        df = pd.DataFrame({"date": ["2024-01-01"], "timestamp": [time(17, 45)]})
        result = derive_date_and_hour(df)

        assert result["hour"].tolist() == [17]

    def test_date_from_full_timestamp(self):
        """Without a date column, the date should come from the timestamp."""
        df = pd.DataFrame({"timestamp": pd.to_datetime(["2024-01-02 07:30"])})
        result = derive_date_and_hour(df)

        assert result["date"].tolist() == [date(2024, 1, 2)]
        assert result["hour"].tolist() == [7]

    def test_raises_when_date_would_come_from_time_of_day(self):
        """A bare time of day must not be given today's date."""
        df = pd.DataFrame({"timestamp": ["08:15:00", "09:45:00"]})
        with pytest.raises(MalformedObservationError, match="no date part"):
            derive_date_and_hour(df)

    def test_raises_when_date_would_come_from_time_objects(self):
        df = pd.DataFrame({"timestamp": [time(17, 45)]})
        with pytest.raises(MalformedObservationError, match="no date part"):
            derive_date_and_hour(df)

    def test_date_from_full_timestamp_strings(self):
        df = pd.DataFrame({"timestamp": ["2024-01-02 07:30:00"]})
        result = derive_date_and_hour(df)

        assert result["date"].tolist() == [date(2024, 1, 2)]
        assert result["hour"].tolist() == [7]

    def test_keeps_existing_hour(self):
        df = pd.DataFrame({"date": ["2024-01-01"], "hour": [5]})
        result = derive_date_and_hour(df)

        assert result["hour"].tolist() == [5]

    def test_raises_without_timestamp(self):
        df = pd.DataFrame({"date": ["2024-01-01"], "vehicle_count": [3]})
        with pytest.raises(MalformedObservationError, match="no 'Timestamp' or 'Time' column"):
            derive_date_and_hour(df)

    def test_raises_on_unparseable_timestamps(self):
        df = pd.DataFrame({"date": ["2024-01-01", "2024-01-01"], "timestamp": ["08:00:00", "teatime"]})
        with pytest.raises(MalformedObservationError, match="Failed to parse 1 timestamp"):
            derive_date_and_hour(df)


class TestValidateObservations:
    """Tests for observation validation."""

    @pytest.fixture
    def valid(self):
        return pd.DataFrame({
            "date": ["2024-01-01", "2024-01-02"],
            "hour": [8.0, 17.0],
            "vehicle_count": ["100", "80"],
            "average_speed": [40.5, 30.0],
        })

    def test_coerces_types(self, valid):
        result = validate_observations(valid)

        assert result["date"].tolist() == [date(2024, 1, 1), date(2024, 1, 2)]
        assert result["hour"].tolist() == [8, 17]
        assert pd.api.types.is_integer_dtype(result["hour"])
        assert result["vehicle_count"].tolist() == [100, 80]

    def test_does_not_modify_original(self, valid):
        validate_observations(valid)

        assert valid["vehicle_count"].tolist() == ["100", "80"]

    def test_raises_on_missing_columns(self):
        df = pd.DataFrame({"date": ["2024-01-01"], "hour": [1]})
        with pytest.raises(MalformedObservationError, match="Missing required observation columns"):
            validate_observations(df)

    def test_raises_on_fractional_hour(self, valid):
        valid.loc[0, "hour"] = 8.5
        with pytest.raises(MalformedObservationError, match="outside 0-23"):
            validate_observations(valid)

    def test_raises_on_missing_speed(self, valid):
        valid.loc[1, "average_speed"] = None
        with pytest.raises(MalformedObservationError, match="1 non-numeric or missing values in 'average_speed'"):
            validate_observations(valid)

    def test_keeps_negative_values(self, valid):
        """Negative metrics are suspicious but not rejected."""
        valid.loc[0, "average_speed"] = -1.0
        result = validate_observations(valid)

        assert result["average_speed"].iloc[0] == -1.0


class TestTransform:
    """Tests for the full transform function."""

    def test_full_transform_pipeline(self, raw_traffic_data):
        result = transform(raw_traffic_data)

        assert list(result.columns[:6]) == [
            "date",
            "hour",
            "area",
            "location",
            "vehicle_count",
            "average_speed",
        ]
        assert "weather_condition" in result.columns
        assert "temperature" in result.columns
        assert result["hour"].tolist() == [8, 8, 9, 9, 8, 17, 17, 18]
        assert result["date"].nunique() == 2

    def test_one_date_hour_pair_per_row(self, raw_traffic_data):
        result = transform(raw_traffic_data)

        assert len(result) == len(raw_traffic_data)
        assert result[["date", "hour"]].notna().all().all()
