"""Unit tests for configuration module."""

from __future__ import annotations

import os
from pathlib import Path
from unittest import mock

import pytest

from traffic_eda.config import ConfigError, load_config, parse_gcs_uri


class TestLoadConfig:
    """Tests for configuration loading."""

    def test_loads_valid_config(self, tmp_path: Path):
        """Should load valid configuration from a .env file."""
        csv_file = tmp_path / "traffic.csv"
        csv_file.touch()

        env_file = tmp_path / ".env"
        env_file.write_text(
            f"""
INPUT_PATH={csv_file}
OUTPUT_DIR={tmp_path / "reports"}
PEAK_TIE_POLICY=First
ROUND_DECIMALS=3
"""
        )

        with mock.patch.dict(os.environ, {}, clear=True):
            config = load_config(env_file)

        assert config.input_path == str(csv_file)
        assert config.output_dir == tmp_path / "reports"
        assert config.tie_policy == "first"
        assert config.round_decimals == 3
        assert config.output_gcs_uri is None
        assert not config.is_gcs_input

    def test_defaults(self, tmp_path: Path):
        csv_file = tmp_path / "traffic.csv"
        csv_file.touch()
        env_file = tmp_path / ".env"
        env_file.write_text(f"INPUT_PATH={csv_file}\n")

        with mock.patch.dict(os.environ, {}, clear=True):
            config = load_config(env_file)

        assert config.output_dir == Path("output")
        assert config.tie_policy == "all"
        assert config.round_decimals == 2

    def test_raises_on_missing_input_path(self, tmp_path: Path):
        """Should raise ConfigError if INPUT_PATH is missing."""
        env_file = tmp_path / ".env"
        env_file.write_text("OUTPUT_DIR=out")

        with mock.patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ConfigError, match="INPUT_PATH is not set"):
                load_config(env_file)

    def test_raises_on_missing_input_file(self, tmp_path: Path):
        env_file = tmp_path / ".env"
        env_file.write_text("INPUT_PATH=/nonexistent/traffic.csv")

        with mock.patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ConfigError, match="input file not found"):
                load_config(env_file)

    def test_accepts_gcs_input_without_local_check(self, tmp_path: Path):
        env_file = tmp_path / ".env"
        env_file.write_text("INPUT_PATH=gs://traffic-bucket/raw/traffic.xlsx")

        with mock.patch.dict(os.environ, {}, clear=True):
            config = load_config(env_file)

        assert config.is_gcs_input
        assert config.input_gcs_location == ("traffic-bucket", "raw/traffic.xlsx")

    def test_reports_every_problem_at_once(self, tmp_path: Path):
        """All invalid settings should be listed in a single error."""
        env_file = tmp_path / ".env"
        env_file.write_text(
            """
PEAK_TIE_POLICY=random
ROUND_DECIMALS=-1
OUTPUT_GCS_URI=s3://elsewhere/reports
"""
        )

        with mock.patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ConfigError) as excinfo:
                load_config(env_file)

        message = str(excinfo.value)
        assert "INPUT_PATH is not set" in message
        assert "Invalid PEAK_TIE_POLICY" in message
        assert "Invalid ROUND_DECIMALS" in message
        assert "OUTPUT_GCS_URI" in message

    def test_output_gcs_bare_bucket_gets_prefix(self, tmp_path: Path):
        csv_file = tmp_path / "traffic.csv"
        csv_file.touch()
        env_file = tmp_path / ".env"
        env_file.write_text(f"INPUT_PATH={csv_file}\nOUTPUT_GCS_URI=gs://reports-bucket/\n")

        with mock.patch.dict(os.environ, {}, clear=True):
            config = load_config(env_file)

        assert config.output_gcs_location == ("reports-bucket", "reports")


class TestParseGcsUri:
    """Tests for gs:// URI parsing."""

    def test_splits_bucket_and_path(self):
        assert parse_gcs_uri("gs://bucket/a/b.csv") == ("bucket", "a/b.csv")

    def test_rejects_other_schemes(self):
        with pytest.raises(ConfigError, match="Invalid GCS URI format"):
            parse_gcs_uri("https://bucket/a.csv")
