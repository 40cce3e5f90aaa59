"""
Configuration Management for Traffic Analysis
=============================================

This module loads and validates configuration from environment variables,
following the "12-factor app" methodology: where the data lives and where
reports go is decided by the environment, not by the source code.

HOW CONFIGURATION FLOWS:
------------------------
1. User creates a `.env` file with key=value pairs (optional)
2. python-dotenv reads `.env` and sets them as environment variables
3. This module reads those environment variables via os.getenv()
4. Everything is validated once and frozen into a Config object

VARIABLES:
----------
INPUT_PATH        (required) Local CSV/XLS/XLSX path or gs://bucket/path
OUTPUT_DIR        (optional) Directory for report CSVs, default "output"
OUTPUT_GCS_URI    (optional) gs://bucket/prefix to upload report CSVs to
PEAK_TIE_POLICY   (optional) "all" or "first", default "all"
ROUND_DECIMALS    (optional) Decimal places for presentation, default 2

GOOGLE CLOUD AUTHENTICATION:
----------------------------
Reading from or writing to gs:// URIs uses Application Default Credentials.
Nothing here sets credentials up; storage.Client() discovers them from
GOOGLE_APPLICATION_CREDENTIALS, the gcloud CLI, or an attached service account.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, cast

from dotenv import load_dotenv

TiePolicy = Literal["all", "first"]
TIE_POLICIES: tuple[str, ...] = ("all", "first")

# =============================================================================
# CONFIGURATION DATA CLASS
# =============================================================================


@dataclass(frozen=True)
class Config:
    """
    Immutable configuration container for the analysis pipeline.

    frozen=True keeps settings fixed for the whole run. CLI flags that
    override a setting (e.g. --tie-policy) go through dataclasses.replace().

    ATTRIBUTES:
    -----------
    - input_path: INPUT_PATH - local file path or gs:// URI of the raw table
    - output_dir: OUTPUT_DIR - where report CSVs are written
    - output_gcs_uri: OUTPUT_GCS_URI - optional upload destination prefix
    - tie_policy: PEAK_TIE_POLICY - how tied peak hours are reported
    - round_decimals: ROUND_DECIMALS - presentation rounding
    """

    input_path: str
    output_dir: Path
    output_gcs_uri: str | None = None
    tie_policy: TiePolicy = "all"
    round_decimals: int = 2

    @property
    def is_gcs_input(self) -> bool:
        """True when the input table must be downloaded from Cloud Storage."""
        return self.input_path.startswith("gs://")

    @property
    def input_gcs_location(self) -> tuple[str, str]:
        """
        (bucket, blob path) of a gs:// input.

        Raises:
            ConfigError: If the input is not a gs:// URI
        """
        return parse_gcs_uri(self.input_path)

    @property
    def output_gcs_location(self) -> tuple[str, str] | None:
        """(bucket, prefix) of the upload destination, or None when unset."""
        if not self.output_gcs_uri:
            return None
        bucket, prefix = parse_gcs_uri(self.output_gcs_uri)
        return bucket, prefix.rstrip("/")


# =============================================================================
# CUSTOM EXCEPTION
# =============================================================================


class ConfigError(Exception):
    """
    Raised when configuration is invalid or missing.

    Configuration problems are user-fixable, so the CLI reports them with
    their own exit code before any data is read.
    """


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def _get_optional_env(key: str, default: str) -> str:
    """Get an optional environment variable, treating empty strings as unset."""
    return os.getenv(key) or default


def parse_gcs_uri(uri: str) -> tuple[str, str]:
    """
    Parse a GCS URI into bucket name and blob path.

    Args:
        uri: Full GCS URI (e.g., "gs://my-bucket/raw/traffic.csv")

    Returns:
        Tuple of (bucket_name, blob_path)

    Raises:
        ConfigError: If URI format is invalid
    """
    pattern = r"^gs://([^/]+)/(.+)$"
    match = re.match(pattern, uri)

    if not match:
        raise ConfigError(
            f"Invalid GCS URI format: {uri}\n"
            "Expected format: gs://bucket-name/path/to/object"
        )

    return match.group(1), match.group(2)


# =============================================================================
# MAIN CONFIGURATION LOADER
# =============================================================================


def load_config(env_path: Path | None = None) -> Config:
    """
    Load and validate configuration from environment variables.

    FAIL-FAST PHILOSOPHY:
    ---------------------
    Every problem is collected before raising, so a user with three bad
    settings sees all three at once instead of fixing them one run at a time.

    Args:
        env_path: Optional explicit path to .env file (for testing).
                  If not provided, python-dotenv searches for .env in
                  the current directory and parent directories.

    Returns:
        Validated Config object with all settings.

    Raises:
        ConfigError: If any required config is missing or invalid.
    """
    if env_path:
        load_dotenv(env_path)
    else:
        load_dotenv()

    errors: list[str] = []

    # -------------------------------------------------------------------------
    # Required: where the observations come from
    # -------------------------------------------------------------------------
    input_path = os.getenv("INPUT_PATH", "").strip()
    if not input_path:
        errors.append("  - INPUT_PATH is not set")
    elif input_path.startswith("gs://"):
        try:
            parse_gcs_uri(input_path)
        except ConfigError as e:
            errors.append(f"  - INPUT_PATH: {e}")
    elif not Path(input_path).exists():
        errors.append(f"  - INPUT_PATH: input file not found: {input_path}")

    # -------------------------------------------------------------------------
    # Optional settings
    # -------------------------------------------------------------------------
    output_dir = Path(_get_optional_env("OUTPUT_DIR", "output"))

    output_gcs_uri = os.getenv("OUTPUT_GCS_URI") or None
    if output_gcs_uri:
        # A bare bucket ("gs://reports") is accepted by appending a prefix
        if re.match(r"^gs://[^/]+/?$", output_gcs_uri):
            output_gcs_uri = output_gcs_uri.rstrip("/") + "/reports"
        try:
            parse_gcs_uri(output_gcs_uri)
        except ConfigError as e:
            errors.append(f"  - OUTPUT_GCS_URI: {e}")

    tie_policy = _get_optional_env("PEAK_TIE_POLICY", "all").lower()
    if tie_policy not in TIE_POLICIES:
        errors.append(
            f"  - Invalid PEAK_TIE_POLICY: {tie_policy} (must be 'all' or 'first')"
        )

    raw_decimals = _get_optional_env("ROUND_DECIMALS", "2")
    round_decimals = 2
    try:
        round_decimals = int(raw_decimals)
        if round_decimals < 0:
            raise ValueError(raw_decimals)
    except ValueError:
        errors.append(
            f"  - Invalid ROUND_DECIMALS: {raw_decimals} (must be a non-negative integer)"
        )

    if errors:
        raise ConfigError(
            "Invalid configuration:\n"
            + "\n".join(errors)
            + "\n\nSet these in your .env file or the environment."
        )

    return Config(
        input_path=input_path,
        output_dir=output_dir,
        output_gcs_uri=output_gcs_uri,
        tie_policy=cast(TiePolicy, tie_policy),
        round_decimals=round_decimals,
    )
