"""
Extract Module - Read the Observation Table
===========================================

This module handles the "Extract" phase: get the raw traffic table into a
pandas DataFrame, as-is, with minimal structural validation.

SUPPORTED SOURCES:
------------------
- Local files:  .csv (pandas), .xls (xlrd), .xlsx (openpyxl)
- Cloud Storage: gs://bucket/path/file.csv|.xls|.xlsx

DATA FLOW:
----------
gs://bucket/raw/traffic.xlsx -> Download to temp file -> Read into DataFrame
/data/traffic.csv ----------------------------------> Read into DataFrame

WHAT EXTRACT DOES NOT DO:
-------------------------
- Rename columns or parse timestamps (that's transform.py)
- Aggregate anything (that's peak_hours.py / reports.py)
"""

from __future__ import annotations

import tempfile
from pathlib import Path

import pandas as pd
from google.api_core.exceptions import Forbidden, NotFound
from google.cloud import storage

from .config import ConfigError, parse_gcs_uri
from .logging_config import get_logger
from .transform import normalize_column_name

# Source headers (after normalization) that must be present
EXPECTED_COLUMNS = {"vehicle_count", "average_speed"}
TIME_COLUMNS = {"timestamp", "time", "hour"}

# =============================================================================
# CUSTOM EXCEPTION
# =============================================================================


class ExtractionError(Exception):
    """
    Raised when the observation table cannot be read.

    Examples:
    - File doesn't exist, locally or in GCS
    - Unsupported file extension
    - File is corrupted or missing required columns
    - File has no data rows
    """


# =============================================================================
# GCS DOWNLOAD
# =============================================================================


def download_from_gcs(bucket_name: str, source_blob_path: str) -> Path:
    """
    Download a file from Google Cloud Storage to a temporary local file.

    pandas needs a local path (or a buffer) to read spreadsheets, so the blob
    is copied to a NamedTemporaryFile that keeps the original extension.
    The caller is responsible for deleting it.

    Args:
        bucket_name: Name of the GCS bucket (without gs:// prefix)
        source_blob_path: Path to the file within the bucket

    Returns:
        Path to the downloaded temporary file

    Raises:
        ExtractionError: If download fails (not found, permission denied, etc.)
    """
    logger = get_logger()
    gcs_uri = f"gs://{bucket_name}/{source_blob_path}"
    logger.info(f"Downloading source file from {gcs_uri}")

    try:
        client = storage.Client()
    except Exception as e:
        raise ExtractionError(
            f"Failed to create GCS client: {e}\n"
            "Run 'gcloud auth application-default login' or set GOOGLE_APPLICATION_CREDENTIALS."
        ) from e

    try:
        bucket = client.bucket(bucket_name)
        blob = bucket.blob(source_blob_path)
        if not blob.exists():
            raise ExtractionError(f"Source file not found in GCS: {gcs_uri}")
    except NotFound as e:
        raise ExtractionError(
            f"GCS bucket not found: {bucket_name}\nPlease check the INPUT_PATH configuration."
        ) from e
    except Forbidden as e:
        raise ExtractionError(
            f"Permission denied accessing GCS: {e}\n"
            "Ensure the credentials have the 'Storage Object Viewer' role."
        ) from e

    try:
        temp_file = tempfile.NamedTemporaryFile(
            suffix=Path(source_blob_path).suffix,
            delete=False,
        )
    except OSError as e:
        raise ExtractionError(f"Failed to create temporary file for {gcs_uri}: {e}") from e
    temp_path = Path(temp_file.name)
    temp_file.close()

    try:
        blob.download_to_filename(str(temp_path))
    except Forbidden as e:
        temp_path.unlink(missing_ok=True)
        raise ExtractionError(
            f"Permission denied downloading from GCS: {e}\n"
            "Ensure the credentials have the 'Storage Object Viewer' role."
        ) from e
    except Exception as e:
        temp_path.unlink(missing_ok=True)
        raise ExtractionError(f"Failed to download file from GCS: {e}") from e

    logger.info(f"Downloaded {gcs_uri} to temporary file")
    return temp_path


# =============================================================================
# LOCAL FILE READING
# =============================================================================


def _read_table(file_path: Path) -> pd.DataFrame:
    """Read a CSV or Excel file, choosing the reader from the extension."""
    suffix = file_path.suffix.lower()
    if suffix == ".csv":
        return pd.read_csv(file_path)
    if suffix == ".xls":
        return pd.read_excel(file_path, engine="xlrd")
    if suffix == ".xlsx":
        return pd.read_excel(file_path, engine="openpyxl")
    raise ExtractionError(
        f"Unsupported file type '{suffix}' for {file_path}. Expected .csv, .xls or .xlsx"
    )


def extract_from_file(file_path: Path) -> pd.DataFrame:
    """
    Read the observation table from a local file.

    COLUMN VALIDATION:
    ------------------
    Headers are compared after normalization, so "Vehicle Count",
    "VEHICLE COUNT" and "vehicle_count" are all accepted. We need the two
    metrics and a time-of-day (or hour) column; everything else is optional.

    Args:
        file_path: Path to a .csv, .xls or .xlsx file

    Returns:
        Raw DataFrame, column names and types as in the source

    Raises:
        ExtractionError: If the file cannot be read or is structurally invalid
    """
    logger = get_logger()
    logger.info(f"Extracting observations from {file_path}")

    try:
        df = _read_table(file_path)
    except ExtractionError:
        raise
    except FileNotFoundError as err:
        raise ExtractionError(f"Input file not found: {file_path}") from err
    except Exception as err:
        raise ExtractionError(f"Failed to read {file_path}: {err}") from err

    actual_columns = {normalize_column_name(c) for c in df.columns}
    missing = EXPECTED_COLUMNS - actual_columns
    if not TIME_COLUMNS & actual_columns:
        missing.add("timestamp")
    if missing:
        raise ExtractionError(
            f"Missing required columns: {sorted(missing)}. Found columns: {list(df.columns)}"
        )

    row_count = len(df)
    logger.info(f"Extracted {row_count} rows")

    if row_count == 0:
        raise ExtractionError(f"{file_path} contains no data rows")

    return df


# =============================================================================
# MAIN EXTRACTION FUNCTION
# =============================================================================


def extract_from_gcs(bucket_name: str, source_blob_path: str) -> pd.DataFrame:
    """
    Download a table from GCS, read it, and always remove the temp file.

    Raises:
        ExtractionError: If download or parsing fails.
    """
    logger = get_logger()
    temp_path = download_from_gcs(bucket_name, source_blob_path)

    try:
        return extract_from_file(temp_path)
    finally:
        try:
            temp_path.unlink()
            logger.debug("Cleaned up temporary file")
        except OSError as e:
            logger.warning(f"Could not delete temp file {temp_path}: {e}")


def extract(source: str) -> pd.DataFrame:
    """
    Extract the observation table from a local path or a gs:// URI.

    Args:
        source: INPUT_PATH from the configuration

    Returns:
        Raw DataFrame
    """
    if source.startswith("gs://"):
        try:
            bucket_name, blob_path = parse_gcs_uri(source)
        except ConfigError as e:
            raise ExtractionError(str(e)) from e
        return extract_from_gcs(bucket_name, blob_path)
    return extract_from_file(Path(source))
