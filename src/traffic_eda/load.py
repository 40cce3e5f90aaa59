"""
Load Module - Format, Save and Publish Reports
==============================================

This module is the output boundary of the pipeline:
1. Round numeric columns for presentation
2. Write each report to a CSV file
3. Optionally upload the CSV to Google Cloud Storage

WHY ROUND HERE:
---------------
The analysis modules work with full-precision floats so that comparisons
(e.g. "which hour has the maximum average?") are exact. Rounding to two
decimals is applied only to what a human reads.

THE DATA FLOW:
--------------
report DataFrame -> format_report() -> save_report_csv() -> output/<name>.csv
                                                   |
                                                   +-> upload_to_gcs() -> gs://bucket/prefix/<name>.csv

GOOGLE CLOUD AUTHENTICATION (ADC):
----------------------------------
storage.Client() uses Application Default Credentials. Uploading needs the
'Storage Object Creator' role on the destination bucket.
"""

from __future__ import annotations

from pathlib import Path

import pandas as pd
from google.api_core.exceptions import Forbidden, NotFound
from google.cloud import storage

from .logging_config import get_logger

# =============================================================================
# CUSTOM EXCEPTION
# =============================================================================


class LoadError(Exception):
    """
    Raised when a report cannot be written or uploaded.

    The messages say what went wrong and how to fix it (missing bucket,
    missing IAM role, unwritable directory).
    """


# =============================================================================
# FORMATTING
# =============================================================================


def format_report(df: pd.DataFrame, decimals: int = 2) -> pd.DataFrame:
    """
    Round every float column of a report to `decimals` places.

    Integer and text columns are untouched. Returns a new DataFrame.
    """
    df = df.copy()
    for column in df.select_dtypes(include="float").columns:
        df[column] = df[column].round(decimals)
    return df


# =============================================================================
# LOCAL OUTPUT
# =============================================================================


def save_report_csv(df: pd.DataFrame, output_dir: Path, name: str) -> Path:
    """
    Save a report to `<output_dir>/<name>.csv`.

    The directory is created if needed. An existing file with the same name
    is overwritten: each run recomputes every report from scratch.

    Args:
        df: Report to save (already formatted)
        output_dir: Directory to write the file to
        name: Report name, used as the file stem

    Returns:
        Path to the created CSV file

    Raises:
        LoadError: If the directory or file cannot be written
    """
    logger = get_logger()
    output_path = output_dir / f"{name}.csv"

    try:
        output_dir.mkdir(parents=True, exist_ok=True)
        df.to_csv(output_path, index=False, header=True)
    except OSError as e:
        raise LoadError(f"Failed to write report to {output_path}: {e}") from e

    logger.info(f"Saved report to {output_path}")
    return output_path


# =============================================================================
# CLOUD STORAGE UPLOAD
# =============================================================================


def upload_to_gcs(
    local_path: Path,
    bucket_name: str,
    destination_blob_name: str,
) -> str:
    """
    Upload a report file to Google Cloud Storage.

    Unlike a staging upload, the local CSV is kept: it is the report.

    Args:
        local_path: Path to the local file to upload
        bucket_name: Name of the GCS bucket (without gs:// prefix)
        destination_blob_name: Path within the bucket (e.g., "reports/daily_trends.csv")

    Returns:
        GCS URI of the uploaded file

    Raises:
        LoadError: If upload fails, with actionable error message
    """
    logger = get_logger()
    logger.info(f"Uploading {local_path} to gs://{bucket_name}/{destination_blob_name}")

    try:
        client = storage.Client()
    except Exception as e:
        raise LoadError(
            f"Failed to create GCS client: {e}\n"
            "Run 'gcloud auth application-default login' or set GOOGLE_APPLICATION_CREDENTIALS."
        ) from e

    try:
        bucket = client.bucket(bucket_name)
        blob = bucket.blob(destination_blob_name)
        blob.upload_from_filename(str(local_path))
    except NotFound as e:
        raise LoadError(
            f"GCS bucket not found: {bucket_name}\n"
            "Please create the bucket or check the OUTPUT_GCS_URI configuration."
        ) from e
    except Forbidden as e:
        raise LoadError(
            f"Permission denied uploading to bucket '{bucket_name}': {e}\n"
            "Ensure the credentials have the 'Storage Object Creator' role."
        ) from e
    except Exception as e:
        raise LoadError(f"Failed to upload file to GCS: {e}") from e

    gcs_uri = f"gs://{bucket_name}/{destination_blob_name}"
    logger.info(f"Successfully uploaded to {gcs_uri}")
    return gcs_uri
