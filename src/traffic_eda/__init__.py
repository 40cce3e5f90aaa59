"""
Traffic Exploratory Analysis Package
====================================

This file makes the `traffic_eda` directory a Python package. The package
turns a flat table of traffic sensor readings into static aggregate reports:

- Peak-hour analysis: which hour of each day carries the most traffic
- Peak-day metrics: daily averages restricted to the peak hour(s)
- Grouping reports: vehicle count and speed against weather, visibility,
  temperature, roadwork, accidents and other contextual columns

HOW THE MODULES FIT TOGETHER:
-----------------------------
    extract.py     -> read the raw table (local CSV/XLS/XLSX or gs:// URI)
    transform.py   -> normalize headers, derive date/hour, validate rows
    peak_hours.py  -> bucket by (date, hour) and pick each day's peak
    reports.py     -> named grouping reports
    load.py        -> round for presentation, write CSV, upload to GCS
    __main__.py    -> the `python -m traffic_eda` command line

After running `pip install -e .` you can import like:

    from traffic_eda import __version__
    from traffic_eda.peak_hours import compute_peak_hours
    from traffic_eda.reports import run_report
"""

# Package version - follows semantic versioning (MAJOR.MINOR.PATCH)
__version__ = "1.0.0"
