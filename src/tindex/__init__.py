"""
tindex: hierarchical temporal-index freshness planner.

This package provides:
- Date-key helpers for YYYY / YYYY.MM / YYYY.MM.DD partition names
- A namespace adapter over pyarrow filesystems (local, HDFS, ...)
- The coordinator that decides which daily/monthly/yearly indexes need (re)building
- A click CLI that prints or writes the resulting build plan
"""

__version__ = "0.1.0"
