from __future__ import annotations

from datetime import date, timedelta
from pathlib import Path
from typing import Callable, Iterable

import pytest

from tindex.fs import MemoryNamespace

DATASET_ROOT = "/data"
INDEX_ROOT = "/indexes"


def day_names(start: date, end: date) -> list[str]:
    """All YYYY.MM.DD names from start to end inclusive."""
    out: list[str] = []
    cur = start
    while cur <= end:
        out.append(cur.strftime("%Y.%m.%d"))
        cur += timedelta(days=1)
    return out


@pytest.fixture()
def memory_namespace() -> Callable[..., MemoryNamespace]:
    """
    Build an in-memory namespace with day partitions under /data and
    pre-existing index directories under /indexes/{daily,monthly,yearly}.
    """

    def _make(
        days: Iterable[str] = (),
        *,
        daily: Iterable[str] = (),
        monthly: Iterable[str] = (),
        yearly: Iterable[str] = (),
        extra_files: Iterable[str] = (),
    ) -> MemoryNamespace:
        dirs = [DATASET_ROOT]
        dirs += [f"{DATASET_ROOT}/{d}" for d in days]
        dirs += [f"{INDEX_ROOT}/daily/{k}" for k in daily]
        dirs += [f"{INDEX_ROOT}/monthly/{k}" for k in monthly]
        dirs += [f"{INDEX_ROOT}/yearly/{k}" for k in yearly]
        return MemoryNamespace(dirs=dirs, files=extra_files)

    return _make


@pytest.fixture()
def disk_layout(tmp_path: Path) -> Callable[..., tuple[Path, Path]]:
    """
    Create a real on-disk dataset root and index root under tmp_path.
    """

    def _make(days: Iterable[str] = (), *, daily: Iterable[str] = (), monthly: Iterable[str] = (), yearly: Iterable[str] = ()) -> tuple[Path, Path]:
        dataset = tmp_path / "dataset"
        indexes = tmp_path / "indexes"
        dataset.mkdir(parents=True, exist_ok=True)
        for d in days:
            (dataset / d).mkdir(parents=True, exist_ok=True)
            (dataset / d / "part-0.hdf").write_bytes(b"")
        for level, keys in (("daily", daily), ("monthly", monthly), ("yearly", yearly)):
            for k in keys:
                (indexes / level / k).mkdir(parents=True, exist_ok=True)
        return dataset, indexes

    return _make
