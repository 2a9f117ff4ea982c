"""
Temporal index coordinator: decide which daily/monthly/yearly indexes need (re)building.

Layout on the namespace:
- dataset root: one child per day partition, named YYYY.MM.DD
- index root:   daily/YYYY.MM.DD, monthly/YYYY.MM, yearly/YYYY

Each level keeps a state map (DateKey -> IndexState) loaded from its home
directory at construction. `evaluate()` walks the dataset partitions inside a
time range, applies the cascade/promotion rules and materializes the keys
that need building into `<home>/<key>` paths.
"""

from __future__ import annotations

import json
import os
import uuid
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Any

import structlog

from tindex.dates import (
    UNITS_PER_YEAR,
    DateKeyError,
    TimeRangeError,
    day_key,
    days_in_month,
    is_level_key,
    month_key,
    month_of,
    parse_day,
    parse_time_range,
    year_key,
    year_of,
)
from tindex.fs import IndexNamespace, join_path, normalize_root, open_namespace

log = structlog.get_logger()


class IndexInitError(RuntimeError):
    pass


class IndexPlanNotReady(RuntimeError):
    pass


class IndexLevel(str, Enum):
    DAILY = "daily"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class IndexState(str, Enum):
    UNKNOWN = "unknown"
    CURRENT = "current"
    NEEDS_BUILD = "needs_build"


@dataclass(frozen=True)
class NeededIndexes:
    daily: list[str] = field(default_factory=list)
    monthly: list[str] = field(default_factory=list)
    yearly: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.daily) + len(self.monthly) + len(self.yearly)

    @property
    def is_empty(self) -> bool:
        return self.total == 0

    def for_level(self, level: IndexLevel) -> list[str]:
        return list(getattr(self, IndexLevel(level).value))

    def merge(self, other: "NeededIndexes") -> "NeededIndexes":
        """Union of two plans (e.g. from coordinators run over disjoint ranges)."""
        return NeededIndexes(
            daily=sorted(set(self.daily) | set(other.daily)),
            monthly=sorted(set(self.monthly) | set(other.monthly)),
            yearly=sorted(set(self.yearly) | set(other.yearly)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "daily": list(self.daily),
            "monthly": list(self.monthly),
            "yearly": list(self.yearly),
            "total": int(self.total),
        }


def write_plan(path: Path, plan: NeededIndexes, *, extra: dict[str, Any] | None = None) -> Path:
    """Atomically write a plan as JSON (creates parent dirs if needed)."""
    payload = dict(extra or {})
    payload.update(plan.to_dict())
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + f".tmp-{uuid.uuid4().hex[:8]}")
    tmp.write_text(json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True), encoding="utf-8")
    os.replace(tmp, path)
    return path


class TemporalIndexCoordinator:
    """
    Owns the three per-level state maps and computes the build plan for a time range.

    Each `evaluate()` mutates the maps in place, so marks accumulate across
    calls. An instance must not be shared across concurrent `evaluate()` calls.
    """

    def __init__(
        self,
        dataset_root: str,
        index_root: str,
        *,
        fs: IndexNamespace | None = None,
        units_per_year: int = UNITS_PER_YEAR,
        leap_aware_february: bool = False,
    ) -> None:
        try:
            if fs is None:
                fs, index_root = open_namespace(index_root)
                dataset_root = normalize_root(dataset_root)
            self._fs: IndexNamespace = fs
            self.dataset_root = str(dataset_root).rstrip("/") or "/"
            self.index_root = str(index_root).rstrip("/") or "/"
        except (OSError, ValueError) as e:
            log.error("coordinator.init_failed", index_root=str(index_root), error=str(e))
            raise IndexInitError(f"Failed to open namespace for {index_root!r}: {e}") from e

        # Both roots must live on the same namespace; a missing dataset root is
        # left for evaluate() to report.
        try:
            self._fs.exists(self.dataset_root)
        except (OSError, ValueError) as e:
            log.error("coordinator.init_failed", dataset_root=self.dataset_root, error=str(e))
            raise IndexInitError(f"Dataset root {self.dataset_root!r} is not reachable from {self.index_root!r}: {e}") from e

        self.units_per_year = int(units_per_year)
        self.leap_aware_february = bool(leap_aware_february)

        self._homes: dict[IndexLevel, str] = {lv: join_path(self.index_root, lv.value) for lv in IndexLevel}
        self._states: dict[IndexLevel, dict[str, IndexState]] = {lv: {} for lv in IndexLevel}
        self._needed: NeededIndexes | None = None

        try:
            self._ensure_homes()
            self._load_existing()
        except OSError as e:
            log.error("coordinator.init_failed", index_root=self.index_root, error=str(e))
            raise IndexInitError(f"Failed to initialize index hierarchy under {self.index_root!r}: {e}") from e

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def _ensure_homes(self) -> None:
        for level, home in self._homes.items():
            if not self._fs.exists(home):
                self._fs.make_dirs(home)
                log.info("coordinator.created_home", level=level.value, path=home)

    def _load_existing(self) -> None:
        for level, home in self._homes.items():
            states = self._states[level]
            for entry in self._fs.list_children(home):
                if not entry.is_dir:
                    continue
                if not is_level_key(level.value, entry.name):
                    log.warning("coordinator.skip_index_dir", level=level.value, name=entry.name, reason="not a date key")
                    continue
                states[entry.name] = IndexState.CURRENT
            log.debug("coordinator.loaded_level", level=level.value, existing=len(states))

    # ------------------------------------------------------------------
    # State helpers
    # ------------------------------------------------------------------

    def state_of(self, level: IndexLevel, key: str) -> IndexState:
        return self._states[IndexLevel(level)].get(str(key), IndexState.UNKNOWN)

    def existing_keys(self, level: IndexLevel) -> list[str]:
        """Keys loaded from disk as already built (state CURRENT), sorted."""
        states = self._states[IndexLevel(level)]
        return sorted(k for k, s in states.items() if s is IndexState.CURRENT)

    def _mark(self, level: IndexLevel, key: str) -> None:
        self._states[level][key] = IndexState.NEEDS_BUILD

    def _needs_build(self, level: IndexLevel, key: str) -> bool:
        return self._states[level].get(key) is IndexState.NEEDS_BUILD

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def _matching_partitions(self, start: date, end: date) -> list[str]:
        out: list[str] = []
        for entry in self._fs.list_children(self.dataset_root):
            try:
                d = parse_day(entry.name)
            except DateKeyError:
                log.debug("coordinator.skip_dataset_entry", name=entry.name, reason="not a date")
                continue
            if start <= d <= end:
                out.append(entry.name)
        return out

    def _promote(self, partition: str) -> None:
        mk = month_key(partition)
        days_present = self._fs.count_matching(self.dataset_root, mk)
        days_expected = days_in_month(
            month_of(partition), year_of(partition), leap_aware=self.leap_aware_february
        )
        if days_present < days_expected:
            return
        self._mark(IndexLevel.MONTHLY, mk)
        log.debug("coordinator.promote_month", month=mk, present=days_present, expected=days_expected)

        yk = year_key(partition)
        units_present = self._fs.count_matching(self.dataset_root, yk)
        if units_present >= self.units_per_year:
            self._mark(IndexLevel.YEARLY, yk)
            log.debug("coordinator.promote_year", year=yk, present=units_present, expected=self.units_per_year)

    def _apply(self, partition: str) -> None:
        dk = day_key(partition)
        mk = month_key(partition)
        yk = year_key(partition)
        if self._needs_build(IndexLevel.YEARLY, yk):
            self._mark(IndexLevel.YEARLY, yk)
            self._mark(IndexLevel.MONTHLY, mk)
            self._mark(IndexLevel.DAILY, dk)
        elif self._needs_build(IndexLevel.MONTHLY, mk):
            self._mark(IndexLevel.MONTHLY, mk)
            self._mark(IndexLevel.DAILY, dk)
        elif self._needs_build(IndexLevel.DAILY, dk):
            self._mark(IndexLevel.DAILY, dk)
        else:
            self._mark(IndexLevel.DAILY, dk)
            self._promote(partition)

    def evaluate(self, time_range: str | None) -> NeededIndexes:
        """
        Determine which indexes need (re)building for partitions in `time_range`.

        `time_range` is `<start>..<end>` with inclusive YYYY.MM.DD bounds. A
        missing or malformed range is logged and leaves the state unchanged.
        """
        try:
            start, end = parse_time_range(time_range)
        except TimeRangeError as e:
            if time_range is None or not str(time_range).strip():
                log.error("coordinator.empty_time_range")
            else:
                log.error("coordinator.invalid_time_range", time_range=str(time_range), error=str(e))
            return self._materialize()

        partitions = self._matching_partitions(start, end)
        if not partitions:
            log.warning(
                "coordinator.no_matching_partitions",
                dataset_root=self.dataset_root,
                start=start.isoformat(),
                end=end.isoformat(),
            )

        for partition in partitions:
            self._apply(partition)

        plan = self._materialize()
        log.info(
            "coordinator.evaluated",
            time_range=str(time_range),
            partitions=len(partitions),
            daily=len(plan.daily),
            monthly=len(plan.monthly),
            yearly=len(plan.yearly),
        )
        return plan

    def _paths_for(self, level: IndexLevel) -> list[str]:
        home = self._homes[level]
        states = self._states[level]
        return [join_path(home, k) for k in sorted(states) if states[k] is IndexState.NEEDS_BUILD]

    def _materialize(self) -> NeededIndexes:
        self._needed = NeededIndexes(
            daily=self._paths_for(IndexLevel.DAILY),
            monthly=self._paths_for(IndexLevel.MONTHLY),
            yearly=self._paths_for(IndexLevel.YEARLY),
        )
        return self._needed

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def needed(self) -> NeededIndexes:
        """The plan from the last `evaluate()`; raises IndexPlanNotReady before that."""
        if self._needed is None:
            raise IndexPlanNotReady("evaluate() must be called before reading needed indexes")
        return self._needed

    @property
    def needed_daily_indexes(self) -> list[str]:
        return list(self.needed.daily)

    @property
    def needed_monthly_indexes(self) -> list[str]:
        return list(self.needed.monthly)

    @property
    def needed_yearly_indexes(self) -> list[str]:
        return list(self.needed.yearly)

    @property
    def namespace(self) -> IndexNamespace:
        return self._fs

    def home_of(self, level: IndexLevel) -> str:
        return self._homes[IndexLevel(level)]

    @property
    def daily_home(self) -> str:
        return self._homes[IndexLevel.DAILY]

    @property
    def monthly_home(self) -> str:
        return self._homes[IndexLevel.MONTHLY]

    @property
    def yearly_home(self) -> str:
        return self._homes[IndexLevel.YEARLY]
