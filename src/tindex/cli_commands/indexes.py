from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import click
import structlog

from tindex.config import get_dataset_dir, get_index_dir, get_units_per_year, is_leap_aware_february
from tindex.coordinator import IndexInitError, IndexLevel, TemporalIndexCoordinator, write_plan
from tindex.dates import is_day

log = structlog.get_logger()

_LEVEL_LABELS: list[tuple[IndexLevel, str]] = [
    (IndexLevel.DAILY, "Daily Indexes:"),
    (IndexLevel.MONTHLY, "Monthly Indexes:"),
    (IndexLevel.YEARLY, "Yearly Indexes:"),
]


def _resolve_roots(dataset_root: str | None, index_root: str | None) -> tuple[str, str]:
    ds = str(dataset_root or get_dataset_dir() or "").strip()
    ix = str(index_root or get_index_dir() or "").strip()
    if not ds:
        raise click.UsageError("Missing DATASET_ROOT (or set TINDEX_DATASET_DIR)")
    if not ix:
        raise click.UsageError("Missing INDEX_ROOT (or set TINDEX_INDEX_DIR)")
    return ds, ix


def _open_coordinator(dataset_root: str, index_root: str) -> TemporalIndexCoordinator:
    try:
        return TemporalIndexCoordinator(
            dataset_root,
            index_root,
            units_per_year=get_units_per_year(),
            leap_aware_february=is_leap_aware_february(),
        )
    except (IndexInitError, RuntimeError) as e:
        raise click.ClickException(str(e)) from e


def register(main: click.Group) -> None:
    """
    Register index-planning commands on the root CLI group.
    """

    @main.command("plan")
    @click.argument("dataset_root", required=False)
    @click.argument("index_root", required=False)
    @click.option("--time", "time_range", default=None, help="Inclusive date range START..END (YYYY.MM.DD..YYYY.MM.DD)")
    @click.option("--json", "as_json", is_flag=True, help="Print JSON payload")
    @click.option("--out", "out_path", default=None, type=click.Path(dir_okay=False, path_type=Path), help="Also write the plan as JSON to this file")
    def plan_cmd(
        dataset_root: str | None,
        index_root: str | None,
        time_range: str | None,
        as_json: bool,
        out_path: Path | None,
    ) -> None:
        """List the daily/monthly/yearly indexes that must be (re)built for a time range."""
        ds, ix = _resolve_roots(dataset_root, index_root)
        coordinator = _open_coordinator(ds, ix)
        try:
            plan = coordinator.evaluate(time_range)
        except OSError as e:
            raise click.ClickException(f"Failed to scan dataset root {coordinator.dataset_root}: {e}") from e

        meta: dict[str, Any] = {
            "dataset_root": coordinator.dataset_root,
            "index_root": coordinator.index_root,
            "time_range": time_range,
        }
        if out_path is not None:
            write_plan(out_path, plan, extra=meta)
            log.info("plan.written", path=str(out_path), total=plan.total)

        if as_json:
            payload = dict(meta)
            payload.update(plan.to_dict())
            click.echo(json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True))
            return
        for level, label in _LEVEL_LABELS:
            click.echo(label)
            for path in plan.for_level(level):
                click.echo(path)

    @main.command("inventory")
    @click.argument("dataset_root", required=False)
    @click.argument("index_root", required=False)
    @click.option("--json", "as_json", is_flag=True, help="Print JSON payload")
    def inventory_cmd(dataset_root: str | None, index_root: str | None, as_json: bool) -> None:
        """Show the indexes already built per level and the dataset partition count."""
        ds, ix = _resolve_roots(dataset_root, index_root)
        coordinator = _open_coordinator(ds, ix)
        try:
            entries = coordinator.namespace.list_children(coordinator.dataset_root)
        except OSError as e:
            raise click.ClickException(f"Failed to list dataset root {coordinator.dataset_root}: {e}") from e
        partitions = sum(1 for e in entries if is_day(e.name))

        levels = {level.value: coordinator.existing_keys(level) for level, _ in _LEVEL_LABELS}
        if as_json:
            payload = {
                "dataset_root": coordinator.dataset_root,
                "index_root": coordinator.index_root,
                "dataset_partitions": int(partitions),
                "existing": levels,
            }
            click.echo(json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True))
            return
        click.echo(f"dataset_root={coordinator.dataset_root} partitions={partitions}")
        for level, _label in _LEVEL_LABELS:
            keys = levels[level.value]
            click.echo(f"{level.value} ({coordinator.home_of(level)}): {len(keys)} existing")
            for k in keys:
                click.echo(f"  {k}")
