#!/usr/bin/env python3
"""Import missing assets from a CSV or workbook through the duplicate resolver."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any, Sequence
import sys

import pandas as pd

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import config as app_config
from helpers import _normalize_lookup_name
from init import AppServices, initialize_app
from lookups import service as lookups_service
from tracker import duplicates as tracker_duplicates

REQUIRED_COLUMNS = ("game_name", "provider")


def read_import_file(path: Path) -> pd.DataFrame:
    if path.suffix.lower() in {".xlsx", ".xls"}:
        df = pd.read_excel(path)
    else:
        df = pd.read_csv(path)
    df.columns = [str(column).strip().lower().replace(" ", "_") for column in df.columns]
    missing = [column for column in REQUIRED_COLUMNS if column not in df.columns]
    if missing:
        raise ValueError(f"{path.name} is missing columns: {', '.join(missing)}")
    if "brands" not in df.columns:
        df["brands"] = ""
    return df


def _brand_names(value: Any) -> list[str]:
    text = _normalize_lookup_name(value)
    return [part.strip() for part in text.split(",") if part.strip()]


def import_assets(
    df: pd.DataFrame, services: AppServices, *, found_by: str = "import"
) -> dict[str, Any]:
    """Create new rows and attach brand deltas to existing duplicates.

    Rows sharing a provider and brand set are resolved as one batch.
    """

    batches: dict[tuple[str, tuple[str, ...]], list[str]] = {}
    with services.db.transaction() as conn:
        for record in df.to_dict("records"):
            name = _normalize_lookup_name(record.get("game_name"))
            provider = _normalize_lookup_name(record.get("provider"))
            if not name or not provider:
                continue
            provider_id = lookups_service.get_or_create_lookup_id(conn, "providers", provider)
            if provider_id is None:
                continue
            brand_ids = tuple(
                brand_id
                for brand_id in (
                    lookups_service.get_or_create_lookup_id(conn, "brands", brand)
                    for brand in _brand_names(record.get("brands"))
                )
                if brand_id
            )
            batches.setdefault((provider, brand_ids), []).append(name)

    totals = {"created": 0, "updated": 0, "skipped": 0, "failed": 0, "batches": 0}
    failed_names: list[str] = []
    for (provider, brand_ids), names in batches.items():
        resolution = tracker_duplicates.resolve_batch(
            "\n".join(names), provider, brand_ids, services.store.snapshot()
        )
        if resolution.blocked:
            totals["skipped"] += 1
            continue
        summary = tracker_duplicates.commit_batch(
            resolution,
            create_asset=lambda name, provider=provider, brand_ids=brand_ids: services.create_asset(
                name, provider=provider, brand_ids=brand_ids, found_by=found_by
            ),
            add_brands=services.add_brands,
            max_workers=services.max_workers,
        )
        totals["batches"] += 1
        totals["created"] += len(summary.created)
        totals["updated"] += len(summary.updated)
        totals["skipped"] += len(summary.skipped)
        totals["failed"] += len(summary.failed)
        failed_names.extend(summary.failed)

    return {**totals, "failed_names": failed_names}


def main(argv: Sequence[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("path", type=Path, help="CSV or XLSX with game_name, provider, brands")
    parser.add_argument("--dsn", help="Database URL (defaults to the configured one)")
    parser.add_argument("--found-by", default="import", help="Value stored in found_by")
    args = parser.parse_args(argv)

    settings = dict(app_config.default_settings())
    if args.dsn:
        settings["DB_DSN"] = args.dsn
    services = initialize_app(settings=settings)
    if not services.configured:
        print("No database configured; set DATABASE_URL or pass --dsn.")
        raise SystemExit(1)

    try:
        df = read_import_file(args.path)
        summary = import_assets(df, services, found_by=args.found_by)
    except Exception as exc:  # pragma: no cover - surface unexpected failures
        print(f"Failed to import assets: {exc}")
        raise SystemExit(1)
    finally:
        services.db.dispose()

    print(
        "Imported {batches} batches (created: {created}, updated: {updated}, "
        "skipped: {skipped}, failed: {failed}).".format(**summary)
    )
    if summary["failed_names"]:
        print("Failed rows: " + ", ".join(summary["failed_names"]))


if __name__ == "__main__":  # pragma: no cover - manual execution path
    main()
