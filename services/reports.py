"""Progress reports over the asset store."""

from __future__ import annotations

from datetime import date
from typing import Any, Sequence

import pandas as pd

from tracker.models import ASSET_STATUSES, STATUS_LABELS, Asset

UNASSIGNED_LABEL = "Unassigned"


def assets_frame(assets: Sequence[Asset]) -> pd.DataFrame:
    """Return one row per asset with the columns the reports aggregate."""

    records = [
        {
            "id": asset.id,
            "game_name": asset.game_name,
            "provider": asset.provider or "Unknown",
            "status": asset.status,
            "designer": asset.designer.name if asset.designer else UNASSIGNED_LABEL,
            "brands": ", ".join(brand.name for brand in asset.brands),
            "brand_count": len(asset.brands),
            "reflected_count": sum(1 for brand in asset.brands if brand.reflected),
        }
        for asset in assets
    ]
    columns = [
        "id",
        "game_name",
        "provider",
        "status",
        "designer",
        "brands",
        "brand_count",
        "reflected_count",
    ]
    return pd.DataFrame.from_records(records, columns=columns)


def status_counts(df: pd.DataFrame) -> dict[str, int]:
    counts = df["status"].value_counts().reindex(list(ASSET_STATUSES), fill_value=0)
    return {status: int(count) for status, count in counts.items()}


def reflection_rate(df: pd.DataFrame) -> int:
    """Percentage of brand attachments marked reflected, rounded."""

    total = int(df["brand_count"].sum()) if not df.empty else 0
    if total == 0:
        return 0
    return int(round(int(df["reflected_count"].sum()) * 100 / total))


def designer_workload(df: pd.DataFrame) -> list[dict[str, Any]]:
    if df.empty:
        return []
    table = (
        pd.crosstab(df["designer"], df["status"])
        .reindex(columns=list(ASSET_STATUSES), fill_value=0)
        .sort_index(key=lambda index: index.str.casefold())
    )
    workload = []
    for designer, row in table.iterrows():
        counts = {status: int(row[status]) for status in ASSET_STATUSES}
        workload.append(
            {"designer": designer, "total": sum(counts.values()), "statuses": counts}
        )
    return workload


def provider_breakdown(df: pd.DataFrame) -> list[dict[str, Any]]:
    if df.empty:
        return []
    grouped = df.groupby("provider").size().sort_values(ascending=False)
    return [{"provider": name, "count": int(count)} for name, count in grouped.items()]


def build_summary(assets: Sequence[Asset]) -> dict[str, Any]:
    df = assets_frame(assets)
    return {
        "total": int(len(df)),
        "status_counts": status_counts(df),
        "reflection_rate": reflection_rate(df),
        "designer_workload": designer_workload(df),
        "providers": provider_breakdown(df),
    }


def _rows_with_status(df: pd.DataFrame, status: str) -> pd.DataFrame:
    return df[df["status"] == status]


def ongoing_checklist(assets: Sequence[Asset]) -> str:
    """Return ``• game (provider) - designer`` lines for ongoing assets."""

    df = _rows_with_status(assets_frame(assets), "ongoing")
    return "\n".join(
        f"• {row.game_name} ({row.provider}) - {row.designer}"
        for row in df.itertuples(index=False)
    )


def build_text_report(assets: Sequence[Asset], *, generated: date | None = None) -> str:
    df = assets_frame(assets)
    generated_on = (generated or date.today()).isoformat()
    counts = status_counts(df)
    summary_lines = "\n".join(
        f"{STATUS_LABELS[status]}: {count}" for status, count in counts.items() if count
    )
    ongoing_lines = "\n".join(
        f"- {row.game_name} | {row.provider} | {row.designer} | {row.brands}"
        for row in _rows_with_status(df, "ongoing").itertuples(index=False)
    )
    report = (
        "MISSING ASSETS REPORT\n"
        f"Generated: {generated_on}\n\n"
        "SUMMARY\n"
        "-------\n"
        f"{summary_lines}\n"
        f"Total: {len(df)}\n\n"
        "ONGOING ITEMS\n"
        "-------------\n"
        f"{ongoing_lines}"
    )
    return report.strip()


def report_filename(generated: date | None = None) -> str:
    return f"asset-report-{(generated or date.today()).isoformat()}.txt"


__all__ = [
    "assets_frame",
    "build_summary",
    "build_text_report",
    "designer_workload",
    "ongoing_checklist",
    "provider_breakdown",
    "reflection_rate",
    "report_filename",
    "status_counts",
]
