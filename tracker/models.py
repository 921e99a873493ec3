"""Domain records tracked by the missing-assets dashboard."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Mapping

ASSET_STATUSES: tuple[str, ...] = (
    "not-started",
    "ongoing",
    "completed",
    "exported",
    "uploaded",
)

STATUS_LABELS: dict[str, str] = {
    "not-started": "Not Started",
    "ongoing": "Ongoing",
    "completed": "Completed",
    "exported": "Exported",
    "uploaded": "Uploaded",
}

DEFAULT_STATUS = "not-started"

# Designer value meaning "clear the assignment", as opposed to leaving it alone.
UNASSIGNED = "unassigned"


def is_valid_status(value: Any) -> bool:
    return isinstance(value, str) and value in STATUS_LABELS


@dataclass(frozen=True)
class Designer:
    id: str
    name: str
    avatar: str = ""
    email: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "avatar": self.avatar,
            "email": self.email,
        }


@dataclass(frozen=True)
class AssetBrand:
    """A brand attached to one asset, carrying that asset's reflection state."""

    id: str
    name: str
    color: str = "#000000"
    reflected: bool = False
    reflected_by: str | None = None
    reflected_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "reflected": self.reflected,
            "reflected_by": self.reflected_by,
            "reflected_at": self.reflected_at,
        }


@dataclass(frozen=True)
class Asset:
    id: str
    game_name: str
    provider: str
    status: str = DEFAULT_STATUS
    brands: tuple[AssetBrand, ...] = field(default_factory=tuple)
    designer: Designer | None = None
    found_by: str = ""
    date_found: str = ""
    notes: str = ""
    created_at: str = ""
    updated_at: str = ""

    @property
    def brand_ids(self) -> set[str]:
        return {brand.id for brand in self.brands}

    @property
    def designer_id(self) -> str | None:
        return self.designer.id if self.designer is not None else None

    def with_changes(self, **changes: Any) -> "Asset":
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "game_name": self.game_name,
            "provider": self.provider,
            "status": self.status,
            "status_label": STATUS_LABELS.get(self.status, self.status),
            "brands": [brand.to_dict() for brand in self.brands],
            "designer": self.designer.to_dict() if self.designer else None,
            "found_by": self.found_by,
            "date_found": self.date_found,
            "notes": self.notes,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


def designer_from_row(row: Mapping[str, Any] | None) -> Designer | None:
    if not row or not row.get("id"):
        return None
    return Designer(
        id=str(row["id"]),
        name=str(row.get("name") or ""),
        avatar=str(row.get("avatar") or ""),
        email=str(row.get("email") or ""),
    )


__all__ = [
    "ASSET_STATUSES",
    "Asset",
    "AssetBrand",
    "DEFAULT_STATUS",
    "Designer",
    "STATUS_LABELS",
    "UNASSIGNED",
    "designer_from_row",
    "is_valid_status",
]
