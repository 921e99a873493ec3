"""Table definitions for the missing-assets database."""

from __future__ import annotations

import logging

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Index,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

metadata = MetaData()

providers = Table(
    "providers",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(255), nullable=False, unique=True),
    Column("created_at", String(40), nullable=False),
)

brands = Table(
    "brands",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(255), nullable=False, unique=True),
    Column("color", String(32), nullable=False, default="#000000"),
    Column("created_at", String(40), nullable=False),
    Column("updated_at", String(40), nullable=False),
)

designers = Table(
    "designers",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(255), nullable=False, unique=True),
    Column("avatar", String(255), nullable=True),
    Column("email", String(255), nullable=False, default=""),
    Column("created_at", String(40), nullable=False),
    Column("updated_at", String(40), nullable=False),
)

assets = Table(
    "assets",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("game_name", String(255), nullable=False),
    Column(
        "provider_id",
        String(36),
        ForeignKey("providers.id", ondelete="SET NULL"),
        nullable=True,
    ),
    Column("status", String(32), nullable=False, default="not-started"),
    Column(
        "designer_id",
        String(36),
        ForeignKey("designers.id", ondelete="SET NULL"),
        nullable=True,
    ),
    Column("found_by", String(255), nullable=False, default=""),
    Column("date_found", String(40), nullable=False),
    Column("notes", Text, nullable=True),
    Column("created_at", String(40), nullable=False),
    Column("updated_at", String(40), nullable=False),
    Index("ix_assets_provider_status", "provider_id", "status"),
)

asset_brands = Table(
    "asset_brands",
    metadata,
    Column("id", String(36), primary_key=True),
    Column(
        "asset_id",
        String(36),
        ForeignKey("assets.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column(
        "brand_id",
        String(36),
        ForeignKey("brands.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("reflected", Boolean, nullable=False, default=False),
    Column("reflected_by", String(255), nullable=True),
    Column("reflected_at", String(40), nullable=True),
    Column("created_at", String(40), nullable=False),
    UniqueConstraint("asset_id", "brand_id", name="uq_asset_brands_asset_brand"),
)

game_asset_links = Table(
    "game_asset_links",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("game_name", String(255), nullable=False),
    Column("asset_url", Text, nullable=False, default=""),
    Column("username", String(255), nullable=False, default=""),
    Column("password", String(255), nullable=False, default=""),
    Column("created_at", String(40), nullable=False),
    Column("updated_at", String(40), nullable=False),
)

LOOKUP_TABLES = {
    "providers": providers,
    "brands": brands,
    "designers": designers,
}


def ensure_schema(engine: Engine) -> None:
    """Create any missing tables."""

    metadata.create_all(engine, checkfirst=True)
    logger.debug("Database schema ensured for %s", engine.url.render_as_string())


__all__ = [
    "LOOKUP_TABLES",
    "asset_brands",
    "assets",
    "brands",
    "designers",
    "ensure_schema",
    "game_asset_links",
    "metadata",
    "providers",
]
