"""Application startup orchestration helpers."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Mapping, Sequence

from catalog import service as catalog_service
from db import schema as db_schema
from db import utils as db_utils
from lookups import service as lookups_service
from services.chat import ChatAssistant
from tracker.models import Asset, Designer
from tracker.range_editor import RangeEditor
from tracker.store import AssetStore

logger = logging.getLogger(__name__)


class AppServices:
    """Bundle the database, asset store and helpers the routes depend on.

    Every persistence helper opens its own transaction, so concurrent bulk
    calls never share a connection.
    """

    def __init__(
        self,
        db: db_utils.DatabaseProvider,
        *,
        chat: ChatAssistant | None = None,
        page_size: int = catalog_service.DEFAULT_PAGE_SIZE,
        duplicate_page_size: int = 10,
        max_workers: int = 8,
    ):
        self.db = db
        self.chat = chat or ChatAssistant(None)
        self.page_size = page_size
        self.duplicate_page_size = duplicate_page_size
        self.max_workers = max_workers
        self.store = AssetStore(loader=self.load_assets, logger=logger)

    @property
    def configured(self) -> bool:
        return self.db.configured

    def load_assets(self) -> list[Asset]:
        with self.db.sa_connection() as conn:
            return catalog_service.fetch_assets(conn, page_size=self.page_size)

    def reload_asset(self, asset_id: str) -> Asset | None:
        with self.db.sa_connection() as conn:
            asset = catalog_service.get_asset(conn, asset_id)
        if asset is None:
            self.store.remove([asset_id])
        else:
            self.store.put(asset)
        return asset

    def resolve_designer(self, designer_id: str) -> Designer | None:
        with self.db.sa_connection() as conn:
            return lookups_service.get_designer(conn, designer_id)

    def resolve_provider_id(self, provider: Any) -> str | None:
        with self.db.sa_connection() as conn:
            return catalog_service.resolve_provider_id(conn, provider)

    def update_status(self, asset_id: str, status: str) -> None:
        with self.db.transaction() as conn:
            catalog_service.update_asset_status(conn, asset_id, status)

    def update_designer(self, asset_id: str, designer_id: str | None) -> None:
        with self.db.transaction() as conn:
            catalog_service.update_asset_designer(conn, asset_id, designer_id)

    def persist_field(self, asset_id: str, field: str, value: Any) -> None:
        if field == "status":
            self.update_status(asset_id, value)
        else:
            self.update_designer(asset_id, value)

    def create_asset(self, game_name: str, **fields: Any) -> Asset:
        with self.db.transaction() as conn:
            asset = catalog_service.create_asset(conn, game_name=game_name, **fields)
        self.store.add(asset)
        return asset

    def add_brands(self, asset: Asset, brand_ids: Sequence[str]) -> Asset | None:
        with self.db.transaction() as conn:
            catalog_service.add_brands_to_asset(conn, asset.id, brand_ids)
        return self.reload_asset(asset.id)

    def make_range_editor(self) -> RangeEditor:
        return RangeEditor(
            self.store,
            self.persist_field,
            resolve_designer=self.resolve_designer,
            max_workers=self.max_workers,
        )


def initialize_app(
    *,
    settings: Mapping[str, Any],
    engine_factory: Callable[..., db_utils.DatabaseEngine] = db_utils.build_engine_from_dsn,
    chat_client_factory: Callable[[str], Any] | None = None,
    seed_tables: Sequence[Mapping[str, Any]] = lookups_service.DEFAULT_SEED_TABLES,
) -> AppServices:
    """Perform the core startup tasks required for the application.

    Builds the database engine from ``DB_DSN``, creates missing tables,
    seeds lookup tables from ``SEED_DATA_DIR`` and loads the asset store.
    An empty DSN leaves the services in the "not configured" state.
    """

    dsn = str(settings.get("DB_DSN") or "")
    engine: db_utils.DatabaseEngine | None = None
    if dsn:
        engine = engine_factory(dsn, timeout=settings.get("DB_CONNECT_TIMEOUT_SECONDS"))
    else:
        logger.warning("No database configured; dashboard API will report 503")
    db = db_utils.DatabaseProvider(engine)

    chat_client = None
    api_key = settings.get("OPENAI_API_KEY")
    if api_key and chat_client_factory is not None:
        chat_client = chat_client_factory(api_key)
    chat = ChatAssistant(chat_client, model=settings.get("OPENAI_CHAT_MODEL", "gpt-4o-mini"))

    services = AppServices(
        db,
        chat=chat,
        page_size=int(settings.get("ASSET_PAGE_SIZE", catalog_service.DEFAULT_PAGE_SIZE)),
        duplicate_page_size=int(settings.get("DUPLICATE_PAGE_SIZE", 10)),
        max_workers=int(settings.get("BULK_MAX_WORKERS", 8)),
    )

    if engine is None:
        return services

    db_schema.ensure_schema(engine.engine)

    if settings.get("SEED_ON_STARTUP", True):
        data_dir = Path(settings.get("SEED_DATA_DIR") or ".")
        if data_dir.is_dir():
            with db.transaction() as conn:
                lookups_service.load_lookup_tables(
                    conn, seed_tables, data_dir=data_dir, log=logger
                )

    try:
        count = services.store.refresh()
    except Exception:
        logger.exception("Failed to load assets during startup")
        raise
    logger.info("Loaded %d assets into the store", count)
    return services


__all__ = ["AppServices", "initialize_app"]
