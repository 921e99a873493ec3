"""Public read-only API consumed by external design plugins."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from flask import Blueprint, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from catalog import service as catalog_service
from lookups import service as lookups_service

logger = logging.getLogger(__name__)

plugin_blueprint = Blueprint("plugin", __name__)

_context: dict[str, Any] = {}

_ALL_METHODS = ["GET", "OPTIONS", "POST", "PUT", "PATCH", "DELETE"]


def configure(context: Mapping[str, Any]) -> None:
    """Inject the services and CORS origin used by the plugin API."""
    _context.update(context)


def _ctx(key: str) -> Any:
    if key not in _context:
        raise RuntimeError(f"plugin routes missing context value: {key}")
    return _context[key]


@plugin_blueprint.after_request
def _add_cors_headers(response):
    response.headers["Access-Control-Allow-Origin"] = _context.get("allow_origin", "*")
    response.headers["Access-Control-Allow-Methods"] = "GET, OPTIONS"
    response.headers["Access-Control-Allow-Headers"] = "Content-Type"
    return response


def _preflight_or_reject():
    if request.method == "OPTIONS":
        return "", 200
    if request.method not in ("GET", "HEAD"):
        return jsonify({"error": "Method not allowed"}), 405
    if not _ctx("services").configured:
        return jsonify({"error": "Database not configured"}), 500
    return None


@plugin_blueprint.route("/api/assets", methods=_ALL_METHODS)
def plugin_assets():
    early = _preflight_or_reject()
    if early is not None:
        return early

    provider = (request.args.get("provider") or "").strip() or None
    status = (request.args.get("status") or "").strip() or None
    limit: int | None = None
    raw_limit = request.args.get("limit")
    if raw_limit not in (None, ""):
        try:
            limit = int(raw_limit)
        except (TypeError, ValueError):
            return jsonify({"error": "Invalid limit"}), 400
        if limit < 0:
            return jsonify({"error": "Invalid limit"}), 400

    try:
        with _ctx("services").db.sa_connection() as conn:
            rows = catalog_service.fetch_plugin_assets(
                conn, provider=provider, status=status, page_size=_ctx("page_size")
            )
    except SQLAlchemyError as exc:
        logger.exception("Plugin asset query failed")
        return jsonify({"error": "Database query failed", "details": str(exc)}), 500
    except Exception as exc:
        logger.exception("Plugin asset request failed")
        return jsonify({"error": "Internal server error", "details": str(exc)}), 500

    data = rows if limit is None else rows[:limit]
    return jsonify({"count": len(rows), "returned": len(data), "data": data})


@plugin_blueprint.route("/api/providers", methods=_ALL_METHODS)
def plugin_providers():
    early = _preflight_or_reject()
    if early is not None:
        return early

    try:
        with _ctx("services").db.sa_connection() as conn:
            providers = lookups_service.list_providers(conn)
    except SQLAlchemyError as exc:
        logger.exception("Plugin provider query failed")
        return jsonify({"error": "Database query failed", "details": str(exc)}), 500
    except Exception as exc:
        logger.exception("Plugin provider request failed")
        return jsonify({"error": "Internal server error", "details": str(exc)}), 500

    return jsonify({"count": len(providers), "data": providers})
