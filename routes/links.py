"""Game asset link routes."""

from __future__ import annotations

from typing import Any, Mapping

from flask import Blueprint, jsonify, request

from links import service as links_service
from routes.api_utils import (
    BadRequestError,
    NotFoundError,
    get_json_payload,
    handle_api_errors,
    parse_bool,
)

links_blueprint = Blueprint("links", __name__, url_prefix="/api/links")

_context: dict[str, Any] = {}


def configure(context: Mapping[str, Any]) -> None:
    _context.update(context)


def _ctx(key: str) -> Any:
    if key not in _context:
        raise RuntimeError(f"link routes missing context value: {key}")
    return _context[key]


def _db():
    return _ctx("services").db


@links_blueprint.route("", methods=["GET"])
@handle_api_errors
def list_links():
    with _db().sa_connection() as conn:
        links = links_service.list_links(conn)
    matches = links_service.search_links(links, request.args.get("q"))
    if parse_bool(request.args.get("grouped")):
        groups = links_service.group_links(
            matches, pinned=request.args.getlist("pinned")
        )
        return jsonify({"groups": groups, "total": len(groups)})
    return jsonify({"items": matches, "total": len(matches)})


@links_blueprint.route("", methods=["POST"])
@handle_api_errors
def create_links():
    payload = get_json_payload()
    rows = payload.get("links")
    if rows is None:
        rows = [payload]
    if not isinstance(rows, list) or not all(isinstance(row, Mapping) for row in rows):
        raise BadRequestError("links must be a list of objects")
    try:
        with _db().transaction() as conn:
            created = links_service.create_links(conn, rows)
    except links_service.LinkValidationError as exc:
        raise BadRequestError(str(exc)) from exc
    return jsonify({"items": created, "count": len(created)}), 201


@links_blueprint.route("/<link_id>", methods=["PUT"])
@handle_api_errors
def update_link(link_id: str):
    try:
        with _db().transaction() as conn:
            updated = links_service.update_link(conn, link_id, get_json_payload())
    except links_service.LinkValidationError as exc:
        raise BadRequestError(str(exc)) from exc
    if updated is None:
        raise NotFoundError("link not found")
    return jsonify({"item": updated})


@links_blueprint.route("/<link_id>", methods=["DELETE"])
@handle_api_errors
def delete_link(link_id: str):
    with _db().transaction() as conn:
        deleted = links_service.delete_link(conn, link_id)
    if not deleted:
        raise NotFoundError("link not found")
    return jsonify({"status": "deleted", "id": link_id})
