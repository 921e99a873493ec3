"""Progress report routes."""

from __future__ import annotations

from typing import Any, Mapping

from flask import Blueprint, Response, jsonify

from routes.api_utils import handle_api_errors
from services import reports as reports_service

reports_blueprint = Blueprint("reports", __name__, url_prefix="/api/reports")

_context: dict[str, Any] = {}


def configure(context: Mapping[str, Any]) -> None:
    _context.update(context)


def _ctx(key: str) -> Any:
    if key not in _context:
        raise RuntimeError(f"report routes missing context value: {key}")
    return _context[key]


def _assets():
    return _ctx("services").store.snapshot()


@reports_blueprint.route("/summary")
@handle_api_errors
def summary():
    return jsonify(reports_service.build_summary(_assets()))


@reports_blueprint.route("/ongoing")
@handle_api_errors
def ongoing():
    return jsonify({"text": reports_service.ongoing_checklist(_assets())})


@reports_blueprint.route("/export")
@handle_api_errors
def export():
    body = reports_service.build_text_report(_assets())
    return Response(
        body,
        mimetype="text/plain",
        headers={
            "Content-Disposition": (
                f'attachment; filename="{reports_service.report_filename()}"'
            )
        },
    )
