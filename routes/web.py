"""Session login flows and the request guard shared by every blueprint."""
from __future__ import annotations

from typing import Any, Callable, Mapping

from flask import (
    Blueprint,
    jsonify,
    redirect,
    request,
    session,
    url_for,
)

from routes.api_utils import STORE_NOT_CONFIGURED_MESSAGE
from tracker import views as tracker_views

web_blueprint = Blueprint("web", __name__)

_context: dict[str, Any] = {}

# Endpoints reachable without a session.
PUBLIC_ENDPOINTS = {"web.login", "web.logout", "static"}


def configure(context: Mapping[str, Any]) -> None:
    """Provide shared state required by the session routes."""
    _context.update(context)


def _ctx(key: str) -> Any:
    if key not in _context:
        raise RuntimeError(f"web routes missing context value: {key}")
    return _context[key]


def _get_app_password() -> str:
    return _ctx("app_password")


def _is_store_configured() -> bool:
    checker: Callable[[], bool] = _ctx("is_store_configured")
    return checker()


def _is_public(endpoint: str | None) -> bool:
    if endpoint in PUBLIC_ENDPOINTS:
        return True
    return bool(endpoint) and endpoint.startswith("plugin.")


@web_blueprint.before_app_request
def require_login():
    if _is_public(request.endpoint):
        return None
    is_api = request.path.startswith("/api/")
    if not session.get("authenticated"):
        if is_api:
            return jsonify({"error": "Unauthorized."}), 401
        return redirect(url_for("web.login"))
    if is_api and request.endpoint != "web.session_info" and not _is_store_configured():
        return jsonify({"error": STORE_NOT_CONFIGURED_MESSAGE}), 503
    return None


@web_blueprint.route("/login", methods=["GET", "POST"])
def login():
    if request.method == "GET":
        return jsonify({"authenticated": bool(session.get("authenticated"))})

    payload = request.get_json(silent=True)
    if not isinstance(payload, Mapping):
        payload = request.form
    if payload.get("password") != _get_app_password():
        return jsonify({"error": "Invalid password"}), 401

    session.clear()
    session["authenticated"] = True
    name = str(payload.get("name") or "").strip()
    if name:
        session["user"] = name
    return jsonify({"authenticated": True, "user": session.get("user")})


@web_blueprint.route("/logout")
def logout():
    session.clear()
    return redirect(url_for("web.login"))


@web_blueprint.route("/api/session")
def session_info():
    return jsonify(
        {
            "authenticated": True,
            "user": session.get("user"),
            "store_configured": _is_store_configured(),
        }
    )


RECENT_ASSET_COUNT = 5


@web_blueprint.route("/")
def index():
    assets = _ctx("get_store")().snapshot()
    recent = tracker_views.build_view(assets, sort="updated_at", descending=True)
    return jsonify(
        {
            "user": session.get("user"),
            "store_configured": _is_store_configured(),
            "assets": len(assets),
            "status_summary": tracker_views.status_summary(assets),
            "recent": [asset.to_dict() for asset in recent[:RECENT_ASSET_COUNT]],
        }
    )
