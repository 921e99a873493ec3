"""Dashboard API for browsing and editing missing assets."""

from __future__ import annotations

import threading
from typing import Any, Mapping

from flask import Blueprint, jsonify, request

from catalog import service as catalog_service
from routes.api_utils import (
    BadRequestError,
    ConflictError,
    NotFoundError,
    get_json_payload,
    handle_api_errors,
    parse_bool,
    session_user,
)
from tracker import duplicates as tracker_duplicates
from tracker import text_match as tracker_text_match
from tracker import views as tracker_views
from tracker.models import DEFAULT_STATUS, UNASSIGNED, Asset, is_valid_status
from tracker.range_editor import (
    DragInProgressError,
    RangeEditError,
    RangeEditor,
)

assets_blueprint = Blueprint("assets", __name__, url_prefix="/api/missing-assets")

_context: dict[str, Any] = {}
_editors: dict[str, RangeEditor] = {}
_editors_lock = threading.Lock()


def configure(context: Mapping[str, Any]) -> None:
    """Inject the shared services and bulk-edit settings."""
    _context.update(context)
    with _editors_lock:
        _editors.clear()


def _ctx(key: str) -> Any:
    if key not in _context:
        raise RuntimeError(f"asset routes missing context value: {key}")
    return _context[key]


def _services():
    return _ctx("services")


def _editor_for_user() -> RangeEditor:
    key = session_user() or "__default__"
    with _editors_lock:
        editor = _editors.get(key)
        if editor is None:
            editor = _services().make_range_editor()
            _editors[key] = editor
        return editor


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return [str(part).strip() for part in value if str(part).strip()]


def _view_from_filters(filters: Mapping[str, Any]) -> list[Asset]:
    sort = filters.get("sort") or None
    order = str(filters.get("order") or "asc").lower()
    try:
        return tracker_views.build_view(
            _services().store.snapshot(),
            provider=filters.get("provider") or None,
            statuses=_as_list(filters.get("status")),
            designer_ids=_as_list(filters.get("designer")),
            search=filters.get("q") or None,
            sort=sort,
            descending=order == "desc",
        )
    except ValueError as exc:
        raise BadRequestError(str(exc)) from exc


def _filters_from_args() -> dict[str, Any]:
    return {
        "provider": request.args.get("provider"),
        "status": request.args.getlist("status"),
        "designer": request.args.getlist("designer"),
        "q": request.args.get("q"),
        "sort": request.args.get("sort"),
        "order": request.args.get("order"),
    }


def _filters_from_payload(payload: Mapping[str, Any]) -> Mapping[str, Any]:
    filters = payload.get("filters") or {}
    if not isinstance(filters, Mapping):
        raise BadRequestError("filters must be an object")
    return filters


def _coerce_index(value: Any, label: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise BadRequestError(f"invalid {label}") from exc


def _require_asset(asset_id: str) -> Asset:
    asset = _services().store.get(asset_id)
    if asset is None:
        raise NotFoundError("asset not found")
    return asset


@assets_blueprint.route("", methods=["GET"])
@handle_api_errors
def list_assets():
    rows = _view_from_filters(_filters_from_args())
    return jsonify(
        {
            "items": [asset.to_dict() for asset in rows],
            "total": len(rows),
            "store_total": len(_services().store),
        }
    )


@assets_blueprint.route("", methods=["POST"])
@handle_api_errors
def add_assets():
    services = _services()
    payload = get_json_payload()
    provider = str(payload.get("provider") or "").strip()
    text = payload.get("game_names", payload.get("game_name"))
    brand_ids = _as_list(payload.get("brand_ids"))
    status = payload.get("status") or DEFAULT_STATUS
    designer_id = payload.get("designer_id") or None
    if designer_id == UNASSIGNED:
        designer_id = None

    if not provider:
        raise BadRequestError("provider is required")
    if not is_valid_status(status):
        raise BadRequestError(f"invalid status: {status}")
    if designer_id and services.resolve_designer(designer_id) is None:
        raise BadRequestError(f"unknown designer: {designer_id}")
    resolution = tracker_duplicates.resolve_batch(
        text, provider, brand_ids, services.store.snapshot()
    )
    if resolution.candidate_count == 0:
        raise BadRequestError("at least one game name is required")
    if services.resolve_provider_id(provider) is None:
        raise BadRequestError(f"unknown provider: {provider}")

    if parse_bool(payload.get("preview")) or parse_bool(request.args.get("preview")):
        return jsonify({"preview": True, "resolution": resolution.to_dict()})

    found_by = str(payload.get("found_by") or session_user())
    notes = str(payload.get("notes") or "")

    def _create(name: str) -> Asset:
        return services.create_asset(
            name,
            provider=provider,
            brand_ids=resolution.brand_ids,
            status=status,
            designer_id=designer_id,
            found_by=found_by,
            notes=notes,
        )

    try:
        summary = tracker_duplicates.commit_batch(
            resolution,
            create_asset=_create,
            add_brands=services.add_brands,
            max_workers=_ctx("max_workers"),
        )
    except tracker_duplicates.EmptyBrandDeltaError as exc:
        raise ConflictError(
            str(exc), payload={"resolution": resolution.to_dict()}
        ) from exc

    status_code = 201 if summary.created else 200
    return (
        jsonify({"summary": summary.to_dict(), "resolution": resolution.to_dict()}),
        status_code,
    )


@assets_blueprint.route("/duplicates", methods=["POST"])
@handle_api_errors
def live_duplicates():
    payload = get_json_payload()
    page = _coerce_index(payload.get("page", 1), "page")
    result = tracker_duplicates.live_duplicate_check(
        payload.get("text"),
        payload.get("provider"),
        _services().store.snapshot(),
        brand_ids=_as_list(payload.get("brand_ids")),
        page=page,
        page_size=_ctx("duplicate_page_size"),
    )
    if result is None:
        return jsonify({"active": False})
    return jsonify({"active": True, **result})


@assets_blueprint.route("/<asset_id>", methods=["GET"])
@handle_api_errors
def get_asset(asset_id: str):
    return jsonify({"item": _require_asset(asset_id).to_dict()})


@assets_blueprint.route("/<asset_id>", methods=["PATCH"])
@handle_api_errors
def update_asset(asset_id: str):
    services = _services()
    _require_asset(asset_id)
    payload = dict(get_json_payload())
    if payload.get("designer_id") == UNASSIGNED:
        payload["designer_id"] = None
    try:
        with services.db.transaction() as conn:
            catalog_service.update_asset_fields(conn, asset_id, payload)
    except catalog_service.AssetNotFoundError as exc:
        services.store.remove([asset_id])
        raise NotFoundError("asset not found") from exc
    except catalog_service.InvalidAssetError as exc:
        raise BadRequestError(str(exc)) from exc
    asset = services.reload_asset(asset_id)
    if asset is None:
        raise NotFoundError("asset not found")
    return jsonify({"item": asset.to_dict()})


@assets_blueprint.route("/<asset_id>/brands", methods=["PUT", "POST"])
@handle_api_errors
def update_asset_brands(asset_id: str):
    services = _services()
    _require_asset(asset_id)
    payload = get_json_payload()
    try:
        with services.db.transaction() as conn:
            if request.method == "PUT":
                brands = payload.get("brands")
                if not isinstance(brands, list) or not all(
                    isinstance(entry, Mapping) for entry in brands
                ):
                    raise BadRequestError("brands must be a list of objects")
                catalog_service.replace_asset_brands(conn, asset_id, brands)
            else:
                brand_ids = _as_list(payload.get("brand_ids"))
                if not brand_ids:
                    raise BadRequestError("brand_ids is required")
                catalog_service.add_brands_to_asset(conn, asset_id, brand_ids)
    except catalog_service.AssetNotFoundError as exc:
        raise NotFoundError("asset not found") from exc
    except catalog_service.InvalidAssetError as exc:
        raise BadRequestError(str(exc)) from exc
    asset = services.reload_asset(asset_id)
    if asset is None:
        raise NotFoundError("asset not found")
    return jsonify({"item": asset.to_dict()})


@assets_blueprint.route("/<asset_id>/brands/<brand_id>/reflection", methods=["PUT"])
@handle_api_errors
def update_brand_reflection(asset_id: str, brand_id: str):
    services = _services()
    _require_asset(asset_id)
    payload = get_json_payload()
    if "reflected" not in payload:
        raise BadRequestError("reflected is required")
    try:
        with services.db.transaction() as conn:
            catalog_service.set_brand_reflection(
                conn,
                asset_id,
                brand_id,
                parse_bool(payload.get("reflected")),
                reflected_by=session_user() or None,
            )
    except catalog_service.AssetNotFoundError as exc:
        raise NotFoundError("brand is not attached to this asset") from exc
    asset = services.reload_asset(asset_id)
    if asset is None:
        raise NotFoundError("asset not found")
    return jsonify({"item": asset.to_dict()})


@assets_blueprint.route("/<asset_id>", methods=["DELETE"])
@handle_api_errors
def delete_asset(asset_id: str):
    services = _services()
    with services.db.transaction() as conn:
        deleted = catalog_service.delete_asset(conn, asset_id)
    services.store.remove([asset_id])
    if not deleted:
        raise NotFoundError("asset not found")
    return jsonify({"status": "deleted", "id": asset_id})


@assets_blueprint.route("/bulk-delete", methods=["POST"])
@handle_api_errors
def bulk_delete():
    services = _services()
    ids = _as_list(get_json_payload().get("ids"))
    if not ids:
        raise BadRequestError("ids is required")
    with services.db.transaction() as conn:
        deleted = catalog_service.delete_assets(conn, ids)
    services.store.remove(deleted)
    missing = [asset_id for asset_id in ids if asset_id not in set(deleted)]
    return jsonify({"deleted": deleted, "missing": missing, "count": len(deleted)})


@assets_blueprint.route("/refresh", methods=["POST"])
@handle_api_errors
def refresh_store():
    count = _services().store.refresh()
    return jsonify({"count": count})


@assets_blueprint.route("/providers", methods=["GET"])
@handle_api_errors
def list_provider_folders():
    folders = tracker_views.provider_folders(_services().store.snapshot())
    return jsonify({"folders": folders, "total": len(folders)})


@assets_blueprint.route("/providers/<provider_name>", methods=["GET"])
@handle_api_errors
def provider_folder(provider_name: str):
    filters = _filters_from_args()
    filters["provider"] = provider_name
    filters["sort"] = filters.get("sort") or "game_name"
    rows = _view_from_filters(filters)
    return jsonify(
        {
            "provider": provider_name,
            "items": [asset.to_dict() for asset in rows],
            "total": len(rows),
            "status_summary": tracker_views.status_summary(rows),
            "copy": tracker_views.copy_text(rows),
        }
    )


@assets_blueprint.route("/range-fill", methods=["POST"])
@handle_api_errors
def range_fill():
    payload = get_json_payload()
    view = _view_from_filters(_filters_from_payload(payload))
    start = _coerce_index(payload.get("start"), "start")
    end = _coerce_index(payload.get("end"), "end")
    field_name = str(payload.get("field") or "")
    editor = _editor_for_user()
    try:
        editor.validate(field_name, payload.get("value"))
        if start == end:
            return jsonify({"applied": False})
        result = editor.apply_range(view, start, end, field_name, payload.get("value"))
    except RangeEditError as exc:
        raise BadRequestError(str(exc)) from exc
    return jsonify({"applied": True, **result.to_dict()})


@assets_blueprint.route("/drag/start", methods=["POST"])
@handle_api_errors
def drag_start():
    payload = get_json_payload()
    view = _view_from_filters(_filters_from_payload(payload))
    start_index = _coerce_index(payload.get("start_index"), "start_index")
    try:
        drag = _editor_for_user().begin(
            view, start_index, str(payload.get("field") or ""), payload.get("value")
        )
    except DragInProgressError as exc:
        raise ConflictError(str(exc)) from exc
    except RangeEditError as exc:
        raise BadRequestError(str(exc)) from exc
    return jsonify({**drag.to_dict(), "ids": [asset.id for asset in drag.view]})


def _active_drag():
    drag = _editor_for_user().active
    if drag is None:
        raise ConflictError("no drag in progress")
    return drag


@assets_blueprint.route("/drag/move", methods=["POST"])
@handle_api_errors
def drag_move():
    payload = get_json_payload()
    drag = _active_drag()
    if "index" in payload:
        drag.move_to(_coerce_index(payload.get("index"), "index"))
    else:
        try:
            pointer_y = float(payload.get("pointer_y"))
            row_bounds = [
                (float(top), float(bottom)) for top, bottom in payload.get("row_bounds") or []
            ]
        except (TypeError, ValueError) as exc:
            raise BadRequestError("pointer_y and row_bounds are required") from exc
        drag.move(pointer_y, row_bounds)
    return jsonify(drag.to_dict())


@assets_blueprint.route("/drag/end", methods=["POST"])
@handle_api_errors
def drag_end():
    drag = _active_drag()
    try:
        result = drag.release()
    except RangeEditError as exc:
        raise BadRequestError(str(exc)) from exc
    if result is None:
        return jsonify({"applied": False})
    return jsonify({"applied": True, **result.to_dict()})


@assets_blueprint.route("/drag/cancel", methods=["POST"])
@handle_api_errors
def drag_cancel():
    drag = _editor_for_user().active
    if drag is not None:
        drag.cancel()
    return jsonify({"cancelled": drag is not None})


@assets_blueprint.route("/text-match", methods=["POST"])
@handle_api_errors
def text_match():
    services = _services()
    payload = get_json_payload()
    designer = payload.get("designer")
    if designer is None:
        designer = tracker_text_match.LEAVE_UNCHANGED
    try:
        result = tracker_text_match.bulk_text_match_update(
            payload.get("titles"),
            payload.get("provider"),
            payload.get("status"),
            services.store.snapshot(),
            update_status=services.update_status,
            update_designer=services.update_designer,
            designer=designer,
            resolve_designer=services.resolve_designer,
            store=services.store,
            max_workers=_ctx("max_workers"),
        )
    except tracker_text_match.TextMatchValidationError as exc:
        raise BadRequestError(str(exc)) from exc
    return jsonify(result.to_dict())
