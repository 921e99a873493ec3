"""Lookup-table API routes."""

from __future__ import annotations

from typing import Any, Mapping

from flask import Blueprint, jsonify, request

from lookups import service as lookups_service
from routes.api_utils import (
    BadRequestError,
    ConflictError,
    MethodNotAllowedError,
    NotFoundError,
    get_json_payload,
    handle_api_errors,
)

lookups_blueprint = Blueprint("lookups", __name__)

_context: dict[str, Any] = {}

LOOKUP_ENDPOINT_MAP = {
    'providers': 'providers',
    'provider': 'providers',
    'brands': 'brands',
    'brand': 'brands',
    'designers': 'designers',
    'designer': 'designers',
}


def configure(context: Mapping[str, Any]) -> None:
    """Inject shared lookup helpers and metadata."""
    _context.update(context)


def _ctx(key: str) -> Any:
    if key not in _context:
        raise RuntimeError(f"lookup routes missing context value: {key}")
    return _context[key]


def _refresh_store_after_change() -> None:
    # Assets embed provider, brand and designer names.
    _ctx('services').store.refresh()


@lookups_blueprint.route('/api/lookups/<lookup_type>', methods=['GET', 'POST', 'PUT', 'DELETE'])
@handle_api_errors
def api_lookup_options(lookup_type: str):
    normalized = lookup_type.strip().lower().replace('-', '_').replace(' ', '_')
    table_name = LOOKUP_ENDPOINT_MAP.get(normalized)
    if not table_name:
        raise NotFoundError('unknown lookup type')

    db = _ctx('services').db

    if request.method == 'GET':
        try:
            requested_limit = int(request.args.get('limit', 200))
        except (TypeError, ValueError):
            requested_limit = 200
        if requested_limit <= 0:
            requested_limit = 200
        limit = min(requested_limit, 200)

        offset = 0
        page_value: int | None = None
        page_param = request.args.get('page')
        if isinstance(page_param, str) and page_param.strip():
            try:
                page_value = int(page_param)
            except (TypeError, ValueError):
                page_value = 1
            if page_value < 1:
                page_value = 1
            offset = (page_value - 1) * limit
        else:
            offset_param = request.args.get('offset')
            if isinstance(offset_param, str) and offset_param.strip():
                try:
                    offset = int(offset_param)
                except (TypeError, ValueError):
                    offset = 0
                if offset < 0:
                    offset = 0

        with db.sa_connection() as conn:
            items, total = lookups_service.list_lookup_entries(
                conn, table_name, limit=limit, offset=offset
            )

        has_more = offset + len(items) < total
        payload: dict[str, Any] = {
            'items': items,
            'type': table_name,
            'total': total,
            'limit': limit,
            'offset': offset,
            'has_more': has_more,
        }
        if page_value is not None:
            payload['page'] = page_value
        return jsonify(payload)

    payload = get_json_payload()
    extra = {
        key: payload[key]
        for key in lookups_service.LOOKUP_EXTRA_FIELDS.get(table_name, {})
        if key in payload
    }

    if request.method == 'POST':
        with db.transaction() as conn:
            status, created_item = lookups_service.create_lookup_entry(
                conn, table_name, payload.get('name'), extra=extra
            )
        if created_item is None or status == 'invalid':
            raise BadRequestError('invalid name')
        status_code = 201 if status == 'created' else 200
        return jsonify({'item': created_item, 'type': table_name}), status_code

    lookup_id = str(payload.get('id') or '').strip()
    if not lookup_id:
        raise BadRequestError('invalid lookup id')

    if request.method == 'PUT':
        new_name = payload.get('name')
        if new_name is None:
            with db.sa_connection() as conn:
                current = lookups_service.get_lookup_entry(conn, table_name, lookup_id)
            if current is None:
                raise NotFoundError('lookup not found')
            new_name = current['name']
        with db.transaction() as conn:
            status, updated_item = lookups_service.update_lookup_entry(
                conn, table_name, lookup_id, new_name, extra=extra
            )
        if status == 'not_found':
            raise NotFoundError('lookup not found')
        if status == 'conflict':
            raise ConflictError('name conflict')
        if status == 'invalid' or updated_item is None:
            raise BadRequestError('invalid name')
        _refresh_store_after_change()
        return jsonify({'item': updated_item, 'type': table_name})

    if request.method == 'DELETE':
        with db.transaction() as conn:
            deleted_successfully = lookups_service.delete_lookup_entry(
                conn, table_name, lookup_id
            )
        if not deleted_successfully:
            raise NotFoundError('lookup not found')
        _refresh_store_after_change()
        return jsonify({'status': 'deleted', 'type': table_name, 'id': lookup_id})

    raise MethodNotAllowedError('unsupported method')
