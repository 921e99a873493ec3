"""Small text utilities exposed to the dashboard."""

from __future__ import annotations

from flask import Blueprint, jsonify

from helpers import convert_titles, split_title_lines
from routes.api_utils import get_json_payload, handle_api_errors

tools_blueprint = Blueprint("tools", __name__, url_prefix="/api/tools")


@tools_blueprint.route("/title-converter", methods=["POST"])
@handle_api_errors
def title_converter():
    text = get_json_payload().get("text")
    lines = convert_titles(text)
    return jsonify(
        {
            "lines": lines,
            "text": "\n".join(lines),
            "input_count": len(split_title_lines(text)),
            "output_count": len(lines),
        }
    )
