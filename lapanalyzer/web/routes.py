from __future__ import annotations

import logging

from flask import Blueprint, Response, current_app, jsonify, request

from lapanalyzer.config import Config
from lapanalyzer.errors import (
    FormatError,
    LapAnalyzerError,
    MalformedInputError,
    NotFoundError,
    UnsupportedCompressionError,
)
from lapanalyzer.formatter import (
    format_lap_label,
    parse_lap_selection,
    render_table,
    select_laps,
    stats_to_dict,
)
from lapanalyzer.parser import compute_lap_stats, parse_activity_bytes

log = logging.getLogger(__name__)

bp = Blueprint("main", __name__)

_ERROR_STATUS = {
    FormatError: 400,
    MalformedInputError: 400,
    UnsupportedCompressionError: 400,
    NotFoundError: 422,
}


def _config() -> Config:
    return current_app.config["config"]


def _payload() -> bytes:
    if request.mimetype == "multipart/form-data":
        upload = request.files.get("activity")
        return upload.read() if upload is not None else b""
    return request.get_data()


@bp.route("/status")
def status():
    config = _config()
    return jsonify(ok=True, tolerance_m=config.boundary_tolerance_m)


@bp.route("/laps", methods=["POST"])
def laps():
    """Compute lap stats for an uploaded FIT/ZIP/JSON payload."""
    config = _config()
    data = _payload()
    if not data:
        return jsonify(error="No activity payload provided"), 400

    try:
        selection = parse_lap_selection(request.args.get("laps"))
    except ValueError:
        return jsonify(error=f"Invalid lap selection: {request.args.get('laps')}"), 400

    try:
        activity = parse_activity_bytes(data, extension=config.payload_extension)
        stats = compute_lap_stats(activity, config)
    except LapAnalyzerError as e:
        status_code = _ERROR_STATUS.get(type(e), 400)
        log.warning("Rejected payload (%d bytes): %s", len(data), e)
        return jsonify(error=str(e)), status_code

    selected = select_laps(stats, selection)

    if request.args.get("format") == "text":
        show_at = request.args.get("min_hr_time", "").lower() in ("true", "1", "yes")
        return Response(render_table(selected, show_min_hr_time=show_at), mimetype="text/plain")

    return jsonify(
        laps=[dict(s.to_dict(), label=format_lap_label(s)) for s in stats],
        selected=stats_to_dict(selected),
    )
