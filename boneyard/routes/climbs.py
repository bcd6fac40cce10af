import math
from datetime import datetime, timezone
from flask import Blueprint, request, jsonify, abort, current_app

from boneyard.extensions import db
from boneyard.models import Climb
from boneyard.helpers.account import viewer_display_name
from boneyard.helpers.grades import normalize_grade_tag, COLOR_OPTIONS
from boneyard.helpers.leaderboard_cache import invalidate_leaderboard_cache
from boneyard.helpers.payload import json_object, text_field
from boneyard.helpers.session import admin_required

climbs_bp = Blueprint("climbs", __name__)


def _parse_coordinate(raw, key):
    """Map position in percent of the gym image. Returns (value, error)."""
    if isinstance(raw, bool):
        return None, f"Invalid {key}"
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None, f"Invalid {key}"
    if not math.isfinite(value):
        return None, f"Invalid {key}"
    return value, None


def _parse_climb_fields(data: dict, partial: bool):
    """
    Validate the editable climb fields from a JSON payload.

    Returns (fields, error). `fields` uses model attribute names. With
    partial=True only the keys present are validated (PATCH).
    Stats fields (ascentCount / avgRating) are never accepted here.
    """
    fields = {}

    if "name" in data or not partial:
        name = text_field(data, "name")
        if not name:
            return None, "Missing name"
        fields["name"] = name[:160]

    if "grade" in data or not partial:
        grade = text_field(data, "grade")
        grade = normalize_grade_tag(grade) if grade else None
        if not grade:
            return None, "Unknown grade tag"
        fields["grade"] = grade

    if "color" in data or not partial:
        color = text_field(data, "color")
        if color is None:
            return None, "Unknown color"
        color = (color or "gray").lower()
        if color not in COLOR_OPTIONS:
            return None, "Unknown color"
        fields["color"] = color

    for key in ("x", "y"):
        if key in data or not partial:
            value, error = _parse_coordinate(data.get(key, 0.0), key)
            if error:
                return None, error
            fields[key] = value

    if "gymID" in data or not partial:
        gym_id = text_field(data, "gymID")
        if not gym_id:
            return None, "Missing gymID"
        fields["gym_id"] = gym_id

    if "section" in data:
        section = text_field(data, "section")
        if section is None:
            return None, "Invalid section"
        fields["section"] = section.lower() or None

    return fields, None


@climbs_bp.route("/api/gyms/<gym_id>/climbs")
def api_gym_climbs(gym_id):
    """
    All climbs on a gym's map. Optional ?section=cave narrows to one wall.
    """
    q = Climb.query.filter(Climb.gym_id == gym_id)

    section = (request.args.get("section") or "").strip().lower()
    if section:
        q = q.filter(Climb.section == section)

    climbs = q.order_by(Climb.created_at.asc(), Climb.id.asc()).all()
    return jsonify([c.to_dict() for c in climbs])


@climbs_bp.route("/api/climbs/<climb_id>")
def api_get_climb(climb_id):
    climb = db.session.get(Climb, climb_id)
    if not climb:
        abort(404)
    return jsonify(climb.to_dict())


@climbs_bp.route("/api/climbs", methods=["POST"])
@admin_required
def api_create_climb():
    data = json_object()
    if data is None:
        return "Invalid payload", 400

    fields, error = _parse_climb_fields(data, partial=False)
    if error:
        return error, 400

    climb = Climb(**fields)
    climb.updated_by = viewer_display_name()
    db.session.add(climb)
    db.session.commit()

    current_app.logger.info(
        "CLIMB created climb_id=%s gym_id=%s by=%s", climb.id, climb.gym_id, climb.updated_by
    )
    return jsonify(climb.to_dict()), 201


@climbs_bp.route("/api/climbs/<climb_id>", methods=["PATCH"])
@admin_required
def api_update_climb(climb_id):
    """Merge update of the editable fields; unknown keys are ignored."""
    climb = db.session.get(Climb, climb_id)
    if not climb:
        abort(404)

    data = json_object()
    if data is None:
        return "Invalid payload", 400
    fields, error = _parse_climb_fields(data, partial=True)
    if error:
        return error, 400

    for attr, value in fields.items():
        setattr(climb, attr, value)

    climb.updated_by = viewer_display_name()
    climb.updated_at = datetime.now(timezone.utc)
    db.session.commit()

    return jsonify(climb.to_dict())


@climbs_bp.route("/api/climbs/<climb_id>", methods=["DELETE"])
@admin_required
def api_delete_climb(climb_id):
    """
    Delete the climb itself. Its logs, votes and videos are left in place
    (see `flask prune-orphans`).
    """
    climb = db.session.get(Climb, climb_id)
    if not climb:
        abort(404)

    db.session.delete(climb)
    db.session.commit()
    invalidate_leaderboard_cache()

    current_app.logger.info("CLIMB deleted climb_id=%s", climb_id)
    return jsonify({"ok": True, "id": climb_id})
