from datetime import datetime, timezone
from flask import Blueprint, jsonify, abort

from boneyard.extensions import db
from boneyard.models import Climb, ClimbLog
from boneyard.helpers.account import get_viewer_id, get_viewer_email
from boneyard.helpers.payload import json_object, text_field
from boneyard.helpers.session import login_required

logs_bp = Blueprint("logs", __name__)

MIN_RATING = 1
MAX_RATING = 5


def parse_rating(raw):
    """
    Returns (rating, error). None is allowed (unrated send).
    Ratings are whole stars 1..5; bools and floats with a fraction are rejected.
    """
    if raw is None:
        return None, None

    if isinstance(raw, bool):
        return None, "Invalid rating"

    if isinstance(raw, float):
        if not raw.is_integer():
            return None, "Invalid rating"
        raw = int(raw)

    if isinstance(raw, str):
        raw = raw.strip()
        if not raw.isdigit():
            return None, "Invalid rating"
        raw = int(raw)

    if not isinstance(raw, int):
        return None, "Invalid rating"

    if raw < MIN_RATING or raw > MAX_RATING:
        return None, f"Rating must be between {MIN_RATING} and {MAX_RATING}"

    return raw, None


def _climb_or_404(climb_id) -> Climb:
    climb = db.session.get(Climb, climb_id)
    if not climb:
        abort(404)
    return climb


@logs_bp.route("/api/climbs/<climb_id>/log", methods=["PUT"])
@login_required
def api_save_log(climb_id):
    """
    Save / update the signed-in user's ascent log for this climb.

    Payload:
      {
        "comment": "flashed it, crimpy top",
        "rating": 4
      }

    One log per user per climb: a second PUT merges into the first.
    Leaving "rating" out keeps the stored rating; "rating": null clears it.
    The climb's ascentCount / avgRating are recomputed by the stats
    aggregator once the write commits.
    """
    climb = _climb_or_404(climb_id)
    data = json_object()
    if data is None:
        return "Invalid payload", 400

    comment = text_field(data, "comment")
    if comment is None:
        return "Invalid comment", 400
    if not comment:
        return "Please enter a comment", 400

    rating, error = parse_rating(data.get("rating"))
    if error:
        return error, 400

    uid = get_viewer_id()
    log = ClimbLog.query.filter_by(climb_id=climb.id, user_id=uid).first()

    if not log:
        log = ClimbLog(
            climb_id=climb.id,
            user_id=uid,
            email=get_viewer_email(),
            comment=comment,
            rating=rating,
            grade=climb.grade,
        )
        db.session.add(log)
        status = 201
    else:
        log.comment = comment
        if "rating" in data:
            log.rating = rating
        log.email = get_viewer_email() or log.email
        log.grade = climb.grade
        log.timestamp = datetime.now(timezone.utc)
        status = 200

    db.session.commit()

    # climb row was refreshed by the aggregator in its own session
    db.session.refresh(climb)

    return jsonify({"ok": True, "log": log.to_dict(), "climb": climb.to_dict()}), status


@logs_bp.route("/api/climbs/<climb_id>/log")
@login_required
def api_get_my_log(climb_id):
    log = ClimbLog.query.filter_by(climb_id=climb_id, user_id=get_viewer_id()).first()
    if not log:
        abort(404)
    return jsonify(log.to_dict())


@logs_bp.route("/api/climbs/<climb_id>/log", methods=["DELETE"])
@login_required
def api_delete_my_log(climb_id):
    log = ClimbLog.query.filter_by(climb_id=climb_id, user_id=get_viewer_id()).first()
    if not log:
        abort(404)

    db.session.delete(log)
    db.session.commit()

    climb = db.session.get(Climb, climb_id)
    return jsonify({"ok": True, "climb": climb.to_dict() if climb else None})


@logs_bp.route("/api/climbs/<climb_id>/logs")
def api_climb_logs(climb_id):
    """All logs for a climb, newest first."""
    logs = (
        ClimbLog.query
        .filter_by(climb_id=climb_id)
        .order_by(ClimbLog.timestamp.desc(), ClimbLog.id.desc())
        .all()
    )
    return jsonify([log.to_dict() for log in logs])
