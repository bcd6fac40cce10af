from flask import Blueprint, request, jsonify, abort

from boneyard.extensions import db
from boneyard.helpers.account import get_viewer_id, get_viewer_email, get_profile, get_or_create_profile
from boneyard.helpers.leaderboard import build_leaderboard, build_user_overview
from boneyard.helpers.leaderboard_cache import invalidate_leaderboard_cache
from boneyard.helpers.payload import json_object, text_field
from boneyard.helpers.session import login_required

profiles_bp = Blueprint("profiles", __name__)

MAX_DISPLAY_NAME = 120


@profiles_bp.route("/api/users/<user_id>/profile")
def api_get_profile(user_id):
    profile = get_profile(user_id)
    if not profile:
        abort(404)

    return jsonify(
        {
            "userID": profile.user_id,
            "displayName": profile.display_name,
            "photoURL": profile.photo_url,
        }
    )


@profiles_bp.route("/api/profile", methods=["PUT"])
@login_required
def api_update_profile():
    """
    Merge the signed-in user's display name / photo URL.
    Keys left out of the payload are untouched.
    """
    data = json_object()
    if data is None:
        return "Invalid payload", 400

    name = text_field(data, "displayName")
    if name is None:
        return "Invalid displayName", 400
    if len(name) > MAX_DISPLAY_NAME:
        return f"Display name too long (max {MAX_DISPLAY_NAME} characters)", 400

    photo_url = text_field(data, "photoURL")
    if photo_url is None:
        return "Invalid photoURL", 400

    profile = get_or_create_profile(get_viewer_id(), get_viewer_email())

    if "displayName" in data:
        profile.display_name = name or None

    if "photoURL" in data:
        profile.photo_url = photo_url or None

    db.session.commit()
    invalidate_leaderboard_cache()

    return jsonify(
        {
            "ok": True,
            "userID": profile.user_id,
            "displayName": profile.display_name,
            "photoURL": profile.photo_url,
        }
    )


@profiles_bp.route("/api/users/<user_id>/overview")
def api_user_overview(user_id):
    return jsonify(build_user_overview(user_id))


@profiles_bp.route("/api/leaderboard")
def api_leaderboard():
    """
    Total sends per climber. Optional ?gym=<gym id> limits it to one gym.
    """
    gym_id = (request.args.get("gym") or "").strip() or None
    rows = build_leaderboard(gym_id)
    return jsonify({"rows": rows, "total": len(rows)})
