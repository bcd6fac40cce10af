from flask import Blueprint, jsonify, abort, current_app

from boneyard.extensions import db
from boneyard.models import Climb, GradeVote
from boneyard.helpers.account import get_viewer_id
from boneyard.helpers.grades import grade_options_for_tag, tally_grade_votes
from boneyard.helpers.payload import json_object, text_field
from boneyard.helpers.session import login_required

grade_votes_bp = Blueprint("grade_votes", __name__)


@grade_votes_bp.route("/api/climbs/<climb_id>/grade-vote", methods=["PUT"])
@login_required
def api_submit_grade_vote(climb_id):
    """
    Submit or change the signed-in user's grade vote.

    The vote must be one of the options for the climb's tag, e.g. a
    "Green Tag (V4–6)" climb accepts V4, V5 or V6.
    """
    climb = db.session.get(Climb, climb_id)
    if not climb:
        abort(404)

    data = json_object()
    if data is None:
        return "Invalid payload", 400

    vote = text_field(data, "gradeVote")
    if vote is None:
        return "Invalid grade vote", 400

    allowed = grade_options_for_tag(climb.grade)
    if vote not in allowed:
        current_app.logger.info(
            "GRADE VOTE rejected climb_id=%s vote=%r tag=%r", climb_id, vote, climb.grade
        )
        return f"Vote {vote or '(empty)'} is invalid for grade tag {climb.grade}", 400

    uid = get_viewer_id()
    row = GradeVote.query.filter_by(climb_id=climb_id, user_id=uid).first()
    if row:
        row.grade_vote = vote
    else:
        row = GradeVote(climb_id=climb_id, user_id=uid, grade_vote=vote)
        db.session.add(row)

    db.session.commit()
    return jsonify({"ok": True, "userID": uid, "gradeVote": vote})


@grade_votes_bp.route("/api/climbs/<climb_id>/grade-votes")
def api_grade_votes(climb_id):
    """Vote tally + consensus for a climb (plus the viewer's own vote if signed in)."""
    climb = db.session.get(Climb, climb_id)
    if not climb:
        abort(404)

    votes = GradeVote.query.filter_by(climb_id=climb_id).all()
    out = tally_grade_votes(climb.grade, [v.grade_vote for v in votes])

    uid = get_viewer_id()
    mine = next((v.grade_vote for v in votes if uid and v.user_id == uid), None)

    out["climbID"] = climb_id
    out["grade"] = climb.grade
    out["myVote"] = mine
    return jsonify(out)
