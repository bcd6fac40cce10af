from sqlalchemy import func

from boneyard.extensions import db
from boneyard.models import ClimbLog, Climb, UserProfile, Video
from boneyard.helpers.grades import sort_grade_tags
from boneyard.helpers.leaderboard_cache import get_cached_leaderboard, set_cached_leaderboard


def build_leaderboard(gym_id=None):
    """
    Total sends per user, most first.

    Every log counts as a send (rated or not). Ties are broken by display
    name so the order is stable. With `gym_id`, only climbs of that gym
    count.

    Returns a list of row dicts: position, userID, displayName, photoURL,
    totalClimbs.
    """
    key = gym_id or "all"
    cached = get_cached_leaderboard(key)
    if cached is not None:
        return cached

    q = db.session.query(ClimbLog.user_id, func.count(ClimbLog.id))
    if gym_id:
        q = q.join(Climb, Climb.id == ClimbLog.climb_id).filter(Climb.gym_id == gym_id)
    counts = q.group_by(ClimbLog.user_id).all()

    user_ids = [uid for uid, _ in counts]
    profiles = {}
    if user_ids:
        profiles = {
            p.user_id: p
            for p in UserProfile.query.filter(UserProfile.user_id.in_(user_ids)).all()
        }

    rows = []
    for uid, total in counts:
        profile = profiles.get(uid)
        rows.append(
            {
                "userID": uid,
                "displayName": (profile.display_name if profile and profile.display_name else "Unknown"),
                "photoURL": profile.photo_url if profile else None,
                "totalClimbs": int(total),
            }
        )

    rows.sort(key=lambda r: (-r["totalClimbs"], r["displayName"].lower(), r["userID"]))

    for i, r in enumerate(rows, start=1):
        r["position"] = i

    set_cached_leaderboard(key, rows)
    return rows


def build_user_overview(user_id: str) -> dict:
    """Sends + beta videos for one user, grouped by grade tag."""
    logs = ClimbLog.query.filter_by(user_id=user_id).all()

    sends_by_grade = {}
    for log in logs:
        grade = log.grade or "Ungraded"
        sends_by_grade[grade] = sends_by_grade.get(grade, 0) + 1

    videos = (
        Video.query
        .filter_by(uploader_id=user_id)
        .order_by(Video.timestamp.desc())
        .all()
    )
    videos_by_grade = {}
    for v in videos:
        videos_by_grade.setdefault(v.grade or "Ungraded", []).append(v.to_dict(viewer_id=user_id))

    return {
        "userID": user_id,
        "totalSends": len(logs),
        "sendsByGrade": [
            {"grade": g, "count": sends_by_grade[g]}
            for g in sort_grade_tags(sends_by_grade.keys())
        ],
        "videosByGrade": [
            {"grade": g, "videos": videos_by_grade[g]}
            for g in sort_grade_tags(videos_by_grade.keys())
        ],
    }
