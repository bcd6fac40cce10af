from flask import Blueprint, request, jsonify, abort, current_app, send_from_directory

from boneyard.extensions import db
from boneyard.models import Climb, Video, VideoLike, VideoComment
from boneyard.helpers.account import get_viewer_id, get_viewer_email, viewer_is_admin
from boneyard.helpers.errors import StorageError
from boneyard.helpers.payload import json_object, text_field
from boneyard.helpers.session import login_required
from boneyard.helpers.storage import save_blob, delete_blob, allowed_video_file

videos_bp = Blueprint("videos", __name__)

MAX_COMMENT_LENGTH = 1000


def _video_or_404(climb_id, video_id) -> Video:
    video = db.session.get(Video, video_id)
    if not video or video.climb_id != climb_id:
        abort(404)
    return video


@videos_bp.route("/uploads/<path:filename>")
def serve_upload(filename):
    return send_from_directory(current_app.config["UPLOAD_FOLDER"], filename)


@videos_bp.route("/api/climbs/<climb_id>/videos", methods=["POST"])
@login_required
def api_add_video(climb_id):
    """
    Add a beta video to a climb.

    Either a multipart upload (field "file"), stored in object storage, or
    JSON {"url": "..."} for a video that's already uploaded somewhere.
    Climb name / grade / section / gym are copied onto the video record.
    """
    climb = db.session.get(Climb, climb_id)
    if not climb:
        abort(404)

    upload = request.files.get("file")
    if upload is not None:
        if not upload.filename or not allowed_video_file(upload.filename):
            return "Unsupported video file", 400
        try:
            url = save_blob(upload, folder=climb.id)
        except StorageError as e:
            current_app.logger.error("VIDEO upload failed climb_id=%s error=%s", climb_id, e)
            return "Upload failed", 500
    else:
        data = json_object()
        if data is None:
            return "Invalid payload", 400
        url = text_field(data, "url")
        if url is None:
            return "Invalid url", 400
        if not url:
            return "Missing file or url", 400

    video = Video(
        climb_id=climb.id,
        url=url,
        uploader_id=get_viewer_id(),
        uploader_email=get_viewer_email() or "unknown",
        climb_name=climb.name,
        grade=climb.grade,
        section=climb.section or "Unknown",
        gym_id=climb.gym_id,
    )
    db.session.add(video)
    db.session.commit()

    current_app.logger.info("VIDEO saved video_id=%s climb_id=%s", video.id, climb.id)
    return jsonify(video.to_dict(viewer_id=get_viewer_id())), 201


@videos_bp.route("/api/climbs/<climb_id>/videos")
def api_climb_videos(climb_id):
    videos = (
        Video.query
        .filter_by(climb_id=climb_id)
        .order_by(Video.timestamp.desc())
        .all()
    )
    viewer = get_viewer_id()
    return jsonify([v.to_dict(viewer_id=viewer) for v in videos])


@videos_bp.route("/api/climbs/<climb_id>/videos/<video_id>/like", methods=["POST"])
@login_required
def api_toggle_like(climb_id, video_id):
    video = _video_or_404(climb_id, video_id)
    uid = get_viewer_id()

    existing = VideoLike.query.filter_by(video_id=video.id, user_id=uid).first()
    if existing:
        db.session.delete(existing)
        liked = False
    else:
        db.session.add(VideoLike(video_id=video.id, user_id=uid))
        liked = True
    db.session.commit()

    count = VideoLike.query.filter_by(video_id=video.id).count()
    return jsonify({"ok": True, "liked": liked, "likeCount": count})


@videos_bp.route("/api/climbs/<climb_id>/videos/<video_id>", methods=["DELETE"])
@login_required
def api_delete_video(climb_id, video_id):
    """
    Uploader (or an admin) deletes a video. The record goes first; the
    stored blob is removed best-effort afterwards.
    """
    video = _video_or_404(climb_id, video_id)

    if video.uploader_id != get_viewer_id() and not viewer_is_admin():
        abort(403)

    url = video.url
    db.session.delete(video)
    db.session.commit()

    try:
        delete_blob(url)
    except StorageError as e:
        current_app.logger.warning(
            "VIDEO blob delete failed video_id=%s url=%s error=%s", video_id, url, e
        )

    return jsonify({"ok": True, "id": video_id})


# --- comments ---

@videos_bp.route("/api/climbs/<climb_id>/videos/<video_id>/comments")
def api_video_comments(climb_id, video_id):
    video = _video_or_404(climb_id, video_id)
    return jsonify([c.to_dict() for c in video.comments])


@videos_bp.route("/api/climbs/<climb_id>/videos/<video_id>/comments", methods=["POST"])
@login_required
def api_add_comment(climb_id, video_id):
    video = _video_or_404(climb_id, video_id)

    data = json_object()
    if data is None:
        return "Invalid payload", 400
    text = text_field(data, "text")
    if text is None:
        return "Invalid comment", 400
    if not text:
        return "Comment can't be empty", 400
    if len(text) > MAX_COMMENT_LENGTH:
        return f"Comment too long (max {MAX_COMMENT_LENGTH} characters)", 400

    comment = VideoComment(video_id=video.id, user_id=get_viewer_id(), text=text)
    db.session.add(comment)
    db.session.commit()

    return jsonify(comment.to_dict()), 201


@videos_bp.route(
    "/api/climbs/<climb_id>/videos/<video_id>/comments/<comment_id>",
    methods=["DELETE"],
)
@login_required
def api_delete_comment(climb_id, video_id, comment_id):
    video = _video_or_404(climb_id, video_id)

    comment = db.session.get(VideoComment, comment_id)
    if not comment or comment.video_id != video.id:
        abort(404)

    if comment.user_id != get_viewer_id() and not viewer_is_admin():
        abort(403)

    db.session.delete(comment)
    db.session.commit()
    return jsonify({"ok": True, "id": comment_id})
