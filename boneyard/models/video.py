from datetime import datetime, timezone
from sqlalchemy import UniqueConstraint
from boneyard.extensions import db
from boneyard.models.climb import new_doc_id
from boneyard.helpers.time import isoformat_utc


class Video(db.Model):
    __tablename__ = "video"

    id = db.Column(db.String(64), primary_key=True, default=new_doc_id)
    climb_id = db.Column(db.String(64), nullable=False, index=True)

    url = db.Column(db.String(1024), nullable=False)

    uploader_id = db.Column(db.String(128), nullable=False, index=True)
    uploader_email = db.Column(db.String(255), nullable=False, default="unknown")

    # Denormalised from the climb at upload time
    climb_name = db.Column(db.String(160), nullable=True)
    grade = db.Column(db.String(80), nullable=True)
    section = db.Column(db.String(80), nullable=True)
    gym_id = db.Column(db.String(120), nullable=True)

    timestamp = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    likes = db.relationship(
        "VideoLike",
        backref="video",
        lazy=True,
        cascade="all, delete-orphan",
    )
    comments = db.relationship(
        "VideoComment",
        backref="video",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="VideoComment.timestamp",
    )

    def to_dict(self, viewer_id=None) -> dict:
        liked_by = [like.user_id for like in self.likes]
        return {
            "id": self.id,
            "climbID": self.climb_id,
            "url": self.url,
            "uploaderID": self.uploader_id,
            "uploaderEmail": self.uploader_email,
            "climbName": self.climb_name,
            "grade": self.grade,
            "section": self.section,
            "gymID": self.gym_id,
            "likes": liked_by,
            "likeCount": len(liked_by),
            "likedByMe": bool(viewer_id and viewer_id in liked_by),
            "timestamp": isoformat_utc(self.timestamp),
        }


class VideoLike(db.Model):
    __tablename__ = "video_like"

    id = db.Column(db.Integer, primary_key=True)
    video_id = db.Column(
        db.String(64),
        db.ForeignKey("video.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = db.Column(db.String(128), nullable=False)

    __table_args__ = (
        UniqueConstraint("video_id", "user_id", name="uq_video_like_user"),
    )


class VideoComment(db.Model):
    __tablename__ = "video_comment"

    id = db.Column(db.String(64), primary_key=True, default=new_doc_id)
    video_id = db.Column(
        db.String(64),
        db.ForeignKey("video.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = db.Column(db.String(128), nullable=False)
    text = db.Column(db.Text, nullable=False)
    timestamp = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userID": self.user_id,
            "text": self.text,
            "timestamp": isoformat_utc(self.timestamp),
        }
