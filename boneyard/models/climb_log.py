from datetime import datetime, timezone
from sqlalchemy import UniqueConstraint
from boneyard.extensions import db
from boneyard.helpers.time import isoformat_utc


class ClimbLog(db.Model):
    __tablename__ = "climb_log"

    id = db.Column(db.Integer, primary_key=True)

    # Path key (climbs/{climb_id}/logs/{user_id}), not a foreign key:
    # deleting a climb leaves its logs behind.
    climb_id = db.Column(db.String(64), nullable=False, index=True)

    user_id = db.Column(db.String(128), nullable=False, index=True)
    email = db.Column(db.String(255), nullable=False, default="")

    comment = db.Column(db.Text, nullable=False, default="")

    # 1..5 when present; unrated logs don't count towards stats
    rating = db.Column(db.Integer, nullable=True)

    # climb's grade label at the time of the send (profile overview)
    grade = db.Column(db.String(80), nullable=True)

    timestamp = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        # one log per user per climb
        UniqueConstraint("climb_id", "user_id", name="uq_climb_log_user"),
    )

    def snapshot(self) -> dict:
        """Plain-dict copy of the log, used for change feed events."""
        return {
            "climbID": self.climb_id,
            "userID": self.user_id,
            "email": self.email,
            "comment": self.comment,
            "rating": self.rating,
            "grade": self.grade,
            "timestamp": isoformat_utc(self.timestamp),
        }

    def to_dict(self) -> dict:
        out = self.snapshot()
        out["id"] = self.user_id
        return out
