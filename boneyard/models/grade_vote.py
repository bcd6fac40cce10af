from datetime import datetime, timezone
from sqlalchemy import UniqueConstraint
from boneyard.extensions import db


class GradeVote(db.Model):
    __tablename__ = "grade_vote"

    id = db.Column(db.Integer, primary_key=True)
    climb_id = db.Column(db.String(64), nullable=False, index=True)
    user_id = db.Column(db.String(128), nullable=False)

    # e.g. "V5"; must be one of the options for the climb's tag
    grade_vote = db.Column(db.String(20), nullable=False)

    timestamp = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        UniqueConstraint("climb_id", "user_id", name="uq_grade_vote_user"),
    )
