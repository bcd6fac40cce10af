import uuid
from datetime import datetime, timezone
from boneyard.extensions import db


def new_doc_id() -> str:
    return uuid.uuid4().hex


class Climb(db.Model):
    __tablename__ = "climb"

    id = db.Column(db.String(64), primary_key=True, default=new_doc_id)

    name = db.Column(db.String(160), nullable=False)

    # Tag label, e.g. "Green Tag (V4–6)"
    grade = db.Column(db.String(80), nullable=False)
    color = db.Column(db.String(40), nullable=False, default="gray")

    # where this climb sits on the gym map
    x = db.Column(db.Float, nullable=False, default=0.0)
    y = db.Column(db.Float, nullable=False, default=0.0)

    gym_id = db.Column(db.String(120), nullable=False, index=True)
    section = db.Column(db.String(80), nullable=True)

    # display name / email of the last admin who touched it
    updated_by = db.Column(db.String(255), nullable=True)

    # Derived from the climb's logs; only the stats aggregator writes these
    ascent_count = db.Column(db.Integer, nullable=False, default=0)
    avg_rating = db.Column(db.Float, nullable=False, default=0.0)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    # bumped by admin edits only; stats updates leave it alone
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "grade": self.grade,
            "color": self.color,
            "x": self.x,
            "y": self.y,
            "gymID": self.gym_id,
            "section": self.section,
            "updatedBy": self.updated_by,
            "ascentCount": self.ascent_count,
            "avgRating": self.avg_rating,
        }
