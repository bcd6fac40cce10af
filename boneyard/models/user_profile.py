from datetime import datetime
from boneyard.extensions import db


class UserProfile(db.Model):
    __tablename__ = "user_profile"

    # Auth provider's uid
    user_id = db.Column(db.String(128), primary_key=True)
    email = db.Column(db.String(255), nullable=True)

    display_name = db.Column(db.String(120), nullable=True)
    photo_url = db.Column(db.String(1024), nullable=True)

    # Gym staff who can add / edit / delete climbs
    is_admin = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
