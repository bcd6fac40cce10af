import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    raw_db_url = os.getenv("DATABASE_URL")

    if raw_db_url:
        if raw_db_url.startswith("postgres://"):
            raw_db_url = raw_db_url.replace("postgres://", "postgresql://", 1)
        SQLALCHEMY_DATABASE_URI = raw_db_url
    else:
        SQLALCHEMY_DATABASE_URI = "sqlite:///boneyard.db"

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SECRET_KEY = os.getenv("SECRET_KEY", "change-me-dev-secret")

    # Comma-separated list of admin emails, e.g. "setter@boneyard.com,owner@boneyard.com"
    ADMIN_EMAILS = os.getenv("ADMIN_EMAILS", "")

    # Beta video uploads (local object storage)
    UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", os.path.join(os.getcwd(), "uploads"))
    STORAGE_BASE_URL = os.getenv("STORAGE_BASE_URL", "/uploads")
    MAX_CONTENT_LENGTH = int(os.getenv("MAX_CONTENT_LENGTH", str(200 * 1024 * 1024)))

    LEADERBOARD_CACHE_TTL = float(os.getenv("LEADERBOARD_CACHE_TTL", "10"))

    # Change feed delivery: bounded retry on transient DB errors
    FEED_MAX_ATTEMPTS = int(os.getenv("FEED_MAX_ATTEMPTS", "3"))
    FEED_RETRY_BASE_DELAY = float(os.getenv("FEED_RETRY_BASE_DELAY", "0.05"))

    # Run each climb's read-recompute-write under a per-climb lock
    STATS_SERIALIZE_PER_CLIMB = _env_bool("STATS_SERIALIZE_PER_CLIMB", True)

