import time
from flask import current_app, has_app_context

# --- Leaderboard cache ---

DEFAULT_LEADERBOARD_CACHE_TTL = 10.0  # seconds

# key: leaderboard scope ("all" or a gym id)
# value: (rows, timestamp)
LEADERBOARD_CACHE: dict = {}


def _ttl() -> float:
    if has_app_context():
        return float(current_app.config.get("LEADERBOARD_CACHE_TTL", DEFAULT_LEADERBOARD_CACHE_TTL))
    return DEFAULT_LEADERBOARD_CACHE_TTL


def get_cached_leaderboard(key):
    """
    Return cached leaderboard rows if still valid.
    """
    entry = LEADERBOARD_CACHE.get(key)
    if not entry:
        return None

    rows, timestamp = entry
    if (time.time() - timestamp) > _ttl():
        LEADERBOARD_CACHE.pop(key, None)
        return None

    return rows


def set_cached_leaderboard(key, rows):
    """
    Store leaderboard in cache.
    """
    LEADERBOARD_CACHE[key] = (rows, time.time())


def invalidate_leaderboard_cache():
    """Clear all cached leaderboard entries."""
    LEADERBOARD_CACHE.clear()


def drop_leaderboard_on_log_change(climb_id, event):
    """Change feed subscriber: any log write can move the leaderboard."""
    invalidate_leaderboard_cache()
