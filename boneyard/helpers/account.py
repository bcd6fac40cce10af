from flask import current_app, session, request, has_request_context
from typing import Optional

from boneyard.extensions import db
from boneyard.models import UserProfile


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def admin_emails() -> set:
    raw = current_app.config.get("ADMIN_EMAILS") or ""
    return {
        e.strip().lower()
        for e in raw.split(",")
        if e.strip()
    }


def is_admin_email(email: str) -> bool:
    """Return True if this email is configured as an admin."""
    if not email:
        return False
    return normalize_email(email) in admin_emails()


def _local_debug_request() -> bool:
    # Local sim in debug (load_test_logs.py): trust X-Debug-* headers from localhost
    return (
        current_app.debug
        and has_request_context()
        and request.remote_addr in ("127.0.0.1", "::1")
    )


def get_viewer_id() -> Optional[str]:
    """
    The signed-in user's id.

    Sign-in itself is handled by the auth provider; the session only
    carries the resulting uid + email.
    """
    uid = (session.get("user_id") or "").strip()
    if uid:
        return uid

    if _local_debug_request():
        uid = (request.headers.get("X-Debug-User") or "").strip()
        return uid or None

    return None


def get_viewer_email() -> str:
    email = session.get("user_email")
    if not email and _local_debug_request():
        email = request.headers.get("X-Debug-Email")
    return normalize_email(email)


def get_profile(user_id: str) -> Optional[UserProfile]:
    if not user_id:
        return None
    return db.session.get(UserProfile, user_id)


def get_or_create_profile(user_id: str, email: str = "") -> UserProfile:
    if not user_id:
        raise ValueError("user_id required")

    profile = get_profile(user_id)
    if profile:
        if email and not profile.email:
            profile.email = normalize_email(email)
        return profile

    profile = UserProfile(user_id=user_id, email=normalize_email(email) or None)
    db.session.add(profile)
    # NOTE: caller commits
    return profile


def viewer_is_admin() -> bool:
    """
    Admin = profile flagged is_admin, or email listed in ADMIN_EMAILS.
    """
    uid = get_viewer_id()
    if not uid:
        return False

    if is_admin_email(get_viewer_email()):
        return True

    profile = get_profile(uid)
    return bool(profile and profile.is_admin)


def viewer_display_name() -> str:
    """What gets stamped into climb.updated_by."""
    profile = get_profile(get_viewer_id())
    if profile and profile.display_name:
        return profile.display_name
    return get_viewer_email() or "Unknown"
