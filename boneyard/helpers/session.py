from functools import wraps
from flask import abort

from boneyard.helpers.account import get_viewer_id, viewer_is_admin


def login_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        if not get_viewer_id():
            abort(401)
        return view(*args, **kwargs)
    return wrapped


def admin_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        if not get_viewer_id():
            abort(401)
        if not viewer_is_admin():
            abort(403)
        return view(*args, **kwargs)
    return wrapped
