import os
import uuid
from typing import Optional

from flask import current_app
from werkzeug.utils import secure_filename

from boneyard.helpers.errors import StorageError

ALLOWED_VIDEO_EXTENSIONS = {"mp4", "mov", "m4v", "webm"}


def _upload_root() -> str:
    return current_app.config["UPLOAD_FOLDER"]


def _base_url() -> str:
    return (current_app.config.get("STORAGE_BASE_URL") or "/uploads").rstrip("/")


def allowed_video_file(filename: str) -> bool:
    return "." in filename and filename.rsplit(".", 1)[1].lower() in ALLOWED_VIDEO_EXTENSIONS


def save_blob(file_storage, folder: str) -> str:
    """
    Store an uploaded file under UPLOAD_FOLDER/<folder>/ and return its URL.

    File names are replaced with a random id (keeping the extension) so two
    uploads never collide.
    """
    original = secure_filename(file_storage.filename or "")
    ext = original.rsplit(".", 1)[1].lower() if "." in original else "bin"
    name = f"{uuid.uuid4().hex}.{ext}"

    safe_folder = secure_filename(folder) or "misc"
    target_dir = os.path.join(_upload_root(), safe_folder)

    try:
        os.makedirs(target_dir, exist_ok=True)
        file_storage.save(os.path.join(target_dir, name))
    except OSError as e:
        raise StorageError(f"could not store upload: {e}") from e

    return f"{_base_url()}/{safe_folder}/{name}"


def path_for_url(url: str) -> Optional[str]:
    """Local path for a URL we handed out, or None if it isn't ours."""
    base = _base_url() + "/"
    if not url or not url.startswith(base):
        return None

    rel = url[len(base):]
    parts = [p for p in rel.split("/") if p]
    if not parts or any(p in (".", "..") for p in parts):
        return None
    return os.path.join(_upload_root(), *parts)


def delete_blob(url: str) -> None:
    path = path_for_url(url)
    if path is None:
        raise StorageError(f"not a stored blob: {url}")

    try:
        os.remove(path)
    except FileNotFoundError as e:
        raise StorageError(f"blob already gone: {url}") from e
    except OSError as e:
        raise StorageError(f"could not delete blob {url}: {e}") from e
