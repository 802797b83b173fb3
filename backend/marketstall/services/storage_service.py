# Overview: Local-disk blob storage for item photos.

"""
Blob storage contract used by the ledger:

    store(data, extension) -> ref     ref is a bare filename
    delete(ref) -> bool               False when there was nothing to delete

Refs are stored on SaleRecord.image_url. Older rows may hold a full URL;
only the basename is ever used to address a file, so a ref can never
point outside UPLOAD_FOLDER.
"""

from __future__ import annotations

import os
import secrets
import time

from flask import current_app
from werkzeug.utils import secure_filename

from marketstall.validation import ValidationError


class StorageError(Exception):
    """Image persistence failed. Callers treat this as non-fatal for the sale row."""


def _upload_folder() -> str:
    return current_app.config["UPLOAD_FOLDER"]


def _safe_name(ref: str | None) -> str:
    if not ref:
        return ""
    return secure_filename(os.path.basename(ref.strip().rstrip("/")))


def normalize_extension(filename_or_ext: str | None) -> str:
    """Lower-cased extension without dot; ValidationError if not an allowed image type."""
    raw = (filename_or_ext or "").strip().lower()
    ext = raw.rsplit(".", 1)[-1] if "." in raw else raw
    allowed = current_app.config["ALLOWED_IMAGE_EXTENSIONS"]
    if ext not in allowed:
        raise ValidationError(f"Only {', '.join(sorted(e.upper() for e in allowed))} images are allowed")
    return ext


def store(data: bytes, extension: str) -> str:
    """Write image bytes under a fresh unique name and return the ref."""
    ext = normalize_extension(extension)
    if not data:
        raise ValidationError("Image is empty")

    filename = f"{int(time.time())}_{secrets.token_hex(5)}.{ext}"
    folder = _upload_folder()
    try:
        os.makedirs(folder, exist_ok=True)
        with open(os.path.join(folder, filename), "wb") as fh:
            fh.write(data)
    except OSError as exc:
        raise StorageError("Could not store image") from exc
    return filename


def delete(ref: str | None) -> bool:
    name = _safe_name(ref)
    if not name:
        return False
    path = os.path.join(_upload_folder(), name)
    if not os.path.isfile(path):
        return False
    try:
        os.remove(path)
    except OSError as exc:
        raise StorageError(f"Could not delete image {name}") from exc
    return True


def resolve(ref: str | None) -> tuple[str, str]:
    """(folder, filename) for serving a stored image; NotFound is left to the caller."""
    return _upload_folder(), _safe_name(ref)
