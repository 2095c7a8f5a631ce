"""
file_helpers.py – File I/O helpers for SpiceScript
JSON document files hold whole collections (a list of records); uploaded
images live as plain files in the upload directory.
"""

import json
import logging
import os

logger = logging.getLogger(__name__)


def _ensure_dir(path: str) -> None:
    if path:
        os.makedirs(path, exist_ok=True)


# ── JSON documents ────────────────────────────────────────────────────────────

def load_json_document(path: str) -> list:
    """
    Load a whole collection from disk.
    A missing file is an empty collection. So is a file that does not hold a
    JSON list; that case is logged instead of raised.
    """
    if not os.path.exists(path):
        return []
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, ValueError) as exc:
        logger.error(f"Could not load {path}: {exc}")
        return []
    if not isinstance(raw, list):
        logger.error(f"Could not load {path}: expected a JSON list, got {type(raw).__name__}")
        return []
    return raw


def save_json_document(path: str, records: list) -> None:
    """Write the full collection back to disk, pretty-printed."""
    _ensure_dir(os.path.dirname(path))
    with open(path, "w", encoding="utf-8") as f:
        json.dump(records, f, indent=2, ensure_ascii=False)


# ── Uploaded files ────────────────────────────────────────────────────────────

def save_upload(upload_dir: str, filename: str, content: bytes) -> str:
    """Write an uploaded file's bytes and return the saved path."""
    _ensure_dir(upload_dir)
    filepath = os.path.join(upload_dir, filename)
    with open(filepath, "wb") as f:
        f.write(content)
    logger.info(f"Saved upload {filepath} ({len(content)} bytes)")
    return filepath


def remove_file(filepath: str) -> bool:
    """Best-effort delete. Failures are logged, never raised."""
    try:
        os.remove(filepath)
    except FileNotFoundError:
        return False
    except OSError as exc:
        logger.warning(f"Could not remove {filepath}: {exc}")
        return False
    logger.info(f"Removed {filepath}")
    return True


def upload_url(url_prefix: str, filename: str) -> str:
    return f"{url_prefix.rstrip('/')}/{filename}"


def remove_upload(upload_dir: str, url_prefix: str, image_path: str, keep: str = "") -> bool:
    """
    Delete the file behind an imagePath that points into the upload directory.
    Paths outside url_prefix, and the path given as keep (the placeholder
    image), are left alone.
    """
    prefix = url_prefix.rstrip("/") + "/"
    if not image_path or image_path == keep or not image_path.startswith(prefix):
        return False
    filename = os.path.basename(image_path[len(prefix):])
    if not filename:
        return False
    return remove_file(os.path.join(upload_dir, filename))
