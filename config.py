"""
config.py – Configuration for the SpiceScript recipe-sharing service
Every setting can be overridden from the environment; create_app() loads
this class into app.config and then applies any explicit overrides.
"""

import os

_ROOT = os.path.dirname(os.path.abspath(__file__))


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Default settings. Upper-case attributes only (Flask's from_object)."""

    # ── Server ────────────────────────────────────────────────────────────────
    HOST       = os.environ.get("HOST", "127.0.0.1")
    PORT       = int(os.environ.get("PORT", 3000))
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-in-production")
    LOG_LEVEL  = os.environ.get("LOG_LEVEL", "INFO")

    # ── Data files ────────────────────────────────────────────────────────────
    # Individual files default to DATA_DIR/<name>.json when left as None
    DATA_DIR      = os.environ.get("DATA_DIR", os.path.join(_ROOT, "data"))
    USERS_FILE    = os.environ.get("USERS_FILE")
    RECIPES_FILE  = os.environ.get("RECIPES_FILE")
    SESSIONS_FILE = os.environ.get("SESSIONS_FILE")

    # ── Uploads ───────────────────────────────────────────────────────────────
    UPLOAD_DIR           = os.environ.get("UPLOAD_DIR", os.path.join(_ROOT, "images"))
    IMAGES_URL_PREFIX    = "/images"
    DEFAULT_RECIPE_IMAGE = "/images/default-recipe.jpg"
    MAX_IMAGE_BYTES      = int(os.environ.get("MAX_IMAGE_BYTES", 5 * 1024 * 1024))
    ALLOWED_IMAGE_TYPES  = ("image/jpeg", "image/png", "image/webp")
    # Whole request body cap, enforced by werkzeug before the body is read
    FORM_OVERHEAD_BYTES  = 1024 * 1024
    MAX_CONTENT_LENGTH   = int(os.environ.get("MAX_CONTENT_LENGTH",
                                              MAX_IMAGE_BYTES + FORM_OVERHEAD_BYTES))

    # ── Sessions ──────────────────────────────────────────────────────────────
    SESSION_MAX_AGE_MS       = int(os.environ.get("SESSION_MAX_AGE_MS", 30 * 60 * 1000))
    SESSION_CLEANUP_INTERVAL = int(os.environ.get("SESSION_CLEANUP_INTERVAL", 60 * 60))

    # ── Session cookie ────────────────────────────────────────────────────────
    AUTH_COOKIE_NAME     = os.environ.get("AUTH_COOKIE_NAME", "sessionId")
    AUTH_COOKIE_PATH     = "/"
    AUTH_COOKIE_DOMAIN   = os.environ.get("AUTH_COOKIE_DOMAIN")
    AUTH_COOKIE_HTTPONLY = True
    AUTH_COOKIE_SAMESITE = "Strict"
    AUTH_COOKIE_SECURE   = _env_flag("AUTH_COOKIE_SECURE", False)

    # ── Password hashing ──────────────────────────────────────────────────────
    # sha512 yields a 64-byte derived key
    PASSWORD_HASH_METHOD = os.environ.get("PASSWORD_HASH_METHOD", "pbkdf2:sha512:100000")
    PASSWORD_SALT_LENGTH = 32


def data_file(config, key: str, default_name: str) -> str:
    """Resolve one of the *_FILE settings, falling back to DATA_DIR."""
    return config.get(key) or os.path.join(config["DATA_DIR"], default_name)
