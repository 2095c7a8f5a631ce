"""
auth.py – Session-cookie authentication gate
authenticate() resolves the session cookie to a user and attaches both to
the request context, or raises AuthenticationError (401). The only state it
changes is destroying a session whose user no longer exists.
"""

import logging

from cookies import clear_cookie, parse_cookies, serialize_cookie
from errors import AuthenticationError

logger = logging.getLogger(__name__)


def cookie_options(config) -> dict:
    return {
        "path": config["AUTH_COOKIE_PATH"],
        "domain": config.get("AUTH_COOKIE_DOMAIN"),
        "http_only": config["AUTH_COOKIE_HTTPONLY"],
        "secure": config["AUTH_COOKIE_SECURE"],
        "same_site": config["AUTH_COOKIE_SAMESITE"],
    }


def session_cookie(config, session_id: str) -> str:
    """Set-Cookie value carrying a new session id."""
    return serialize_cookie(config["AUTH_COOKIE_NAME"], session_id,
                            max_age=config["SESSION_MAX_AGE_MS"], **cookie_options(config))


def expired_session_cookie(config) -> str:
    return clear_cookie(config["AUTH_COOKIE_NAME"], **cookie_options(config))


def authenticate(ctx) -> None:
    """Gate for protected routes: sets ctx.user and ctx.session or raises."""
    services = ctx.services
    cookies = parse_cookies(ctx.request.headers.get("Cookie"))
    session_id = cookies.get(ctx.config["AUTH_COOKIE_NAME"])

    if not session_id:
        raise AuthenticationError("No session found. Please sign in.")

    session = services.sessions.find_by_id(session_id)
    if session is None:
        raise AuthenticationError("Session is invalid or has expired. Please sign in again.")

    user = services.users.find_by_id(session.user_id)
    if user is None:
        logger.warning(f"Session for missing user {session.user_id} destroyed")
        services.sessions.destroy(session_id)
        raise AuthenticationError("User not found. Please sign in again.")

    ctx.user    = user
    ctx.session = session
