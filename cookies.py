"""
cookies.py – Cookie header codec
Parses Cookie request headers and builds Set-Cookie response headers.
Max-Age is configured in milliseconds and sent in whole seconds.
"""

from typing import Optional
from urllib.parse import quote, unquote

# Characters encodeURIComponent leaves alone
_SAFE_CHARS = "-_.!~*'()"


def parse_cookies(cookie_header: Optional[str]) -> dict:
    """
    "sessionId=abc; theme=dark" -> {"sessionId": "abc", "theme": "dark"}
    Entries without a name are skipped; a value may itself contain "=".
    """
    cookies = {}
    if not cookie_header:
        return cookies

    for pair in cookie_header.split(";"):
        name, _, value = pair.strip().partition("=")
        name = name.strip()
        if not name:
            continue
        cookies[name] = unquote(value.strip())
    return cookies


def serialize_cookie(name: str, value: str, max_age: Optional[int] = None,
                     path: Optional[str] = None, domain: Optional[str] = None,
                     http_only: bool = False, secure: bool = False,
                     same_site: Optional[str] = None) -> str:
    """
    Build a Set-Cookie header value.
    max_age is in milliseconds; attributes are appended in a fixed order and
    only when set.
    """
    cookie = f"{quote(name, safe=_SAFE_CHARS)}={quote(value, safe=_SAFE_CHARS)}"

    if max_age is not None:
        cookie += f"; Max-Age={max(int(max_age) // 1000, 0)}"
    if path:
        cookie += f"; Path={path}"
    if domain:
        cookie += f"; Domain={domain}"
    if http_only:
        cookie += "; HttpOnly"
    if secure:
        cookie += "; Secure"
    if same_site:
        cookie += f"; SameSite={same_site}"
    return cookie


def clear_cookie(name: str, **options) -> str:
    """A Set-Cookie value that makes the client drop the cookie immediately."""
    options["max_age"] = 0
    return serialize_cookie(name, "", **options)
