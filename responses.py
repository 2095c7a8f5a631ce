"""
responses.py – JSON envelope rendering
All API responses share the envelope
    { success, data?, error?: {message, code, details?}, message? }
and are gzip-compressed when the client sends Accept-Encoding: gzip.
"""

import gzip
import json
import logging
from typing import Optional

from werkzeug.wrappers import Response

from errors import ApiError

logger = logging.getLogger(__name__)


class ApiResponse:
    """What a controller returns: payload, status and any Set-Cookie values."""

    def __init__(self, payload: dict, status: int = 200, cookies: Optional[list] = None):
        self.payload = payload
        self.status  = status
        self.cookies = cookies or []


def success(data: Optional[dict] = None, message: Optional[str] = None,
            status: int = 200, cookies: Optional[list] = None) -> ApiResponse:
    payload = {"success": True}
    if message:
        payload["message"] = message
    if data is not None:
        payload["data"] = data
    return ApiResponse(payload, status=status, cookies=cookies)


def failure(status: int, message: str, code: str, details: Optional[dict] = None) -> ApiResponse:
    error = {"message": message, "code": code}
    if details:
        error["details"] = details
    return ApiResponse({"success": False, "error": error}, status=status)


def from_error(exc: ApiError) -> ApiResponse:
    return ApiResponse({"success": False, "error": exc.to_dict()}, status=exc.status_code)


def accepts_gzip(accept_encoding: Optional[str]) -> bool:
    """True if gzip is listed in Accept-Encoding without q=0."""
    for item in (accept_encoding or "").split(","):
        coding, _, params = item.strip().partition(";")
        if coding.strip().lower() not in ("gzip", "*"):
            continue
        quality = params.strip().lower().replace(" ", "")
        if quality in ("q=0", "q=0.0", "q=0.00", "q=0.000"):
            continue
        return True
    return False


def render(api_response: ApiResponse, accept_encoding: Optional[str] = None) -> Response:
    """Serialise to a werkzeug Response with a correct Content-Length."""
    body = json.dumps(api_response.payload).encode("utf-8")
    headers = {"Content-Type": "application/json"}

    if accepts_gzip(accept_encoding):
        compressed = gzip.compress(body)
        logger.debug(f"Compressed response {len(body)} -> {len(compressed)} bytes")
        body = compressed
        headers["Content-Encoding"] = "gzip"
        headers["Vary"] = "Accept-Encoding"

    headers["Content-Length"] = str(len(body))
    response = Response(body, status=api_response.status, headers=headers)
    for cookie in api_response.cookies:
        response.headers.add("Set-Cookie", cookie)
    return response
