"""
router.py – Request router for the /api endpoints
Routes are matched on method + path. Literal paths are tried first, then
templated paths ("/api/recipes/:id") in the order they were added. A matched
route may parse the body (JSON or multipart), pass the authentication gate,
and finally call its controller. Every exception a controller raises is
turned into the JSON error envelope here.
"""

import json
import logging
import re
from typing import Callable, Optional

from werkzeug.exceptions import HTTPException

from auth import authenticate
from errors import ApiError, NotFoundError, ValidationError
from multipart import decode_multipart, parse_boundary
from responses import failure, from_error, render

logger = logging.getLogger(__name__)

BODY_JSON      = "json"
BODY_MULTIPART = "multipart"
BODY_FORM      = "form"        # multipart when the client sends it, JSON otherwise


# ─────────────────────────────────────────────────────────────────────────────
# REQUEST CONTEXT
# ─────────────────────────────────────────────────────────────────────────────
class Services:
    """Shared handles every request needs: the three stores and the config."""

    def __init__(self, users, recipes, sessions, config):
        self.users    = users
        self.recipes  = recipes
        self.sessions = sessions
        self.config   = config


class ApiContext:
    """Per-request state passed through the router, the auth gate and controllers."""

    def __init__(self, request, services: Services):
        self.request  = request
        self.services = services
        self.params   = {}
        self.query    = {}
        self.body     = {}
        self.files    = {}
        self.user     = None
        self.session  = None
        self._committed = set()

    @property
    def config(self):
        return self.services.config

    def commit_upload(self, field_name: str):
        """Keep an uploaded file after the request ends. Returns it, or None."""
        upload = self.files.get(field_name)
        if upload is not None:
            self._committed.add(field_name)
        return upload

    def discard_uploads(self) -> int:
        """Delete every uploaded file that no controller committed."""
        removed = 0
        for field_name, upload in self.files.items():
            if field_name not in self._committed and upload.discard():
                removed += 1
        return removed


# ─────────────────────────────────────────────────────────────────────────────
# BODY PARSING
# ─────────────────────────────────────────────────────────────────────────────
def _reject_constant(name: str):
    raise ValueError(f"{name} is not valid JSON")


def parse_json_body(raw: bytes) -> dict:
    """Strict JSON object body; an empty body is {}."""
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw.decode("utf-8"), parse_constant=_reject_constant)
    except ValueError as exc:
        logger.info(f"Rejected JSON body: {exc}")
        raise ValidationError("Request body is not valid JSON", code="INVALID_JSON") from exc
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object", code="INVALID_JSON")
    return data


# ─────────────────────────────────────────────────────────────────────────────
# ROUTES
# ─────────────────────────────────────────────────────────────────────────────
class Route:
    _PARAM = re.compile(r":([A-Za-z_]\w*)")

    def __init__(self, method: str, pattern: str, handler: Callable,
                 body: Optional[str] = None, auth: bool = False):
        self.method      = method.upper()
        self.pattern     = pattern
        self.handler     = handler
        self.body        = body
        self.auth        = auth
        self.param_names = self._PARAM.findall(pattern)
        self.regex       = self._compile(pattern)

    @property
    def is_static(self) -> bool:
        return not self.param_names

    @classmethod
    def _compile(cls, pattern: str):
        """Compile "/api/recipes/:id" to /api/recipes/(?P<id>[^/]+), literals escaped."""
        pieces, last = [], 0
        for match in cls._PARAM.finditer(pattern):
            pieces.append(re.escape(pattern[last:match.start()]))
            pieces.append(f"(?P<{match.group(1)}>[^/]+)")
            last = match.end()
        pieces.append(re.escape(pattern[last:]))
        return re.compile("".join(pieces))

    def match(self, path: str) -> Optional[dict]:
        """Path parameters if path matches the whole pattern, else None."""
        if self.is_static:
            return {} if path == self.pattern else None
        found = self.regex.fullmatch(path)
        return found.groupdict() if found else None

    def __repr__(self):
        return f"<Route {self.method} {self.pattern}>"


class Router:
    def __init__(self, authenticate: Callable = authenticate):
        self._static    = {}
        self._templated = []
        self._authenticate = authenticate

    def add_route(self, method: str, pattern: str, handler: Callable,
                  body: Optional[str] = None, auth: bool = False) -> Route:
        route = Route(method, pattern, handler, body=body, auth=auth)
        if route.is_static:
            self._static[(route.method, route.pattern)] = route
        else:
            self._templated.append(route)
        return route

    def get(self, pattern, handler, **options):
        return self.add_route("GET", pattern, handler, **options)

    def post(self, pattern, handler, **options):
        return self.add_route("POST", pattern, handler, **options)

    def put(self, pattern, handler, **options):
        return self.add_route("PUT", pattern, handler, **options)

    def delete(self, pattern, handler, **options):
        return self.add_route("DELETE", pattern, handler, **options)

    @property
    def routes(self) -> list:
        return list(self._static.values()) + list(self._templated)

    def resolve(self, method: str, path: str):
        """(route, params) for the first matching rule, or (None, {})."""
        method = method.upper()
        route = self._static.get((method, path))
        if route is not None:
            return route, {}
        for route in self._templated:
            if route.method != method:
                continue
            params = route.match(path)
            if params is not None:
                return route, params
        return None, {}

    # ── Dispatch ──────────────────────────────────────────────────────────────
    def _parse_body(self, ctx: ApiContext, mode: str) -> None:
        content_type = ctx.request.headers.get("Content-Type", "")
        if mode == BODY_FORM:
            is_multipart = content_type.strip().lower().startswith("multipart/")
            mode = BODY_MULTIPART if is_multipart else BODY_JSON

        if mode == BODY_MULTIPART:
            # Reject a wrong Content-Type before reading any of the body;
            # get_data() raises RequestEntityTooLarge past MAX_CONTENT_LENGTH
            boundary = parse_boundary(content_type)
            form = decode_multipart(ctx.request.get_data(), boundary, ctx.config["UPLOAD_DIR"])
            ctx.body, ctx.files = form.fields, form.files
        else:
            ctx.body = parse_json_body(ctx.request.get_data())

    def dispatch(self, ctx: ApiContext):
        """Run one request through the matched route and return a werkzeug Response."""
        method = ctx.request.method.upper()
        path   = ctx.request.path
        route, params = self.resolve(method, path)

        try:
            if route is None:
                raise NotFoundError("Endpoint not found")
            ctx.params = params
            ctx.query  = ctx.request.args.to_dict()
            if route.body:
                self._parse_body(ctx, route.body)
            if route.auth:
                self._authenticate(ctx)
            api_response = route.handler(ctx)
        except ApiError as exc:
            logger.info(f"{method} {path} failed: {exc.status_code} {exc.code} {exc.message}")
            api_response = from_error(exc)
        except HTTPException as exc:
            logger.info(f"{method} {path} failed: {exc.code} {exc.name}")
            name = exc.name or "Error"
            api_response = failure(exc.code or 500, name, name.upper().replace(" ", "_"))
        except Exception:
            logger.exception(f"Unhandled error in {method} {path}")
            api_response = failure(500, "Internal server error", "INTERNAL_ERROR")
        finally:
            ctx.discard_uploads()

        response = render(api_response, ctx.request.headers.get("Accept-Encoding"))
        logger.info(f"[API] {method} {path} -> {response.status_code}")
        return response
