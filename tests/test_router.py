import gzip
import io
import json
import os

import pytest
from werkzeug.exceptions import MethodNotAllowed
from werkzeug.test import EnvironBuilder
from werkzeug.wrappers import Request

from errors import AuthorizationError, ValidationError
from responses import success
from router import BODY_FORM, BODY_JSON, BODY_MULTIPART, ApiContext, Route, Router, \
    Services, parse_json_body


def make_request(method="GET", path="/", **kwargs):
    return Request(EnvironBuilder(method=method, path=path, **kwargs).get_environ())


@pytest.fixture
def config(tmp_path):
    return {"UPLOAD_DIR": str(tmp_path / "uploads")}


@pytest.fixture
def run(config):
    """Dispatch one request through a router; returns (response, ctx)."""
    def _run(router, method="GET", path="/", **kwargs):
        ctx = ApiContext(make_request(method, path, **kwargs), Services(None, None, None, config))
        return router.dispatch(ctx), ctx
    return _run


def body_of(response):
    return json.loads(response.get_data())


def echo(ctx):
    return success({"params": ctx.params, "query": ctx.query, "body": ctx.body})


# ── Matching ──────────────────────────────────────────────────────────────────

def test_templated_route_captures_parameters():
    route = Route("GET", "/api/recipes/:id", echo)
    assert route.match("/api/recipes/42") == {"id": "42"}
    assert route.match("/api/recipes") is None
    assert route.match("/api/recipes/42/extra") is None
    assert route.match("/api/recipes/") is None


def test_literal_segments_are_not_regex():
    route = Route("GET", "/api/v1.0/:name", echo)
    assert route.match("/api/v1.0/soup") == {"name": "soup"}
    assert route.match("/api/v1x0/soup") is None


def test_static_routes_win_over_templated_ones():
    router = Router()
    templated = router.get("/api/recipes/:id", echo)
    static = router.get("/api/recipes/popular", echo)
    assert router.resolve("GET", "/api/recipes/popular") == (static, {})
    assert router.resolve("GET", "/api/recipes/7") == (templated, {"id": "7"})


def test_templated_routes_match_in_declaration_order():
    router = Router()
    first = router.get("/api/:kind/:id", echo)
    router.get("/api/recipes/:id", echo)
    route, params = router.resolve("GET", "/api/recipes/3")
    assert route is first
    assert params == {"kind": "recipes", "id": "3"}


def test_method_mismatch_is_unmatched():
    router = Router()
    router.get("/api/recipes/:id", echo)
    assert router.resolve("DELETE", "/api/recipes/1") == (None, {})
    assert router.resolve("get", "/api/recipes/1")[0] is not None


# ── JSON bodies ───────────────────────────────────────────────────────────────

def test_parse_json_body():
    assert parse_json_body(b"") == {}
    assert parse_json_body(b"  \n") == {}
    assert parse_json_body(b'{"a": [1, 2]}') == {"a": [1, 2]}


@pytest.mark.parametrize("raw", [b"{nope", b"[1, 2]", b'"text"', b'{"a": NaN}', b"\xff\xfe"])
def test_parse_json_body_rejects(raw):
    with pytest.raises(ValidationError) as info:
        parse_json_body(raw)
    assert info.value.code == "INVALID_JSON"


# ── Dispatch ──────────────────────────────────────────────────────────────────

def test_dispatch_passes_params_query_and_body(run):
    router = Router()
    router.post("/api/things/:id", echo, body=BODY_JSON)
    response, _ = run(router, "POST", "/api/things/9", query_string="q=soup", json={"x": 1})
    assert response.status_code == 200
    assert body_of(response)["data"] == {"params": {"id": "9"}, "query": {"q": "soup"}, "body": {"x": 1}}


def test_unknown_route_is_a_json_404(run):
    response, _ = run(Router(), "GET", "/api/missing")
    assert response.status_code == 404
    assert body_of(response) == {
        "success": False,
        "error": {"message": "Endpoint not found", "code": "NOT_FOUND"},
    }


def test_api_errors_become_envelopes(run):
    def forbidden(ctx):
        raise AuthorizationError("Not yours")

    router = Router()
    router.get("/api/x", forbidden)
    response, _ = run(router, "GET", "/api/x")
    assert response.status_code == 403
    assert body_of(response)["error"] == {"message": "Not yours", "code": "FORBIDDEN"}


def test_http_exceptions_become_envelopes(run):
    def not_allowed(ctx):
        raise MethodNotAllowed()

    router = Router()
    router.get("/api/x", not_allowed)
    response, _ = run(router, "GET", "/api/x")
    assert response.status_code == 405
    assert body_of(response)["error"]["code"] == "METHOD_NOT_ALLOWED"


def test_unexpected_errors_do_not_leak_details(run):
    def broken(ctx):
        raise RuntimeError("database password is hunter2")

    router = Router()
    router.get("/api/x", broken)
    response, _ = run(router, "GET", "/api/x")
    assert response.status_code == 500
    assert body_of(response)["error"] == {"message": "Internal server error", "code": "INTERNAL_ERROR"}
    assert b"hunter2" not in response.get_data()


def test_auth_gate_runs_after_body_parsing(run):
    calls = []

    def gate(ctx):
        calls.append(ctx.body)

    router = Router(authenticate=gate)
    router.post("/api/x", echo, body=BODY_JSON, auth=True)
    run(router, "POST", "/api/x", json={"a": 1})
    assert calls == [{"a": 1}]


def test_invalid_json_is_rejected_before_the_handler(run):
    handled = []
    router = Router()
    router.post("/api/x", lambda ctx: handled.append(ctx) or success(), body=BODY_JSON)
    response, _ = run(router, "POST", "/api/x", data=b"{broken", content_type="application/json")
    assert response.status_code == 400
    assert body_of(response)["error"]["code"] == "INVALID_JSON"
    assert handled == []


def test_multipart_route_rejects_other_content_types(run):
    router = Router()
    router.post("/api/upload", echo, body=BODY_MULTIPART)
    response, _ = run(router, "POST", "/api/upload", json={"a": 1})
    assert response.status_code == 400
    assert body_of(response)["error"]["code"] == "INVALID_CONTENT_TYPE"


def test_form_route_accepts_json_or_multipart(run):
    router = Router()
    router.put("/api/x", echo, body=BODY_FORM)

    response, _ = run(router, "PUT", "/api/x", json={"a": "1"})
    assert body_of(response)["data"]["body"] == {"a": "1"}

    response, _ = run(router, "PUT", "/api/x", data={"a": "2"}, content_type="multipart/form-data")
    assert body_of(response)["data"]["body"] == {"a": "2"}


def test_uncommitted_uploads_are_discarded(run, config):
    router = Router()
    router.post("/api/upload", lambda ctx: success(), body=BODY_MULTIPART)
    response, ctx = run(router, "POST", "/api/upload",
                        data={"file": (io.BytesIO(b"data"), "a.txt")})
    assert response.status_code == 200
    assert not os.path.exists(ctx.files["file"].filepath)


def test_committed_uploads_are_kept(run):
    def keep(ctx):
        ctx.commit_upload("file")
        return success()

    router = Router()
    router.post("/api/upload", keep, body=BODY_MULTIPART)
    response, ctx = run(router, "POST", "/api/upload",
                        data={"file": (io.BytesIO(b"data"), "a.txt")})
    with open(ctx.files["file"].filepath, "rb") as f:
        assert f.read() == b"data"


def test_uploads_are_discarded_when_the_handler_fails(run):
    def fail(ctx):
        ctx.commit_upload("other")
        raise ValidationError("Nope")

    router = Router()
    router.post("/api/upload", fail, body=BODY_MULTIPART)
    response, ctx = run(router, "POST", "/api/upload",
                        data={"file": (io.BytesIO(b"data"), "a.txt")})
    assert response.status_code == 400
    assert not os.path.exists(ctx.files["file"].filepath)


# ── Compression ───────────────────────────────────────────────────────────────

def test_gzip_when_the_client_accepts_it(run):
    router = Router()
    router.get("/api/x", lambda ctx: success({"text": "soup " * 200}))
    response, _ = run(router, "GET", "/api/x", headers={"Accept-Encoding": "gzip, deflate"})
    assert response.headers["Content-Encoding"] == "gzip"
    raw = response.get_data()
    assert int(response.headers["Content-Length"]) == len(raw)
    assert json.loads(gzip.decompress(raw))["data"]["text"].startswith("soup soup")


def test_identity_without_accept_encoding(run):
    router = Router()
    router.get("/api/x", lambda ctx: success({"ok": 1}))
    response, _ = run(router, "GET", "/api/x")
    assert "Content-Encoding" not in response.headers
    assert int(response.headers["Content-Length"]) == len(response.get_data())
