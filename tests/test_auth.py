import pytest
from werkzeug.test import EnvironBuilder
from werkzeug.wrappers import Request

from auth import authenticate, expired_session_cookie, session_cookie
from errors import AuthenticationError
from router import ApiContext


def context(services, cookie=None):
    headers = {"Cookie": cookie} if cookie else {}
    request = Request(EnvironBuilder(path="/api/auth/me", headers=headers).get_environ())
    return ApiContext(request, services)


@pytest.fixture
def alice(services):
    return services.users.create("alice", "alice@example.com", "secret1")


def test_missing_cookie_is_rejected(services):
    with pytest.raises(AuthenticationError) as info:
        authenticate(context(services))
    assert info.value.status_code == 401
    assert info.value.code == "UNAUTHORIZED"


def test_unknown_session_is_rejected(services):
    with pytest.raises(AuthenticationError):
        authenticate(context(services, "sessionId=" + "0" * 64))


def test_valid_session_attaches_user_and_session(services, alice):
    session = services.sessions.create(alice["id"])
    ctx = context(services, f"theme=dark; sessionId={session.session_id}")
    authenticate(ctx)
    assert ctx.user.username == "alice"
    assert ctx.session.session_id == session.session_id


def test_session_of_a_deleted_user_is_destroyed(services):
    session = services.sessions.create(99)
    with pytest.raises(AuthenticationError):
        authenticate(context(services, f"sessionId={session.session_id}"))
    assert services.sessions.find_by_id(session.session_id) is None


def test_session_cookie_attributes(app):
    cookie = session_cookie(app.config, "abc123")
    assert cookie == "sessionId=abc123; Max-Age=1800; Path=/; HttpOnly; SameSite=Strict"


def test_expired_cookie_clears_the_value(app):
    assert expired_session_cookie(app.config).startswith("sessionId=; Max-Age=0; Path=/")
