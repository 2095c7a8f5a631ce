import io

import pytest

from app import EXTENSION_KEY, create_app

FAST_HASH = "pbkdf2:sha256:1000"

# Smallest useful JPEG-looking payload: SOI marker, some bytes, EOI marker
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00\x10JFIF\x00" + bytes(range(256)) + b"\xff\xd9"


@pytest.fixture
def app_config(tmp_path):
    return {
        "TESTING": True,
        "DATA_DIR": str(tmp_path / "data"),
        "USERS_FILE": None,
        "RECIPES_FILE": None,
        "SESSIONS_FILE": None,
        "UPLOAD_DIR": str(tmp_path / "images"),
        "SESSION_CLEANUP_INTERVAL": 0,
        "PASSWORD_HASH_METHOD": FAST_HASH,
    }


@pytest.fixture
def app(app_config):
    yield create_app(app_config)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def services(app):
    return app.extensions[EXTENSION_KEY]["services"]


@pytest.fixture
def upload_dir(app):
    return app.config["UPLOAD_DIR"]


@pytest.fixture
def make_user(app):
    """Sign up a user on a fresh test client; returns (client, public user dict)."""
    def _make(username="alice", email=None, password="secret1"):
        client = app.test_client()
        response = client.post("/api/auth/signup", json={
            "username": username,
            "email": email or f"{username}@example.com",
            "password": password,
            "confirmPassword": password,
        })
        assert response.status_code == 201, response.get_json()
        return client, response.get_json()["data"]["user"]
    return _make


@pytest.fixture
def recipe_form():
    """Multipart form data for a recipe with a JPEG image."""
    def _form(image=True, **fields):
        data = {
            "recipeName": "Soup",
            "description": "A warm bowl of soup",
            "ingredients": "water\nsalt\ncarrots",
            "directions": "Boil water\nAdd everything\nSimmer",
        }
        data.update(fields)
        if image:
            data["image"] = (io.BytesIO(JPEG_BYTES), "soup.jpg", "image/jpeg")
        return data
    return _form


@pytest.fixture
def jpeg_bytes():
    return JPEG_BYTES
