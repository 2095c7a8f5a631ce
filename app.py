"""
app.py – SpiceScript recipe-sharing service
Flask hosts the process, the configuration and the dev server; every /api
request is handed to the Router, which owns matching, body parsing,
authentication and error handling for the JSON API.
"""

import logging
import os

from flask import Flask, current_app, request, send_from_directory
from werkzeug.exceptions import HTTPException

from config import Config, data_file
from controllers import register_routes
from responses import failure, render
from router import ApiContext, Router, Services
from stores import RecipeStore, SessionJanitor, SessionStore, UserStore

logger = logging.getLogger(__name__)

EXTENSION_KEY = "spicescript"
API_METHODS   = ["GET", "POST", "PUT", "DELETE", "PATCH"]


# ─────────────────────────────────────────────────────────────────────────────
# APPLICATION SETUP
# ─────────────────────────────────────────────────────────────────────────────
def _build_services(config) -> Services:
    users = UserStore(
        data_file(config, "USERS_FILE", "users.json"),
        hash_method=config["PASSWORD_HASH_METHOD"],
        salt_length=config["PASSWORD_SALT_LENGTH"],
    )
    recipes = RecipeStore(
        data_file(config, "RECIPES_FILE", "recipes.json"),
        default_image=config["DEFAULT_RECIPE_IMAGE"],
    )
    sessions = SessionStore(
        data_file(config, "SESSIONS_FILE", "sessions.json"),
        max_age_ms=config["SESSION_MAX_AGE_MS"],
    )
    return Services(users=users, recipes=recipes, sessions=sessions, config=config)


def create_app(overrides=None) -> Flask:
    """Build the Flask app. overrides is applied on top of Config."""
    app = Flask(__name__)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)
        if "MAX_IMAGE_BYTES" in overrides and "MAX_CONTENT_LENGTH" not in overrides:
            app.config["MAX_CONTENT_LENGTH"] = (overrides["MAX_IMAGE_BYTES"]
                                                + app.config["FORM_OVERHEAD_BYTES"])

    services = _build_services(app.config)
    services.sessions.load()

    router = Router()
    register_routes(router)

    janitor = SessionJanitor(services.sessions, app.config["SESSION_CLEANUP_INTERVAL"])
    janitor.start()

    app.extensions[EXTENSION_KEY] = {"services": services, "router": router, "janitor": janitor}

    # ── Routes ────────────────────────────────────────────────────────────────
    @app.route("/api", methods=API_METHODS)
    @app.route("/api/<path:subpath>", methods=API_METHODS)
    def api(subpath=None):
        state = current_app.extensions[EXTENSION_KEY]
        return state["router"].dispatch(ApiContext(request, state["services"]))

    @app.route("/images/<path:filename>")
    def uploaded_image(filename):
        return send_from_directory(current_app.config["UPLOAD_DIR"], filename)

    @app.errorhandler(HTTPException)
    def http_error(exc):
        name = exc.name or "Error"
        return render(failure(exc.code or 500, name, name.upper().replace(" ", "_")),
                      request.headers.get("Accept-Encoding"))

    return app


def log_endpoints(app: Flask) -> None:
    host, port = app.config["HOST"], app.config["PORT"]
    logger.info("=" * 60)
    logger.info(f"  SpiceScript running at http://{host}:{port}/")
    for route in app.extensions[EXTENSION_KEY]["router"].routes:
        auth = " (auth)" if route.auth else ""
        logger.info(f"    {route.method:<6} {route.pattern}{auth}")
    logger.info("=" * 60)


# ─────────────────────────────────────────────────────────────────────────────
# ENTRY POINT
# ─────────────────────────────────────────────────────────────────────────────
if __name__ == "__main__":
    logging.basicConfig(
        level=getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    os.makedirs(Config.UPLOAD_DIR, exist_ok=True)
    application = create_app()
    log_endpoints(application)
    application.run(host=application.config["HOST"], port=application.config["PORT"],
                    threaded=True)
