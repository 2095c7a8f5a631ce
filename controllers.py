"""
controllers.py – API handlers for authentication and recipes
Each handler receives the request context (ctx) and returns an ApiResponse;
failures are raised as ApiError subclasses and rendered by the router.
"""

import logging

from auth import expired_session_cookie, session_cookie
from errors import AuthenticationError, NotFoundError, ValidationError
from file_helpers import remove_upload, upload_url
from models import coerce_id
from responses import success
from router import BODY_FORM, BODY_JSON, BODY_MULTIPART
from validation import RECIPE_TEXT_FIELDS, validate_image, validate_recipe, \
    validate_sign_in, validate_sign_up

logger = logging.getLogger(__name__)

IMAGE_FIELD = "image"


# ─────────────────────────────────────────────────────────────────────────────
# AUTH HANDLERS
# ─────────────────────────────────────────────────────────────────────────────

def sign_up(ctx):
    """POST /api/auth/signup – create an account and sign it in."""
    data = ctx.body
    errors = validate_sign_up(data)
    if errors:
        raise ValidationError("Validation failed", details=errors)

    user = ctx.services.users.create(
        username=data["username"], email=data["email"], password=data["password"],
    )
    session = ctx.services.sessions.create(user["id"])
    return success(
        {"user": user},
        message="User registered and signed in",
        status=201,
        cookies=[session_cookie(ctx.config, session.session_id)],
    )


def sign_in(ctx):
    """POST /api/auth/signin – the email field may also hold a username."""
    data = ctx.body
    errors = validate_sign_in(data)
    if errors:
        raise ValidationError("Validation failed", details=errors)

    user = ctx.services.users.validate_credentials(data["email"].strip(), data["password"])
    if user is None:
        raise AuthenticationError("Invalid email/username or password", code="INVALID_CREDENTIALS")

    session = ctx.services.sessions.create(user.id)
    logger.info(f"User {user.id} signed in")
    return success(
        {"user": user.to_public_dict()},
        message="Signed in",
        cookies=[session_cookie(ctx.config, session.session_id)],
    )


def sign_out(ctx):
    ctx.services.sessions.destroy(ctx.session.session_id)
    logger.info(f"User {ctx.user.id} signed out")
    return success(message="Signed out", cookies=[expired_session_cookie(ctx.config)])


def current_user(ctx):
    return success({"user": ctx.user.to_public_dict()})


# ─────────────────────────────────────────────────────────────────────────────
# RECIPE HANDLERS
# ─────────────────────────────────────────────────────────────────────────────

def _check_image(ctx, required: bool):
    upload = ctx.files.get(IMAGE_FIELD)
    error = validate_image(upload, ctx.config["MAX_IMAGE_BYTES"],
                           ctx.config["ALLOWED_IMAGE_TYPES"], required=required)
    return upload, error


def _remove_old_image(ctx, image_path: str) -> None:
    remove_upload(ctx.config["UPLOAD_DIR"], ctx.config["IMAGES_URL_PREFIX"], image_path,
                  keep=ctx.config["DEFAULT_RECIPE_IMAGE"])


def list_recipes(ctx):
    """GET /api/recipes – optional ?search=<text> and ?authorId=<id> filters."""
    recipes = ctx.services.recipes.find_all()

    author_id = ctx.query.get("authorId")
    if author_id:
        wanted = coerce_id(author_id)
        recipes = [recipe for recipe in recipes if recipe.author_id == wanted]

    query = ctx.query.get("search", "").strip()
    if query:
        recipes = [recipe for recipe in recipes if recipe.matches(query)]

    return success({"recipes": [recipe.to_dict() for recipe in recipes]})


def get_recipe(ctx):
    recipe = ctx.services.recipes.find_by_id(ctx.params["id"])
    if recipe is None:
        raise NotFoundError("Recipe not found")
    return success({"recipe": recipe.to_dict()})


def create_recipe(ctx):
    """POST /api/recipes – multipart form with the four text fields and an image."""
    data = {field: ctx.body.get(field) for field in RECIPE_TEXT_FIELDS}
    errors = validate_recipe(data)
    upload, image_error = _check_image(ctx, required=True)
    if image_error:
        errors[IMAGE_FIELD] = image_error
    if errors:
        raise ValidationError("Validation failed", details=errors)

    data = {field: value.strip() for field, value in data.items()}
    data["imagePath"] = upload_url(ctx.config["IMAGES_URL_PREFIX"], upload.filename)
    recipe = ctx.services.recipes.create(data, ctx.user.id, ctx.user.username)
    ctx.commit_upload(IMAGE_FIELD)

    return success({"recipe": recipe.to_dict()}, message="Recipe created", status=201)


def update_recipe(ctx):
    """
    PUT /api/recipes/:id – partial update by the recipe's author.
    Accepts JSON or multipart; a new image replaces the old one.
    """
    recipes = ctx.services.recipes
    existing = recipes.find_by_id(ctx.params["id"])
    if existing is None:
        raise NotFoundError("Recipe not found")

    changes = {field: ctx.body[field] for field in RECIPE_TEXT_FIELDS if field in ctx.body}
    errors = validate_recipe(changes, partial=True)
    upload, image_error = _check_image(ctx, required=False)
    if image_error:
        errors[IMAGE_FIELD] = image_error
    if errors:
        raise ValidationError("Validation failed", details=errors)

    changes = {field: value.strip() for field, value in changes.items()}
    if upload is not None:
        changes["imagePath"] = upload_url(ctx.config["IMAGES_URL_PREFIX"], upload.filename)
    if not changes:
        raise ValidationError("No fields to update")

    replaced = []
    updated = recipes.update(existing.id, changes, ctx.user.id, on_image_replaced=replaced.append)
    if updated is None:
        raise NotFoundError("Recipe not found")

    if upload is not None:
        ctx.commit_upload(IMAGE_FIELD)
    for image_path in replaced:
        _remove_old_image(ctx, image_path)

    return success({"recipe": updated.to_dict()}, message="Recipe updated")


def delete_recipe(ctx):
    recipes = ctx.services.recipes
    existing = recipes.find_by_id(ctx.params["id"])
    if existing is None or not recipes.delete(existing.id, ctx.user.id):
        raise NotFoundError("Recipe not found")

    _remove_old_image(ctx, existing.image_path)
    return success(message="Recipe deleted")


# ─────────────────────────────────────────────────────────────────────────────
# ROUTE TABLE
# ─────────────────────────────────────────────────────────────────────────────

def register_routes(router) -> None:
    router.post("/api/auth/signup", sign_up, body=BODY_JSON)
    router.post("/api/auth/signin", sign_in, body=BODY_JSON)
    router.post("/api/auth/signout", sign_out, auth=True)
    router.get("/api/auth/me", current_user, auth=True)

    router.get("/api/recipes", list_recipes)
    router.post("/api/recipes", create_recipe, body=BODY_MULTIPART, auth=True)
    router.get("/api/recipes/:id", get_recipe)
    router.put("/api/recipes/:id", update_recipe, body=BODY_FORM, auth=True)
    router.delete("/api/recipes/:id", delete_recipe, auth=True)
