"""
validation.py – Input validation for sign-up, sign-in and recipe forms
Every validate_* function returns a {field: message} dict; empty means valid.
"""

import re

EMAIL_PATTERN    = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")

USERNAME_MIN, USERNAME_MAX = 3, 20
PASSWORD_MIN               = 6
RECIPE_NAME_MIN            = 3

RECIPE_TEXT_FIELDS = ("recipeName", "description", "ingredients", "directions")


def _text(value) -> str:
    return value if isinstance(value, str) else ""


def validate_email(email) -> bool:
    return isinstance(email, str) and bool(EMAIL_PATTERN.match(email))


def validate_username(username) -> str:
    """Returns an error message, or "" if the username is acceptable."""
    username = _text(username)
    if len(username) < USERNAME_MIN:
        return f"Username must be at least {USERNAME_MIN} characters"
    if len(username) > USERNAME_MAX:
        return f"Username must be at most {USERNAME_MAX} characters"
    if not USERNAME_PATTERN.match(username):
        return "Username may only contain letters, numbers and underscores"
    return ""


def validate_password(password) -> str:
    if len(_text(password)) < PASSWORD_MIN:
        return f"Password must be at least {PASSWORD_MIN} characters"
    return ""


def validate_sign_up(data: dict) -> dict:
    errors = {}

    username_error = validate_username(data.get("username"))
    if username_error:
        errors["username"] = username_error

    email = data.get("email")
    if not _text(email).strip():
        errors["email"] = "Email is required"
    elif not validate_email(email):
        errors["email"] = "Email format is invalid"

    password_error = validate_password(data.get("password"))
    if password_error:
        errors["password"] = password_error

    confirm = data.get("confirmPassword")
    if not _text(confirm):
        errors["confirmPassword"] = "Please confirm your password"
    elif confirm != data.get("password"):
        errors["confirmPassword"] = "Passwords do not match"

    return errors


def validate_sign_in(data: dict) -> dict:
    errors = {}
    if not _text(data.get("email")).strip():
        errors["email"] = "Email or username is required"
    if not _text(data.get("password")):
        errors["password"] = "Password is required"
    return errors


def validate_recipe(data: dict, partial: bool = False) -> dict:
    """
    Check the recipe text fields.
    With partial=True only the fields present in data are checked (updates).
    """
    errors = {}
    for field in RECIPE_TEXT_FIELDS:
        if partial and field not in data:
            continue
        value = data.get(field)
        if value is not None and not isinstance(value, str):
            errors[field] = "Must be text"
        elif not _text(value).strip():
            errors[field] = "This field is required"

    name = _text(data.get("recipeName")).strip()
    if "recipeName" not in errors and ("recipeName" in data or not partial) \
            and len(name) < RECIPE_NAME_MIN:
        errors["recipeName"] = f"Recipe name must be at least {RECIPE_NAME_MIN} characters"
    return errors


def validate_image(upload, max_bytes: int, allowed_types, required: bool = True) -> str:
    """Returns an error message for the uploaded image, or "" if it's acceptable."""
    if upload is None:
        return "An image is required" if required else ""
    if upload.size == 0:
        return "The uploaded image is empty"
    if upload.size > max_bytes:
        return f"Image must be at most {max_bytes // (1024 * 1024)}MB"
    if upload.content_type.split(";")[0].strip().lower() not in allowed_types:
        return "Image must be a JPEG, PNG or WebP file"
    return ""
