"""
models.py – Data model classes for SpiceScript
Records are stored as JSON documents with camelCase keys; each class converts
itself to and from that form.
"""

from datetime import datetime, timezone
from typing import Optional

from security import verify_password


# ─────────────────────────────────────────────────────────────────────────────
# TIMESTAMPS
# Stored as ISO-8601 UTC strings with millisecond precision, e.g.
# "2024-05-01T12:00:00.000Z"
# ─────────────────────────────────────────────────────────────────────────────
def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def coerce_id(value) -> Optional[int]:
    """Turn a path/query/JSON id into an int, or None if it isn't one."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


class DataModel:
    """Base class: shared serialization for all data records."""

    def __init__(self, record_id):
        self.id = record_id

    def to_dict(self) -> dict:
        return {"id": self.id}

    @classmethod
    def from_dict(cls, data: dict) -> "DataModel":
        return cls(record_id=data["id"])


# ─────────────────────────────────────────────────────────────────────────────
# USER
# ─────────────────────────────────────────────────────────────────────────────
class User(DataModel):
    """A registered user account."""

    def __init__(self, user_id: int, username: str, email: str,
                 password_hash: str, created_at: str):
        super().__init__(record_id=user_id)
        self.username      = username
        self.email         = email
        self.password_hash = password_hash
        self.created_at    = created_at

    def check_password(self, password: str) -> bool:
        return verify_password(password, self.password_hash)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "passwordHash": self.password_hash,
            "createdAt": self.created_at,
        }

    def to_public_dict(self) -> dict:
        """The shape sent to clients: never includes the password hash."""
        public = self.to_dict()
        del public["passwordHash"]
        return public

    @classmethod
    def from_dict(cls, data: dict) -> "User":
        return cls(
            user_id=int(data["id"]),
            username=data["username"],
            email=data["email"],
            password_hash=data.get("passwordHash", ""),
            created_at=data.get("createdAt", ""),
        )

    def __repr__(self):
        return f"<User {self.id} {self.username}>"


# ─────────────────────────────────────────────────────────────────────────────
# RECIPE
# ─────────────────────────────────────────────────────────────────────────────
class Recipe(DataModel):
    """A user-submitted recipe."""

    # Only these keys may change after creation
    MUTABLE_FIELDS = ("recipeName", "description", "ingredients", "directions", "imagePath")

    def __init__(self, record_id: int, recipe_name: str, description: str,
                 ingredients: str, directions: str, image_path: str,
                 author_id: int, author_name: str, created_at: str, updated_at: str):
        super().__init__(record_id)
        self.recipe_name = recipe_name
        self.description = description
        self.ingredients = ingredients
        self.directions  = directions
        self.image_path  = image_path
        self.author_id   = author_id
        self.author_name = author_name
        self.created_at  = created_at
        self.updated_at  = updated_at

    def apply_changes(self, changes: dict) -> None:
        """Copy whitelisted fields from changes onto this record."""
        if "recipeName" in changes:
            self.recipe_name = changes["recipeName"]
        if "description" in changes:
            self.description = changes["description"]
        if "ingredients" in changes:
            self.ingredients = changes["ingredients"]
        if "directions" in changes:
            self.directions = changes["directions"]
        if "imagePath" in changes:
            self.image_path = changes["imagePath"]

    def matches(self, query: str) -> bool:
        query = query.lower()
        return query in (self.recipe_name or "").lower() or query in (self.description or "").lower()

    def to_dict(self) -> dict:
        return {
            "id": self.id, "recipeName": self.recipe_name,
            "description": self.description, "ingredients": self.ingredients,
            "directions": self.directions, "imagePath": self.image_path,
            "authorId": self.author_id, "authorName": self.author_name,
            "createdAt": self.created_at, "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Recipe":
        return cls(
            record_id=int(data["id"]), recipe_name=data.get("recipeName", ""),
            description=data.get("description", ""),
            ingredients=data.get("ingredients", ""),
            directions=data.get("directions", ""),
            image_path=data.get("imagePath", ""),
            author_id=int(data["authorId"]), author_name=data.get("authorName", ""),
            created_at=data.get("createdAt", ""), updated_at=data.get("updatedAt", ""),
        )


# ─────────────────────────────────────────────────────────────────────────────
# SESSION
# ─────────────────────────────────────────────────────────────────────────────
class Session(DataModel):
    """Server-side login session, keyed by an opaque random token."""

    def __init__(self, session_id: str, user_id: int, created_at: str, expires_at: str):
        super().__init__(record_id=session_id)
        self.user_id    = user_id
        self.created_at = created_at
        self.expires_at = expires_at

    @property
    def session_id(self) -> str:
        return self.id

    def is_valid(self, now: datetime) -> bool:
        return now < parse_timestamp(self.expires_at)

    def to_dict(self) -> dict:
        return {
            "sessionId": self.id,
            "userId": self.user_id,
            "createdAt": self.created_at,
            "expiresAt": self.expires_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Session":
        # Validate the expiry eagerly so a corrupt record fails at load time
        parse_timestamp(data["expiresAt"])
        return cls(
            session_id=data["sessionId"],
            user_id=int(data["userId"]),
            created_at=data.get("createdAt", ""),
            expires_at=data["expiresAt"],
        )
