"""
stores.py – JSON document stores for users, recipes and sessions
Each store owns one JSON file holding its whole collection. Every mutation
is a load-modify-save cycle run under the store's lock, so concurrent
requests (and the session janitor thread) cannot interleave inside one.
"""

import logging
import threading
from datetime import timedelta
from typing import Callable, Optional

from errors import AuthorizationError, ConflictError
from file_helpers import load_json_document, save_json_document
from models import Recipe, Session, User, coerce_id, format_timestamp, utc_now
from security import DEFAULT_METHOD, DEFAULT_SALT_LENGTH, generate_session_id, hash_password

logger = logging.getLogger(__name__)


class DocumentStore:
    """Base class: one model class, one JSON file, one lock."""

    model = None

    def __init__(self, path: str):
        self.path  = path
        self._lock = threading.RLock()

    def _load(self) -> list:
        records = []
        seen    = set()
        for raw in load_json_document(self.path):
            try:
                record = self.model.from_dict(raw)
            except (AttributeError, KeyError, TypeError, ValueError) as exc:
                logger.warning(f"Skipping unreadable record in {self.path}: {exc!r}")
                continue
            if record.id in seen:
                logger.warning(f"Duplicate id {record.id!r} in {self.path}")
            seen.add(record.id)
            records.append(record)
        return records

    def _save(self, records: list) -> None:
        save_json_document(self.path, [record.to_dict() for record in records])

    @staticmethod
    def next_id(records: list) -> int:
        """Max existing id + 1; an empty collection starts at 1."""
        return max((record.id for record in records), default=0) + 1

    def find_all(self) -> list:
        with self._lock:
            return self._load()

    def find_by_id(self, record_id):
        wanted = coerce_id(record_id)
        if wanted is None:
            return None
        for record in self.find_all():
            if record.id == wanted:
                return record
        return None


# ─────────────────────────────────────────────────────────────────────────────
# USERS
# ─────────────────────────────────────────────────────────────────────────────
class UserStore(DocumentStore):
    model = User

    def __init__(self, path: str, hash_method: str = DEFAULT_METHOD,
                 salt_length: int = DEFAULT_SALT_LENGTH):
        super().__init__(path)
        self.hash_method = hash_method
        self.salt_length = salt_length

    def find_by_email(self, email) -> Optional[User]:
        """Case-insensitive lookup. Returns None if not found."""
        if not isinstance(email, str):
            return None
        wanted = email.strip().lower()
        for user in self.find_all():
            if user.email.lower() == wanted:
                return user
        return None

    def find_by_username(self, username) -> Optional[User]:
        """Case-insensitive lookup. Returns None if not found."""
        if not isinstance(username, str):
            return None
        wanted = username.strip().lower()
        for user in self.find_all():
            if user.username.lower() == wanted:
                return user
        return None

    def create(self, username: str, email: str, password: str) -> dict:
        """
        Register a new account and return its public form (no hash).
        Raises ConflictError if the username or e-mail is already in use
        (case-insensitive).
        """
        username = username.strip()
        email    = email.strip()
        # Hashing is slow; keep it outside the lock
        password_hash = hash_password(password, self.hash_method, self.salt_length)

        with self._lock:
            users = self._load()
            for existing in users:
                if existing.username.lower() == username.lower():
                    raise ConflictError("Username is already taken",
                                        details={"username": "Username is already taken"})
                if existing.email.lower() == email.lower():
                    raise ConflictError("Email is already registered",
                                        details={"email": "Email is already registered"})

            user = User(
                user_id=self.next_id(users),
                username=username,
                email=email,
                password_hash=password_hash,
                created_at=format_timestamp(utc_now()),
            )
            users.append(user)
            self._save(users)

        logger.info(f"Registered user {user.id} ({user.username})")
        return user.to_public_dict()

    def validate_credentials(self, identifier: str, password: str) -> Optional[User]:
        """Look the user up by e-mail, then by username, and check the password."""
        user = self.find_by_email(identifier) or self.find_by_username(identifier)
        if user is None or not user.check_password(password):
            return None
        return user


# ─────────────────────────────────────────────────────────────────────────────
# RECIPES
# ─────────────────────────────────────────────────────────────────────────────
class RecipeStore(DocumentStore):
    model = Recipe

    def __init__(self, path: str, default_image: str = ""):
        super().__init__(path)
        self.default_image = default_image

    def find_by_author(self, author_id) -> list:
        wanted = coerce_id(author_id)
        return [recipe for recipe in self.find_all() if recipe.author_id == wanted]

    def search(self, query: str) -> list:
        """Recipes whose name or description contains query (case-insensitive)."""
        return [recipe for recipe in self.find_all() if recipe.matches(query)]

    def create(self, data: dict, author_id: int, author_name: str) -> Recipe:
        now = format_timestamp(utc_now())
        with self._lock:
            recipes = self._load()
            recipe = Recipe(
                record_id=self.next_id(recipes),
                recipe_name=data["recipeName"],
                description=data["description"],
                ingredients=data["ingredients"],
                directions=data["directions"],
                image_path=data.get("imagePath") or self.default_image,
                author_id=author_id,
                author_name=author_name,
                created_at=now,
                updated_at=now,
            )
            recipes.append(recipe)
            self._save(recipes)

        logger.info(f"Created recipe {recipe.id} by user {author_id}")
        return recipe

    @staticmethod
    def _check_author(recipe: Recipe, user_id, action: str) -> None:
        if recipe.author_id != coerce_id(user_id):
            raise AuthorizationError(f"You can only {action} your own recipes")

    def update(self, recipe_id, changes: dict, user_id,
               on_image_replaced: Optional[Callable[[str], None]] = None) -> Optional[Recipe]:
        """
        Apply the mutable fields in changes to a recipe owned by user_id.
        Returns None if the recipe doesn't exist; raises AuthorizationError if
        user_id isn't its author. Identity, ownership and createdAt never change.

        If imagePath changes, on_image_replaced is called with the path that
        was stored when the write happened.
        """
        allowed = {key: value for key, value in changes.items() if key in Recipe.MUTABLE_FIELDS}
        wanted  = coerce_id(recipe_id)

        with self._lock:
            recipes = self._load()
            recipe  = next((r for r in recipes if r.id == wanted), None)
            if recipe is None:
                return None
            self._check_author(recipe, user_id, "update")

            previous_image = recipe.image_path
            recipe.apply_changes(allowed)
            recipe.updated_at = format_timestamp(utc_now())
            self._save(recipes)

        logger.info(f"Updated recipe {recipe.id} ({', '.join(sorted(allowed)) or 'no fields'})")
        if on_image_replaced is not None and recipe.image_path != previous_image:
            on_image_replaced(previous_image)
        return recipe

    def delete(self, recipe_id, user_id) -> bool:
        """Remove a recipe owned by user_id. Returns False if it didn't exist."""
        wanted = coerce_id(recipe_id)

        with self._lock:
            recipes = self._load()
            recipe  = next((r for r in recipes if r.id == wanted), None)
            if recipe is None:
                return False
            self._check_author(recipe, user_id, "delete")

            recipes.remove(recipe)
            self._save(recipes)

        logger.info(f"Deleted recipe {wanted}")
        return True


# ─────────────────────────────────────────────────────────────────────────────
# SESSIONS
# Kept in memory between an explicit load() and each save(); the file is
# rewritten on every change.
# ─────────────────────────────────────────────────────────────────────────────
class SessionStore(DocumentStore):
    model = Session

    def __init__(self, path: str, max_age_ms: int, clock=utc_now):
        super().__init__(path)
        self.max_age_ms = max_age_ms
        self._clock     = clock
        self._sessions  = []

    def load(self) -> int:
        """Read the session file into memory and drop expired entries."""
        with self._lock:
            self._sessions = self._load()
            self.cleanup()
            logger.info(f"Loaded {len(self._sessions)} active sessions from {self.path}")
            return len(self._sessions)

    def save(self) -> None:
        with self._lock:
            self._save(self._sessions)

    def create(self, user_id: int) -> Session:
        now = self._clock()
        session = Session(
            session_id=generate_session_id(),
            user_id=user_id,
            created_at=format_timestamp(now),
            expires_at=format_timestamp(now + timedelta(milliseconds=self.max_age_ms)),
        )
        with self._lock:
            self._sessions.append(session)
            self.save()
        return session

    def find_by_id(self, session_id) -> Optional[Session]:
        """
        Return the session if it exists and hasn't expired.
        An expired session is destroyed on the spot.
        """
        if not session_id:
            return None
        with self._lock:
            session = next((s for s in self._sessions if s.session_id == session_id), None)
            if session is None:
                return None
            if not session.is_valid(self._clock()):
                self.destroy(session_id)
                return None
            return session

    def find_all(self) -> list:
        """All active sessions."""
        with self._lock:
            self.cleanup()
            return list(self._sessions)

    def destroy(self, session_id) -> bool:
        with self._lock:
            remaining = [s for s in self._sessions if s.session_id != session_id]
            if len(remaining) == len(self._sessions):
                return False
            self._sessions = remaining
            self.save()
            return True

    def destroy_by_user_id(self, user_id) -> int:
        """Invalidate every session of one user. Returns how many were removed."""
        wanted = coerce_id(user_id)
        with self._lock:
            remaining = [s for s in self._sessions if s.user_id != wanted]
            removed   = len(self._sessions) - len(remaining)
            if removed:
                self._sessions = remaining
                self.save()
            return removed

    def cleanup(self) -> int:
        """Drop expired sessions; the file is only rewritten if any were dropped."""
        with self._lock:
            now       = self._clock()
            remaining = [s for s in self._sessions if s.is_valid(now)]
            removed   = len(self._sessions) - len(remaining)
            if removed:
                self._sessions = remaining
                self.save()
                logger.info(f"Removed {removed} expired sessions")
            return removed


class SessionJanitor:
    """Background thread that runs SessionStore.cleanup() every interval seconds."""

    def __init__(self, store: SessionStore, interval: float):
        self.store       = store
        self.interval    = interval
        self._stop_event = threading.Event()
        self._thread     = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> bool:
        if self.running or self.interval <= 0:
            return False
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, daemon=True, name="SessionJanitor")
        self._thread.start()
        logger.info(f"Session janitor started (every {self.interval}s)")
        return True

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None
        logger.info("Session janitor stopped")

    def _run_loop(self) -> None:
        while not self._stop_event.wait(self.interval):
            try:
                self.store.cleanup()
            except Exception:
                logger.exception("Session cleanup failed")
