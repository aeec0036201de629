"""
Authentication: email/password accounts, the current session, and a
sign-in/sign-out event stream.

Usage:
    auth = AuthClient(db_path)
    sub = auth.on_auth_state_change(lambda event, session: ...)
    auth.sign_in("a@example.com", "secret")   # → SIGNED_IN
    sub.unsubscribe()
"""
import json
import logging
import re
import sqlite3
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from werkzeug.security import check_password_hash, generate_password_hash

from .board.store import connect, init_schema, utc_now

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class AuthError(Exception):
    """Raised when sign-up or sign-in is rejected."""
    pass


class AuthEvent(Enum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"


@dataclass(frozen=True)
class User:
    id: str
    email: str


@dataclass(frozen=True)
class Session:
    user: User
    created_at: str

    def to_dict(self) -> dict:
        return {"user": {"id": self.user.id, "email": self.user.email}, "created_at": self.created_at}


AuthListener = Callable[[AuthEvent, Optional[Session]], None]


class Subscription:
    """Handle returned by on_auth_state_change."""

    def __init__(self, listeners: List[AuthListener], callback: AuthListener):
        self._listeners = listeners
        self._callback = callback

    def unsubscribe(self) -> None:
        if self._callback in self._listeners:
            self._listeners.remove(self._callback)


class AuthClient:
    """Holds at most one signed-in session and notifies listeners of changes."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        init_schema(db_path)
        self._session: Optional[Session] = None
        self._listeners: List[AuthListener] = []

    # ── Session state ──

    def get_session(self) -> Optional[Session]:
        return self._session

    def restore(self, user_id: Optional[str]) -> Optional[Session]:
        """Rehydrate a session for a known user id without emitting events."""
        if not user_id:
            return None
        user = self._get_user(user_id)
        self._session = Session(user=user, created_at=utc_now()) if user else None
        return self._session

    def on_auth_state_change(self, callback: AuthListener) -> Subscription:
        self._listeners.append(callback)
        return Subscription(self._listeners, callback)

    def _emit(self, event: AuthEvent) -> None:
        for callback in list(self._listeners):
            try:
                callback(event, self._session)
            except Exception as e:
                logger.error(f"Error in auth listener for {event.value}: {e}")

    # ── Accounts ──

    def sign_up(self, email: str, password: str, full_name: str = "") -> Session:
        """Create an account and its empty profile, then sign in."""
        email = (email or "").strip().lower()
        if not EMAIL_RE.match(email):
            raise AuthError("Invalid email address")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise AuthError(f"Password should be at least {MIN_PASSWORD_LENGTH} characters")

        user_id = str(uuid.uuid4())
        now = utc_now()
        try:
            with connect(self.db_path) as conn:
                conn.execute(
                    "INSERT INTO users (id, email, password_hash, created_at) VALUES (?, ?, ?, ?)",
                    (user_id, email, generate_password_hash(password), now),
                )
                conn.execute(
                    "INSERT INTO profiles (id, full_name, bio, avatar_url, settings, updated_at) "
                    "VALUES (?, ?, '', NULL, ?, ?)",
                    (user_id, full_name or "", json.dumps({}), now),
                )
                conn.commit()
        except sqlite3.IntegrityError as e:
            raise AuthError("User already registered") from e

        logger.info(f"Registered user {user_id}")
        return self._start_session(User(id=user_id, email=email))

    def sign_in(self, email: str, password: str) -> Session:
        email = (email or "").strip().lower()
        with connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT id, email, password_hash FROM users WHERE email = ?", (email,)
            ).fetchone()
        if not row or not check_password_hash(row["password_hash"], password or ""):
            logger.warning(f"Failed sign-in for {email!r}")
            raise AuthError("Invalid login credentials")
        return self._start_session(User(id=row["id"], email=row["email"]))

    def sign_out(self) -> None:
        if self._session is None:
            return
        self._session = None
        self._emit(AuthEvent.SIGNED_OUT)

    def _start_session(self, user: User) -> Session:
        self._session = Session(user=user, created_at=utc_now())
        self._emit(AuthEvent.SIGNED_IN)
        return self._session

    def _get_user(self, user_id: str) -> Optional[User]:
        with connect(self.db_path) as conn:
            row = conn.execute("SELECT id, email FROM users WHERE id = ?", (user_id,)).fetchone()
        return User(id=row["id"], email=row["email"]) if row else None
