"""
Profile editor: read and write a user's profile, upload avatars.

A save uploads the avatar first (if one was chosen), then writes the whole
profile row with the new avatar URL.
"""
import json
import logging
import sqlite3
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from .board.notifications import NotificationSink, safe_notify
from .board.schema import NotificationKind
from .board.store import connect, init_schema, utc_now

logger = logging.getLogger(__name__)

THEMES = ("light", "dark")
MAX_AVATAR_BYTES = 1024 * 1024


class ProfileError(Exception):
    """Raised when a profile can't be read or written."""
    pass


@dataclass
class Profile:
    id: str
    full_name: str = ""
    bio: str = ""
    avatar_url: Optional[str] = None
    settings: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "full_name": self.full_name,
            "bio": self.bio,
            "avatar_url": self.avatar_url,
            "settings": self.settings,
        }


@dataclass
class ProfileForm:
    """The editable part of a profile."""
    full_name: str = ""
    bio: str = ""
    settings: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProfileForm":
        settings = data.get("settings") or {}
        if not isinstance(settings, dict):
            raise ProfileError("settings must be an object")
        theme = settings.get("theme")
        if theme is not None and theme not in THEMES:
            raise ProfileError(f"Invalid theme: {theme}. Allowed: {', '.join(THEMES)}")
        if "email_notifications" in settings and not isinstance(settings["email_notifications"], bool):
            raise ProfileError("email_notifications must be true or false")
        return cls(
            full_name=str(data.get("full_name") or ""),
            bio=str(data.get("bio") or ""),
            settings=settings,
        )


@dataclass(frozen=True)
class AvatarFile:
    filename: str
    data: bytes


class ProfileStore:
    """SQLite-backed profiles table, read and written whole rows at a time."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        init_schema(db_path)

    def get(self, user_id: str) -> Optional[Profile]:
        try:
            with connect(self.db_path) as conn:
                row = conn.execute("SELECT * FROM profiles WHERE id = ?", (user_id,)).fetchone()
        except sqlite3.Error as e:
            raise ProfileError(str(e)) from e
        if not row:
            return None
        try:
            settings = json.loads(row["settings"] or "{}")
        except (json.JSONDecodeError, TypeError):
            settings = {}
        return Profile(
            id=row["id"],
            full_name=row["full_name"] or "",
            bio=row["bio"] or "",
            avatar_url=row["avatar_url"],
            settings=settings,
        )

    def save(self, profile: Profile) -> None:
        try:
            with connect(self.db_path) as conn:
                conn.execute("""
                    INSERT INTO profiles (id, full_name, bio, avatar_url, settings, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        full_name=excluded.full_name, bio=excluded.bio,
                        avatar_url=excluded.avatar_url, settings=excluded.settings,
                        updated_at=excluded.updated_at
                """, (
                    profile.id,
                    profile.full_name,
                    profile.bio,
                    profile.avatar_url,
                    json.dumps(profile.settings),
                    utc_now(),
                ))
                conn.commit()
        except sqlite3.Error as e:
            raise ProfileError(str(e)) from e


class AvatarStorage:
    """Local 'avatars' bucket. Uploads overwrite, URLs are public."""

    def __init__(self, root: str, public_url: str = ""):
        self.root = Path(root)
        self.public_url = public_url.rstrip("/")

    def upload(self, path: str, data: bytes) -> None:
        target = (self.root / path).resolve()
        if self.root.resolve() not in target.parents:
            raise ProfileError(f"Invalid avatar path: {path}")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

    def get_public_url(self, path: str) -> str:
        return f"{self.public_url}/avatars/{path}"

    def open(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if self.root.resolve() not in target.parents or not target.is_file():
            raise ProfileError(f"Avatar not found: {path}")
        return target


class ProfileService:
    """Load and save profiles, reporting the outcome as notifications."""

    def __init__(self, store: ProfileStore, avatars: AvatarStorage, notifier: NotificationSink):
        self.store = store
        self.avatars = avatars
        self.notifier = notifier

    def load(self, user_id: str) -> Profile:
        profile = self.store.get(user_id)
        if profile is None:
            raise ProfileError(f"Profile {user_id} not found")
        return profile

    def save(self, user_id: str, form: ProfileForm, avatar: Optional[AvatarFile] = None) -> Optional[Profile]:
        """Save the form. Returns the written profile, or None on failure."""
        try:
            current = self.load(user_id)
            avatar_url = current.avatar_url

            if avatar is not None:
                if len(avatar.data) > MAX_AVATAR_BYTES:
                    raise ProfileError("Avatar must be 1MB or smaller")
                ext = avatar.filename.split(".")[-1]
                file_path = f"{user_id}/avatar.{ext}"
                self.avatars.upload(file_path, avatar.data)
                avatar_url = self.avatars.get_public_url(file_path)

            profile = Profile(
                id=user_id,
                full_name=form.full_name,
                bio=form.bio,
                avatar_url=avatar_url,
                settings=form.settings,
            )
            self.store.save(profile)
        except Exception as e:
            logger.warning(f"Profile update for {user_id} failed: {e}")
            safe_notify(self.notifier, NotificationKind.ERROR, "Error", str(e))
            return None

        logger.info(f"Profile {user_id} updated")
        safe_notify(
            self.notifier,
            NotificationKind.SUCCESS,
            "Profile updated",
            "Your profile has been successfully updated.",
        )
        return profile
