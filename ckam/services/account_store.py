"""Account store: in-memory user collection mirrored to a single JSON file."""

import json
import logging
import os
import tempfile
import threading
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError as RecordValidationError

from ckam.core.errors import (
    AuthError,
    ConflictError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from ckam.core.security import (
    BCRYPT_ROUNDS,
    DISPLAY_NAME_MAX_LEN,
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
    USERNAME_MAX_LEN,
    USERNAME_MIN_LEN,
    hash_password,
    is_avatar_data,
    verify_password,
)
from ckam.models.user import UserRecord
from ckam.schemas.accounts import PublicUser

if TYPE_CHECKING:
    from ckam.core.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_ONLINE_WINDOW_SECONDS = 5 * 60
DEFAULT_SEARCH_ALL_LIMIT = 50
DEFAULT_SEARCH_RESULT_LIMIT = 20
DEFAULT_AVATAR_MAX_LENGTH = 10 * 1024 * 1024

SAVE_FAILED_WARNING = "Changes were applied but could not be saved to disk."


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class MutationResult:
    """Outcome of a mutating operation. persisted=False means the write failed."""

    user: PublicUser
    persisted: bool = True
    warning: str | None = None


def _validate_username(username: str) -> str:
    username = (username or "").strip()
    if not username:
        raise ValidationError("Username is required.")
    if len(username) < USERNAME_MIN_LEN:
        raise ValidationError(
            f"Username must be at least {USERNAME_MIN_LEN} characters."
        )
    if len(username) > USERNAME_MAX_LEN:
        raise ValidationError(
            f"Username must be at most {USERNAME_MAX_LEN} characters."
        )
    return username


def _validate_display_name(display_name: str) -> str:
    display_name = (display_name or "").strip()
    if not display_name:
        raise ValidationError("Display name is required.")
    if len(display_name) > DISPLAY_NAME_MAX_LEN:
        raise ValidationError(
            f"Display name must be at most {DISPLAY_NAME_MAX_LEN} characters."
        )
    return display_name


def _validate_password(password: str) -> str:
    if not password or not password.strip():
        raise ValidationError("Password is required.")
    if len(password) < PASSWORD_MIN_LEN:
        raise ValidationError(
            f"Password must be at least {PASSWORD_MIN_LEN} characters."
        )
    if len(password) > PASSWORD_MAX_LEN:
        raise ValidationError(
            f"Password must be at most {PASSWORD_MAX_LEN} characters."
        )
    return password


class AccountStore:
    """
    Owns the user collection and is the only writer of the backing file.

    Mutations (register, login, update_profile) run under one lock covering
    the uniqueness check, the change and the snapshot taken for saving.
    The file write itself happens under a separate lock, so slow disk I/O
    does not block other mutations; an older snapshot never overwrites a
    newer one. Reads (list, search) use the current in-memory list.
    """

    def __init__(
        self,
        path: str | Path,
        *,
        bcrypt_rounds: int = BCRYPT_ROUNDS,
        online_window_seconds: float = DEFAULT_ONLINE_WINDOW_SECONDS,
        search_all_limit: int = DEFAULT_SEARCH_ALL_LIMIT,
        search_result_limit: int = DEFAULT_SEARCH_RESULT_LIMIT,
        avatar_max_length: int = DEFAULT_AVATAR_MAX_LENGTH,
        load: bool = True,
    ) -> None:
        self.path = Path(path)
        self.bcrypt_rounds = bcrypt_rounds
        self.online_window_seconds = online_window_seconds
        self.search_all_limit = search_all_limit
        self.search_result_limit = search_result_limit
        self.avatar_max_length = avatar_max_length

        self._users: list[UserRecord] = []
        self._lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._version = 0
        self._written_version = 0
        if load:
            self.reload()

    @classmethod
    def from_settings(cls, settings: "Settings") -> "AccountStore":
        """Build a store from application settings and load the backing file."""
        return cls(
            settings.ACCOUNTS_FILE,
            bcrypt_rounds=settings.BCRYPT_ROUNDS,
            online_window_seconds=settings.ONLINE_WINDOW_MINUTES * 60,
            search_all_limit=settings.SEARCH_ALL_LIMIT,
            search_result_limit=settings.SEARCH_RESULT_LIMIT,
            avatar_max_length=settings.AVATAR_MAX_LENGTH,
        )

    # -- persistence -------------------------------------------------------

    def reload(self) -> int:
        """
        Replace the in-memory collection with the contents of the backing file.

        A missing or unreadable file yields an empty collection that is written
        back immediately; an unreadable file is first moved aside. Never raises
        for I/O problems. Returns the number of users loaded.
        """
        try:
            users = self._read_file()
        except FileNotFoundError:
            logger.info("Accounts file %s not found; creating an empty one.", self.path)
            users = None
        except PersistenceError as e:
            logger.warning(
                "Accounts file %s is unreadable; starting with an empty collection.",
                self.path,
                extra={"reason": str(e.cause or e)[:500]},
            )
            self._move_aside()
            users = None

        with self._lock:
            self._users = users or []
            if users is None:
                snapshot = self._snapshot_locked()
            else:
                snapshot = None
                logger.info("Loaded %s users from %s", len(self._users), self.path)
        if snapshot is not None:
            self._write_snapshot(*snapshot)
        return len(users or [])

    def _read_file(self) -> list[UserRecord]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            raise
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Could not read {self.path}", cause=e) from e

        if not isinstance(data, dict) or not isinstance(data.get("users", []), list):
            raise PersistenceError(f'{self.path} must hold an object with a "users" array')

        users: list[UserRecord] = []
        seen: set[str] = set()
        for i, raw in enumerate(data.get("users") or []):
            try:
                record = UserRecord.model_validate(raw)
            except RecordValidationError as e:
                raise PersistenceError(
                    f"Invalid user record at index {i} in {self.path}", cause=e
                ) from e
            key = record.username.lower()
            if key in seen:
                logger.warning(
                    "Skipping user %s: username %r duplicates an earlier record.",
                    record.id,
                    record.username,
                )
                continue
            seen.add(key)
            users.append(record)
        return users

    def _move_aside(self) -> None:
        stamp = _utcnow().strftime("%Y%m%dT%H%M%SZ")
        backup = self.path.with_name(f"{self.path.name}.corrupt-{stamp}")
        try:
            os.replace(self.path, backup)
            logger.warning("Moved unreadable accounts file to %s", backup)
        except OSError as e:
            logger.error("Could not move aside %s: %s", self.path, e)

    def _snapshot_locked(self) -> tuple[int, str]:
        """Serialize the collection; caller must hold self._lock."""
        self._version += 1
        document = {"users": [u.to_document() for u in self._users]}
        return self._version, json.dumps(document, indent=2, ensure_ascii=False)

    def _write_snapshot(self, version: int, payload: str) -> bool:
        """Write a serialized snapshot unless a newer one is already on disk."""
        with self._write_lock:
            if version <= self._written_version:
                return True
            try:
                self._atomic_write(payload)
            except OSError as e:
                logger.error(
                    "Failed to save accounts file",
                    extra={"path": str(self.path), "version": version, "reason": str(e)[:500]},
                )
                return False
            self._written_version = version
            logger.debug("Saved accounts file %s (version %s)", self.path, version)
            return True

    def _atomic_write(self, payload: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.write("\n")
            os.replace(tmp_name, self.path)
        except OSError:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise

    def _commit(self, record: UserRecord, snapshot: tuple[int, str]) -> MutationResult:
        """Persist a snapshot taken under the lock and project the changed record."""
        public = self._to_public(record, _utcnow())
        if self._write_snapshot(*snapshot):
            return MutationResult(user=public)
        return MutationResult(user=public, persisted=False, warning=SAVE_FAILED_WARNING)

    # -- projections -------------------------------------------------------

    def _to_public(self, record: UserRecord, now: datetime) -> PublicUser:
        data = record.model_dump(exclude={"password_hash"})
        return PublicUser(**data, is_online=record.is_online(now, self.online_window_seconds))

    def _find_by_username(self, username: str) -> UserRecord | None:
        key = username.lower()
        for user in self._users:
            if user.username.lower() == key:
                return user
        return None

    def _find_by_id(self, user_id: str) -> UserRecord | None:
        for user in self._users:
            if user.id == user_id:
                return user
        return None

    # -- operations --------------------------------------------------------

    def register(self, display_name: str, username: str, password: str) -> MutationResult:
        """
        Create an account and return it without the password hash.

        Raises ValidationError for missing/short fields, ConflictError if the
        username is taken (case-insensitive).
        """
        display_name = _validate_display_name(display_name)
        username = _validate_username(username)
        password = _validate_password(password)

        with self._lock:
            taken = self._find_by_username(username) is not None
        if taken:
            raise ConflictError("This username is already taken.")

        # Hashing is slow; do it outside the lock and re-check uniqueness after.
        password_hash = hash_password(password, rounds=self.bcrypt_rounds)
        now = _utcnow()
        record = UserRecord(
            id=str(uuid.uuid4()),
            username=username,
            display_name=display_name,
            password_hash=password_hash,
            avatar=None,
            theme="dark",
            created_at=now,
            last_seen=now,
        )
        with self._lock:
            if self._find_by_username(username) is not None:
                raise ConflictError("This username is already taken.")
            self._users.append(record)
            snapshot = self._snapshot_locked()

        logger.info("Registered user %s (%s)", record.username, record.id)
        return self._commit(record, snapshot)

    def login(self, username: str, password: str) -> MutationResult:
        """
        Check credentials and refresh lastSeen.

        Raises ValidationError for empty input, NotFoundError for an unknown
        username, AuthError for a wrong password.
        """
        username = (username or "").strip()
        if not username or not password:
            raise ValidationError("Username and password are required.")

        with self._lock:
            user = self._find_by_username(username)
            stored_hash = user.password_hash if user is not None else ""
        if user is None:
            raise NotFoundError("User not found.")
        if not verify_password(password, stored_hash):
            logger.info("Failed login for %s", user.username)
            raise AuthError("Invalid password.")

        with self._lock:
            if self._find_by_id(user.id) is not user:
                raise NotFoundError("User not found.")
            user.last_seen = _utcnow()
            snapshot = self._snapshot_locked()

        logger.info("User %s logged in", user.username)
        return self._commit(user, snapshot)

    def get_user(self, user_id: str) -> PublicUser:
        """Return one user by id; raises NotFoundError if unknown."""
        user = self._find_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found.")
        return self._to_public(user, _utcnow())

    def count(self) -> int:
        return len(self._users)

    def list_users(self) -> list[PublicUser]:
        """All users, in registration order, each with a derived isOnline flag."""
        now = _utcnow()
        return [self._to_public(u, now) for u in list(self._users)]

    def search_users(self, query: str | None) -> list[PublicUser]:
        """
        Case-insensitive substring search over username and display name.

        An empty query returns everyone up to search_all_limit; matches for a
        non-empty query are capped at search_result_limit.
        """
        now = _utcnow()
        users = list(self._users)
        term = (query or "").strip().lower()
        if not term:
            return [self._to_public(u, now) for u in users[: self.search_all_limit]]

        results: list[PublicUser] = []
        for user in users:
            if term in user.username.lower() or term in user.display_name.lower():
                results.append(self._to_public(user, now))
                if len(results) >= self.search_result_limit:
                    break
        return results

    def update_profile(
        self,
        user_id: str,
        *,
        display_name: str | None = None,
        username: str | None = None,
        current_password: str | None = None,
        new_password: str | None = None,
        avatar: str | None = None,
    ) -> MutationResult:
        """
        Apply a partial profile update. All supplied fields are validated
        before any is applied, so a failed update leaves the record unchanged.

        Raises NotFoundError (unknown id), ConflictError (username taken by
        another account), AuthError (current password wrong) or
        ValidationError (bad new values).
        """
        with self._lock:
            user = self._find_by_id(user_id) if user_id else None
            if user is None:
                raise NotFoundError("User not found.")

            new_username = None
            if username and username.strip() and username.strip() != user.username:
                new_username = _validate_username(username)
                other = self._find_by_username(new_username)
                if other is not None and other.id != user.id:
                    raise ConflictError("This username is already taken.")

            new_hash = None
            if current_password and new_password:
                if not verify_password(current_password, user.password_hash):
                    raise AuthError("Current password is incorrect.")
                _validate_password(new_password)
                new_hash = hash_password(new_password, rounds=self.bcrypt_rounds)

            new_display_name = None
            if display_name is not None and display_name.strip():
                new_display_name = _validate_display_name(display_name)

            new_avatar = None
            if is_avatar_data(avatar):
                if len(avatar) > self.avatar_max_length:
                    raise ValidationError("Avatar image is too large.")
                new_avatar = avatar

            if new_username is not None:
                user.username = new_username
            if new_hash is not None:
                user.password_hash = new_hash
            if new_display_name is not None:
                user.display_name = new_display_name
            if new_avatar is not None:
                user.avatar = new_avatar
            user.updated_at = _utcnow()
            snapshot = self._snapshot_locked()

        logger.info(
            "Updated profile for %s",
            user.id,
            extra={
                "username_changed": new_username is not None,
                "password_changed": new_hash is not None,
                "avatar_changed": new_avatar is not None,
            },
        )
        return self._commit(user, snapshot)
