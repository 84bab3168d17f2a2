"""Profile persistence (JSON + fcntl.flock + atomic write + revision check)."""

import fcntl
import json
import os
import re
import tempfile
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import NamedTuple

import structlog
from pydantic import ValidationError

from study_progression.models.profile import Profile
from study_progression.progression.errors import InvalidProfileState, ProgressionError

logger = structlog.get_logger()

_USER_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


class StaleProfileError(ProgressionError):
    """The stored revision moved on since the profile was loaded."""

    def __init__(self, user_id: str, expected: int, actual: int):
        super().__init__(
            f"Profile {user_id!r} is at revision {actual}, expected {expected}"
        )
        self.user_id = user_id
        self.expected = expected
        self.actual = actual


class StoredProfile(NamedTuple):
    profile: Profile
    revision: int


def validate_user_id(user_id: str) -> str:
    if not _USER_ID_RE.match(user_id):
        raise ValueError(f"Invalid user ID format: {user_id!r}")
    return user_id


class ProfileStore:
    """One JSON file per user, written atomically.

    Every record carries a revision number. `save` only succeeds when the
    caller's expected revision matches the one on disk, so two concurrent
    read-modify-write cycles cannot silently overwrite each other.
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def get_profile_path(self, user_id: str) -> Path:
        return self.directory / f"{validate_user_id(user_id)}.json"

    @contextmanager
    def _locked(self, user_id: str, mode: int):
        lock_path = self.directory / f"{validate_user_id(user_id)}.json.lock"
        with open(lock_path, "w") as lock_file:
            fcntl.flock(lock_file, mode)
            try:
                yield
            finally:
                fcntl.flock(lock_file, fcntl.LOCK_UN)

    def _read(self, user_id: str) -> StoredProfile | None:
        path = self.get_profile_path(user_id)
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text())
            profile = Profile.model_validate(data["profile"])
            revision = int(data.get("revision", 0))
        except (json.JSONDecodeError, ValidationError, KeyError, TypeError, ValueError) as e:
            raise InvalidProfileState(f"Stored profile {user_id!r} is malformed") from e
        if profile.user_id != user_id:
            raise InvalidProfileState(
                f"Stored profile {user_id!r} belongs to {profile.user_id!r}"
            )
        return StoredProfile(profile, revision)

    def load(self, user_id: str) -> StoredProfile:
        """Load a profile; unknown users get a fresh signup record at revision 0."""
        with self._locked(user_id, fcntl.LOCK_SH):
            stored = self._read(user_id)
        if stored is None:
            return StoredProfile(Profile.new(user_id), 0)
        return stored

    def save(self, profile: Profile, expected_revision: int) -> int:
        """Write `profile` if the stored revision still equals `expected_revision`.

        Returns:
            The new revision.

        Raises:
            StaleProfileError: Someone else saved in between.
        """
        user_id = profile.user_id
        path = self.get_profile_path(user_id)
        with self._locked(user_id, fcntl.LOCK_EX):
            current = self._read(user_id)
            actual = current.revision if current is not None else 0
            if actual != expected_revision:
                raise StaleProfileError(user_id, expected_revision, actual)

            revision = actual + 1
            record = {
                "revision": revision,
                "saved_at": datetime.now().isoformat(),
                "profile": profile.model_dump(mode="json"),
            }
            with tempfile.NamedTemporaryFile(
                "w", dir=self.directory, delete=False, suffix=".json"
            ) as tmp:
                json.dump(record, tmp, indent=2)
            os.replace(tmp.name, path)

        logger.debug("profile_saved", user_id=user_id, revision=revision)
        return revision
