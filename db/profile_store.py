"""
JSON-file persistence for the profile snapshot.

Writes go to a staging file next to the live one and are swapped in with
os.replace, so the live file is never left half-written.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from implementation.classes.schemas import ProfileSnapshot

logger = logging.getLogger(__name__)

_DEFAULT_PROFILE_PATH = "profile.json"
_STAGING_SUFFIX = ".next"


def default_profile_path() -> Path:
    return Path(os.getenv("PROFILE_PATH", _DEFAULT_PROFILE_PATH))


class ProfileStore:
    """Load and save a ProfileSnapshot as a single JSON document."""

    def __init__(self, path: Optional[Path | str] = None):
        self.path = Path(path) if path is not None else default_profile_path()

    @property
    def staging_path(self) -> Path:
        return self.path.with_name(self.path.name + _STAGING_SUFFIX)

    def read(self) -> ProfileSnapshot:
        """
        Load the stored snapshot.

        A missing file yields an empty profile. An unreadable or invalid file
        is logged and also yields an empty profile, leaving the file in place.
        Legacy documents (bare profile without a version, camelCase keys, a
        single `tags` list) are migrated by the model validators.
        """
        if not self.path.exists():
            logger.info("No stored profile at %s, starting empty", self.path)
            return ProfileSnapshot()

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Could not read profile at %s: %s", self.path, exc)
            return ProfileSnapshot()

        if isinstance(raw, dict) and "profile" not in raw:
            raw = {"version": 0, "profile": raw}

        try:
            return ProfileSnapshot.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Stored profile at %s is invalid: %s", self.path, exc)
            return ProfileSnapshot()

    def write(self, snapshot: ProfileSnapshot) -> None:
        """Write staging file, then atomically replace the live file with it."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = snapshot.model_dump_json(indent=2)
        self.staging_path.write_text(payload, encoding="utf-8")
        os.replace(self.staging_path, self.path)

    def check(self) -> str:
        """Return 'ok' if the profile directory is writable, else an error message string."""
        directory = self.path.parent if str(self.path.parent) else Path(".")
        if not directory.exists():
            return f"profile directory {directory} does not exist"
        if not os.access(directory, os.W_OK):
            return f"profile directory {directory} is not writable"
        return "ok"
