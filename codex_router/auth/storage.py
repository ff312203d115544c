import json
import logging
import os
import re
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import ValidationError

from codex_router import config
from .errors import AlreadyExists, InvalidName, MalformedProfile
from .files import write_private_json
from .models import CodexAuth, ProfileRecord, ProfileSummary

logger = logging.getLogger(__name__)

NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
PROFILE_EXTENSION = ".json"


def validate_name(name: str) -> None:
    """Profile names double as file names, so only [A-Za-z0-9_-] is allowed."""
    if not name:
        raise InvalidName("Account name cannot be empty")
    if not NAME_PATTERN.fullmatch(name):
        raise InvalidName(
            "Account name can only contain letters, numbers, hyphens, and underscores"
        )


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ProfileStorage:
    """Named credential snapshots, one JSON file per profile."""

    def __init__(self, home_dir: str = None):
        self.home_dir = config.get_home_dir(home_dir)
        self.profiles_dir = os.path.join(self.home_dir, ".codex-router", "accounts")

    def profile_path(self, name: str) -> str:
        return os.path.join(self.profiles_dir, f"{name}{PROFILE_EXTENSION}")

    def ensure_directory(self) -> None:
        os.makedirs(self.profiles_dir, exist_ok=True)

    def save(self, name: str, credentials: CodexAuth) -> ProfileRecord:
        """Create a new profile. Raises AlreadyExists instead of overwriting."""
        validate_name(name)
        self.ensure_directory()

        path = self.profile_path(name)
        if os.path.lexists(path):
            raise AlreadyExists(
                f"Account \"{name}\" already exists. Remove it first with `codex-router remove {name}`."
            )

        record = self._write(name, credentials)
        logger.info("Saved profile %s to %s", name, path)
        return record

    def upsert(self, name: str, credentials: CodexAuth) -> ProfileRecord:
        validate_name(name)
        self.ensure_directory()

        record = self._write(name, credentials)
        logger.info("Upserted profile %s", name)
        return record

    def load(self, name: str) -> Optional[ProfileRecord]:
        validate_name(name)
        path = self.profile_path(name)
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = f.read()
        except FileNotFoundError:
            logger.debug("No profile file at %s", path)
            return None

        return self._parse(raw, path)

    def list(self, active_access_token: Optional[str] = None) -> List[ProfileSummary]:
        """
        Summaries of every saved profile, sorted by name.

        A profile is marked active when its stored access token equals
        `active_access_token`. With no token given, nothing is active.
        """
        self.ensure_directory()

        results = []
        for file_name in os.listdir(self.profiles_dir):
            if not file_name.endswith(PROFILE_EXTENSION):
                continue

            path = os.path.join(self.profiles_dir, file_name)
            with open(path, "r", encoding="utf-8") as f:
                record = self._parse(f.read(), path)

            results.append(ProfileSummary(
                name=record.name,
                saved_at=record.saved_at,
                is_active=(
                    active_access_token is not None
                    and record.credentials.tokens.access_token == active_access_token
                ),
            ))

        return sorted(results, key=lambda s: s.name)

    def remove(self, name: str) -> bool:
        """Delete a profile. Returns False when there was nothing to delete."""
        validate_name(name)
        path = self.profile_path(name)
        try:
            os.remove(path)
        except FileNotFoundError:
            return False

        logger.info("Removed profile %s (%s)", name, path)
        return True

    def _write(self, name: str, credentials: CodexAuth) -> ProfileRecord:
        record = ProfileRecord(name=name, saved_at=_utc_now(), credentials=credentials)
        write_private_json(self.profile_path(name), record.to_json_dict())
        return record

    @staticmethod
    def _parse(raw: str, path: str) -> ProfileRecord:
        try:
            return ProfileRecord.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            raise MalformedProfile(f"Invalid account file \"{path}\": {e}") from e
