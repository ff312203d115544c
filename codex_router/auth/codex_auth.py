"""
Active credential file store.

Codex reads its credentials from ~/.codex/auth.json. This module is the only
place that touches that file: reads are validated, writes go through a
backup + temp file + atomic rename so a reader never sees half a file.
"""

import json
import logging
import os
import shutil
import stat
from typing import Optional

from pydantic import ValidationError

from codex_router import config
from .errors import MalformedCredentials, MissingHomeDirectoryStructure
from .files import PRIVATE_FILE_MODE, write_private_json
from .models import CodexAuth

logger = logging.getLogger(__name__)

CODEX_DIR_NAME = ".codex"
AUTH_FILE_NAME = "auth.json"


class CodexAuthStore:
    def __init__(self, home_dir: str = None):
        self.home_dir = config.get_home_dir(home_dir)
        self.codex_dir = os.path.join(self.home_dir, CODEX_DIR_NAME)

    def path(self) -> str:
        return os.path.join(self.codex_dir, AUTH_FILE_NAME)

    def backup_path(self) -> str:
        return self.path() + ".bak"

    def read(self) -> Optional[CodexAuth]:
        """Returns the active credentials, or None when auth.json does not exist."""
        path = self.path()
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = f.read()
        except FileNotFoundError:
            logger.debug("No credential file at %s", path)
            return None

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise MalformedCredentials(f"Invalid credential file \"{path}\": {e}") from e

        try:
            return CodexAuth.model_validate(data)
        except ValidationError as e:
            raise MalformedCredentials(
                f"Credential file \"{path}\" is missing required token fields"
            ) from e

    def backup(self) -> None:
        """Copy auth.json to auth.json.bak. Missing source is a no-op."""
        src = self.path()
        dst = self.backup_path()
        try:
            shutil.copy2(src, dst)
        except FileNotFoundError:
            if os.path.exists(src):
                raise
            logger.debug("Nothing to back up, %s does not exist", src)
            return
        os.chmod(dst, PRIVATE_FILE_MODE)
        logger.info("Backed up %s to %s", src, dst)

    def write(self, credentials: CodexAuth) -> None:
        self._ensure_codex_dir()
        self.backup()
        write_private_json(self.path(), credentials.to_json_dict())
        logger.info("Wrote credential file %s", self.path())

    def _ensure_codex_dir(self) -> None:
        try:
            st = os.stat(self.codex_dir)
        except (FileNotFoundError, NotADirectoryError) as e:
            raise MissingHomeDirectoryStructure(
                f"Missing {self.codex_dir} directory. Run `codex login` first."
            ) from e
        if not stat.S_ISDIR(st.st_mode):
            raise MissingHomeDirectoryStructure(
                f"{self.codex_dir} is not a directory. Run `codex login` first."
            )
