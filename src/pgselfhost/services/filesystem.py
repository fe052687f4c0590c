"""Filesystem helpers for pgselfhost."""

import logging
import os
import sys
from typing import Optional, Tuple

from rich.console import Console

from pgselfhost.errors import FileSystemError


class FileSystemService:
    """Encapsulates directory, permission and ownership side effects."""

    def __init__(self, logger: logging.Logger, console: Console, os_module=os):
        self.logger = logger
        self.console = console
        self.os = os_module
        self._ownership_warned = False

    def is_privileged(self) -> bool:
        if sys.platform == "win32":
            return False
        return self.os.geteuid() == 0

    def ensure_directory(self, path: str, mode: int, owner: Optional[Tuple[int, int]] = None):
        try:
            self.os.makedirs(path, exist_ok=True)
        except OSError as exc:
            raise FileSystemError(f"Could not create directory {path}: {exc}") from exc

        self.set_permissions(path, mode)
        if owner is not None:
            self.set_owner(path, owner)

    def set_permissions(self, path: str, mode: int):
        if sys.platform == "win32":
            return

        try:
            self.os.chmod(path, mode)
        except OSError as exc:
            raise FileSystemError(f"Could not set permissions on {path}: {exc}") from exc

    def set_owner(self, path: str, owner: Tuple[int, int]):
        if sys.platform == "win32":
            return

        if not self.is_privileged():
            if not self._ownership_warned:
                message = (
                    "Not running as root: skipping ownership changes for container volumes. "
                    "Run with sudo or chown the data directories manually."
                )
                self.console.print(f"[yellow]Warning:[/yellow] {message}")
                self.logger.warning(message)
                self._ownership_warned = True
            self.logger.debug("Skipped chown %s:%s on %s", owner[0], owner[1], path)
            return

        try:
            self.os.chown(path, owner[0], owner[1])
        except OSError as exc:
            raise FileSystemError(
                f"Could not change owner of {path} to {owner[0]}:{owner[1]}: {exc}"
            ) from exc
