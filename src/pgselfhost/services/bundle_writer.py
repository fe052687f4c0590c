"""Atomic persistence of rendered artifacts for pgselfhost."""

import os
import tempfile
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from pgselfhost.constants import BUNDLE_DIRECTORIES, DIR_MODE
from pgselfhost.errors import FileSystemError
from pgselfhost.errors_catalog import actionable_error
from pgselfhost.models import Artifact


@dataclass
class WriteReport:
    """Paths written by one BundleWriter.write call."""

    directory: str
    written: List[str] = field(default_factory=list)


def artifact_path(directory: str, artifact: Artifact) -> str:
    return os.path.join(directory, *artifact.relative_path.split("/"))


class BundleWriter:
    """Creates the install tree and swaps each artifact into place atomically.

    Every artifact is written to a private temporary file next to its target,
    given its mode and owner, flushed to disk and then renamed over the target.
    A failure stops the remaining writes and removes the temporary file, so
    the target name never holds partial content.
    """

    def __init__(
        self,
        filesystem_service,
        logger,
        directories: Optional[Dict[str, Optional[Tuple[int, int]]]] = None,
    ):
        self.filesystem = filesystem_service
        self.logger = logger
        self.directories = BUNDLE_DIRECTORIES if directories is None else directories

    def prepare_tree(self, directory: str):
        self.filesystem.ensure_directory(directory, DIR_MODE)
        for name, owner in self.directories.items():
            self.filesystem.ensure_directory(os.path.join(directory, name), DIR_MODE, owner)

    def write(self, artifacts: Sequence[Artifact], directory: str) -> WriteReport:
        report = WriteReport(directory=directory)
        self.prepare_tree(directory)

        for artifact in artifacts:
            try:
                self.write_artifact(artifact, directory)
            except (OSError, FileSystemError) as exc:
                self.logger.error(
                    "Stopped after %s of %s artifacts; %s failed.",
                    len(report.written),
                    len(artifacts),
                    artifact.relative_path,
                )
                raise FileSystemError(
                    actionable_error(
                        "artifact_write_failed",
                        artifact=artifact.relative_path,
                        reason=str(exc),
                    ),
                    artifact=artifact.relative_path,
                    completed=report.written,
                ) from exc
            report.written.append(artifact.relative_path)
            self.logger.info("Wrote %s", artifact.relative_path)

        return report

    def write_artifact(self, artifact: Artifact, directory: str) -> str:
        target = artifact_path(directory, artifact)
        parent = os.path.dirname(target)
        if not os.path.isdir(parent):
            self.filesystem.ensure_directory(parent, DIR_MODE)

        # mkstemp creates the file 0600, so secrets are never world readable.
        fd, temp_path = tempfile.mkstemp(
            prefix=f".{os.path.basename(target)}.", suffix=".tmp", dir=parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as file_obj:
                file_obj.write(artifact.content)
                file_obj.flush()
                os.fsync(file_obj.fileno())
            self.filesystem.set_permissions(temp_path, artifact.mode)
            if artifact.owner is not None:
                self.filesystem.set_owner(temp_path, artifact.owner)
            os.replace(temp_path, target)
        finally:
            if os.path.exists(temp_path):
                os.remove(temp_path)

        return target
