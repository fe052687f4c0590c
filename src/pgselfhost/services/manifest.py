"""Run manifest generation service."""

import json
import os
import tempfile
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


class ManifestService:
    """Collects run metadata and writes the provisioning manifest JSON.

    The manifest never carries secrets: only paths, modes and run status.
    """

    def __init__(self, manifest_file: str, logger):
        self.manifest_file = manifest_file
        self.logger = logger
        self.manifest: Dict[str, Any] = {
            "run_id": None,
            "status": "running",
            "started_at": None,
            "finished_at": None,
            "duration_seconds": None,
            "parameters": {},
            "artifacts": [],
            "failed_artifact": None,
            "error": None,
        }

    def start_run(self, run_id: str, parameters: Dict[str, Any]):
        self.manifest["run_id"] = run_id
        self.manifest["status"] = "running"
        self.manifest["started_at"] = self._now()
        self.manifest["parameters"] = parameters

    def add_artifacts(self, artifacts: List[Dict[str, Any]]):
        self.manifest["artifacts"].extend(artifacts)

    def finalize(
        self,
        status: str,
        error: Optional[str] = None,
        failed_artifact: Optional[str] = None,
    ):
        self.manifest["status"] = status
        self.manifest["finished_at"] = self._now()
        if self.manifest.get("started_at"):
            started_at = datetime.fromisoformat(self.manifest["started_at"])
            finished_at = datetime.fromisoformat(self.manifest["finished_at"])
            self.manifest["duration_seconds"] = (finished_at - started_at).total_seconds()
        self.manifest["error"] = error
        self.manifest["failed_artifact"] = failed_artifact
        self.write()

    def write(self):
        directory = os.path.dirname(self.manifest_file) or "."
        if not os.path.isdir(directory):
            self.logger.warning("Manifest directory %s does not exist; skipping manifest.", directory)
            return

        try:
            fd, temp_path = tempfile.mkstemp(prefix=".provision-manifest-", suffix=".json", dir=directory)
        except OSError as exc:
            self.logger.warning("Could not write manifest file '%s': %s", self.manifest_file, exc)
            return

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as file_obj:
                json.dump(self.manifest, file_obj, indent=2, sort_keys=True)
                file_obj.write("\n")
            os.replace(temp_path, self.manifest_file)
        except OSError as exc:
            self.logger.warning("Could not write manifest file '%s': %s", self.manifest_file, exc)
            try:
                os.remove(temp_path)
            except OSError:
                pass

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()
