"""Run manifest generation service."""

import json
import os
import tempfile
from datetime import datetime, timezone
from typing import Any, Dict, Optional


class ManifestService:
    """Collects execution metadata and writes run manifest JSON."""

    def __init__(self, manifest_file: str, logger):
        self.manifest_file = manifest_file
        self.logger = logger
        self.manifest: Dict[str, Any] = {
            "run_id": None,
            "status": "running",
            "started_at": None,
            "finished_at": None,
            "duration_seconds": None,
            "metadata": {},
            "output_count": None,
            "error_count": None,
            "error": None,
        }

    def start_run(self, run_id: str, metadata: Dict[str, Any]):
        self.manifest["run_id"] = run_id
        self.manifest["status"] = "running"
        self.manifest["started_at"] = self._now()
        self.manifest["metadata"] = metadata
        self.write()

    def set_counts(self, output_count: int, error_count: int):
        self.manifest["output_count"] = output_count
        self.manifest["error_count"] = error_count

    def finalize(self, status: str, error: Optional[str] = None):
        self.manifest["status"] = status
        self.manifest["finished_at"] = self._now()
        if self.manifest.get("started_at"):
            started_at = datetime.fromisoformat(self.manifest["started_at"])
            finished_at = datetime.fromisoformat(self.manifest["finished_at"])
            self.manifest["duration_seconds"] = (finished_at - started_at).total_seconds()
        self.manifest["error"] = error
        self.write()

    def write(self):
        directory = os.path.dirname(self.manifest_file) or "."
        os.makedirs(directory, exist_ok=True)

        fd, temp_path = tempfile.mkstemp(prefix="run-manifest-", suffix=".json", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as file_obj:
                json.dump(self.manifest, file_obj, indent=2, sort_keys=True, default=str)
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
