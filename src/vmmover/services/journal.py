"""Run journal: a JSON record of stages, steps and created resources."""

import json
import os
import tempfile
from datetime import datetime, timezone
from typing import Any, Dict, Optional


class RunJournal:
    """Collects execution metadata and writes it to a JSON file after every change."""

    def __init__(self, journal_file: str, logger):
        self.journal_file = journal_file
        self.logger = logger
        self.journal: Dict[str, Any] = {
            "run_id": None,
            "status": "running",
            "stage": None,
            "started_at": None,
            "finished_at": None,
            "duration_seconds": None,
            "inputs": {},
            "steps": [],
            "resources": [],
            "error": None,
        }

    def start_run(self, run_id: str, inputs: Dict[str, Any]):
        self.journal["run_id"] = run_id
        self.journal["status"] = "running"
        self.journal["started_at"] = self._now()
        self.journal["inputs"] = inputs
        self.write()

    def set_stage(self, stage: str):
        self.journal["stage"] = stage
        self.write()

    def step_started(self, step_name: str):
        self.journal["steps"].append(
            {
                "name": step_name,
                "status": "running",
                "started_at": self._now(),
                "finished_at": None,
                "duration_seconds": None,
                "error": None,
            }
        )
        self.write()

    def step_finished(self, step_name: str, status: str, error: Optional[str] = None):
        for step in reversed(self.journal["steps"]):
            if step["name"] == step_name and step["status"] == "running":
                step["status"] = status
                step["finished_at"] = self._now()
                step["error"] = error
                step["duration_seconds"] = self._elapsed(step["started_at"], step["finished_at"])
                break
        self.write()

    def add_resource(self, kind: str, resource_id: str):
        self.journal["resources"].append(
            {"kind": kind, "id": resource_id, "created_at": self._now()}
        )
        self.write()

    def finalize(self, status: str, error: Optional[str] = None):
        self.journal["status"] = status
        self.journal["finished_at"] = self._now()
        if self.journal.get("started_at"):
            self.journal["duration_seconds"] = self._elapsed(
                self.journal["started_at"],
                self.journal["finished_at"],
            )
        self.journal["error"] = error
        self.write()

    def write(self):
        """Replace the journal file atomically. Failures are logged, never raised."""
        directory = os.path.dirname(self.journal_file) or "."
        temp_path = None
        try:
            os.makedirs(directory, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(prefix="run-journal-", suffix=".json", dir=directory)
            with os.fdopen(fd, "w", encoding="utf-8") as file_obj:
                json.dump(self.journal, file_obj, indent=2, sort_keys=True)
                file_obj.write("\n")
            os.replace(temp_path, self.journal_file)
        except OSError as exc:
            self.logger.warning("Could not write journal file '%s': %s", self.journal_file, exc)
            if temp_path is not None:
                try:
                    os.remove(temp_path)
                except OSError:
                    pass

    @staticmethod
    def _elapsed(started_at: str, finished_at: str) -> float:
        return (datetime.fromisoformat(finished_at) - datetime.fromisoformat(started_at)).total_seconds()

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()
