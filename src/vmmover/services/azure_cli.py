"""Thin Azure CLI wrapper used by every migration stage."""

import json
import subprocess
from typing import Any, List

from vmmover.errors import MigrationError, ResourceNotFound


class AzureCli:
    """Invokes `az` through the command runner and decodes its output."""

    EXECUTABLE = "az"
    NOT_FOUND_MARKERS = ("ResourceNotFound", "NotFound", "was not found")

    def __init__(self, command_runner, logger):
        self.command_runner = command_runner
        self.logger = logger

    def version(self) -> str:
        result = self.invoke(["--version"])
        first_line = (result.stdout or "").strip().splitlines()
        return first_line[0] if first_line else ""

    def invoke(self, args: List[str], check: bool = True) -> subprocess.CompletedProcess:
        try:
            return self.command_runner.run([self.EXECUTABLE] + list(args), check=check)
        except ResourceNotFound:
            raise
        except MigrationError as exc:
            if any(marker in str(exc) for marker in self.NOT_FOUND_MARKERS):
                raise ResourceNotFound(str(exc)) from exc
            raise

    def json(self, args: List[str]) -> Any:
        result = self.invoke(list(args) + ["--output", "json"])
        output = self._clean(result.stdout)
        if not output:
            return None

        try:
            return json.loads(output)
        except json.JSONDecodeError as exc:
            raise MigrationError(
                f"Could not parse Azure CLI output for `az {' '.join(args)}`: {exc}"
            ) from exc

    def tsv(self, args: List[str]) -> str:
        result = self.invoke(list(args) + ["--output", "tsv"])
        return self._clean(result.stdout)

    @staticmethod
    def _clean(output: str) -> str:
        return (output or "").replace("\r", "").strip()
