"""Configuration loader for vmmover."""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from vmmover.errors import MigrationError


class ConfigLoader:
    """Loads YAML configuration files for CLI defaults."""

    DEFAULT_FILE_NAME = ".vmmover.yml"
    INTEGER_KEYS = {"copy_timeout_minutes", "retry_count"}
    NUMBER_KEYS = {
        "os_poll_interval_seconds",
        "data_poll_interval_seconds",
        "command_timeout_seconds",
        "retry_backoff_seconds",
    }
    FLAG_KEYS = {"verbose", "cleanup_on_failure", "dry_run"}
    TEXT_KEYS = {"log_file", "journal_file", "snapshot_sku"}
    SUPPORTED_KEYS = INTEGER_KEYS | NUMBER_KEYS | FLAG_KEYS | TEXT_KEYS
    NULLABLE_KEYS = {"log_file", "journal_file", "command_timeout_seconds"}

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise MigrationError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise MigrationError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise MigrationError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            unknown_list = ", ".join(unknown)
            raise MigrationError(f"Unknown configuration keys: {unknown_list}")

        for key, value in parsed.items():
            self._check_value(key, value)
        return parsed

    def _check_value(self, key: str, value: Any):
        if value is None and key in self.NULLABLE_KEYS:
            return
        # YAML booleans are ints in Python; keep them out of numeric keys.
        if key in self.INTEGER_KEYS:
            valid = isinstance(value, int) and not isinstance(value, bool)
            expected = "a whole number"
        elif key in self.NUMBER_KEYS:
            valid = isinstance(value, (int, float)) and not isinstance(value, bool)
            expected = "a number"
        elif key in self.FLAG_KEYS:
            valid = isinstance(value, bool)
            expected = "true or false"
        else:
            valid = isinstance(value, str) and bool(value.strip())
            expected = "a non-empty string"

        if not valid:
            raise MigrationError(f"Config key '{key}' must be {expected}, got {value!r}.")
        if key in self.INTEGER_KEYS | self.NUMBER_KEYS and value < 0:
            raise MigrationError(f"Config key '{key}' cannot be negative, got {value!r}.")
