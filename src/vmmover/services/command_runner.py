"""Subprocess execution service for vmmover."""

import subprocess
import time
from typing import List, Optional

from vmmover.errors import MigrationError
from vmmover.errors_catalog import actionable_error


class CommandRunner:
    """Runs external commands with fail-fast error handling and optional retries."""

    def __init__(
        self,
        logger,
        default_timeout: Optional[float] = None,
        retry_count: int = 0,
        retry_backoff_seconds: float = 0.0,
    ):
        self.logger = logger
        self.default_timeout = default_timeout
        self.retry_count = retry_count
        self.retry_backoff_seconds = retry_backoff_seconds

    def run(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = True,
        timeout: Optional[float] = None,
        retry_count: Optional[int] = None,
    ) -> subprocess.CompletedProcess:
        cmd_str = " ".join(cmd)
        self.logger.debug("Executing: %s", cmd_str)

        effective_timeout = timeout if timeout is not None else self.default_timeout
        retries = self.retry_count if retry_count is None else retry_count
        max_attempts = max(1, retries + 1)

        for attempt in range(1, max_attempts + 1):
            try:
                result = subprocess.run(
                    cmd,
                    text=True,
                    capture_output=capture_output,
                    timeout=effective_timeout,
                )
            except FileNotFoundError as exc:
                raise MigrationError(actionable_error("az_not_found", command=cmd[0])) from exc
            except subprocess.TimeoutExpired as exc:
                if attempt < max_attempts:
                    self.logger.warning(
                        "Command timed out on attempt %s/%s. Retrying in %.1fs: %s",
                        attempt,
                        max_attempts,
                        self.retry_backoff_seconds,
                        cmd_str,
                    )
                    time.sleep(self.retry_backoff_seconds)
                    continue
                raise MigrationError(
                    f"Command timed out after {effective_timeout}s: {cmd_str}"
                ) from exc
            except OSError as exc:
                raise MigrationError(f"Failed to execute command: {cmd_str}. {exc}") from exc

            if capture_output and result.stdout:
                self.logger.debug("Command output: %s", result.stdout.strip())

            if result.returncode == 0:
                return result

            stderr = (result.stderr or "").strip() if capture_output else ""
            message = f"Command failed ({result.returncode}): {cmd_str}"
            if stderr:
                message = f"{message}\n{stderr}"

            if attempt < max_attempts:
                self.logger.warning(
                    "Command failed on attempt %s/%s and will be retried in %.1fs.\n%s",
                    attempt,
                    max_attempts,
                    self.retry_backoff_seconds,
                    message,
                )
                time.sleep(self.retry_backoff_seconds)
                continue

            if check:
                raise MigrationError(message)

            self.logger.warning(message)
            return result

        raise MigrationError(f"Command failed after retries: {cmd_str}")
