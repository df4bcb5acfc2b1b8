"""Bounded polling for long-running Azure operations."""

import time
from typing import Any, Callable, Optional

from vmmover.errors import PollTimeoutError


class Poller:
    """Calls a probe at a fixed interval until it reports completion.

    Gives up with PollTimeoutError once `timeout_seconds` elapse or, when set,
    after `max_attempts` probes.
    """

    def __init__(
        self,
        logger,
        interval_seconds: float,
        timeout_seconds: float,
        max_attempts: Optional[int] = None,
    ):
        self.logger = logger
        self.interval_seconds = interval_seconds
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max_attempts

    def wait_until(
        self,
        probe: Callable[[], Any],
        is_done: Callable[[Any], bool],
        description: str,
        on_pending: Optional[Callable[[Any], None]] = None,
    ) -> Any:
        deadline = time.monotonic() + self.timeout_seconds
        attempt = 0

        while True:
            attempt += 1
            value = probe()
            if is_done(value):
                self.logger.debug("%s finished after %s probe(s).", description, attempt)
                return value

            if on_pending is not None:
                on_pending(value)

            if self.max_attempts is not None and attempt >= self.max_attempts:
                raise PollTimeoutError(
                    f"{description} did not finish after {attempt} attempts."
                )
            if time.monotonic() + self.interval_seconds > deadline:
                raise PollTimeoutError(
                    f"{description} did not finish within {self.timeout_seconds:.0f}s."
                )

            time.sleep(self.interval_seconds)
