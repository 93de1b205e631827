"""Polling an HTTP endpoint until the dev stack answers.

Only the deadline ends polling; individual failures (refused connections,
non-2xx answers, per-request timeouts) are retried on a fixed interval. When
fatal log patterns are given, the captured dev stack output is checked before
every attempt and a match fails the wait immediately.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Sequence

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_delay, wait_fixed

from proofpack.core.exceptions import StartupFailure
from proofpack.core.log_buffer import LogBuffer

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 0.15
REQUEST_TIMEOUT_SECONDS = 1.0
HISTORY_SIZE = 10


class _NotReady(Exception):
    pass


@dataclass
class PollResult:
    ok: bool
    attempts: int
    elapsed_ms: int
    last_status: str = ""
    history: list[str] = field(default_factory=list)


class ReadinessPoller:
    """Waits for URLs to return a 2xx answer within a deadline."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        interval: float = POLL_INTERVAL_SECONDS,
        request_timeout: float = REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        self.client = client
        self.interval = interval
        self.request_timeout = request_timeout

    async def wait_for(
        self,
        name: str,
        url: str,
        timeout_ms: int,
        logs: LogBuffer | None = None,
        fatal_patterns: Sequence[str] = (),
        history: LogBuffer | None = None,
    ) -> PollResult:
        """Poll *url* until it answers 2xx or *timeout_ms* elapses.

        Returns a PollResult whose ``ok`` is False on deadline expiry.
        Raises StartupFailure as soon as a fatal pattern shows up in *logs*.
        """
        history = history if history is not None else LogBuffer(HISTORY_SIZE)
        start = time.monotonic()
        attempts = 0
        logger.info("Waiting for %s at %s (up to %dms)", name, url, timeout_ms)

        def elapsed_ms() -> int:
            return int((time.monotonic() - start) * 1000)

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_delay(timeout_ms / 1000),
                wait=wait_fixed(self.interval),
                retry=retry_if_exception_type(_NotReady),
                reraise=True,
            ):
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    self._check_fatal(name, logs, fatal_patterns)
                    await self._probe(url, history, elapsed_ms)
        except _NotReady:
            logger.warning("%s not ready within %dms (%d attempts)", name, timeout_ms, attempts)
            return PollResult(
                ok=False,
                attempts=attempts,
                elapsed_ms=elapsed_ms(),
                last_status=history.tail(1)[0] if len(history) else "",
                history=history.tail(),
            )

        logger.info("%s is ready after %dms", name, elapsed_ms())
        return PollResult(
            ok=True,
            attempts=attempts,
            elapsed_ms=elapsed_ms(),
            last_status=history.tail(1)[0],
            history=history.tail(),
        )

    def _check_fatal(self, name: str, logs: LogBuffer | None, patterns: Sequence[str]) -> None:
        if logs is None:
            return
        for pattern in patterns:
            line = logs.first_match(pattern)
            if line is not None:
                raise StartupFailure(f"{name} failed while starting: {line}", log_line=line)

    async def _probe(self, url: str, history: LogBuffer, elapsed_ms) -> None:
        try:
            response = await self.client.get(url, timeout=self.request_timeout)
        except httpx.HTTPError as e:
            history.append(f"+{elapsed_ms()}ms err {str(e) or type(e).__name__}")
            raise _NotReady() from e

        if not response.is_success:
            history.append(f"+{elapsed_ms()}ms status={response.status_code}")
            raise _NotReady()
        history.append(f"+{elapsed_ms()}ms ok status={response.status_code}")
