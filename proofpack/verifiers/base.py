"""Lifecycle shared by the verifiers.

A run goes: dev-data precondition, port probes, spawn, then the verifier's
phases inside the overall deadline. The spawned process tree is torn down in
a ``finally`` block on every path, including cancellation.
"""

import logging
from typing import Callable, Sequence

import httpx

from proofpack.config import RunConfig
from proofpack.core.exceptions import PhaseTimeout
from proofpack.core.log_buffer import LogBuffer
from proofpack.core.port_probe import assert_port_free, is_port_in_use
from proofpack.core.process_supervisor import ProcessHandle, ProcessSupervisor
from proofpack.core.timeouts import with_timeout
from proofpack.models.outcome import Outcome
from proofpack.services.readiness import HISTORY_SIZE, ReadinessPoller
from proofpack.services.reporter import Reporter, classify

logger = logging.getLogger(__name__)


class Verifier:
    """Base class: subclasses set ``name`` and implement ``run_phases``."""

    name = ""
    default_overall_ms = 90_000

    def __init__(
        self,
        config: RunConfig,
        supervisor: ProcessSupervisor | None = None,
        client: httpx.AsyncClient | None = None,
        reporter: Reporter | None = None,
        poller_factory: Callable[[httpx.AsyncClient], ReadinessPoller] = ReadinessPoller,
    ) -> None:
        self.config = config
        self.supervisor = supervisor or ProcessSupervisor(
            shell=config.shell,
            grace_seconds=config.terminate_grace_ms / 1000,
            log_capacity=config.log_tail_lines,
        )
        self.reporter = reporter or Reporter(self.name, tail_lines=config.log_tail_lines)
        self.poller_factory = poller_factory
        self.handle: ProcessHandle | None = None
        self.poll_history = LogBuffer(HISTORY_SIZE)
        self._client = client

    @property
    def overall_timeout_ms(self) -> int:
        return self.config.overall_timeout_ms or self.default_overall_ms

    def ports(self) -> list[tuple[str, int]]:
        return [("backend", self.config.backend_port)]

    def watch_patterns(self) -> tuple[str, ...]:
        return ()

    def preflight(self) -> None:
        """Validate verifier-specific inputs before any side effect."""

    async def run_phases(self, client: httpx.AsyncClient, handle: ProcessHandle) -> str:
        raise NotImplementedError

    async def run(self) -> Outcome:
        """Execute one bounded run and return its classified outcome."""
        client = self._client or httpx.AsyncClient(trust_env=False)
        try:
            self.preflight()
            if not self.config.has_dev_data():
                logger.info("No dev data at %s", self.config.resolved_db_path())
                return Outcome.missing_dev_data(self.config.bootstrap_command)

            for label, port in self.ports():
                await assert_port_free(self.config.host, port, label, self.config.port_probe_timeout_ms)

            self.handle = await self.supervisor.spawn(
                self.config.dev_command,
                env=self.config.child_env(),
                watch=self.watch_patterns(),
            )
            handle = self.handle
            payload = await with_timeout(
                "overall", self.overall_timeout_ms, lambda: self.run_phases(client, handle)
            )
            return Outcome.success(payload)
        except Exception as exc:
            return classify(exc)
        finally:
            await self.teardown()
            if self._client is None:
                await client.aclose()

    async def teardown(self) -> None:
        if self.handle is None:
            return
        await self.handle.terminate()
        for label, port in self.ports():
            try:
                if await is_port_in_use(self.config.host, port, self.config.port_probe_timeout_ms):
                    logger.warning(
                        "port:%s still in use after teardown (%s:%d)", label, self.config.host, port
                    )
            except Exception as e:
                logger.debug("Post-teardown probe of port %d failed: %s", port, e)

    @property
    def dev_logs(self) -> list[str]:
        return self.handle.logs.tail() if self.handle is not None else []

    async def execute(self) -> int:
        """Run, report, and return the exit code."""
        outcome = await self.run()
        return self.report(outcome)

    def report(self, outcome: Outcome) -> int:
        return self.reporter.report(outcome, self.dev_logs, self.poll_history.tail())

    async def wait_ready(
        self,
        label: str,
        name: str,
        url: str,
        timeout_ms: int,
        client: httpx.AsyncClient,
        logs: LogBuffer | None = None,
        fatal_patterns: Sequence[str] = (),
        history: LogBuffer | None = None,
    ) -> None:
        """Poll *url* under phase *label*; deadline expiry raises PhaseTimeout."""
        poller = self.poller_factory(client)

        async def wait() -> None:
            result = await poller.wait_for(
                name, url, timeout_ms, logs=logs, fatal_patterns=fatal_patterns, history=history
            )
            if not result.ok:
                raise PhaseTimeout(label, timeout_ms)

        await with_timeout(label, timeout_ms, wait)
