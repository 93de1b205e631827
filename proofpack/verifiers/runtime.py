"""Runtime verifier: full stack up, then browser proof of backend traffic."""

import logging

import httpx

from proofpack.config import RUNTIME_OVERALL_MS
from proofpack.core.process_supervisor import ProcessHandle
from proofpack.core.timeouts import with_timeout
from proofpack.models.contract import PageTraffic, RuntimeReport
from proofpack.services.contract_verifier import require_dev_data
from proofpack.services.network_proof import BrowserProbe, check_network_proof
from proofpack.verifiers.base import Verifier

logger = logging.getLogger(__name__)

CONSOLE_LINES_REPORTED = 20


class RuntimeVerifier(Verifier):
    name = "runtime"
    default_overall_ms = RUNTIME_OVERALL_MS

    def __init__(self, config, browser_probe: BrowserProbe | None = None, **kwargs) -> None:
        super().__init__(config, **kwargs)
        self.browser_probe = browser_probe or BrowserProbe(
            launch_timeout_ms=config.browser_launch_timeout_ms,
            route_timeout_ms=config.route_timeout_ms,
            settle_ms=config.settle_ms,
        )
        self.traffic = PageTraffic()

    def preflight(self) -> None:
        self.config.require_frontend_port()

    def ports(self) -> list[tuple[str, int]]:
        return [
            ("backend", self.config.backend_port),
            ("frontend", self.config.require_frontend_port()),
        ]

    def watch_patterns(self) -> tuple[str, ...]:
        return tuple(self.config.frontend_fatal_patterns)

    async def run_phases(self, client: httpx.AsyncClient, handle: ProcessHandle) -> str:
        config = self.config

        await self.wait_ready(
            "backendHealth", "backend", config.health_url, config.backend_health_timeout_ms, client
        )
        await with_timeout(
            "requireDevData",
            config.dev_data_timeout_ms,
            lambda: require_dev_data(client, config.auth_url, config.bootstrap_command),
        )
        await self.wait_ready(
            "frontendReady",
            "frontend",
            f"{config.frontend_base}/",
            config.frontend_ready_timeout_ms,
            client,
            logs=handle.logs,
            fatal_patterns=config.frontend_fatal_patterns,
            history=self.poll_history,
        )

        traffic = await self.browser_probe.collect(config.frontend_base, config.routes, self.traffic)
        proof = check_network_proof(config.backend_base, traffic.requests)
        logger.info("Network proof: %d of %d requests hit %s",
                    len(proof.matched), len(proof.all_intercepted), proof.backend_origin)

        report = RuntimeReport(
            base=config.frontend_base,
            routes_visited=traffic.routes_visited,
            console_warnings_or_errors_first20=traffic.console_messages[:CONSOLE_LINES_REPORTED],
            page_errors=traffic.page_errors,
            network_proof=proof,
        )
        return report.to_json()
