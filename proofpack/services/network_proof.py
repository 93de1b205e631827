"""Browser-driven proof that the frontend talks to the real backend.

A headless Chromium visits the frontend with a request listener attached
before the first navigation. Afterwards at least one intercepted request must
target the backend origin; a frontend that renders from a local mock or
fallback data path produces none and fails the check.
"""

import asyncio
import logging
from typing import Any, Callable, Sequence

from playwright.async_api import async_playwright

from proofpack.core.exceptions import ContractViolation
from proofpack.core.timeouts import with_timeout
from proofpack.models.contract import NetworkProofResult, PageTraffic

logger = logging.getLogger(__name__)

BROWSER_CLOSE_TIMEOUT_SECONDS = 5.0
_CONSOLE_TYPES = {"error", "warning"}


def targets_origin(url: str, origin: str) -> bool:
    origin = origin.rstrip("/")
    return url == origin or url.startswith((f"{origin}/", f"{origin}?", f"{origin}#"))


def check_network_proof(backend_origin: str, requests: Sequence[str]) -> NetworkProofResult:
    """Require at least one request to *backend_origin*.

    Raises ContractViolation listing every observed request otherwise.
    """
    matched = [url for url in requests if targets_origin(url, backend_origin)]
    if not matched:
        lines = [
            f"PROOF FAIL: No frontend network requests hit backend origin: {backend_origin}",
            "Observed requests:",
            *(f"  - {url}" for url in requests),
        ]
        raise ContractViolation("\n".join(lines))
    return NetworkProofResult(
        backend_origin=backend_origin,
        matched=matched,
        all_intercepted=list(requests),
    )


class BrowserProbe:
    """Visits frontend routes in a headless browser and records its traffic."""

    def __init__(
        self,
        launch_timeout_ms: int = 30_000,
        route_timeout_ms: int = 30_000,
        settle_ms: int = 1_500,
        playwright_factory: Callable[[], Any] = async_playwright,
    ) -> None:
        self.launch_timeout_ms = launch_timeout_ms
        self.route_timeout_ms = route_timeout_ms
        self.settle_ms = settle_ms
        self.playwright_factory = playwright_factory

    async def collect(self, base_url: str, routes: Sequence[str], traffic: PageTraffic | None = None) -> PageTraffic:
        """Navigate every route and return what the page did.

        Pass *traffic* to keep observations reachable if the caller abandons
        this coroutine on a deadline.
        """
        traffic = traffic if traffic is not None else PageTraffic()

        async with self.playwright_factory() as pw:
            browser = await with_timeout(
                "playwrightLaunch", self.launch_timeout_ms, lambda: pw.chromium.launch()
            )
            try:
                page = await browser.new_page()
                self._attach(page, traffic)

                for route in routes:
                    url = f"{base_url}{route}"
                    await with_timeout(
                        f"route:{route}",
                        self.route_timeout_ms,
                        lambda url=url: page.goto(
                            url, wait_until="domcontentloaded", timeout=self.route_timeout_ms
                        ),
                    )
                    traffic.routes_visited.append(route)
                    logger.info("Visited %s (%d requests so far)", url, len(traffic.requests))
                    await asyncio.sleep(self.settle_ms / 1000)
            finally:
                await self._close(browser)

        return traffic

    def _attach(self, page: Any, traffic: PageTraffic) -> None:
        def on_console(msg: Any) -> None:
            if msg.type in _CONSOLE_TYPES:
                traffic.console_messages.append(msg.text)

        page.on("console", on_console)
        page.on("pageerror", lambda err: traffic.page_errors.append(str(err)))
        page.on("request", lambda req: traffic.requests.append(req.url))

    async def _close(self, browser: Any) -> None:
        try:
            await asyncio.wait_for(browser.close(), timeout=BROWSER_CLOSE_TIMEOUT_SECONDS)
        except Exception as e:
            logger.debug("Ignoring browser close error: %s", e)
