"""Backend contract verifier: health endpoint, then the auth identity shape."""

import httpx

from proofpack.config import BACKEND_CONTRACT_OVERALL_MS
from proofpack.core.process_supervisor import ProcessHandle
from proofpack.core.timeouts import with_timeout
from proofpack.services.contract_verifier import check_auth_contract
from proofpack.verifiers.base import Verifier

OK_LINE = "OK verify-backend-contract"


class BackendContractVerifier(Verifier):
    name = "backend-contract"
    default_overall_ms = BACKEND_CONTRACT_OVERALL_MS

    async def run_phases(self, client: httpx.AsyncClient, handle: ProcessHandle) -> str:
        config = self.config
        await self.wait_ready(
            "backendHealth", "backend", config.health_url, config.backend_health_timeout_ms, client
        )
        await with_timeout(
            "auth",
            config.auth_timeout_ms,
            lambda: check_auth_contract(client, config.auth_url, config.auth_endpoint),
        )
        return OK_LINE
