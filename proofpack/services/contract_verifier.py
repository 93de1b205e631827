"""HTTP-level contract checks against the running backend."""

import json
import logging

import httpx

from proofpack.core.exceptions import ContractViolation, MissingDevData
from proofpack.models.contract import AuthCheckResult

logger = logging.getLogger(__name__)

AUTH_REQUEST_TIMEOUT_SECONDS = 2.0


def parse_identity(endpoint: str, text: str) -> AuthCheckResult:
    """Validate an auth response body as an identity object with a string id.

    Raises ContractViolation describing the first broken expectation.
    """
    try:
        parsed = json.loads(text) if text else None
    except ValueError:
        raise ContractViolation(f"GET {endpoint} did not return valid JSON")

    if not isinstance(parsed, dict):
        raise ContractViolation(f"GET {endpoint} expected JSON object")

    user_id = parsed.get("id")
    has_id = isinstance(user_id, str) and len(user_id) > 0
    if not has_id:
        raise ContractViolation(f"GET {endpoint} expected string field 'id'")

    return AuthCheckResult(identity=parsed, has_id=has_id)


async def check_auth_contract(
    client: httpx.AsyncClient,
    url: str,
    endpoint: str,
    timeout: float = AUTH_REQUEST_TIMEOUT_SECONDS,
) -> AuthCheckResult:
    """GET the auth endpoint and require a JSON identity with a non-empty id."""
    try:
        response = await client.get(url, timeout=timeout)
    except httpx.HTTPError as e:
        raise ContractViolation(f"GET {endpoint} failed: {str(e) or type(e).__name__}") from e

    text = response.text
    if not response.is_success:
        raise ContractViolation(
            f"GET {endpoint} failed: {response.status_code} {text or response.reason_phrase}"
        )

    result = parse_identity(endpoint, text)
    logger.info("Auth contract satisfied for id=%s", result.user_id)
    return result


async def require_dev_data(
    client: httpx.AsyncClient,
    url: str,
    bootstrap_command: str,
    timeout: float = AUTH_REQUEST_TIMEOUT_SECONDS,
) -> None:
    """Treat an unanswered auth endpoint as a database that was never bootstrapped."""
    try:
        response = await client.get(url, timeout=timeout)
        if response.is_success:
            return
        logger.info("Auth endpoint answered %d, assuming missing dev data", response.status_code)
    except httpx.HTTPError as e:
        logger.info("Auth endpoint unreachable (%s), assuming missing dev data", e)
    raise MissingDevData(bootstrap_command)
