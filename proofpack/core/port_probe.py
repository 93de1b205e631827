"""TCP port availability probe.

A connect attempt decides: refused or unreachable means free, an accepted
connection means something is listening, and running out of time counts as
free so a slow network stack never blocks a run on a false positive.
"""

import asyncio
import errno
import logging

from proofpack.core.exceptions import PortInUseError, ProcessError

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT_MS = 800

_FREE_ERRNOS = {errno.ECONNREFUSED, errno.EHOSTUNREACH, errno.ENETUNREACH}


async def is_port_in_use(host: str, port: int, timeout_ms: int = DEFAULT_PROBE_TIMEOUT_MS) -> bool:
    """Return True if something accepts TCP connections on host:port."""
    try:
        _, writer = await asyncio.wait_for(
            asyncio.open_connection(host, port), timeout=timeout_ms / 1000
        )
    except asyncio.TimeoutError:
        logger.debug("Probe of %s:%d timed out after %dms, treating as free", host, port, timeout_ms)
        return False
    except ConnectionRefusedError:
        return False
    except OSError as e:
        if e.errno in _FREE_ERRNOS:
            return False
        raise ProcessError(f"port probe failed for {host}:{port}: {e}") from e

    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass
    return True


async def assert_port_free(
    host: str,
    port: int,
    label: str,
    timeout_ms: int = DEFAULT_PROBE_TIMEOUT_MS,
) -> None:
    """Raise PortInUseError if host:port is taken."""
    if await is_port_in_use(host, port, timeout_ms):
        raise PortInUseError(label, host, port)
    logger.debug("port:%s free (%s:%d)", label, host, port)
