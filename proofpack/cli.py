"""Command-line entry point for the proof-pack verifiers.

Usage:
    proofpack backend-contract          # health + auth contract
    proofpack runtime                   # full stack + browser network proof
    proofpack runtime --repeat 5        # stability: up to 5 runs, stop on first failure
    proofpack -v backend-contract       # also echo captured dev stack output

Exit codes: 0 all checks passed, 2 dev data missing, 1 any other failure.
"""

import argparse
import asyncio
import logging
import signal
import sys

from proofpack.config import load_config
from proofpack.core.exceptions import ConfigError
from proofpack.models.outcome import Outcome
from proofpack.services.reporter import Reporter
from proofpack.verifiers.backend_contract import BackendContractVerifier
from proofpack.verifiers.base import Verifier
from proofpack.verifiers.runtime import RuntimeVerifier

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

VERIFIERS: dict[str, type[Verifier]] = {
    BackendContractVerifier.name: BackendContractVerifier,
    RuntimeVerifier.name: RuntimeVerifier,
}


class SignalHandler:
    """Turns SIGINT/SIGTERM into cancellation of the running verifier task."""

    def __init__(self, task: asyncio.Task):
        self.task = task
        self.interrupted = False
        self._installed: list[int] = []

    def setup(self):
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._handle_signal, sig)
                self._installed.append(sig)
            except (NotImplementedError, RuntimeError):
                # No loop signal support (Windows); Ctrl+C falls back to KeyboardInterrupt
                pass

    def teardown(self):
        loop = asyncio.get_running_loop()
        for sig in self._installed:
            loop.remove_signal_handler(sig)
        self._installed.clear()

    def _handle_signal(self, signum):
        if self.interrupted:
            # Teardown is already running; a second cancel would cut it short
            logger.warning("Received %s again, still tearing down", signal.Signals(signum).name)
            return
        logger.warning("Received %s, stopping run", signal.Signals(signum).name)
        self.interrupted = True
        self.task.cancel()


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )
    # Transport-level chatter is never useful here, even in verbose mode
    for name in ("httpcore", "asyncio"):
        logging.getLogger(name).setLevel(logging.INFO if verbose else logging.WARNING)


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return number


def create_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="proofpack",
        description="Bounded dev-stack verification supervisor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Configuration comes from the environment:
  C4_DB_PATH C4_BACKEND_PORT C4_HEALTH_ENDPOINT C4_BOOTSTRAP_COMMAND C4_DEV_COMMAND
  C4_FRONTEND_PORT (runtime only)   C4_AUTH_ENDPOINT (default /auth/me)
        """,
    )
    parser.add_argument(
        "verifier",
        choices=sorted(VERIFIERS),
        help="Which verification to run",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Debug logging, including every captured dev stack line",
    )
    parser.add_argument(
        "--repeat",
        type=_positive_int,
        default=1,
        help="Run up to N times, stopping at the first failure (default: 1)",
    )
    return parser


async def _run_verifier(verifier: Verifier) -> int:
    handler = SignalHandler(asyncio.current_task())
    handler.setup()
    try:
        return await verifier.execute()
    except asyncio.CancelledError:
        if not handler.interrupted:
            raise
        return verifier.report(Outcome.process_error("interrupted"))
    finally:
        handler.teardown()


def run_once(name: str) -> int:
    verifier_cls = VERIFIERS[name]
    try:
        config = load_config()
    except ConfigError as e:
        return Reporter(name).report(Outcome.process_error(str(e)))

    verifier = verifier_cls(config)
    try:
        return asyncio.run(_run_verifier(verifier))
    except KeyboardInterrupt:
        return verifier.report(Outcome.process_error("interrupted"))


def main(argv: list[str] | None = None) -> int:
    args = create_argument_parser().parse_args(argv)
    configure_logging(args.verbose)

    if args.repeat == 1:
        return run_once(args.verifier)

    for n in range(1, args.repeat + 1):
        print(f"=== RUN {n} ===", file=sys.stderr, flush=True)
        code = run_once(args.verifier)
        print(f"exit={code}", file=sys.stderr, flush=True)
        if code != 0:
            print(f"FAILED on run {n}", file=sys.stderr, flush=True)
            return code
    print("ALL RUNS PASSED", file=sys.stderr, flush=True)
    return 0


def run() -> None:
    sys.exit(main())
