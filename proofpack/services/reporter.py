"""Mapping terminal states to outcomes, exit codes and output.

stdout carries only the success payload or the MISSING_DEV_DATA guidance
line. Every failure goes to stderr as one header line followed by the tail of
the captured dev stack output, so a single run is enough to triage.
"""

import logging
import sys
from typing import Sequence, TextIO

from proofpack.core.exceptions import (
    ContractViolation,
    MissingDevData,
    PhaseTimeout,
    ProcessError,
    StartupFailure,
)
from proofpack.models.outcome import Outcome, OutcomeKind

logger = logging.getLogger(__name__)

LOG_TAIL_LINES = 50
POLL_HISTORY_LINES = 10
FRONTEND_READY_PHASE = "frontendReady"


def classify(exc: BaseException) -> Outcome:
    """Translate a run-ending exception into its Outcome."""
    if isinstance(exc, MissingDevData):
        return Outcome.missing_dev_data(exc.bootstrap_command)
    if isinstance(exc, PhaseTimeout):
        return Outcome.phase_timeout(exc.label, str(exc))
    if isinstance(exc, ContractViolation):
        return Outcome.contract_violation(str(exc))
    if isinstance(exc, StartupFailure):
        return Outcome(kind=OutcomeKind.PROCESS_ERROR, detail=str(exc), phase_label=FRONTEND_READY_PHASE)
    if isinstance(exc, ProcessError):
        return Outcome.process_error(str(exc))

    logger.debug("Unexpected failure", exc_info=exc)
    return Outcome.process_error(str(exc) or type(exc).__name__)


class Reporter:
    """Writes the single deterministic report for a verifier run."""

    def __init__(
        self,
        name: str,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
        tail_lines: int = LOG_TAIL_LINES,
    ) -> None:
        self.name = name
        self.stdout = stdout
        self.stderr = stderr
        self.tail_lines = tail_lines

    def _write(self, stream: TextIO | None, default: TextIO, text: str) -> None:
        out = stream if stream is not None else default
        out.write(f"{text}\n")
        out.flush()

    def render_failure(
        self,
        outcome: Outcome,
        dev_logs: Sequence[str] = (),
        poll_history: Sequence[str] = (),
    ) -> str:
        lines = [f"ERROR verify-{self.name} {outcome.detail}", f"devLogsLast{self.tail_lines}:"]
        lines.extend(list(dev_logs)[-self.tail_lines:])
        if outcome.phase_label == FRONTEND_READY_PHASE:
            lines.append(f"frontendPollHistoryLast{POLL_HISTORY_LINES}:")
            lines.extend(list(poll_history)[-POLL_HISTORY_LINES:])
        return "\n".join(lines)

    def report(
        self,
        outcome: Outcome,
        dev_logs: Sequence[str] = (),
        poll_history: Sequence[str] = (),
    ) -> int:
        """Print the outcome and return the process exit code."""
        if outcome.kind in (OutcomeKind.SUCCESS, OutcomeKind.MISSING_DEV_DATA):
            self._write(self.stdout, sys.stdout, outcome.detail)
        else:
            self._write(self.stderr, sys.stderr, self.render_failure(outcome, dev_logs, poll_history))
        return outcome.exit_code
