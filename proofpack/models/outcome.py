"""Terminal outcome of a run and its exit code."""

from enum import Enum

from pydantic import BaseModel


class OutcomeKind(str, Enum):
    MISSING_DEV_DATA = "missing_dev_data"
    PHASE_TIMEOUT = "phase_timeout"
    CONTRACT_VIOLATION = "contract_violation"
    PROCESS_ERROR = "process_error"
    SUCCESS = "success"


_EXIT_CODES = {
    OutcomeKind.SUCCESS: 0,
    OutcomeKind.MISSING_DEV_DATA: 2,
    OutcomeKind.PHASE_TIMEOUT: 1,
    OutcomeKind.CONTRACT_VIOLATION: 1,
    OutcomeKind.PROCESS_ERROR: 1,
}


class Outcome(BaseModel):
    """Exactly one of these ends every run.

    ``detail`` is the primary message: the failure text, the MISSING_DEV_DATA
    guidance line, or the success payload written to stdout.
    """

    kind: OutcomeKind
    detail: str
    phase_label: str | None = None

    @property
    def exit_code(self) -> int:
        return _EXIT_CODES[self.kind]

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS

    @classmethod
    def missing_dev_data(cls, bootstrap_command: str) -> "Outcome":
        return cls(kind=OutcomeKind.MISSING_DEV_DATA, detail=f"MISSING_DEV_DATA: run {bootstrap_command}")

    @classmethod
    def phase_timeout(cls, label: str, detail: str) -> "Outcome":
        return cls(kind=OutcomeKind.PHASE_TIMEOUT, detail=detail, phase_label=label)

    @classmethod
    def contract_violation(cls, detail: str) -> "Outcome":
        return cls(kind=OutcomeKind.CONTRACT_VIOLATION, detail=detail)

    @classmethod
    def process_error(cls, detail: str) -> "Outcome":
        return cls(kind=OutcomeKind.PROCESS_ERROR, detail=detail)

    @classmethod
    def success(cls, payload: str) -> "Outcome":
        return cls(kind=OutcomeKind.SUCCESS, detail=payload)
