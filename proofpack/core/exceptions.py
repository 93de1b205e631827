"""Failure taxonomy for a proof-pack run.

Every terminal failure of a run is one of these exceptions; the reporter maps
each class to an outcome and an exit code.
"""


class ProofPackError(Exception):
    """Base exception for verification runs."""

    pass


class MissingDevData(ProofPackError):
    """Raised when the dev database has not been bootstrapped."""

    def __init__(self, bootstrap_command: str):
        super().__init__(f"MISSING_DEV_DATA: run {bootstrap_command}")
        self.bootstrap_command = bootstrap_command


class PhaseTimeout(ProofPackError):
    """Raised when a named phase does not finish within its bound."""

    def __init__(self, label: str, timeout_ms: int):
        super().__init__(f"phase:{label} timed out after {timeout_ms}ms")
        self.label = label
        self.timeout_ms = timeout_ms


class ContractViolation(ProofPackError):
    """Raised when the running stack answers, but not the way it must."""

    pass


class ProcessError(ProofPackError):
    """Raised for spawn, port and configuration failures."""

    pass


class ConfigError(ProcessError):
    """Raised when a required input is absent or malformed."""

    def __init__(self, message: str, env_var: str | None = None):
        super().__init__(message)
        self.env_var = env_var


class PortInUseError(ProcessError):
    """Raised when a port the stack needs is already taken."""

    def __init__(self, label: str, host: str, port: int):
        super().__init__(f"port:{label} already in use ({host}:{port})")
        self.label = label
        self.host = host
        self.port = port


class SpawnError(ProcessError):
    """Raised when the dev command cannot be started at all."""

    pass


class StartupFailure(ProcessError):
    """Raised when the dev stack logs a failure that can never self-resolve."""

    def __init__(self, message: str, log_line: str):
        super().__init__(message)
        self.log_line = log_line
