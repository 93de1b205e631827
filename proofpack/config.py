"""Run configuration loaded from C4_* environment variables."""

import os
from pathlib import Path

from pydantic import Field, ValidationError, field_validator
from pydantic_core import PydanticCustomError
from pydantic_settings import BaseSettings, SettingsError

from proofpack.core.exceptions import ConfigError

ENV_PREFIX = "C4_"

BACKEND_CONTRACT_OVERALL_MS = 90_000
RUNTIME_OVERALL_MS = 120_000


class RunConfig(BaseSettings):
    """Immutable inputs for one verification run."""

    # Required
    db_path: str
    backend_port: int = Field(gt=0, lt=65536)
    health_endpoint: str
    bootstrap_command: str
    dev_command: str

    # Required by the runtime verifier only
    frontend_port: int | None = Field(default=None, gt=0, lt=65536)

    auth_endpoint: str = "/auth/me"
    host: str = "127.0.0.1"
    shell: str = "bash"
    routes: list[str] = ["/"]
    frontend_fatal_patterns: list[str] = ["Failed to resolve import"]
    log_tail_lines: int = Field(default=50, gt=0)

    # Phase bounds (milliseconds). Unset overall bound means the verifier default.
    overall_timeout_ms: int | None = Field(default=None, gt=0)
    backend_health_timeout_ms: int = Field(default=20_000, gt=0)
    auth_timeout_ms: int = Field(default=10_000, gt=0)
    dev_data_timeout_ms: int = Field(default=10_000, gt=0)
    frontend_ready_timeout_ms: int = Field(default=60_000, gt=0)
    browser_launch_timeout_ms: int = Field(default=30_000, gt=0)
    route_timeout_ms: int = Field(default=30_000, gt=0)
    port_probe_timeout_ms: int = Field(default=800, gt=0)
    settle_ms: int = Field(default=1_500, ge=0)
    terminate_grace_ms: int = Field(default=300, ge=0)

    @field_validator("db_path", "health_endpoint", "bootstrap_command", "dev_command", "shell")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise PydanticCustomError("blank", "must not be empty")
        return value

    @field_validator("health_endpoint", "auth_endpoint")
    @classmethod
    def _leading_slash(cls, value: str) -> str:
        return value if value.startswith("/") else f"/{value}"

    @field_validator("routes")
    @classmethod
    def _routes(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("at least one route is required")
        return [r if r.startswith("/") else f"/{r}" for r in value]

    class Config:
        env_prefix = ENV_PREFIX
        env_ignore_empty = True
        extra = "ignore"
        frozen = True

    @property
    def backend_base(self) -> str:
        return f"http://{self.host}:{self.backend_port}"

    @property
    def frontend_base(self) -> str:
        return f"http://{self.host}:{self.require_frontend_port()}"

    @property
    def health_url(self) -> str:
        return f"{self.backend_base}{self.health_endpoint}"

    @property
    def auth_url(self) -> str:
        return f"{self.backend_base}{self.auth_endpoint}"

    def require_frontend_port(self) -> int:
        if self.frontend_port is None:
            raise ConfigError(
                f"Missing required env var: {ENV_PREFIX}FRONTEND_PORT",
                env_var=f"{ENV_PREFIX}FRONTEND_PORT",
            )
        return self.frontend_port

    def resolved_db_path(self) -> Path:
        path = Path(self.db_path)
        return path if path.is_absolute() else Path.cwd() / path

    def has_dev_data(self) -> bool:
        """True when the dev database exists and is non-empty."""
        try:
            path = self.resolved_db_path()
            return path.is_file() and path.stat().st_size > 0
        except OSError:
            return False

    def child_env(self) -> dict[str, str]:
        """Environment for the dev command: ours plus every C4_* input."""
        env = dict(os.environ)
        env.update({
            f"{ENV_PREFIX}DB_PATH": self.db_path,
            f"{ENV_PREFIX}BACKEND_PORT": str(self.backend_port),
            f"{ENV_PREFIX}HEALTH_ENDPOINT": self.health_endpoint,
            f"{ENV_PREFIX}BOOTSTRAP_COMMAND": self.bootstrap_command,
            f"{ENV_PREFIX}DEV_COMMAND": self.dev_command,
            f"{ENV_PREFIX}AUTH_ENDPOINT": self.auth_endpoint,
        })
        if self.frontend_port is not None:
            env[f"{ENV_PREFIX}FRONTEND_PORT"] = str(self.frontend_port)
        return env


def _config_error(exc: ValidationError) -> ConfigError:
    err = exc.errors()[0]
    field = str(err["loc"][0]) if err.get("loc") else "?"
    env_var = f"{ENV_PREFIX}{field.upper()}"
    if err["type"] in ("missing", "blank"):
        return ConfigError(f"Missing required env var: {env_var}", env_var=env_var)
    return ConfigError(f"Invalid env var {env_var}: {err['msg']}", env_var=env_var)


def load_config(**overrides) -> RunConfig:
    """Build a RunConfig from the environment (and explicit overrides).

    Raises ConfigError naming the first missing or invalid variable.
    """
    try:
        return RunConfig(**overrides)
    except ValidationError as e:
        raise _config_error(e) from e
    except SettingsError as e:
        # Raised for values that fail to decode before validation (bad JSON lists)
        raise ConfigError(f"Invalid {ENV_PREFIX}* environment: {e}") from e
