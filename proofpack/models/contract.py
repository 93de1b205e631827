"""Results of the contract checks and the runtime JSON report."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class AuthCheckResult(BaseModel):
    """Parsed identity returned by the auth endpoint."""

    identity: dict[str, Any]
    has_id: bool

    @property
    def user_id(self) -> str:
        return self.identity["id"]


class NetworkProofResult(BaseModel):
    """Evidence that frontend traffic reached the backend origin."""

    model_config = ConfigDict(populate_by_name=True)

    backend_origin: str = Field(alias="backendOrigin")
    matched: list[str] = []
    all_intercepted: list[str] = Field(default=[], alias="allIntercepted")


class PageTraffic(BaseModel):
    """Everything observed while the browser visited the frontend."""

    routes_visited: list[str] = []
    requests: list[str] = []
    console_messages: list[str] = []
    page_errors: list[str] = []


class RuntimeReport(BaseModel):
    """Success payload of the runtime verifier."""

    model_config = ConfigDict(populate_by_name=True)

    base: str
    routes_visited: list[str] = Field(alias="routesVisited")
    console_warnings_or_errors_first20: list[str] = Field(alias="consoleWarningsOrErrorsFirst20")
    page_errors: list[str] = Field(alias="pageErrors")
    network_proof: NetworkProofResult = Field(alias="networkProof")

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)
