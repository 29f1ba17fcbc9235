"""Shared pydantic models — the contract between adapters, the orchestrator and the CLI."""

from collections.abc import Awaitable, Callable
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, SecretStr, field_validator

MAX_LABELS = 2


class ProviderTag(str, Enum):
    GITHUB = "github"
    AZURE = "azure"
    JIRA = "jira"
    FOGBUGZ = "fogbugz"


class ItemKind(str, Enum):
    ISSUES = "issues"
    PULL_REQUESTS = "pull_requests"


class FetchPhase(str, Enum):
    NOT_STARTED = "not_started"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class Label(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    color: str | None = None  # hex without '#', None when the tracker has no label colors


class UnifiedItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str  # "<provider tag>-<native id>"
    provider: ProviderTag
    title: str
    status_label: str
    url: str
    updated_at: datetime | None  # None when the tracker omitted or garbled the timestamp
    labels: list[Label] = []
    reference: str | None = None  # owner/repo#42, PROJ-7, Case 12
    priority: str | None = None


# ---------------------------------------------------------------------------
# Auth status
# ---------------------------------------------------------------------------


class CliAuthStatus(BaseModel):
    """Result of probing a CLI-delegated provider (gh, az)."""

    model_config = ConfigDict(frozen=True)

    reachable: bool  # CLI installed and runnable
    authenticated: bool
    identity: str | None = None


class CredentialAuthStatus(BaseModel):
    """Result of verifying stored credentials against the tracker."""

    model_config = ConfigDict(frozen=True)

    valid: bool
    identity: str | None = None


AuthStatus = CliAuthStatus | CredentialAuthStatus


# ---------------------------------------------------------------------------
# Provider credentials
# ---------------------------------------------------------------------------


class _CredentialConfig(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    instance_url: str
    email: str

    @field_validator("instance_url", "email")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("instance_url")
    @classmethod
    def trim_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    def secrets_revealed(self) -> dict[str, str]:
        """Plain field values for writing back to the config file."""
        return {
            name: value.get_secret_value() if isinstance(value, SecretStr) else value
            for name, value in self
        }


class JiraConfig(_CredentialConfig):
    api_token: SecretStr

    @field_validator("api_token")
    @classmethod
    def token_not_blank(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value().strip():
            raise ValueError("must not be blank")
        return value


class FogBugzConfig(_CredentialConfig):
    password: SecretStr

    @field_validator("password")
    @classmethod
    def password_not_blank(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value():
            raise ValueError("must not be blank")
        return value


ProviderConfig = JiraConfig | FogBugzConfig


# ---------------------------------------------------------------------------
# Orchestrator read models
# ---------------------------------------------------------------------------


class ProviderSnapshot(BaseModel):
    """Immutable copy of one provider's slice of orchestrator state."""

    model_config = ConfigDict(frozen=True)

    provider: ProviderTag
    label: str
    auth_checked: bool = False
    connected: bool = False
    identity: str | None = None
    phase: FetchPhase = FetchPhase.NOT_STARTED
    items: list[UnifiedItem] = []  # last successful fetch, kept through later loading/error
    error: str | None = None


class ErrorEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    provider: ProviderTag
    provider_label: str
    message: str
    retry: Callable[[], Awaitable[None]]


class ViewModel(BaseModel):
    model_config = ConfigDict(frozen=True)

    initial_load: bool
    any_loading: bool
    no_providers_connected: bool
    empty_result: bool
