"""Shared test fixtures."""

import asyncio
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import pytest

import aura.settings as settings_module
from aura.models import CliAuthStatus, ItemKind, JiraConfig, Label, ProviderTag, UnifiedItem
from aura.providers.base import FetchError, ProviderAdapter

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def iso(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


class FakeAdapter(ProviderAdapter):
    """Scriptable adapter that counts calls and can hold a fetch open."""

    def __init__(
        self,
        tag: ProviderTag,
        *,
        status: object = None,
        items: list[dict] | None = None,
        error: str | None = None,
        credential_based: bool = False,
    ) -> None:
        super().__init__(client=None)  # type: ignore[arg-type]
        self.tag = tag  # type: ignore[misc]
        self.label = tag.value.title()  # type: ignore[misc]
        self.kinds = frozenset({ItemKind.ISSUES, ItemKind.PULL_REQUESTS})  # type: ignore[misc]
        self.config_model = JiraConfig if credential_based else None  # type: ignore[misc]
        self.status = status
        self.items = items or []
        self.error = error
        self.gate: asyncio.Event | None = None
        self.auth_calls = 0
        self.fetch_calls = 0

    async def check_auth(self, config):
        self.auth_calls += 1
        if isinstance(self.status, Exception):
            raise self.status
        return self.status

    async def fetch_items(self, config, kind):
        self.fetch_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error:
            raise FetchError(self.error)
        return list(self.items)


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch: pytest.MonkeyPatch):
    """Point the config file at an empty temp path so no test reads ~/.config."""
    monkeypatch.setattr(settings_module, "CONFIG_PATH", tmp_path / "config.toml")
    settings_module._load_toml.cache_clear()
    yield
    settings_module._load_toml.cache_clear()


@pytest.fixture
def connected_status() -> CliAuthStatus:
    return CliAuthStatus(reachable=True, authenticated=True, identity="octocat")


@pytest.fixture
def make_adapter(connected_status: CliAuthStatus) -> Callable[..., FakeAdapter]:
    def _make(tag: ProviderTag, **kwargs) -> FakeAdapter:
        kwargs.setdefault("status", connected_status)
        return FakeAdapter(tag, **kwargs)

    return _make


@pytest.fixture
def github_node() -> Callable[..., dict]:
    def _node(native_id: int, updated: datetime, number: int = 1, title: str = "Fix null check") -> dict:
        return {
            "id": native_id,
            "number": number,
            "title": title,
            "state": "open",
            "html_url": f"https://github.com/jdoss/quickvm/issues/{number}",
            "labels": [{"name": "bug", "color": "d73a4a"}],
            "updated_at": iso(updated),
            "repository_url": "https://api.github.com/repos/jdoss/quickvm",
        }

    return _node


@pytest.fixture
def jira_node() -> Callable[..., dict]:
    def _node(key: str, updated: datetime, summary: str = "Broken login") -> dict:
        return {
            "key": key,
            "self": "https://acme.atlassian.net/rest/api/3/issue/10001",
            "fields": {
                "summary": summary,
                "status": {"name": "In Progress", "statusCategory": {"colorName": "yellow"}},
                "priority": {"name": "High"},
                "updated": updated.strftime("%Y-%m-%dT%H:%M:%S.000+0000"),
                "labels": ["backend"],
            },
        }

    return _node


@pytest.fixture
def unified_item() -> Callable[..., UnifiedItem]:
    def _item(item_id: str, updated: datetime | None, provider: ProviderTag = ProviderTag.GITHUB) -> UnifiedItem:
        return UnifiedItem(
            id=item_id,
            provider=provider,
            title=f"Item {item_id}",
            status_label="Open",
            url=f"https://example.com/{item_id}",
            updated_at=updated,
            labels=[Label(name="bug")],
        )

    return _item


@pytest.fixture
def jira_config() -> JiraConfig:
    return JiraConfig(
        instance_url="https://acme.atlassian.net",
        email="me@acme.dev",
        api_token="atl_secret_token",  # type: ignore[arg-type]
    )


@pytest.fixture
def past() -> Callable[..., datetime]:
    def _past(**delta: float) -> datetime:
        return NOW - timedelta(**delta)

    return _past
