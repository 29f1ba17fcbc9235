"""Smoke tests for all CLI commands using typer CliRunner."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import httpx
import pytest
import typer
from typer.testing import CliRunner

import aura.settings as settings_module
from aura.credentials import CredentialStore
from aura.main import _watch, app, build_adapters, time_ago
from aura.models import CliAuthStatus, ItemKind, JiraConfig, ProviderTag
from aura.settings import AuraSettings

runner = CliRunner()

_LOGGED_OUT = CliAuthStatus(reachable=True, authenticated=False)


def _store() -> CredentialStore:
    return CredentialStore(settings_module.CONFIG_PATH)


class TestIssues:
    def test_renders_table(self, make_adapter, github_node, past) -> None:
        adapter = make_adapter(ProviderTag.GITHUB, items=[github_node(1, past(hours=1), title="Segfault")])
        with patch("aura.main.build_adapters", return_value=[adapter]):
            result = runner.invoke(app, ["issues"])
        assert result.exit_code == 0
        assert "Segfault" in result.output
        assert adapter.fetch_calls == 1

    def test_fetch_error_banner(self, make_adapter) -> None:
        adapter = make_adapter(ProviderTag.GITHUB, error="HTTP 503")
        with patch("aura.main.build_adapters", return_value=[adapter]):
            result = runner.invoke(app, ["issues"])
        assert result.exit_code == 0
        assert "HTTP 503" in result.output
        assert "Retry with" in result.output

    def test_nothing_connected(self, make_adapter) -> None:
        with patch("aura.main.build_adapters", return_value=[make_adapter(ProviderTag.GITHUB, status=_LOGGED_OUT)]):
            result = runner.invoke(app, ["issues"])
        assert result.exit_code == 0
        assert "No trackers connected" in result.output

    def test_empty(self, make_adapter) -> None:
        with patch("aura.main.build_adapters", return_value=[make_adapter(ProviderTag.GITHUB)]):
            result = runner.invoke(app, ["issues"])
        assert result.exit_code == 0
        assert "No open issues" in result.output

    def test_provider_filter_passed_through(self, make_adapter) -> None:
        with patch("aura.main.build_adapters", return_value=[make_adapter(ProviderTag.JIRA)]) as build:
            result = runner.invoke(app, ["issues", "--provider", "jira"])
        assert result.exit_code == 0
        assert build.call_args.args[2] == [ProviderTag.JIRA]


class TestPrs:
    def test_empty(self, make_adapter) -> None:
        with patch("aura.main.build_adapters", return_value=[make_adapter(ProviderTag.GITHUB)]):
            result = runner.invoke(app, ["prs"])
        assert result.exit_code == 0
        assert "No open pull requests" in result.output


class TestWatch:
    def test_option_starts_watch_loop(self) -> None:
        with patch("aura.main._watch", new_callable=AsyncMock) as watch:
            result = runner.invoke(app, ["prs", "--watch", "5", "-p", "github"])
        assert result.exit_code == 0
        watch.assert_awaited_once_with(ItemKind.PULL_REQUESTS, [ProviderTag.GITHUB], 5.0)

    def test_interval_below_one_second_rejected(self) -> None:
        result = runner.invoke(app, ["issues", "--watch", "0.5"])
        assert result.exit_code != 0

    @pytest.mark.asyncio
    async def test_refreshes_between_redraws(self, make_adapter, capsys: pytest.CaptureFixture[str]) -> None:
        adapter = make_adapter(ProviderTag.GITHUB, error="HTTP 503")
        with patch("aura.main.build_adapters", return_value=[adapter]):
            await _watch(ItemKind.ISSUES, None, 0, cycles=3)

        assert adapter.auth_calls == 1
        assert adapter.fetch_calls == 3
        output = capsys.readouterr().out
        assert "Retrying in 0s" in output
        assert "Retry with" not in output


class TestStatus:
    def test_reports_each_tracker(self, make_adapter) -> None:
        adapters = [
            make_adapter(ProviderTag.GITHUB),
            make_adapter(ProviderTag.AZURE, status=_LOGGED_OUT),
            make_adapter(ProviderTag.JIRA, credential_based=True),
        ]
        with patch("aura.main.build_adapters", return_value=adapters):
            result = runner.invoke(app, ["status"])
        assert result.exit_code == 0
        assert "octocat" in result.output
        assert "not connected" in result.output
        assert "not configured" in result.output
        assert adapters[2].auth_calls == 0


class TestLogin:
    def test_saves_jira_credentials(self) -> None:
        result = runner.invoke(
            app,
            ["login", "jira", "--no-verify"],
            input="https://acme.atlassian.net/\nme@acme.dev\natl_token\n",
        )
        assert result.exit_code == 0
        config = _store().load(ProviderTag.JIRA)
        assert isinstance(config, JiraConfig)
        assert config.instance_url == "https://acme.atlassian.net"
        assert config.api_token.get_secret_value() == "atl_token"

    def test_verifies_after_saving(self, make_adapter) -> None:
        adapter = make_adapter(ProviderTag.FOGBUGZ, status=_LOGGED_OUT)
        with patch("aura.main.build_adapters", return_value=[adapter]) as build:
            result = runner.invoke(app, ["login", "fogbugz"], input="https://acme.fogbugz.com\nme@acme.dev\npw\n")
        assert result.exit_code == 0
        assert build.call_args.args[2] == [ProviderTag.FOGBUGZ]
        assert adapter.auth_calls == 1

    def test_blank_field_exits(self) -> None:
        result = runner.invoke(
            app,
            ["login", "jira", "--no-verify"],
            input="https://acme.atlassian.net\n   \natl_token\n",
        )
        assert result.exit_code == 1
        assert "Missing required field(s): email" in result.output
        assert _store().load(ProviderTag.JIRA) is None

    def test_cli_provider_rejected(self) -> None:
        result = runner.invoke(app, ["login", "github"])
        assert result.exit_code == 1
        assert "does not use stored credentials" in result.output


class TestLogout:
    def test_removes_credentials(self, jira_config: JiraConfig) -> None:
        _store().save(ProviderTag.JIRA, jira_config)
        result = runner.invoke(app, ["logout", "jira"])
        assert result.exit_code == 0
        assert _store().load(ProviderTag.JIRA) is None


class TestConfigShow:
    def test_masks_secrets(self, jira_config: JiraConfig) -> None:
        _store().save(ProviderTag.JIRA, jira_config)
        result = runner.invoke(app, ["config-show"])
        assert result.exit_code == 0
        assert "atl_secret_token" not in result.output
        assert "oken" in result.output
        assert "not configured" in result.output


class TestBuildAdapters:
    def test_order_follows_settings(self) -> None:
        settings = AuraSettings(providers=["jira", "github"])
        adapters = build_adapters(httpx.AsyncClient(), settings)
        assert [a.tag for a in adapters] == [ProviderTag.JIRA, ProviderTag.GITHUB]

    def test_only_filters(self) -> None:
        adapters = build_adapters(httpx.AsyncClient(), AuraSettings(), [ProviderTag.AZURE])
        assert [a.tag for a in adapters] == [ProviderTag.AZURE]

    def test_unknown_provider_exits(self) -> None:
        with pytest.raises(typer.Exit):
            build_adapters(httpx.AsyncClient(), AuraSettings(providers=["gitlab"]))


class TestTimeAgo:
    NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize(
        "delta, expected",
        [
            (timedelta(minutes=5), "5m ago"),
            (timedelta(hours=3, minutes=10), "3h ago"),
            (timedelta(days=2, hours=1), "2d ago"),
            (timedelta(minutes=-3), "0m ago"),
        ],
    )
    def test_buckets(self, delta: timedelta, expected: str) -> None:
        assert time_ago(self.NOW - delta, self.NOW) == expected

    def test_undated(self) -> None:
        assert time_ago(None) == "—"
