"""aura CLI — unified issues and pull requests across trackers."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Annotated

import httpx
import typer
from pydantic import ValidationError
from rich import print as rprint
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

import aura.settings as settings_module
from aura.auth_gate import is_connected
from aura.credentials import CONFIG_MODELS, CredentialStore
from aura.models import (
    ErrorEntry,
    FogBugzConfig,
    ItemKind,
    JiraConfig,
    ProviderSnapshot,
    ProviderTag,
    UnifiedItem,
    ViewModel,
)
from aura.providers.azure import AzureDevOpsAdapter
from aura.providers.base import ProviderAdapter
from aura.providers.fogbugz import FogBugzAdapter
from aura.providers.github import GitHubAdapter
from aura.providers.jira import JiraAdapter
from aura.settings import AuraSettings, get_settings
from aura.sync import SyncOrchestrator

app = typer.Typer(help="aura: one list of your issues and pull requests across trackers", no_args_is_help=True)

ProviderOpt = Annotated[
    list[ProviderTag] | None,
    typer.Option("--provider", "-p", help="Only query these trackers (repeatable)"),
]

_CONNECT_HINTS = {
    ProviderTag.GITHUB: "Install the GitHub CLI and run `gh auth login`.",
    ProviderTag.AZURE: "Install the Azure CLI and run `az login`.",
    ProviderTag.JIRA: "Run `aura login jira`.",
    ProviderTag.FOGBUGZ: "Run `aura login fogbugz`.",
}

_VIEW_TITLES = {ItemKind.ISSUES: "Issues", ItemKind.PULL_REQUESTS: "Pull Requests"}
_EMPTY_MESSAGES = {
    ItemKind.ISSUES: "No open issues assigned to you.",
    ItemKind.PULL_REQUESTS: "No open pull requests for you.",
}


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log adapter and sync activity")] = False,
) -> None:
    level = "DEBUG" if verbose else get_settings().log_level.upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(show_path=False)],
        force=True,
    )


# ---------------------------------------------------------------------------
# Adapter factory
# ---------------------------------------------------------------------------


def get_store() -> CredentialStore:
    return CredentialStore(settings_module.CONFIG_PATH)


def build_adapters(
    client: httpx.AsyncClient,
    settings: AuraSettings,
    only: list[ProviderTag] | None = None,
) -> list[ProviderAdapter]:
    available: dict[str, ProviderAdapter] = {
        ProviderTag.GITHUB.value: GitHubAdapter(client, base_url=settings.github_api_url),
        ProviderTag.AZURE.value: AzureDevOpsAdapter(client),
        ProviderTag.JIRA.value: JiraAdapter(client),
        ProviderTag.FOGBUGZ.value: FogBugzAdapter(client),
    }
    unknown = [name for name in settings.providers if name not in available]
    if unknown:
        rprint(f"[red]Unknown provider(s) {unknown}. Valid: {', '.join(available)}[/red]")
        raise typer.Exit(1)
    adapters = [available[name] for name in settings.providers]
    if only:
        adapters = [a for a in adapters if a.tag in only]
    return adapters


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def time_ago(moment: datetime | None, now: datetime | None = None) -> str:
    if moment is None:
        return "—"
    now = now or datetime.now(timezone.utc)
    minutes = max(int((now - moment).total_seconds() // 60), 0)
    if minutes < 60:
        return f"{minutes}m ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"
    return f"{hours // 24}d ago"


def _label_text(item: UnifiedItem) -> str:
    return ", ".join(label.name for label in item.labels)


def render_view(
    kind: ItemKind,
    snapshots: list[ProviderSnapshot],
    merged: list[UnifiedItem],
    errors: list[ErrorEntry],
    view: ViewModel,
    watch_interval: float | None = None,
) -> None:
    title = _VIEW_TITLES[kind]
    identities = [f"{s.label} @{s.identity}" for s in snapshots if s.connected and s.identity]
    if identities:
        title = f"{title} ({', '.join(identities)})"

    for entry in errors:
        rprint(f"[red]{entry.provider_label}: {entry.message}[/red]")
        if watch_interval is not None:
            rprint(f"  [dim]Retrying in {watch_interval:g}s[/dim]")
        else:
            rprint(f"  [dim]Retry with:[/dim] aura {_command_for(kind)} --provider {entry.provider.value}")

    if view.no_providers_connected:
        rprint("[yellow]No trackers connected.[/yellow]")
        for s in snapshots:
            rprint(f"  {s.label}: {_CONNECT_HINTS[s.provider]}")
        return

    if view.empty_result:
        rprint(f"[dim]{_EMPTY_MESSAGES[kind]}[/dim]")
        return

    if not merged:
        return

    table = Table(title=title)
    table.add_column("Tracker", style="cyan")
    table.add_column("Ref")
    table.add_column("Title")
    table.add_column("Status")
    table.add_column("Labels", style="magenta")
    table.add_column("Updated", style="dim")

    labels = {s.provider: s.label for s in snapshots}
    for item in merged:
        table.add_row(
            labels.get(item.provider, item.provider.value),
            item.reference or "—",
            item.title,
            item.status_label,
            _label_text(item),
            time_ago(item.updated_at),
        )

    rprint(table)


def _command_for(kind: ItemKind) -> str:
    return "issues" if kind is ItemKind.ISSUES else "prs"


async def _load_view(kind: ItemKind, only: list[ProviderTag] | None) -> SyncOrchestrator:
    settings = get_settings()
    async with httpx.AsyncClient(timeout=settings.http_timeout) as client:
        view = SyncOrchestrator(build_adapters(client, settings, only), kind, get_store())
        await view.mount()
    return view


async def _watch(
    kind: ItemKind,
    only: list[ProviderTag] | None,
    interval: float,
    cycles: int | None = None,
) -> None:
    """Mount once, then refresh every connected provider each ``interval`` seconds and redraw.

    Runs until interrupted, or for ``cycles`` redraws when given.
    """
    settings = get_settings()
    console = Console()
    async with httpx.AsyncClient(timeout=settings.http_timeout) as client:
        view = SyncOrchestrator(build_adapters(client, settings, only), kind, get_store())
        await view.mount()
        drawn = 0
        while True:
            console.clear()
            render_view(
                kind, view.snapshots(), view.merged(), view.errors(), view.view_model(), watch_interval=interval
            )
            drawn += 1
            if cycles is not None and drawn >= cycles:
                return
            await asyncio.sleep(interval)
            await view.refresh()


def _show(kind: ItemKind, only: list[ProviderTag] | None, watch: float | None = None) -> None:
    if watch is not None:
        try:
            asyncio.run(_watch(kind, only, watch))
        except KeyboardInterrupt:
            pass
        return
    view = asyncio.run(_load_view(kind, only))
    render_view(kind, view.snapshots(), view.merged(), view.errors(), view.view_model())


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


WatchOpt = Annotated[
    float | None,
    typer.Option("--watch", "-w", min=1, help="Refresh every N seconds until Ctrl-C"),
]


@app.command("issues")
def issues(provider: ProviderOpt = None, watch: WatchOpt = None) -> None:
    """List open issues, work items and cases assigned to me, newest first."""
    _show(ItemKind.ISSUES, provider, watch)


@app.command("prs")
def prs(provider: ProviderOpt = None, watch: WatchOpt = None) -> None:
    """List open pull requests I am involved in, newest first."""
    _show(ItemKind.PULL_REQUESTS, provider, watch)


async def _auth_report(adapters: list[ProviderAdapter], store: CredentialStore) -> list[tuple[str, str, str]]:
    async def check(adapter: ProviderAdapter) -> tuple[str, str, str]:
        config = store.load(adapter.tag) if adapter.requires_config else None
        if adapter.requires_config and config is None:
            return adapter.label, "[dim]not configured[/dim]", "—"
        status = await adapter.check_auth(config)
        if is_connected(status, config):
            return adapter.label, "[green]connected[/green]", (status.identity if status else None) or "—"
        return adapter.label, "[red]not connected[/red]", _CONNECT_HINTS[adapter.tag]

    return list(await asyncio.gather(*(check(a) for a in adapters)))


@app.command("status")
def status() -> None:
    """Show which trackers are connected."""
    settings = get_settings()

    async def run() -> list[tuple[str, str, str]]:
        async with httpx.AsyncClient(timeout=settings.http_timeout) as client:
            return await _auth_report(build_adapters(client, settings), get_store())

    table = Table(title="Trackers")
    table.add_column("Tracker", style="bold")
    table.add_column("Status")
    table.add_column("Identity / next step")
    for row in asyncio.run(run()):
        table.add_row(*row)
    rprint(table)


def _credential_provider(name: str) -> ProviderTag:
    try:
        tag = ProviderTag(name.lower())
    except ValueError:
        tag = None
    if tag not in CONFIG_MODELS:
        valid = ", ".join(t.value for t in CONFIG_MODELS)
        rprint(f"[red]'{name}' does not use stored credentials. Valid: {valid}[/red]")
        raise typer.Exit(1)
    return tag


@app.command("login")
def login(
    provider: Annotated[str, typer.Argument(help="jira or fogbugz")],
    verify: Annotated[bool, typer.Option("--verify/--no-verify", help="Check the credentials after saving")] = True,
) -> None:
    """Store credentials for a tracker that does not use a CLI login."""
    tag = _credential_provider(provider)
    instance_url = typer.prompt("Instance URL (e.g. https://acme.atlassian.net)").strip()
    email = typer.prompt("Email").strip()
    try:
        if tag is ProviderTag.JIRA:
            rprint("Create an API token at: https://id.atlassian.com/manage-profile/security/api-tokens")
            config: JiraConfig | FogBugzConfig = JiraConfig(
                instance_url=instance_url,
                email=email,
                api_token=typer.prompt("API token", hide_input=True),
            )
        else:
            config = FogBugzConfig(
                instance_url=instance_url,
                email=email,
                password=typer.prompt("Password", hide_input=True),
            )
    except ValidationError as exc:
        blank = ", ".join(str(err["loc"][0]) for err in exc.errors())
        rprint(f"[red]Missing required field(s): {blank}[/red]")
        raise typer.Exit(1) from exc

    store = get_store()
    store.save(tag, config)
    rprint(f"[green]✓[/green] Saved {tag.value} credentials to {store.path}")

    if verify:
        settings = get_settings()

        async def run() -> list[tuple[str, str, str]]:
            async with httpx.AsyncClient(timeout=settings.http_timeout) as client:
                return await _auth_report(build_adapters(client, settings, [tag]), store)

        for label, state, detail in asyncio.run(run()):
            rprint(f"{label}: {state} ({detail})")


@app.command("logout")
def logout(provider: Annotated[str, typer.Argument(help="jira or fogbugz")]) -> None:
    """Forget stored credentials for a tracker."""
    tag = _credential_provider(provider)
    store = get_store()
    store.delete(tag)
    rprint(f"[green]✓[/green] Removed {tag.value} credentials from {store.path}")


@app.command("config-show")
def config_show() -> None:
    """Show resolved configuration (masks credentials)."""
    settings = get_settings()
    store = get_store()

    def mask(val: str | None) -> str:
        if val is None:
            return "[dim](not set)[/dim]"
        if len(val) <= 5:
            return "***"
        return f"...{val[-4:]}"

    table = Table(title="aura configuration")
    table.add_column("Field", style="bold")
    table.add_column("Value")

    table.add_row("config_path", str(store.path))
    table.add_row("providers", ", ".join(settings.providers))
    table.add_row("github_api_url", settings.github_api_url)
    table.add_row("http_timeout", str(settings.http_timeout))
    table.add_row("log_level", settings.log_level)

    for tag in CONFIG_MODELS:
        config = store.load(tag)
        if config is None:
            table.add_row(tag.value, "[dim](not configured)[/dim]")
            continue
        secret = config.api_token if isinstance(config, JiraConfig) else config.password
        table.add_row(tag.value, f"{config.email} @ {config.instance_url} ({mask(secret.get_secret_value())})")

    rprint(table)
