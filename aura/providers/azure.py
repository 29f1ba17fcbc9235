"""Azure DevOps adapter, driven entirely through the az CLI."""

import json
import logging

from aura.models import CliAuthStatus, ItemKind, ProviderConfig, ProviderTag
from aura.providers.base import FetchError, ProviderAdapter, RawItem, run_cli

_WIQL = (
    "SELECT [System.Id], [System.Title], [System.State], [System.WorkItemType], "
    "[System.AssignedTo], [System.ChangedDate], [System.Tags] "
    "FROM workitems WHERE [System.AssignedTo] = @Me "
    "AND [System.State] <> 'Closed' AND [System.State] <> 'Removed' "
    "AND [System.State] <> 'Done' ORDER BY [System.ChangedDate] DESC"
)

log = logging.getLogger(__name__)


def parse_devops_defaults(output: str) -> tuple[str | None, str | None]:
    """Parse `az devops configure --list` into (organization, project)."""
    org = project = None
    for line in output.splitlines():
        key, sep, value = line.partition("=")
        value = value.strip()
        if not sep or not value or value == "None":
            continue
        match key.strip():
            case "organization":
                org = value
            case "project":
                project = value
    return org, project


def work_item_web_url(org: str, project: str, item_id: int) -> str:
    return f"{org.rstrip('/')}/{project}/_workitems/edit/{item_id}"


def pull_request_web_url(org: str, project: str, repo: str, pr_id: int) -> str:
    return f"{org.rstrip('/')}/{project}/_git/{repo}/pullrequest/{pr_id}"


def _with_web_url(raw: RawItem, url: str) -> RawItem:
    links = dict(raw.get("_links") or {})
    links.setdefault("html", {"href": url})
    return {**raw, "_links": links}


class AzureDevOpsAdapter(ProviderAdapter):
    tag = ProviderTag.AZURE
    label = "Azure DevOps"
    kinds = frozenset({ItemKind.ISSUES, ItemKind.PULL_REQUESTS})

    async def _succeeds(self, args: list[str]) -> bool:
        try:
            return (await run_cli(args)).returncode == 0
        except OSError:
            return False

    async def _defaults(self) -> tuple[str | None, str | None]:
        try:
            result = await run_cli(["az", "devops", "configure", "--list"])
        except OSError:
            return None, None
        if result.returncode != 0:
            return None, None
        return parse_devops_defaults(result.stdout)

    async def check_auth(self, config: ProviderConfig | None = None) -> CliAuthStatus:
        if not await self._succeeds(["az", "--version"]):
            return CliAuthStatus(reachable=False, authenticated=False)
        if not await self._succeeds(["az", "account", "show", "--output", "none"]):
            return CliAuthStatus(reachable=True, authenticated=False)
        org, _ = await self._defaults()
        return CliAuthStatus(reachable=True, authenticated=True, identity=org)

    async def _resolve_target(self) -> tuple[str, str]:
        if not await self._succeeds(["az", "account", "show", "--output", "none"]):
            raise FetchError("Azure CLI not authenticated. Run `az login` first.")
        org, project = await self._defaults()
        if not org:
            raise FetchError(
                "No Azure DevOps organization configured. "
                "Run `az devops configure --defaults organization=https://dev.azure.com/YOUR_ORG`"
            )
        if not project:
            raise FetchError(
                "No Azure DevOps project configured. Run `az devops configure --defaults project=YOUR_PROJECT`"
            )
        return org, project

    async def _run_json(self, args: list[str], what: str) -> list[RawItem]:
        try:
            result = await run_cli(args)
        except OSError as exc:
            raise FetchError(f"Failed to run az: {exc}") from exc
        if result.returncode != 0:
            command = " ".join(arg for arg in args[:4] if not arg.startswith("-"))
            raise FetchError(f"{command} failed: {result.stderr.strip()}")
        try:
            return json.loads(result.stdout)
        except ValueError as exc:
            raise FetchError(f"Failed to parse {what}: {exc}") from exc

    async def fetch_items(self, config: ProviderConfig | None, kind: ItemKind) -> list[RawItem]:
        org, project = await self._resolve_target()
        if kind is ItemKind.PULL_REQUESTS:
            prs = await self._run_json(
                ["az", "repos", "pr", "list", "--status", "active", "--output", "json"], "pull requests"
            )
            result = []
            for pr in prs:
                repo = (pr.get("repository") or {}).get("name", "")
                result.append(_with_web_url(pr, pull_request_web_url(org, project, repo, pr["pullRequestId"])))
            return result
        items = await self._run_json(["az", "boards", "query", "--wiql", _WIQL, "--output", "json"], "work items")
        return [_with_web_url(item, work_item_web_url(org, project, item["id"])) for item in items]
