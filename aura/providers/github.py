"""GitHub REST API v3 adapter, authenticated through the gh CLI."""

import logging
import re

import httpx

from aura.models import CliAuthStatus, ItemKind, ProviderConfig, ProviderTag
from aura.providers.base import FetchError, ProviderAdapter, RawItem, run_cli

BASE_URL = "https://api.github.com"
PAGE_SIZE = 100

# "Logged in to github.com account octocat (keyring)" or, from older gh, "... as octocat (oauth_token)"
_LOGGED_IN_RE = re.compile(r"Logged in to \S+ (?:account|as) (\S+)")

log = logging.getLogger(__name__)


class GitHubAdapter(ProviderAdapter):
    tag = ProviderTag.GITHUB
    label = "GitHub"
    kinds = frozenset({ItemKind.ISSUES, ItemKind.PULL_REQUESTS})

    def __init__(self, client: httpx.AsyncClient, base_url: str = BASE_URL) -> None:
        super().__init__(client)
        self._base_url = base_url.rstrip("/")

    async def _token(self) -> str:
        try:
            result = await run_cli(["gh", "auth", "token"])
        except OSError as exc:
            raise FetchError(f"Failed to run gh: {exc}") from exc
        if result.returncode != 0:
            raise FetchError(f"gh auth token failed: {result.stderr.strip()}")
        token = result.stdout.strip()
        if not token:
            raise FetchError("gh auth token returned empty")
        return token

    async def _username(self) -> str | None:
        try:
            result = await run_cli(["gh", "auth", "status"])
        except OSError:
            return None
        # gh prints status to stderr on some versions, stdout on others
        match = _LOGGED_IN_RE.search(f"{result.stdout}{result.stderr}")
        return match.group(1) if match else None

    def _headers(self, token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    async def check_auth(self, config: ProviderConfig | None = None) -> CliAuthStatus:
        try:
            version = await run_cli(["gh", "--version"])
        except OSError:
            return CliAuthStatus(reachable=False, authenticated=False)
        if version.returncode != 0:
            return CliAuthStatus(reachable=False, authenticated=False)

        try:
            await self._token()
        except FetchError as exc:
            log.debug("gh is installed but not authenticated: %s", exc)
            return CliAuthStatus(reachable=True, authenticated=False)
        return CliAuthStatus(reachable=True, authenticated=True, identity=await self._username())

    async def fetch_items(self, config: ProviderConfig | None, kind: ItemKind) -> list[RawItem]:
        token = await self._token()
        if kind is ItemKind.PULL_REQUESTS:
            return await self._fetch_pull_requests(token)
        return await self._fetch_assigned_issues(token)

    async def _fetch_assigned_issues(self, token: str) -> list[RawItem]:
        issues: list[RawItem] = []
        page = 1
        while True:
            nodes = await self._request_json(
                "GET",
                f"{self._base_url}/issues",
                headers=self._headers(token),
                params={"filter": "assigned", "state": "open", "per_page": str(PAGE_SIZE), "page": str(page)},
            )
            # /issues also returns pull requests; they carry a pull_request key
            issues.extend(node for node in nodes if not node.get("pull_request"))
            if len(nodes) < PAGE_SIZE:
                return issues
            page += 1

    async def _fetch_pull_requests(self, token: str) -> list[RawItem]:
        username = await self._username()
        if not username:
            raise FetchError("Could not determine GitHub username from gh auth status")
        result = await self._request_json(
            "GET",
            f"{self._base_url}/search/issues",
            headers=self._headers(token),
            params={"q": f"type:pr is:open involves:{username}", "sort": "updated", "per_page": str(PAGE_SIZE)},
        )
        return result["items"]
