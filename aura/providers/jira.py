"""Jira Cloud REST API v3 adapter (email + API token)."""

import logging

import httpx

from aura.models import CredentialAuthStatus, ItemKind, JiraConfig, ProviderTag
from aura.providers.base import FetchError, ProviderAdapter, RawItem

JQL = "assignee = currentUser() AND resolution = Unresolved ORDER BY updated DESC"
FIELDS = "summary,status,issuetype,priority,updated,labels,project"
MAX_RESULTS = 100

log = logging.getLogger(__name__)


class JiraAdapter(ProviderAdapter):
    tag = ProviderTag.JIRA
    label = "Jira"
    config_model = JiraConfig

    def _auth(self, config: JiraConfig) -> httpx.BasicAuth:
        return httpx.BasicAuth(config.email, config.api_token.get_secret_value())

    async def check_auth(self, config: JiraConfig | None) -> CredentialAuthStatus | None:
        if config is None:
            return None
        try:
            response = await self._client.get(
                f"{config.instance_url}/rest/api/3/myself",
                auth=self._auth(config),
                headers={"Accept": "application/json"},
            )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            log.warning("Jira auth check failed: %s", exc)
            return None
        if response.is_error:
            return CredentialAuthStatus(valid=False, identity=None)
        try:
            myself = response.json()
        except ValueError:
            return None
        if not isinstance(myself, dict):
            log.warning("Jira /myself returned %s, expected an object", type(myself).__name__)
            return None
        return CredentialAuthStatus(valid=True, identity=myself.get("displayName") or myself.get("emailAddress"))

    async def fetch_items(self, config: JiraConfig | None, kind: ItemKind) -> list[RawItem]:
        if config is None:
            raise FetchError("Jira is not configured. Run: aura login jira")
        result = await self._request_json(
            "GET",
            f"{config.instance_url}/rest/api/3/search",
            auth=self._auth(config),
            headers={"Accept": "application/json"},
            params={"jql": JQL, "maxResults": str(MAX_RESULTS), "fields": FIELDS},
        )
        return result["issues"]
