"""FogBugz JSON API adapter (email + password logon)."""

import logging

import httpx

from aura.models import CredentialAuthStatus, FogBugzConfig, ItemKind, ProviderTag
from aura.providers.base import FetchError, ProviderAdapter, RawItem

SEARCH_QUERY = "assignedto:me status:active"
SEARCH_COLUMNS = [
    "ixBug",
    "sTitle",
    "sStatus",
    "sCategory",
    "sPriority",
    "sProject",
    "sArea",
    "dtLastUpdated",
    "tags",
    "fOpen",
]
MAX_CASES = 200

log = logging.getLogger(__name__)


def _json_object(body: object, endpoint: str) -> dict:
    if not isinstance(body, dict):
        raise FetchError(f"Parse error: {endpoint} returned {type(body).__name__}, expected an object")
    return body


def _error_messages(body: dict) -> list[str]:
    return [e["message"] for e in body.get("errors") or [] if e.get("message")]


def check_api_errors(body: dict) -> None:
    """Raise FetchError when a FogBugz response body reports a failure."""
    messages = _error_messages(body)
    if messages:
        raise FetchError(f"FogBugz API error: {'; '.join(messages)}")
    if body.get("errorCode") is not None:
        raise FetchError(f"FogBugz error code: {body['errorCode']}")


class FogBugzAdapter(ProviderAdapter):
    tag = ProviderTag.FOGBUGZ
    label = "FogBugz"
    config_model = FogBugzConfig

    async def _logon(self, config: FogBugzConfig) -> str:
        body = await self._request_json(
            "POST",
            f"{config.instance_url}/api/logon",
            json={"email": config.email, "password": config.password.get_secret_value()},
        )
        body = _json_object(body, "logon")
        messages = _error_messages(body)
        if messages:
            raise FetchError(f"Logon failed: {'; '.join(messages)}")
        token = (body.get("data") or {}).get("token")
        if not token:
            raise FetchError("Logon succeeded but no token returned")
        return token

    async def _person_name(self, config: FogBugzConfig, token: str) -> str | None:
        try:
            response = await self._client.post(f"{config.instance_url}/api/viewPerson", json={"token": token})
            body = response.json()
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            log.debug("FogBugz viewPerson failed: %s", exc)
            return None
        if not isinstance(body, dict):
            return None
        return ((body.get("data") or {}).get("person") or {}).get("sFullName")

    async def check_auth(self, config: FogBugzConfig | None) -> CredentialAuthStatus | None:
        if config is None:
            return None
        try:
            token = await self._logon(config)
        except FetchError as exc:
            log.info("FogBugz logon rejected: %s", exc)
            return CredentialAuthStatus(valid=False, identity=None)
        return CredentialAuthStatus(valid=True, identity=await self._person_name(config, token))

    async def fetch_items(self, config: FogBugzConfig | None, kind: ItemKind) -> list[RawItem]:
        if config is None:
            raise FetchError("FogBugz is not configured. Run: aura login fogbugz")
        token = await self._logon(config)
        body = await self._request_json(
            "POST",
            f"{config.instance_url}/api/search",
            json={"token": token, "q": SEARCH_QUERY, "cols": SEARCH_COLUMNS, "max": MAX_CASES},
        )
        body = _json_object(body, "search")
        check_api_errors(body)
        cases = (body.get("data") or {}).get("cases") or []
        # cases carry no link of their own
        return [{**case, "url": f"{config.instance_url}/f/cases/{case.get('ixBug')}"} for case in cases]
