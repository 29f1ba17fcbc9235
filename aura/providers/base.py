"""Abstract base class for tracker adapters."""

import asyncio
import logging
import subprocess
from abc import ABC, abstractmethod
from typing import Any, ClassVar

import httpx
from pydantic import BaseModel

from aura.models import AuthStatus, ItemKind, ProviderConfig, ProviderTag

log = logging.getLogger(__name__)

RawItem = dict[str, Any]


class FetchError(RuntimeError):
    """Items could not be fetched or parsed. The message is shown to the user verbatim."""


async def run_cli(args: list[str]) -> subprocess.CompletedProcess[str]:
    """Run a tracker CLI off the event loop. Raises OSError when the binary is missing."""
    log.debug("Running %s", " ".join(args[:3]))
    return await asyncio.to_thread(subprocess.run, args, capture_output=True, text=True)


class ProviderAdapter(ABC):
    """One external tracker.

    ``check_auth`` must never raise for transport problems: it returns a status
    describing the failure, or None. ``fetch_items`` raises ``FetchError`` and
    never retries; retry policy belongs to the caller.
    """

    tag: ClassVar[ProviderTag]
    label: ClassVar[str]
    kinds: ClassVar[frozenset[ItemKind]] = frozenset({ItemKind.ISSUES})
    config_model: ClassVar[type[BaseModel] | None] = None  # None for CLI-delegated auth

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    @property
    def requires_config(self) -> bool:
        return self.config_model is not None

    @abstractmethod
    async def check_auth(self, config: ProviderConfig | None) -> AuthStatus | None: ...

    @abstractmethod
    async def fetch_items(self, config: ProviderConfig | None, kind: ItemKind) -> list[RawItem]: ...

    async def _request_json(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, url, **kwargs)
        # InvalidURL (e.g. a mistyped instance URL) is not an HTTPError
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise FetchError(f"Request failed: {exc}") from exc
        if response.is_error:
            raise FetchError(f"{self.label} API error {response.status_code}: {response.text}")
        try:
            return response.json()
        except ValueError as exc:
            raise FetchError(f"Parse error: {exc}") from exc
