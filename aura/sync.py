"""Per-provider fetch orchestration for one unified view.

Each provider owns a slice of state (auth status, fetch phase, last
successful items). Slices only change here, one provider at a time, on the
event loop thread; everything downstream reads frozen ProviderSnapshot copies.

Lifecycle of a view::

    view = SyncOrchestrator(adapters, ItemKind.ISSUES, store, active=True)
    await view.mount()            # check auth everywhere, fetch what connects
    await view.refresh()          # user pressed refresh
    await view.set_active(False)  # user navigated away ...
    await view.set_active(True)   # ... and back: refetch connected providers
    await view.recheck(ProviderTag.JIRA)  # after credentials were saved
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from functools import partial

from aura.aggregate import collect_errors, merge_snapshots
from aura.auth_gate import is_connected
from aura.credentials import CredentialStore
from aura.models import (
    AuthStatus,
    ErrorEntry,
    FetchPhase,
    ItemKind,
    ProviderConfig,
    ProviderSnapshot,
    ProviderTag,
    UnifiedItem,
    ViewModel,
)
from aura.normalize import normalize
from aura.providers.base import FetchError, ProviderAdapter
from aura.view_model import derive_view_model

log = logging.getLogger(__name__)


@dataclass
class _ProviderSlice:
    adapter: ProviderAdapter
    config: ProviderConfig | None = None
    auth_status: AuthStatus | None = None
    auth_checked: bool = False
    phase: FetchPhase = FetchPhase.NOT_STARTED
    items: list[UnifiedItem] = field(default_factory=list)
    error: str | None = None

    @property
    def connected(self) -> bool:
        return self.auth_checked and is_connected(self.auth_status, self.config)

    def snapshot(self) -> ProviderSnapshot:
        return ProviderSnapshot(
            provider=self.adapter.tag,
            label=self.adapter.label,
            auth_checked=self.auth_checked,
            connected=self.connected,
            identity=self.auth_status.identity if self.auth_status else None,
            phase=self.phase,
            items=self.items,
            error=self.error,
        )


class SyncOrchestrator:
    def __init__(
        self,
        adapters: Sequence[ProviderAdapter],
        kind: ItemKind,
        store: CredentialStore | None = None,
        *,
        active: bool = True,
    ) -> None:
        self.kind = kind
        self._store = store
        self._slices = {a.tag: _ProviderSlice(adapter=a) for a in adapters if kind in a.kinds}
        self._active = active
        self._has_mounted = False
        self._listeners: list[Callable[[], None]] = []

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def providers(self) -> list[ProviderTag]:
        return list(self._slices)

    def snapshots(self) -> list[ProviderSnapshot]:
        return [s.snapshot() for s in self._slices.values()]

    def snapshot(self, tag: ProviderTag) -> ProviderSnapshot:
        return self._slices[tag].snapshot()

    def merged(self) -> list[UnifiedItem]:
        return merge_snapshots(self.snapshots())

    def errors(self) -> list[ErrorEntry]:
        return collect_errors(self.snapshots(), retry=self.retry_action)

    def view_model(self) -> ViewModel:
        snapshots = self.snapshots()
        return derive_view_model(
            snapshots,
            merge_snapshots(snapshots),
            collect_errors(snapshots, retry=self.retry_action),
        )

    def add_listener(self, listener: Callable[[], None]) -> None:
        """Call ``listener`` after every state transition."""
        self._listeners.append(listener)

    def _notify(self) -> None:
        # a broken listener must not leave a slice stuck mid-transition
        for listener in self._listeners:
            try:
                listener()
            except Exception:
                log.exception("State listener %r failed", listener)

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    async def mount(self) -> None:
        """Check auth for every provider, fetching each one as soon as it connects."""
        self._has_mounted = True
        await self._fan_out(self.recheck, self.providers, "mount")

    async def recheck(self, tag: ProviderTag) -> None:
        """Reload credentials and re-run the auth check; fetch if the provider just connected."""
        slice_ = self._slices[tag]
        adapter = slice_.adapter
        was_connected = slice_.connected

        config: ProviderConfig | None = None
        status: AuthStatus | None = None
        try:
            if adapter.requires_config and self._store is not None:
                config = self._store.load(tag)
            if config is not None or not adapter.requires_config:
                status = await adapter.check_auth(config)
        except Exception as exc:
            log.warning("[%s] auth check failed: %s", adapter.label, exc)
            status = None

        slice_.config = config
        slice_.auth_status = status
        slice_.auth_checked = True
        if was_connected and not slice_.connected:
            # the next account to connect must not inherit these
            slice_.items = []
        log.debug("[%s] connected=%s", adapter.label, slice_.connected)
        self._notify()

        if slice_.connected and not was_connected:
            await self.fetch(tag)

    async def recheck_all(self) -> None:
        await self._fan_out(self.recheck, self.providers, "recheck")

    async def refresh(self) -> None:
        """Fetch every connected provider concurrently; disconnected ones are skipped."""
        connected = [tag for tag, s in self._slices.items() if s.connected]
        await self._fan_out(self.fetch, connected, "fetch")

    async def set_active(self, active: bool) -> None:
        """React to the view becoming visible.

        Only an inactive -> active transition after mount refreshes; the
        activation that coincides with mount is covered by mount itself.
        """
        became_active = active and not self._active
        self._active = active
        if became_active and self._has_mounted:
            await self.refresh()

    async def fetch(self, tag: ProviderTag) -> None:
        """Fetch one provider. No-op while that provider already has a fetch in flight."""
        slice_ = self._slices[tag]
        adapter = slice_.adapter
        if slice_.phase is FetchPhase.LOADING:
            log.debug("[%s] fetch already in flight", adapter.label)
            return
        if not slice_.connected:
            return

        slice_.phase = FetchPhase.LOADING
        slice_.error = None
        self._notify()

        try:
            raw_items = await adapter.fetch_items(slice_.config, self.kind)
            items = [normalize(tag, raw) for raw in raw_items]
        except FetchError as exc:
            self._fail(slice_, str(exc))
        except (KeyError, TypeError, ValueError) as exc:
            self._fail(slice_, f"Parse error: {exc!r}")
        except Exception as exc:
            log.exception("[%s] unexpected fetch failure", adapter.label)
            self._fail(slice_, str(exc) or type(exc).__name__)
        else:
            slice_.items = items
            slice_.phase = FetchPhase.SUCCESS
            log.debug("[%s] fetched %d items", adapter.label, len(items))
            self._notify()

    def retry_action(self, tag: ProviderTag) -> Callable[[], Awaitable[None]]:
        return partial(self.fetch, tag)

    # ------------------------------------------------------------------

    def _fail(self, slice_: _ProviderSlice, message: str) -> None:
        log.warning("[%s] fetch failed: %s", slice_.adapter.label, message)
        slice_.error = message
        slice_.phase = FetchPhase.ERROR
        self._notify()

    async def _fan_out(
        self,
        action: Callable[[ProviderTag], Awaitable[None]],
        tags: Sequence[ProviderTag],
        name: str,
    ) -> None:
        # one task per provider; a slow tracker never holds up the others
        tasks = [asyncio.create_task(action(tag), name=f"{name}-{tag.value}") for tag in tags]
        if tasks:
            await asyncio.gather(*tasks)
