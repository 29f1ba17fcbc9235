"""Merge provider snapshots into one list, and collect provider-scoped errors."""

from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime, timezone

from aura.models import ErrorEntry, FetchPhase, ProviderSnapshot, ProviderTag, UnifiedItem

_UNDATED = datetime.min.replace(tzinfo=timezone.utc)


def _recency(item: UnifiedItem) -> tuple[bool, datetime]:
    return item.updated_at is not None, item.updated_at or _UNDATED


def merge(lists: Iterable[list[UnifiedItem]]) -> list[UnifiedItem]:
    """Concatenate and sort newest first.

    sorted() is stable with reverse=True, so equal timestamps keep the order
    the providers returned them in, and providers keep registration order.
    Items without a timestamp go last.
    """
    combined = [item for items in lists for item in items]
    return sorted(combined, key=_recency, reverse=True)


def merge_snapshots(snapshots: Iterable[ProviderSnapshot]) -> list[UnifiedItem]:
    """Merge the last successful items of every connected provider.

    A provider that is refreshing or failed keeps contributing the items from
    its last success, so the list does not flash empty while a refresh runs.
    """
    return merge(s.items for s in snapshots if s.connected)


def collect_errors(
    snapshots: Iterable[ProviderSnapshot],
    retry: Callable[[ProviderTag], Callable[[], Awaitable[None]]],
) -> list[ErrorEntry]:
    """One entry per connected provider whose last fetch failed.

    Providers whose auth check has not completed, or that are not connected,
    are left out: an unconfigured tracker is not a failure.
    """
    return [
        ErrorEntry(
            provider=s.provider,
            provider_label=s.label,
            message=s.error or "Unknown error",
            retry=retry(s.provider),
        )
        for s in snapshots
        if s.auth_checked and s.connected and s.phase is FetchPhase.ERROR
    ]
