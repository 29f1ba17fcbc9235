"""Derived presentation flags for a unified view."""

from collections.abc import Sequence

from aura.models import ErrorEntry, FetchPhase, ProviderSnapshot, UnifiedItem, ViewModel


def derive_view_model(
    snapshots: Sequence[ProviderSnapshot],
    merged: Sequence[UnifiedItem],
    errors: Sequence[ErrorEntry],
) -> ViewModel:
    all_checked = all(s.auth_checked for s in snapshots)
    any_connected = any(s.connected for s in snapshots)

    initial_load = not all_checked and not merged
    any_loading = any(s.connected and s.phase is FetchPhase.LOADING for s in snapshots)
    return ViewModel(
        initial_load=initial_load,
        any_loading=any_loading,
        no_providers_connected=all_checked and not any_connected,
        empty_result=(not any_loading and not initial_load and any_connected and not merged and not errors),
    )
