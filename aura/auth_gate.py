"""Decide whether a provider is connected, i.e. eligible for fetching."""

from aura.models import AuthStatus, CliAuthStatus, ProviderConfig


def is_connected(status: AuthStatus | None, config: ProviderConfig | None = None) -> bool:
    """CLI-delegated providers need an authenticated CLI; credential providers
    need stored credentials that the tracker accepted. A failed check (None)
    is never connected."""
    if status is None:
        return False
    if isinstance(status, CliAuthStatus):
        return status.authenticated
    return config is not None and status.valid
