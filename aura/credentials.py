"""Tracker credentials stored as tables in the aura config file.

    [jira]
    instance_url = "https://acme.atlassian.net"
    email = "me@acme.dev"
    api_token = "..."

Writes go through tomlkit so hand-written comments and formatting survive.
"""

import logging
from collections.abc import Mapping
from pathlib import Path

import tomlkit
from pydantic import ValidationError

from aura.models import FogBugzConfig, JiraConfig, ProviderConfig, ProviderTag
from aura.settings import _load_toml

CONFIG_MODELS: dict[ProviderTag, type[JiraConfig] | type[FogBugzConfig]] = {
    ProviderTag.JIRA: JiraConfig,
    ProviderTag.FOGBUGZ: FogBugzConfig,
}

log = logging.getLogger(__name__)


class CredentialStore:
    def __init__(self, path: Path) -> None:
        self.path = path

    def _read(self) -> tomlkit.TOMLDocument:
        if not self.path.exists():
            return tomlkit.document()
        return tomlkit.load(self.path.open())

    def _write(self, doc: tomlkit.TOMLDocument) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(tomlkit.dumps(doc))
        _load_toml.cache_clear()

    def load(self, tag: ProviderTag) -> ProviderConfig | None:
        """Return the stored credentials, or None when absent or incomplete."""
        model = CONFIG_MODELS.get(tag)
        if model is None:
            return None
        section = self._read().get(tag.value)
        if not isinstance(section, Mapping):
            return None
        try:
            return model(**dict(section))
        except ValidationError as exc:
            log.warning("Ignoring incomplete [%s] credentials in %s: %d problem(s)", tag.value, self.path, exc.error_count())
            return None

    def save(self, tag: ProviderTag, config: ProviderConfig) -> None:
        if not isinstance(config, CONFIG_MODELS[tag]):
            raise TypeError(f"{type(config).__name__} is not a {tag.value} configuration")
        doc = self._read()
        table = tomlkit.table()
        for key, value in config.secrets_revealed().items():
            table.add(key, value)
        doc[tag.value] = table
        self._write(doc)

    def delete(self, tag: ProviderTag) -> None:
        doc = self._read()
        if tag.value in doc:
            del doc[tag.value]
            self._write(doc)
