"""Map each tracker's native item schema onto UnifiedItem.

Required native fields (id, title, status, link) are indexed directly, so a
malformed payload raises KeyError/TypeError instead of producing an item with
an invented status. Optional fields fall back to None.
"""

import logging
import re
from collections.abc import Callable
from datetime import datetime, timezone

from aura.models import MAX_LABELS, Label, ProviderTag, UnifiedItem
from aura.providers.base import RawItem

_FRACTION_RE = re.compile(r"\.(\d{6})\d+")
_COMPACT_OFFSET_RE = re.compile(r"([+-]\d{2})(\d{2})$")
_REPO_RE = re.compile(r"repos/(.+)$")

log = logging.getLogger(__name__)


def parse_timestamp(raw: str | None) -> datetime | None:
    """Parse the ISO 8601 variants the trackers emit into an aware UTC datetime.

    Handles ``Z``, ``+HH:MM`` and Jira's ``+HHMM`` offsets, and Azure's
    seven-digit fractional seconds. Naive values are taken as UTC.
    """
    if not raw:
        return None
    cleaned = raw.strip().replace("Z", "+00:00")
    cleaned = _FRACTION_RE.sub(r".\1", cleaned)
    cleaned = _COMPACT_OFFSET_RE.sub(r"\1:\2", cleaned)
    try:
        parsed = datetime.fromisoformat(cleaned)
    except ValueError:
        log.debug("Unparseable timestamp %r", raw)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def make_id(provider: ProviderTag, native_id: object) -> str:
    return f"{provider.value}-{native_id}"


def _labels(names: list[str], colors: list[str | None] | None = None) -> list[Label]:
    colors = colors or [None] * len(names)
    return [Label(name=name, color=color) for name, color in zip(names, colors)][:MAX_LABELS]


def repo_from_api_url(url: str) -> str:
    """https://api.github.com/repos/owner/repo -> owner/repo"""
    match = _REPO_RE.search(url)
    return match.group(1) if match else url


def normalize_github(raw: RawItem) -> UnifiedItem:
    labels = raw.get("labels") or []
    repository_url = raw.get("repository_url")
    reference = f"{repo_from_api_url(repository_url)}#{raw['number']}" if repository_url else None
    return UnifiedItem(
        id=make_id(ProviderTag.GITHUB, raw["id"]),
        provider=ProviderTag.GITHUB,
        title=raw["title"],
        status_label="Open" if raw["state"] == "open" else "Closed",
        url=raw["html_url"],
        updated_at=parse_timestamp(raw.get("updated_at")),
        labels=_labels([label["name"] for label in labels], [label.get("color") for label in labels]),
        reference=reference,
    )


def _azure_web_url(raw: RawItem) -> str:
    href = ((raw.get("_links") or {}).get("html") or {}).get("href")
    return href or raw["url"]


def _azure_pull_request(raw: RawItem) -> UnifiedItem:
    repo = (raw.get("repository") or {}).get("name")
    return UnifiedItem(
        id=make_id(ProviderTag.AZURE, f"pr{raw['pullRequestId']}"),
        provider=ProviderTag.AZURE,
        title=raw["title"],
        status_label=raw["status"].capitalize(),
        url=_azure_web_url(raw),
        # az repos pr list reports no last-updated time
        updated_at=parse_timestamp(raw.get("creationDate")),
        labels=_labels([label["name"] for label in raw.get("labels") or [] if label.get("active", True)]),
        reference=f"{repo} !{raw['pullRequestId']}" if repo else f"!{raw['pullRequestId']}",
    )


def _azure_work_item(raw: RawItem) -> UnifiedItem:
    fields = raw["fields"]
    tags = [tag.strip() for tag in (fields.get("System.Tags") or "").split(";") if tag.strip()]
    priority = fields.get("Microsoft.VSTS.Common.Priority")
    item_type = fields.get("System.WorkItemType")
    return UnifiedItem(
        id=make_id(ProviderTag.AZURE, raw["id"]),
        provider=ProviderTag.AZURE,
        title=fields["System.Title"],
        status_label=fields["System.State"],
        url=_azure_web_url(raw),
        updated_at=parse_timestamp(fields.get("System.ChangedDate")),
        labels=_labels(tags),
        reference=f"{item_type} {raw['id']}" if item_type else f"#{raw['id']}",
        priority=str(priority) if priority is not None else None,
    )


def normalize_azure(raw: RawItem) -> UnifiedItem:
    # work items and pull requests come back from different az commands
    if "pullRequestId" in raw:
        return _azure_pull_request(raw)
    return _azure_work_item(raw)


def jira_browse_url(self_url: str, key: str) -> str:
    """https://acme.atlassian.net/rest/api/3/issue/10001 -> https://acme.atlassian.net/browse/KEY"""
    base = self_url.split("/rest/api/", 1)[0]
    return f"{base}/browse/{key}"


def normalize_jira(raw: RawItem) -> UnifiedItem:
    fields = raw["fields"]
    key = raw["key"]
    return UnifiedItem(
        id=make_id(ProviderTag.JIRA, key),
        provider=ProviderTag.JIRA,
        title=fields["summary"],
        status_label=fields["status"]["name"],
        url=jira_browse_url(raw["self"], key),
        updated_at=parse_timestamp(fields.get("updated")),
        labels=_labels(fields.get("labels") or []),
        reference=key,
        priority=(fields.get("priority") or {}).get("name"),
    )


def normalize_fogbugz(raw: RawItem) -> UnifiedItem:
    case_id = raw["ixBug"]
    return UnifiedItem(
        id=make_id(ProviderTag.FOGBUGZ, case_id),
        provider=ProviderTag.FOGBUGZ,
        title=raw["sTitle"],
        status_label=raw["sStatus"],
        url=raw["url"],
        updated_at=parse_timestamp(raw.get("dtLastUpdated")),
        labels=_labels(raw.get("tags") or []),
        reference=f"Case {case_id}",
        priority=raw.get("sPriority"),
    )


NORMALIZERS: dict[ProviderTag, Callable[[RawItem], UnifiedItem]] = {
    ProviderTag.GITHUB: normalize_github,
    ProviderTag.AZURE: normalize_azure,
    ProviderTag.JIRA: normalize_jira,
    ProviderTag.FOGBUGZ: normalize_fogbugz,
}


def normalize(provider: ProviderTag, raw: RawItem) -> UnifiedItem:
    return NORMALIZERS[provider](raw)
