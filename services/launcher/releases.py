"""Best-effort discovery of published payload releases."""

from __future__ import annotations

import json
import logging
from typing import Callable, Iterable
from urllib.error import URLError
from urllib.request import Request, urlopen

from packaging.version import InvalidVersion
from packaging.version import Version as PackagingVersion

from app.version import user_agent
from domain.launcher.version import MAX_COMPONENT, Version


_LOGGER = logging.getLogger(__name__)


class GitHubReleaseListing:
    """List release versions from the GitHub Releases API.

    One request replaces probing a download URL for every possible tag.
    Errors never propagate: the listing is informational and an empty list
    simply means nothing could be discovered.
    """

    def __init__(
        self,
        api_url: str,
        *,
        timeout: float = 30.0,
        opener: Callable[..., object] = urlopen,
    ) -> None:
        self._api_url = api_url
        self._timeout = timeout
        self._opener = opener

    def list_versions(self) -> list[Version]:
        payload = self._request_json()
        if not isinstance(payload, list):
            if payload is not None:
                _LOGGER.debug("Release listing returned %s instead of a list", type(payload).__name__)
            return []
        versions = sorted(set(_release_versions(payload)), reverse=True)
        _LOGGER.info("Discovered %d published releases", len(versions))
        return versions

    def latest(self) -> Version | None:
        versions = self.list_versions()
        return versions[0] if versions else None

    def _request_json(self) -> object | None:
        request = Request(
            self._api_url,
            headers={
                "User-Agent": user_agent(),
                "Accept": "application/vnd.github+json",
            },
        )
        try:
            with self._opener(request, timeout=self._timeout) as response:  # nosec - GitHub API over HTTPS
                return json.loads(response.read().decode("utf-8"))
        except (OSError, URLError, ValueError) as exc:
            _LOGGER.warning("Failed to query release listing %s: %s", self._api_url, exc)
            return None


def _release_versions(releases: Iterable[object]) -> Iterable[Version]:
    for release in releases:
        if not isinstance(release, dict):
            continue
        if release.get("draft") or release.get("prerelease"):
            continue
        tag = str(release.get("tag_name") or release.get("name") or "").strip()
        version = version_from_tag(tag)
        if version is None:
            _LOGGER.debug("Skipping release tag %r", tag)
            continue
        yield version


def version_from_tag(tag: str) -> Version | None:
    """Convert a release tag such as ``v1.4.2`` into a :class:`Version`."""

    if not tag:
        return None
    try:
        parsed = PackagingVersion(tag)
    except InvalidVersion:
        return None
    if parsed.is_prerelease or parsed.is_devrelease or parsed.is_postrelease or parsed.local:
        return None
    if len(parsed.release) != 3 or parsed.epoch:
        return None
    if any(part > MAX_COMPONENT for part in parsed.release):
        return None
    return Version(*parsed.release)


__all__ = ["GitHubReleaseListing", "version_from_tag"]
