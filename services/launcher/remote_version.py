"""Retrieve the published payload version from a plain-text resource."""

from __future__ import annotations

import logging
from typing import Callable, Protocol
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from app.version import user_agent
from domain.launcher.errors import NetworkError
from domain.launcher.version import Version
from services.launcher.constants import MAX_VERSION_BODY_BYTES
from shared.result import Result


_LOGGER = logging.getLogger(__name__)

Opener = Callable[..., object]


class RemoteVersionSource(Protocol):
    """Protocol describing remote version providers."""

    def fetch(self, url: str) -> Result[Version, NetworkError]:
        """Return the version published at ``url`` or the failure."""


class HttpVersionSource:
    """Fetch a version string over HTTP(S); ``file://`` URLs work as well.

    A single request is made per call.  Retrying is left to the caller.
    """

    def __init__(self, *, timeout: float = 30.0, opener: Opener = urlopen) -> None:
        self._timeout = timeout
        self._opener = opener

    def fetch(self, url: str) -> Result[Version, NetworkError]:
        try:
            version = self._fetch(url)
        except NetworkError as exc:
            _LOGGER.warning("Failed to fetch remote version from %s: %s", url, exc)
            return Result.err(exc)
        _LOGGER.info("Remote version at %s is %s", url, version)
        return Result.ok(version)

    def _fetch(self, url: str) -> Version:
        request = Request(url, headers={"User-Agent": user_agent()})
        try:
            with self._opener(request, timeout=self._timeout) as response:  # nosec - configured release URL
                status = getattr(response, "status", None)
                if status is not None and not 200 <= status < 300:
                    raise NetworkError(f"Version request returned HTTP {status}")
                body = response.read(MAX_VERSION_BODY_BYTES + 1)
        except HTTPError as exc:
            raise NetworkError(f"Version request returned HTTP {exc.code}") from exc
        except URLError as exc:
            raise NetworkError(f"Unable to reach version server: {exc.reason}") from exc
        except (OSError, ValueError) as exc:
            raise NetworkError(f"Version request failed: {exc}") from exc

        if len(body) > MAX_VERSION_BODY_BYTES:
            raise NetworkError("Version resource is larger than expected")
        try:
            text = body.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise NetworkError("Version resource is not valid UTF-8 text") from exc

        version = Version.try_parse(text)
        if version is None:
            raise NetworkError(f"Version resource is malformed: {text.strip()[:40]!r}")
        return version


__all__ = ["HttpVersionSource", "RemoteVersionSource"]
