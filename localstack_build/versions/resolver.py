"""Version resolver.

This module handles:
- Fetching the latest stack release, chromium channel and component
  manifests from their metadata endpoints
- Substituting a pinned chromium version without fetching it
- Treating any empty or absent value as a fatal prerequisite failure
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from localstack_build.config import BuildConfig
from localstack_build.errors import FetchError, PrerequisiteError, RetryExhaustedError
from localstack_build.retry import RetryPolicy
from localstack_build.types import ComponentVersionSet

logger = logging.getLogger(__name__)

STACK_URL_LATEST = (
    "https://api.github.com/repos/dan-v/rattlesnakeos-stack/releases/latest"
)
CHROME_URL_LATEST = "https://omahaproxy.appspot.com/all.json"
LATEST_JSON_BASE = "https://raw.githubusercontent.com/RattlesnakeOS/latest"
CHROME_CHANNEL = "stable"

# Timeout for metadata requests (seconds)
FETCH_TIMEOUT = 30


def fetch_json(client: httpx.Client, url: str, timeout: float = FETCH_TIMEOUT) -> Any:
    """Fetch and decode a JSON document.

    Args:
        client: HTTPX client instance.
        url: URL to fetch.
        timeout: Request timeout in seconds.

    Returns:
        Decoded JSON.

    Raises:
        FetchError: On HTTP, network, timeout or decode failure.
    """
    logger.debug("Fetching %s", url)
    try:
        response = client.get(url, timeout=timeout)
        response.raise_for_status()
        return response.json()
    except httpx.HTTPStatusError as e:
        raise FetchError(
            f"HTTP error fetching {url}: {e.response.status_code}",
            code="http_error",
        ) from e
    except httpx.TimeoutException as e:
        raise FetchError(f"Timeout fetching {url}", code="timeout") from e
    except httpx.RequestError as e:
        raise FetchError(
            f"Network error fetching {url}: {e}", code="network_error"
        ) from e
    except ValueError as e:
        raise FetchError(f"Invalid JSON from {url}: {e}", code="invalid_json") from e


def parse_chromium_version(data: Any, channel: str = CHROME_CHANNEL) -> str | None:
    """Extract the current android version for a channel from all.json."""
    if not isinstance(data, list):
        return None
    for entry in data:
        if not isinstance(entry, dict) or entry.get("os") != "android":
            continue
        for version in entry.get("versions", []):
            if version.get("channel") == channel:
                return version.get("current_version") or None
    return None


def _require(value: Any, what: str) -> str:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise PrerequisiteError(
            f"ERROR: Unable to get latest {what} details. Stopping build."
        )
    return str(value).strip()


class VersionResolver:
    """Resolves the current upstream component versions for a device.

    Args:
        client: HTTPX client instance.
        config: Build configuration (running stack version, pins).
        retry_policy: Retry policy applied to each fetch.
        stack_url: Stack release endpoint.
        chrome_url: Browser channel endpoint.
        latest_json_base: Base of the per-android-version component manifests.
    """

    def __init__(
        self,
        client: httpx.Client,
        config: BuildConfig,
        retry_policy: RetryPolicy | None = None,
        stack_url: str = STACK_URL_LATEST,
        chrome_url: str = CHROME_URL_LATEST,
        latest_json_base: str = LATEST_JSON_BASE,
    ) -> None:
        self.client = client
        self.config = config
        self.retry_policy = retry_policy or RetryPolicy(
            attempts=config.retry_attempts,
            initial_delay=config.retry_initial_delay,
        )
        self.stack_url = stack_url
        self.chrome_url = chrome_url
        self.latest_json_base = latest_json_base.rstrip("/")
        self.stack_update_message: str | None = None

    @property
    def aosp_json_url(self) -> str:
        return f"{self.latest_json_base}/{self.config.android_version}/aosp.json"

    @property
    def fdroid_json_url(self) -> str:
        return f"{self.latest_json_base}/{self.config.android_version}/fdroid.json"

    def _fetch(self, url: str, what: str) -> Any:
        try:
            return self.retry_policy.call(
                f"fetch {url}", lambda: fetch_json(self.client, url)
            )
        except RetryExhaustedError as e:
            raise PrerequisiteError(
                f"ERROR: Unable to get latest {what} details. Stopping build. ({e})"
            ) from e

    def resolve_stack(self) -> str:
        """Check the latest stack release and return the running version.

        The running version is what gets compared and checkpointed; a newer
        upstream release only produces an upgrade notice.
        """
        data = self._fetch(self.stack_url, "rattlesnakeos-stack version")
        latest = _require(
            data.get("name") if isinstance(data, dict) else None,
            "rattlesnakeos-stack version",
        )
        if latest == self.config.stack_version:
            logger.info("Running the latest stack version %s", latest)
        else:
            self.stack_update_message = (
                f"WARNING: you should upgrade to the latest version: {latest}"
            )
            logger.warning(self.stack_update_message)
        return self.config.stack_version

    def resolve_chromium(self) -> str:
        if self.config.chromium_version:
            logger.info(
                "Setting latest chromium to pinned version %s",
                self.config.chromium_version,
            )
            return self.config.chromium_version
        data = self._fetch(self.chrome_url, "Chromium version")
        version = _require(parse_chromium_version(data), "Chromium version")
        logger.info("LATEST_CHROMIUM=%s", version)
        return version

    def resolve_fdroid(self) -> tuple[str, str]:
        data = self._fetch(self.fdroid_json_url, "F-Droid version")
        if not isinstance(data, dict):
            data = {}
        client = _require(data.get("client"), "F-Droid version")
        priv_ext = _require(
            data.get("privilegedextention"),
            "F-Droid privilege extension version",
        )
        logger.info("FDROID_CLIENT_VERSION=%s", client)
        logger.info("FDROID_PRIV_EXT_VERSION=%s", priv_ext)
        return client, priv_ext

    def resolve_platform(self, device: str) -> tuple[str, str]:
        if self.config.aosp_build and self.config.aosp_branch:
            return self.config.aosp_build, self.config.aosp_branch
        data = self._fetch(self.aosp_json_url, "AOSP build version")
        entry = data.get(device) if isinstance(data, dict) else None
        if not isinstance(entry, dict):
            entry = {}
        build = self.config.aosp_build or _require(
            entry.get("build"), "AOSP build version"
        )
        branch = self.config.aosp_branch or _require(
            entry.get("branch"), "AOSP branch"
        )
        logger.info("AOSP_BUILD=%s", build)
        logger.info("AOSP_BRANCH=%s", branch)
        return build, branch

    def resolve(self, device: str) -> ComponentVersionSet:
        """Resolve all component versions for a device.

        Args:
            device: Device codename.

        Returns:
            The latest ComponentVersionSet.

        Raises:
            PrerequisiteError: If any required value cannot be obtained.
        """
        stack = self.resolve_stack()
        chromium = self.resolve_chromium()
        fdroid_client, fdroid_priv = self.resolve_fdroid()
        build, branch = self.resolve_platform(device)
        return ComponentVersionSet(
            stack=stack,
            platform_build=build,
            browser_engine=chromium,
            app_store_client=fdroid_client,
            privileged_extension=fdroid_priv,
            platform_branch=branch,
        )


__all__ = [
    "CHROME_URL_LATEST",
    "LATEST_JSON_BASE",
    "STACK_URL_LATEST",
    "VersionResolver",
    "fetch_json",
    "parse_chromium_version",
]
