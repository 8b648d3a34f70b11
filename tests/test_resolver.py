"""Tests for versions/resolver.py module.

HTTP endpoints are mocked with respx.
"""

import httpx
import pytest
import respx

from localstack_build.config import BuildConfig
from localstack_build.errors import FetchError, PrerequisiteError
from localstack_build.retry import RetryPolicy
from localstack_build.versions.resolver import (
    CHROME_URL_LATEST,
    LATEST_JSON_BASE,
    STACK_URL_LATEST,
    VersionResolver,
    fetch_json,
    parse_chromium_version,
)

AOSP_URL = f"{LATEST_JSON_BASE}/10.0/aosp.json"
FDROID_URL = f"{LATEST_JSON_BASE}/10.0/fdroid.json"

CHROME_JSON = [
    {"os": "win", "versions": [{"channel": "stable", "current_version": "1.0"}]},
    {
        "os": "android",
        "versions": [
            {"channel": "beta", "current_version": "91.0.4472.19"},
            {"channel": "stable", "current_version": "90.0.4430.91"},
        ],
    },
]


def no_sleep(_: float) -> None:
    pass


@pytest.fixture
def config():
    return BuildConfig(device="crosshatch", stack_version="10.0.0")


@pytest.fixture
def client():
    with httpx.Client() as c:
        yield c


def resolver(client, config, attempts: int = 1) -> VersionResolver:
    return VersionResolver(
        client, config, RetryPolicy(attempts=attempts, sleep=no_sleep)
    )


def mock_all(router) -> dict:
    aosp = {
        "crosshatch": {"build": "QQ3A.200805.001", "branch": "android-10.0.0_r41"}
    }
    return {
        "stack": router.get(STACK_URL_LATEST).respond(json={"name": "10.0.0"}),
        "chrome": router.get(CHROME_URL_LATEST).respond(json=CHROME_JSON),
        "fdroid": router.get(FDROID_URL).respond(
            json={"client": "1.12", "privilegedextention": "0.2.11"}
        ),
        "aosp": router.get(AOSP_URL).respond(json=aosp),
    }


class TestParseChromiumVersion:
    """Test channel JSON parsing."""

    def test_finds_android_stable(self) -> None:
        """The android stable current_version is returned."""
        assert parse_chromium_version(CHROME_JSON) == "90.0.4430.91"

    def test_missing_android_entry(self) -> None:
        """No android entry yields None."""
        assert parse_chromium_version(CHROME_JSON[:1]) is None

    def test_not_a_list(self) -> None:
        """Unexpected shapes yield None."""
        assert parse_chromium_version({"os": "android"}) is None


class TestFetchJson:
    """Test the fetch primitive."""

    @respx.mock
    def test_http_error(self, client) -> None:
        """HTTP errors become FetchError with the status code."""
        respx.get("https://example.com/x.json").respond(status_code=503)
        with pytest.raises(FetchError) as exc_info:
            fetch_json(client, "https://example.com/x.json")
        assert exc_info.value.code == "http_error"

    @respx.mock
    def test_invalid_json(self, client) -> None:
        """Undecodable bodies become FetchError."""
        respx.get("https://example.com/x.json").respond(text="not json")
        with pytest.raises(FetchError) as exc_info:
            fetch_json(client, "https://example.com/x.json")
        assert exc_info.value.code == "invalid_json"

    @respx.mock
    def test_network_error(self, client) -> None:
        """Connection failures become FetchError."""
        respx.get("https://example.com/x.json").mock(
            side_effect=httpx.ConnectError("refused")
        )
        with pytest.raises(FetchError) as exc_info:
            fetch_json(client, "https://example.com/x.json")
        assert exc_info.value.code == "network_error"


class TestVersionResolver:
    """Test full resolution."""

    @respx.mock
    def test_resolve(self, client, config) -> None:
        """All components resolve from their endpoints."""
        mock_all(respx)
        versions = resolver(client, config).resolve("crosshatch")

        assert versions.stack == "10.0.0"
        assert versions.browser_engine == "90.0.4430.91"
        assert versions.app_store_client == "1.12"
        assert versions.privileged_extension == "0.2.11"
        assert versions.platform_build == "QQ3A.200805.001"
        assert versions.platform_branch == "android-10.0.0_r41"

    @respx.mock
    def test_pinned_chromium_is_not_fetched(self, client) -> None:
        """A pinned chromium version is used without a channel fetch."""
        routes = mock_all(respx)
        config = BuildConfig(
            device="crosshatch", stack_version="10.0.0", chromium_version="88.0.1.2"
        )
        versions = resolver(client, config).resolve("crosshatch")

        assert versions.browser_engine == "88.0.1.2"
        assert not routes["chrome"].called

    @respx.mock
    def test_newer_stack_release_only_warns(self, client) -> None:
        """The running stack version is what gets compared."""
        mock_all(respx)
        respx.get(STACK_URL_LATEST).respond(json={"name": "11.0.0"})
        r = resolver(client, BuildConfig(device="crosshatch", stack_version="10.0.0"))

        assert r.resolve("crosshatch").stack == "10.0.0"
        assert r.stack_update_message is not None
        assert "11.0.0" in r.stack_update_message

    @respx.mock
    def test_pinned_platform_build(self, client) -> None:
        """Pinned build and branch bypass the aosp manifest."""
        routes = mock_all(respx)
        config = BuildConfig(
            device="crosshatch",
            stack_version="10.0.0",
            aosp_build="QQ2A.200501.001",
            aosp_branch="android-10.0.0_r36",
        )
        versions = resolver(client, config).resolve("crosshatch")
        assert versions.platform_build == "QQ2A.200501.001"
        assert not routes["aosp"].called

    @respx.mock
    def test_missing_device_is_prerequisite_failure(self, client, config) -> None:
        """An absent device entry aborts resolution."""
        mock_all(respx)
        with pytest.raises(PrerequisiteError, match="AOSP build version"):
            resolver(client, config).resolve("sargo")

    @respx.mock
    def test_empty_fdroid_version(self, client, config) -> None:
        """An empty component value is a prerequisite failure."""
        mock_all(respx)
        respx.get(FDROID_URL).respond(
            json={"client": "", "privilegedextention": "0.2.11"}
        )
        with pytest.raises(PrerequisiteError) as exc_info:
            resolver(client, config).resolve("crosshatch")
        assert exc_info.value.category == "prerequisite"

    @respx.mock
    def test_fetch_retried_then_succeeds(self, client, config) -> None:
        """Transient fetch failures are retried by the policy."""
        mock_all(respx)
        respx.get(FDROID_URL).mock(
            side_effect=[
                httpx.Response(502),
                httpx.Response(
                    200, json={"client": "1.12", "privilegedextention": "0.2.11"}
                ),
            ]
        )
        versions = resolver(client, config, attempts=3).resolve("crosshatch")
        assert versions.app_store_client == "1.12"

    @respx.mock
    def test_fetch_exhausted_is_prerequisite_failure(self, client, config) -> None:
        """Exhausted fetch retries abort the run."""
        mock_all(respx)
        respx.get(CHROME_URL_LATEST).respond(status_code=500)
        with pytest.raises(PrerequisiteError, match="Chromium version"):
            resolver(client, config, attempts=2).resolve("crosshatch")
