"""Configuration settings for localstack_build.

Uses pydantic-settings for config parsing from environment variables, a
YAML config file, and defaults. Configuration precedence: CLI flags > env
vars > YAML config file > defaults.

``Settings`` is the mutable, user-facing layer. ``BuildConfig`` is the
immutable per-run configuration handed to every component; it is created
once at orchestration start via ``Settings.to_build_config()``.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from localstack_build.errors import ConfigError

# Pinned chromium versions below this major are rejected
MINIMUM_CHROMIUM_VERSION = 80

# Repositories under this base are considered trusted for customizations
TRUSTED_REPO_BASE = "https://github.com/gnu3ra/localstack"

CONFIG_FILE_ENV = "LOCALSTACK_CONFIG_FILE"
STATE_DIR_NAME = ".localstack"
CONTEXT_DIR_NAME = "build-ubuntu"

# Frozen BuildConfig written next to build.sh at deploy time
DEPLOYED_CONFIG_NAME = "config.json"


def default_config_file() -> Path:
    """Return the YAML config file path, honoring LOCALSTACK_CONFIG_FILE."""
    override = os.environ.get(CONFIG_FILE_ENV)
    if override:
        return Path(override)
    return Path.home() / ".localstack.yaml"


def history_db_url(state_path: Path) -> str:
    """Return the SQLite URL of the build run history under a state path."""
    return f"sqlite:///{state_path / STATE_DIR_NAME / 'history.sqlite'}"


def validate_chromium_version(version: str) -> str:
    """Validate a pinned chromium version string.

    Args:
        version: Version like '90.0.4430.1'.

    Returns:
        The unchanged version string.

    Raises:
        ValueError: If the version is not four dot-separated integers or the
            major version is below MINIMUM_CHROMIUM_VERSION.
    """
    parts = version.split(".")
    if len(parts) != 4:
        raise ValueError(f"invalid chromium-version specified: {version!r}")
    if not all(p.isascii() and p.isdigit() for p in parts):
        raise ValueError(f"unable to parse specified chromium-version: {version!r}")
    if int(parts[0]) < MINIMUM_CHROMIUM_VERSION:
        raise ValueError(
            "pinned chromium-version must have major version of at least "
            f"{MINIMUM_CHROMIUM_VERSION}"
        )
    return version


class CustomPatch(BaseModel):
    """A repository of patch files applied to the source tree in order."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    repo: str
    patches: tuple[str, ...] = ()
    branch: str | None = None


class CustomScript(BaseModel):
    """A repository of shell scripts sourced inside the source tree in order."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    repo: str
    scripts: tuple[str, ...] = ()
    branch: str | None = None


class CustomPrebuilt(BaseModel):
    """A repository of prebuilt apps registered as product packages."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    repo: str
    modules: tuple[str, ...] = ()


class ManifestRemote(BaseModel):
    """An extra remote injected into the local manifest overlay."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str
    fetch: str
    revision: str | None = None


class ManifestProject(BaseModel):
    """An extra project injected into the local manifest overlay."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    path: str
    name: str
    remote: str
    modules: tuple[str, ...] = ()


class BuildConfig(BaseModel):
    """Immutable per-run configuration.

    Created once at orchestration start and passed explicitly to every
    component. Its JSON form is rendered into the container build script.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = "localstack"
    device: str
    stack_version: str
    ignore_version_checks: bool = False
    chromium_version: str | None = None
    hosts_file: str | None = None
    attestation_server: bool = False
    custom_patches: tuple[CustomPatch, ...] = ()
    custom_scripts: tuple[CustomScript, ...] = ()
    custom_prebuilts: tuple[CustomPrebuilt, ...] = ()
    custom_manifest_remotes: tuple[ManifestRemote, ...] = ()
    custom_manifest_projects: tuple[ManifestProject, ...] = ()
    nproc: int = Field(default=1, ge=1)
    state_path: Path = Field(default_factory=Path.home)
    aosp_build: str | None = None
    aosp_branch: str | None = None
    android_version: str = "10.0"
    build_type: Literal["user", "userdebug"] = "user"
    build_channel: str = "stable"
    release_url: str = "https://ota.ballmerlabs.net"
    retry_attempts: int = Field(default=3, ge=1)
    retry_initial_delay: float = Field(default=1.0, ge=0)
    sync_attempts: int = Field(default=10, ge=1)
    vendor_timeout: int = Field(default=1800, ge=60)

    @field_validator("chromium_version")
    @classmethod
    def check_chromium_version(cls, v: str | None) -> str | None:
        if not v:
            return None
        return validate_chromium_version(v)

    @property
    def state_dir(self) -> Path:
        """Root of orchestrator-owned state on the host."""
        return self.state_path / STATE_DIR_NAME

    @property
    def context_dir(self) -> Path:
        """Container image build context directory."""
        return self.state_dir / CONTEXT_DIR_NAME

    @property
    def release_dir(self) -> Path:
        """Host directory bind-mounted as the release blob store."""
        return self.state_dir / "mounts" / "release"

    @property
    def history_db_url(self) -> str:
        return history_db_url(self.state_path)


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the LOCALSTACK_
    prefix and from the YAML config file. CLI flags can override these at
    runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="LOCALSTACK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Stack identity
    name: str = Field(default="localstack", description="Stack name")
    device: str | None = Field(default=None, description="Device codename")
    stack_version: str = Field(
        default="10.0.0", description="Version of the stack being run"
    )

    # Build inputs
    ignore_version_checks: bool = Field(
        default=False, description="Build even if all versions are up to date"
    )
    chromium_version: str | None = Field(
        default=None, description="Pinned chromium version"
    )
    hosts_file: str | None = Field(default=None, description="Custom hosts file URL")
    attestation_server: bool = Field(
        default=False, description="Include the attestation (Auditor) app"
    )
    aosp_build: str | None = Field(default=None, description="Pinned platform build")
    aosp_branch: str | None = Field(
        default=None, description="Pinned platform branch"
    )
    custom_patches: list[CustomPatch] = Field(default_factory=list)
    custom_scripts: list[CustomScript] = Field(default_factory=list)
    custom_prebuilts: list[CustomPrebuilt] = Field(default_factory=list)
    custom_manifest_remotes: list[ManifestRemote] = Field(default_factory=list)
    custom_manifest_projects: list[ManifestProject] = Field(default_factory=list)

    # Paths
    state_path: Path = Field(
        default_factory=Path.home,
        description="Directory holding stateful files for the local stack",
    )

    # Operational
    nproc: int = Field(
        default_factory=lambda: os.cpu_count() or 1,
        ge=1,
        description="Number of parallel jobs for the compile",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    release_url: str = Field(
        default="https://ota.ballmerlabs.net", description="OTA server base URL"
    )
    build_channel: str = Field(default="stable", description="Release channel")

    # Container runtime
    daemon_socket: Path = Field(
        default=Path("/tmp/localstack.sock"),
        description="Container runtime API socket",
    )
    daemon_start_timeout: int = Field(
        default=10,
        ge=1,
        description="Seconds to wait for the runtime socket",
    )

    # Retries and timeouts
    retry_attempts: int = Field(default=3, ge=1, le=20)
    retry_initial_delay: float = Field(default=1.0, ge=0)
    sync_attempts: int = Field(default=10, ge=1, le=50)
    vendor_timeout: int = Field(
        default=1800,
        ge=60,
        description="Timeout for vendor blob extraction (seconds)",
    )

    @field_validator("chromium_version")
    @classmethod
    def check_chromium_version(cls, v: str | None) -> str | None:
        if not v:
            return None
        return validate_chromium_version(v)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=default_config_file()),
            file_secret_settings,
        )

    def to_build_config(self, **overrides: Any) -> BuildConfig:
        """Freeze these settings into a BuildConfig.

        Args:
            **overrides: Field values that take precedence (CLI flags).

        Returns:
            Immutable BuildConfig.

        Raises:
            ValueError: If no device is configured.
        """
        values = self.model_dump(
            include=set(BuildConfig.model_fields) & set(type(self).model_fields)
        )
        values.update({k: v for k, v in overrides.items() if v is not None})
        if not values.get("device"):
            raise ValueError("must specify device type")
        return BuildConfig.model_validate(values)


def untrusted_repositories(config: BuildConfig) -> list[tuple[str, str]]:
    """List customization repositories not hosted under TRUSTED_REPO_BASE.

    Returns:
        (kind, repo) pairs, kind being patches, scripts or prebuilts.
    """
    sources = (
        ("patches", config.custom_patches),
        ("scripts", config.custom_scripts),
        ("prebuilts", config.custom_prebuilts),
    )
    return [
        (kind, spec.repo)
        for kind, specs in sources
        for spec in specs
        if TRUSTED_REPO_BASE not in spec.repo.lower()
    ]


def load_deployed_config(state_path: Path) -> BuildConfig | None:
    """Load the BuildConfig frozen into the build context by the last deploy.

    Args:
        state_path: Directory holding the orchestrator state.

    Returns:
        The deployed configuration, or None if nothing was deployed.

    Raises:
        ConfigError: If the stored configuration cannot be parsed.
    """
    path = state_path / STATE_DIR_NAME / CONTEXT_DIR_NAME / DEPLOYED_CONFIG_NAME
    if not path.is_file():
        return None
    try:
        return BuildConfig.model_validate_json(path.read_text(encoding="utf-8"))
    except ValidationError as e:
        raise ConfigError(
            f"Deployed configuration {path} is invalid: {e}; run deploy again",
            code="invalid_deployed_config",
        ) from e


def get_settings() -> Settings:
    """Get the application settings.

    Returns:
        Settings instance loaded from environment and config file.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


def save_settings(settings: Settings, path: Path | None = None) -> Path:
    """Write settings to the YAML config file.

    Args:
        settings: Settings to persist.
        path: Destination; defaults to default_config_file().

    Returns:
        Path written.
    """
    if path is None:
        path = default_config_file()
    data = settings.model_dump(mode="json", exclude_none=True)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, sort_keys=False)
    return path


__all__ = [
    "CONTEXT_DIR_NAME",
    "DEPLOYED_CONFIG_NAME",
    "MINIMUM_CHROMIUM_VERSION",
    "TRUSTED_REPO_BASE",
    "BuildConfig",
    "CustomPatch",
    "CustomPrebuilt",
    "CustomScript",
    "ManifestProject",
    "ManifestRemote",
    "Settings",
    "default_config_file",
    "get_settings",
    "history_db_url",
    "load_deployed_config",
    "print_settings_json",
    "save_settings",
    "untrusted_repositories",
    "validate_chromium_version",
]
