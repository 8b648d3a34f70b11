"""Tests for configuration module."""

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml
from pydantic import ValidationError

from localstack_build.config import (
    BuildConfig,
    CustomPatch,
    CustomPrebuilt,
    CustomScript,
    Settings,
    get_settings,
    load_deployed_config,
    print_settings_json,
    save_settings,
    untrusted_repositories,
    validate_chromium_version,
)
from localstack_build.errors import ConfigError


@pytest.fixture(autouse=True)
def config_file(tmp_path, monkeypatch):
    """Point the YAML config source at an isolated file."""
    path = tmp_path / "localstack.yaml"
    monkeypatch.setenv("LOCALSTACK_CONFIG_FILE", str(path))
    return path


class TestSettings:
    """Test Settings class."""

    def test_default_settings(self) -> None:
        """Settings should have sensible defaults."""
        settings = Settings()

        assert settings.name == "localstack"
        assert settings.device is None
        assert settings.state_path == Path.home()
        assert settings.daemon_socket == Path("/tmp/localstack.sock")
        assert settings.log_level == "INFO"
        assert settings.nproc >= 1
        assert settings.custom_patches == []

    def test_settings_from_env(self) -> None:
        """Settings should be loadable from environment variables."""
        with patch.dict(
            os.environ,
            {
                "LOCALSTACK_DEVICE": "crosshatch",
                "LOCALSTACK_LOG_LEVEL": "DEBUG",
                "LOCALSTACK_NPROC": "8",
            },
        ):
            settings = Settings()
            assert settings.device == "crosshatch"
            assert settings.log_level == "DEBUG"
            assert settings.nproc == 8

    def test_settings_from_yaml_file(self, config_file) -> None:
        """Settings should read the YAML config file."""
        config_file.write_text(
            yaml.safe_dump(
                {
                    "device": "sargo",
                    "hosts_file": "https://example.com/hosts",
                    "custom_patches": [
                        {"repo": "https://example.com/patches", "patches": ["a.patch"]}
                    ],
                }
            )
        )
        settings = Settings()
        assert settings.device == "sargo"
        assert settings.hosts_file == "https://example.com/hosts"
        assert settings.custom_patches[0].patches == ("a.patch",)

    def test_env_overrides_yaml(self, config_file) -> None:
        """Environment variables take precedence over the YAML file."""
        config_file.write_text(yaml.safe_dump({"device": "sargo"}))
        with patch.dict(os.environ, {"LOCALSTACK_DEVICE": "bonito"}):
            assert Settings().device == "bonito"

    def test_invalid_chromium_version_rejected(self) -> None:
        """A malformed pinned chromium version fails validation."""
        with pytest.raises(ValidationError):
            Settings(chromium_version="90.1")


class TestValidateChromiumVersion:
    """Test chromium version pinning rules."""

    def test_valid_version(self) -> None:
        """Four integers with a recent major are accepted."""
        assert validate_chromium_version("90.0.4430.91") == "90.0.4430.91"

    def test_wrong_part_count(self) -> None:
        """Versions must have exactly four parts."""
        with pytest.raises(ValueError, match="invalid chromium-version"):
            validate_chromium_version("90.0.4430")

    def test_non_numeric(self) -> None:
        """Every part must be an integer."""
        with pytest.raises(ValueError, match="unable to parse"):
            validate_chromium_version("90.0.x.1")

    @pytest.mark.parametrize(
        "version", ["90.0.-1.4", "90.0.+3.4", "90.0. 3.4", "90.0.4_430.1", "90..4430.1"]
    )
    def test_signed_or_padded_parts_rejected(self, version) -> None:
        """Only plain decimal digits are accepted in each part."""
        with pytest.raises(ValueError, match="unable to parse"):
            validate_chromium_version(version)

    def test_major_below_minimum(self) -> None:
        """Majors below the minimum are rejected."""
        with pytest.raises(ValueError, match="at least 80"):
            validate_chromium_version("79.0.3945.1")


class TestToBuildConfig:
    """Test freezing settings into a BuildConfig."""

    def test_requires_device(self) -> None:
        """A BuildConfig cannot be made without a device."""
        with pytest.raises(ValueError, match="must specify device type"):
            Settings().to_build_config()

    def test_overrides_take_precedence(self) -> None:
        """CLI overrides win over settings; None overrides are ignored."""
        settings = Settings(device="sargo", chromium_version="90.0.4430.91")
        config = settings.to_build_config(device="crosshatch", chromium_version=None)
        assert config.device == "crosshatch"
        assert config.chromium_version == "90.0.4430.91"

    def test_build_config_is_frozen(self) -> None:
        """BuildConfig cannot be mutated."""
        config = Settings(device="sargo").to_build_config()
        with pytest.raises(ValidationError):
            config.device = "bonito"

    def test_paths(self, tmp_path) -> None:
        """State-derived paths live under .localstack."""
        config = BuildConfig(device="sargo", stack_version="1", state_path=tmp_path)
        assert config.state_dir == tmp_path / ".localstack"
        assert config.context_dir == tmp_path / ".localstack" / "build-ubuntu"
        assert config.release_dir == tmp_path / ".localstack" / "mounts" / "release"
        assert config.history_db_url.endswith("history.sqlite")


class TestUntrustedRepositories:
    """Test untrusted customization repository detection."""

    def test_flags_foreign_repos(self) -> None:
        """Repositories outside the trusted base are reported with their kind."""
        config = BuildConfig(
            device="sargo",
            stack_version="1",
            custom_patches=(
                CustomPatch(repo="https://github.com/gnu3ra/localstack-patches"),
            ),
            custom_scripts=(CustomScript(repo="https://example.com/scripts"),),
            custom_prebuilts=(CustomPrebuilt(repo="https://example.com/apps"),),
        )
        assert untrusted_repositories(config) == [
            ("scripts", "https://example.com/scripts"),
            ("prebuilts", "https://example.com/apps"),
        ]


class TestGetSettings:
    """Test get_settings function."""

    def test_get_settings_returns_settings(self) -> None:
        """get_settings should return a Settings instance."""
        settings = get_settings()
        assert isinstance(settings, Settings)


class TestPrintSettingsJson:
    """Test print_settings_json function."""

    def test_print_settings_json(self) -> None:
        """print_settings_json should return valid JSON."""
        settings = Settings()
        parsed = json.loads(print_settings_json(settings))

        assert "device" in parsed
        assert "state_path" in parsed
        assert "daemon_socket" in parsed


class TestSaveSettings:
    """Test writing settings back to YAML."""

    def test_round_trips_through_yaml(self, tmp_path) -> None:
        """Saved settings load back with the same values."""
        path = tmp_path / "saved.yaml"
        save_settings(Settings(device="bonito", attestation_server=True), path)

        data = yaml.safe_load(path.read_text())
        assert data["device"] == "bonito"
        assert data["attestation_server"] is True
        assert "chromium_version" not in data


class TestLoadDeployedConfig:
    """Test reading back the configuration frozen at deploy time."""

    def write(self, state_path: Path, content: str) -> None:
        context = state_path / ".localstack" / "build-ubuntu"
        context.mkdir(parents=True)
        (context / "config.json").write_text(content)

    def test_nothing_deployed(self, tmp_path) -> None:
        """Without a deploy there is no stored configuration."""
        assert load_deployed_config(tmp_path) is None

    def test_round_trip(self, tmp_path) -> None:
        """The stored config wins over whatever the settings say now."""
        config = BuildConfig(
            device="sargo",
            stack_version="10.0.0",
            chromium_version="90.0.4430.1",
            ignore_version_checks=True,
            state_path=tmp_path,
        )
        self.write(tmp_path, config.model_dump_json(indent=2))

        assert load_deployed_config(tmp_path) == config

    def test_corrupt_file(self, tmp_path) -> None:
        """An unreadable config asks for a redeploy."""
        self.write(tmp_path, '{"device": 1')
        with pytest.raises(ConfigError) as exc_info:
            load_deployed_config(tmp_path)
        assert exc_info.value.code == "invalid_deployed_config"
