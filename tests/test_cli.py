"""Smoke tests for the CLI.

These tests verify CLI behavior without network access, a container
runtime, or the user's own configuration.
"""

import json
import subprocess
import sys
from contextlib import nullcontext
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import yaml
from typer.testing import CliRunner

from localstack_build import __version__
from localstack_build.cli import app
from localstack_build.config import BuildConfig, history_db_url
from localstack_build.container import materialize_context
from localstack_build.db import get_session, open_history
from localstack_build.errors import DaemonUnavailableError
from localstack_build.runs import start_run
from localstack_build.types import BuildDecision, BuildStatus, ComponentVersionSet

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    """Isolate config file, state directory and logging."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("LOCALSTACK_CONFIG_FILE", str(tmp_path / "localstack.yaml"))
    monkeypatch.setenv("LOCALSTACK_STATE_PATH", str(tmp_path))
    monkeypatch.delenv("LOCALSTACK_DEVICE", raising=False)
    with patch("localstack_build.cli.configure_logging"):
        yield tmp_path


def deploy_session(context_dir: Path = Path("/ctx")) -> MagicMock:
    session = MagicMock()
    session.return_value.__enter__.return_value.apply.return_value = context_dir
    return session


def rendering_session(config: BuildConfig, *args):
    orchestrator = MagicMock()
    orchestrator.apply.side_effect = lambda: materialize_context(config)
    return nullcontext(orchestrator)


class TestCLIHelp:
    """Test CLI help and version commands."""

    def test_help_returns_zero(self) -> None:
        """CLI --help should return exit code 0."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "LocalStack" in result.stdout

    def test_version_flag(self) -> None:
        """CLI --version should print version and exit 0."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_short_version_flag(self) -> None:
        """CLI -V should print version and exit 0."""
        result = runner.invoke(app, ["-V"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_no_args_shows_help(self) -> None:
        """CLI with no args should show help."""
        result = runner.invoke(app, [])
        assert "Usage:" in result.stdout

    def test_execute_is_hidden(self) -> None:
        """The in-container entry point is not advertised."""
        result = runner.invoke(app, ["--help"])
        assert "execute" not in result.stdout


class TestCLIDevices:
    """Test CLI devices command."""

    def test_devices_lists_catalog(self) -> None:
        """Every supported device is listed; deprecated ones are marked."""
        result = runner.invoke(app, ["devices"])
        assert result.exit_code == 0
        assert "crosshatch" in result.stdout
        assert "Pixel 3a XL" in result.stdout
        assert "deprecated" in result.stdout

    def test_devices_json(self) -> None:
        """devices --json has stable keys."""
        result = runner.invoke(app, ["devices", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        crosshatch = next(d for d in data if d["codename"] == "crosshatch")
        assert crosshatch == {
            "codename": "crosshatch",
            "name": "Pixel 3 XL",
            "family": "crosshatch",
            "signing_mode": "vbmeta_chained",
            "deprecated": False,
        }


class TestCLIConfig:
    """Test CLI config command."""

    def test_config_command_shows_all_sections(self) -> None:
        """CLI config should show every section."""
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        for section in ("Stack:", "Customizations:", "Paths:", "Operational:"):
            assert section in result.stdout
        assert "(not set)" in result.stdout

    def test_config_json(self) -> None:
        """CLI config --json should output every setting."""
        result = runner.invoke(app, ["config", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        for key in ("device", "state_path", "daemon_socket", "custom_patches"):
            assert key in data

    def test_config_reads_yaml(self, isolated) -> None:
        """Values from the YAML config file are shown."""
        (isolated / "localstack.yaml").write_text(yaml.safe_dump({"device": "sargo"}))
        result = runner.invoke(app, ["config", "--json"])
        assert json.loads(result.stdout)["device"] == "sargo"

    def test_invalid_config_exits_nonzero(self, isolated) -> None:
        """Invalid settings are reported with exit code 1."""
        (isolated / "localstack.yaml").write_text(
            yaml.safe_dump({"chromium_version": "12"})
        )
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 1
        assert "Invalid configuration" in result.stdout


class TestCLIDeploy:
    """Test CLI deploy command."""

    def test_list_devices(self) -> None:
        """-d list prints valid devices and exits 0."""
        result = runner.invoke(app, ["deploy", "-d", "list"])
        assert result.exit_code == 0
        assert "Valid devices are:" in result.stdout
        assert "crosshatch" in result.stdout

    def test_requires_device(self) -> None:
        """Without a device, deploy fails."""
        result = runner.invoke(app, ["deploy", "--yes"])
        assert result.exit_code == 1
        assert "must specify device type" in result.stdout

    def test_unsupported_device(self) -> None:
        """Unknown devices are rejected."""
        result = runner.invoke(app, ["deploy", "-d", "pixel9", "--yes"])
        assert result.exit_code == 1
        assert "must specify a supported device" in result.stdout

    def test_invalid_chromium_version(self) -> None:
        """A malformed chromium version is rejected before anything is built."""
        with patch("localstack_build.pipeline.container_session") as session:
            result = runner.invoke(
                app,
                ["deploy", "-d", "crosshatch", "--chromium-version", "90.1", "--yes"],
            )
        assert result.exit_code == 1
        session.assert_not_called()

    def test_deploy_builds_image(self) -> None:
        """With --yes, deploy renders the context and builds the image."""
        session = deploy_session()
        with patch("localstack_build.pipeline.container_session", session):
            result = runner.invoke(app, ["deploy", "-d", "crosshatch", "--yes"])

        assert result.exit_code == 0
        assert "Current settings:" in result.stdout
        assert "Deployed build environment" in result.stdout
        config = session.call_args.args[0]
        assert isinstance(config, BuildConfig)
        assert config.device == "crosshatch"

    def test_declined_confirmation(self) -> None:
        """Answering no aborts without touching the runtime."""
        session = deploy_session()
        with patch("localstack_build.pipeline.container_session", session):
            result = runner.invoke(app, ["deploy", "-d", "crosshatch"], input="n\n")

        assert result.exit_code == 0
        assert "Aborted." in result.stdout
        session.assert_not_called()

    def test_deprecated_device_warning(self) -> None:
        """Deprecated devices deploy with a warning."""
        with patch("localstack_build.pipeline.container_session", deploy_session()):
            result = runner.invoke(app, ["deploy", "-d", "marlin", "--yes"])
        assert result.exit_code == 0
        assert "WARNING" in result.stdout

    def test_untrusted_repository_warning(self, isolated) -> None:
        """Customization repositories outside the trusted base are flagged."""
        (isolated / "localstack.yaml").write_text(
            yaml.safe_dump(
                {"custom_scripts": [{"repo": "https://example.com/s", "scripts": []}]}
            )
        )
        with patch("localstack_build.pipeline.container_session", deploy_session()):
            result = runner.invoke(app, ["deploy", "-d", "crosshatch", "--yes"])
        assert result.exit_code == 0
        assert "untrusted repository" in result.stdout

    def test_save_config(self, isolated) -> None:
        """--save-config writes the passed flags to the config file."""
        with patch("localstack_build.pipeline.container_session", deploy_session()):
            result = runner.invoke(
                app,
                [
                    "deploy",
                    "-d",
                    "sargo",
                    "--chromium-version",
                    "90.0.4430.91",
                    "--save-config",
                    "--yes",
                ],
            )
        assert result.exit_code == 0
        saved = yaml.safe_load((isolated / "localstack.yaml").read_text())
        assert saved["device"] == "sargo"
        assert saved["chromium_version"] == "90.0.4430.91"

    def test_runtime_failure(self) -> None:
        """Runtime failures are reported with their code."""
        session = MagicMock(
            side_effect=DaemonUnavailableError(
                "podman not found", code="runtime_not_installed"
            )
        )
        with patch("localstack_build.pipeline.container_session", session):
            result = runner.invoke(app, ["deploy", "-d", "crosshatch", "--yes"])
        assert result.exit_code == 1
        assert "runtime_not_installed" in result.stdout


class TestCLIBuild:
    """Test CLI build command."""

    def test_requires_device(self) -> None:
        """build needs a configured device."""
        result = runner.invoke(app, ["build"])
        assert result.exit_code == 1
        assert "must specify device type" in result.stdout

    def test_requires_deploy(self, monkeypatch) -> None:
        """build refuses to run before deploy."""
        monkeypatch.setenv("LOCALSTACK_DEVICE", "crosshatch")
        result = runner.invoke(app, ["build"])
        assert result.exit_code == 1
        assert "not deployed" in result.stdout

    def test_build_not_required(self, isolated, monkeypatch) -> None:
        """An up-to-date device reports that no build was needed."""
        monkeypatch.setenv("LOCALSTACK_DEVICE", "crosshatch")
        context = isolated / ".localstack" / "build-ubuntu"
        context.mkdir(parents=True)
        (context / "build.sh").write_text("#!/bin/bash\n")

        outcome = MagicMock(built=False)
        with patch(
            "localstack_build.pipeline.run_build_cycle", return_value=outcome
        ) as cycle:
            result = runner.invoke(app, ["build", "--force"])

        assert result.exit_code == 0
        assert "Build not required" in result.stdout
        args = cycle.call_args.args
        assert args[0].device == "crosshatch"
        assert args[1] is True

    def test_uses_deployed_config(self) -> None:
        """Flags given to deploy reach the build without --save-config."""
        pin = "90.0.4430.1"
        with patch("localstack_build.pipeline.container_session", rendering_session):
            deployed = runner.invoke(
                app, ["deploy", "-d", "crosshatch", "--chromium-version", pin, "--yes"]
            )
        assert deployed.exit_code == 0

        outcome = MagicMock(built=True, device="crosshatch")
        with patch(
            "localstack_build.pipeline.run_build_cycle", return_value=outcome
        ) as cycle:
            result = runner.invoke(app, ["build"])

        assert result.exit_code == 0
        config = cycle.call_args.args[0]
        assert config.device == "crosshatch"
        assert config.chromium_version == pin

    def test_invalid_deployed_config(self, isolated) -> None:
        """A corrupt deployed configuration asks for a redeploy."""
        context = isolated / ".localstack" / "build-ubuntu"
        context.mkdir(parents=True)
        (context / "config.json").write_text("{not json")

        result = runner.invoke(app, ["build"])
        assert result.exit_code == 1
        assert "invalid_deployed_config" in result.stdout


class TestCLIHistory:
    """Test CLI history command."""

    def test_empty_history(self) -> None:
        """No runs recorded yet."""
        result = runner.invoke(app, ["history"])
        assert result.exit_code == 0
        assert "No build runs recorded" in result.stdout

    def test_history_json(self, isolated) -> None:
        """history --json lists recorded runs."""
        latest = ComponentVersionSet("10.0.0", "QQ3A", "90.0.4430.91", "1.12", "0.2")
        with get_session(open_history(history_db_url(isolated))) as session:
            start_run(
                session,
                "crosshatch",
                BuildDecision(required=True, reasons=("initial build",)),
                latest,
            )

        result = runner.invoke(app, ["history", "--json"])
        assert result.exit_code == 0
        (run,) = json.loads(result.stdout)
        assert run["device"] == "crosshatch"
        assert run["status"] == BuildStatus.RUNNING.value
        assert run["reasons"] == ["initial build"]


class TestCLIExecute:
    """Test the in-container entry point."""

    def test_missing_plan(self, monkeypatch) -> None:
        """Without a run plan in the environment, execute fails with its code."""
        monkeypatch.delenv("LOCALSTACK_BUILD_CONFIG", raising=False)
        monkeypatch.delenv("LOCALSTACK_RUN_PLAN", raising=False)
        result = runner.invoke(app, ["execute"])
        assert result.exit_code == 1
        assert "missing_plan" in result.stdout


class TestModuleEntryPoint:
    """Test python -m localstack_build entry point."""

    def test_module_help(self) -> None:
        """python -m localstack_build --help should work."""
        result = subprocess.run(
            [sys.executable, "-m", "localstack_build", "--help"],
            capture_output=True,
            text=True,
        )
        assert result.returncode == 0
        assert "LocalStack" in result.stdout
