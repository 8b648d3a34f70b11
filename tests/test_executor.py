"""Tests for executor/stages.py module."""

import subprocess
from pathlib import Path

import pytest

from localstack_build.config import BuildConfig
from localstack_build.devices import RETROFIT_DYNAMIC_PARTITIONS, get_profile
from localstack_build.errors import CommandError, StageError
from localstack_build.executor import (
    BuildExecutor,
    ExecutorPaths,
    chromium_version_code,
    plan_stages,
)
from localstack_build.retry import RetryPolicy
from localstack_build.types import (
    BuildDecision,
    BuildRunState,
    ComponentVersionSet,
    Stage,
)

BUILD_NUMBER = "2021.10.05.12"

LATEST = ComponentVersionSet(
    stack="10.0.0",
    platform_build="QQ3A.200805.001",
    browser_engine="90.0.4430.91",
    app_store_client="1.12",
    privileged_extension="0.2.11",
    platform_branch="android-10.0.0_r41",
)


class FakeRunner:
    """Records commands and fails those containing a configured marker."""

    def __init__(self, fail_on: str | None = None, failures: int = -1) -> None:
        self.calls: list[tuple[list[str], dict]] = []
        self.fail_on = fail_on
        self.failures = failures

    def run(self, args, **kwargs):
        args = list(args)
        self.calls.append((args, kwargs))
        if self.fail_on and self.failures != 0 and self.fail_on in " ".join(args):
            self.failures -= 1
            raise CommandError(f"{args[0]} failed", exit_code=2)
        return subprocess.CompletedProcess(args, 0, "", "")

    def bash(self, script, **kwargs):
        return self.run(["bash", "-e", "-c", script], **kwargs)

    def commands(self) -> list[str]:
        return [" ".join(args) for args, _ in self.calls]


def no_sleep(seconds: float) -> None:
    pass


@pytest.fixture
def paths(tmp_path):
    return ExecutorPaths(
        build_dir=tmp_path / "build",
        keys_root=tmp_path / "keys",
        release_dir=tmp_path / "release",
        cache_dir=tmp_path / "cache",
        scripts_dir=tmp_path / "script",
        home=tmp_path / "home",
    )


def make_executor(
    paths: ExecutorPaths, runner: FakeRunner, device: str = "crosshatch"
) -> BuildExecutor:
    config = BuildConfig(device=device, stack_version="10.0.0", nproc=4)
    state = BuildRunState(
        device=device,
        force_build=False,
        latest=LATEST,
        decision=BuildDecision(required=True, reasons=("initial build",)),
        key_dir=paths.keys_root / device,
    )
    return BuildExecutor(
        config,
        get_profile(device),
        state,
        runner,
        retry_policy=RetryPolicy(attempts=3, sleep=no_sleep),
        paths=paths,
        build_number=BUILD_NUMBER,
        build_timestamp=1633435200,
    )


class TestPlanStages:
    """Test stage planning."""

    def test_vbmeta_device_has_no_kernel_stage(self) -> None:
        """Devices that do not rebuild the kernel skip the kernel stage."""
        stages = plan_stages(get_profile("crosshatch"))
        assert Stage.KERNEL not in stages
        assert stages[0] == Stage.DEPENDENCIES
        assert stages[-1] == Stage.ARCHIVE
        assert stages.index(Stage.CUSTOMIZE) < stages.index(Stage.COMPILE)

    def test_legacy_device_rebuilds_kernel(self) -> None:
        """Kernel rebuild sits between customization and compilation."""
        stages = plan_stages(get_profile("marlin"))
        kernel = stages.index(Stage.KERNEL)
        assert stages[kernel - 1] == Stage.CUSTOMIZE
        assert stages[kernel + 1] == Stage.COMPILE

    def test_publish_is_not_an_executor_stage(self) -> None:
        """Publishing happens after the executor, never inside it."""
        assert Stage.PUBLISH not in plan_stages(get_profile("sargo"))


class TestChromiumVersionCode:
    """Test chromium version code derivation."""

    def test_version_code(self) -> None:
        """Build number, zero-padded patch and the arm64 suffix."""
        assert chromium_version_code("90.0.4430.91") == "443009152"
        assert chromium_version_code("80.0.3987.162") == "398716252"


class TestExecute:
    """Test stage execution and failure handling."""

    def test_failure_stops_later_stages(self, paths) -> None:
        """The first failing stage aborts the run; nothing after it runs."""
        runner = FakeRunner(fail_on="target-files-package")
        executor = make_executor(paths, runner)

        with pytest.raises(StageError) as exc_info:
            executor.run([Stage.COMPILE, Stage.PACKAGE])

        assert exc_info.value.stage == "compile"
        assert exc_info.value.category == "transient"
        assert not any("brillo_update_payload" in c for c in runner.commands())
        assert executor.state.completed_stages == []

    def test_failure_not_logged_by_stage(self, paths, caplog) -> None:
        """A failing stage raises without its own failure banner."""
        runner = FakeRunner(fail_on="target-files-package")
        with pytest.raises(StageError):
            make_executor(paths, runner).execute(Stage.COMPILE)

        assert "FAILED" not in caplog.text

    def test_compile_is_not_retried(self, paths) -> None:
        """Compile failures are fatal on the first attempt."""
        runner = FakeRunner(fail_on="target-files-package")
        with pytest.raises(StageError):
            make_executor(paths, runner).execute(Stage.COMPILE)

        assert len(runner.calls) == 1

    def test_completed_stages_are_recorded(self, paths) -> None:
        """Successful stages are appended in order."""
        executor = make_executor(paths, FakeRunner())
        executor.execute(Stage.COMPILE)
        executor.execute(Stage.PACKAGE)
        assert executor.state.completed_stages == [Stage.COMPILE, Stage.PACKAGE]

    def test_stage_without_handler(self, paths) -> None:
        """Stages the executor does not own are rejected."""
        with pytest.raises(StageError, match="No handler"):
            make_executor(paths, FakeRunner()).execute(Stage.PUBLISH)

    def test_run_without_artifacts_fails(self, paths) -> None:
        """A plan that never archives produces no artifacts and fails."""
        with pytest.raises(StageError) as exc_info:
            make_executor(paths, FakeRunner()).run([])
        assert exc_info.value.stage == "archive"


class TestSourceStages:
    """Test source checkout stages."""

    def test_sync_is_retried(self, paths) -> None:
        """repo sync is retried until it succeeds."""
        runner = FakeRunner(fail_on="repo sync", failures=2)
        make_executor(paths, runner).execute(Stage.SOURCE_SYNC)

        assert sum("repo sync" in c for c in runner.commands()) == 3

    def test_init_requires_branch(self, paths) -> None:
        """Without a resolved branch the stage fails as a prerequisite."""
        executor = make_executor(paths, FakeRunner())
        executor.state.latest = ComponentVersionSet(
            **{**LATEST.to_dict(), "platform_branch": None}
        )

        with pytest.raises(StageError) as exc_info:
            executor.execute(Stage.SOURCE_INIT)
        assert exc_info.value.category == "prerequisite"

    def test_init_writes_manifest_overlay(self, paths) -> None:
        """repo init uses the resolved branch and the overlay is written."""
        runner = FakeRunner()
        make_executor(paths, runner).execute(Stage.SOURCE_INIT)

        assert any(
            "--manifest-branch android-10.0.0_r41" in c for c in runner.commands()
        )
        assert (paths.build_dir / ".repo/local_manifests").is_dir()


class TestBrowserEngine:
    """Test the chromium build cache."""

    def test_cached_build_is_reused(self, paths) -> None:
        """A matching revision marker with both APKs skips the build."""
        cache = paths.browser_cache
        cache.mkdir(parents=True)
        (cache / "revision").write_text("90.0.4430.91\n")
        (cache / "SystemWebView.apk").write_bytes(b"apk")
        (cache / "ChromeModernPublic.apk").write_bytes(b"apk")

        runner = FakeRunner()
        make_executor(paths, runner).execute(Stage.BROWSER_ENGINE)
        assert runner.calls == []


class TestVendor:
    """Test vendor blob extraction."""

    def test_installs_device_and_family_vendor(self, paths) -> None:
        """Smaller devices also get their family's vendor files."""
        prepare = paths.build_dir / "vendor/android-prepare-vendor"
        extracted = prepare / "sargo/qq3a.200805.001/vendor/google_devices"
        for name in ("sargo", "bonito"):
            (extracted / name).mkdir(parents=True)
            (extracted / name / "blob").write_text(name)

        runner = FakeRunner()
        executor = make_executor(paths, runner, device="sargo")
        executor.execute(Stage.VENDOR)

        _, kwargs = runner.calls[0]
        assert kwargs["timeout"] == executor.config.vendor_timeout
        dest = paths.build_dir / "vendor/google_devices"
        assert (dest / "sargo/blob").read_text() == "sargo"
        assert (dest / "bonito/blob").read_text() == "bonito"


class TestSign:
    """Test signing commands."""

    def test_chained_device_with_retrofit_flag(self, paths) -> None:
        """crosshatch signs with two AVB scopes and a retrofit OTA."""
        runner = FakeRunner()
        make_executor(paths, runner).execute(Stage.SIGN)

        sign, ota = runner.commands()
        assert "--avb_system_key" in sign
        assert "networkstack" in sign
        assert RETROFIT_DYNAMIC_PARTITIONS in ota
        assert f"crosshatch-ota_update-{BUILD_NUMBER}.zip" in ota

    def test_verity_device(self, paths) -> None:
        """marlin replaces the verity key and has no retrofit flag."""
        runner = FakeRunner()
        make_executor(paths, runner, device="marlin").execute(Stage.SIGN)

        sign, ota = runner.commands()
        assert "--replace_verity_public_key" in sign
        assert "--avb_vbmeta_key" not in sign
        assert RETROFIT_DYNAMIC_PARTITIONS not in ota


class TestArchive:
    """Test factory image archiving."""

    def setup_tree(self, paths: ExecutorPaths) -> Path:
        build = paths.build_dir
        generator = build / "device/common/generate-factory-images-common.sh"
        generator.parent.mkdir(parents=True)
        generator.write_text("zip -r factory.zip images\nmv a b\necho done\n")
        board = build / "vendor/google_devices/crosshatch/vendor-board-info.txt"
        board.parent.mkdir(parents=True)
        board.write_text(
            "require version-bootloader=B1C1-0.2-6355063\n"
            "require version-baseband=G845-00024-200519\n"
        )
        build_id = build / "build/core/build_id.mk"
        build_id.parent.mkdir(parents=True)
        build_id.write_text("BUILD_ID=QQ3A.200805.001\n")

        out = build / f"out/release-crosshatch-{BUILD_NUMBER}"
        out.mkdir(parents=True)
        for name in (
            f"crosshatch-ota_update-{BUILD_NUMBER}.zip",
            f"crosshatch-factory-{BUILD_NUMBER}.tar.xz",
            f"crosshatch-target_files-{BUILD_NUMBER}.zip",
        ):
            (out / name).write_bytes(b"artifact")
        return out

    def test_archive_produces_artifacts(self, paths) -> None:
        """The factory script is rewritten for tar and artifacts are recorded."""
        out = self.setup_tree(paths)
        runner = FakeRunner()
        executor = make_executor(paths, runner)
        executor.execute(Stage.ARCHIVE)

        generator = (
            paths.build_dir / "device/common/generate-factory-images-common.sh"
        ).read_text()
        assert generator == "tar cvf factory.tar images\necho done\n"

        script = runner.commands()[0]
        assert "BOOTLOADER=b1c1-0.2-6355063" in script
        assert "VERSION=qq3a.200805.001" in script
        assert runner.calls[-1][0][0] == "xz"

        artifacts = executor.state.artifacts
        factory = out / f"crosshatch-factory-{BUILD_NUMBER}.tar.xz"
        assert artifacts.factory_image == factory
        assert artifacts.build_number == BUILD_NUMBER
        assert artifacts.build_timestamp == 1633435200

    def test_missing_output_fails(self, paths) -> None:
        """A missing output file fails the archive stage."""
        out = self.setup_tree(paths)
        (out / f"crosshatch-ota_update-{BUILD_NUMBER}.zip").unlink()

        executor = make_executor(paths, FakeRunner())
        with pytest.raises(StageError) as exc_info:
            executor.execute(Stage.ARCHIVE)
        assert exc_info.value.stage == "archive"
        assert executor.state.artifacts is None
