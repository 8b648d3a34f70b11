"""Build executor.

Runs inside the build container. ``plan_stages()`` returns the explicit,
ordered stage list for a device; ``BuildExecutor.execute()`` runs one stage
and ``BuildExecutor.run()`` runs them all, stopping at the first failure.

Toolchain steps (repo, gradle, gn/autoninja, make, releasetools) are opaque
subprocesses. Only network-bound steps are retried; compile, package and
signing failures are fatal on the first attempt.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

import httpx

from localstack_build.config import BuildConfig
from localstack_build.customize import pipeline as customization
from localstack_build.customize.manifest import render_manifest
from localstack_build.customize.steps import ManifestOverlay, StepContext, clone_repo
from localstack_build.devices import DeviceProfile
from localstack_build.errors import (
    CommandError,
    FetchError,
    LocalStackError,
    PrerequisiteError,
    StageError,
)
from localstack_build.keys import KeyManager, ota_flags, signing_flags
from localstack_build.logs import log_header
from localstack_build.retry import RetryPolicy
from localstack_build.shell import CommandRunner
from localstack_build.types import BuildArtifactSet, BuildRunState, Stage

logger = logging.getLogger(__name__)

MANIFEST_URL = "https://android.googlesource.com/platform/manifest"
ANDROID_SDK_URL = (
    "https://dl.google.com/android/repository/sdk-tools-linux-4333796.zip"
)
DEPOT_TOOLS_URL = "https://chromium.googlesource.com/chromium/tools/depot_tools.git"
FDROID_CLIENT_URL = "https://gitlab.com/fdroid/fdroidclient"
KERNEL_SOURCE_URL = "https://android.googlesource.com/kernel/msm"

FDROID_APK = "app/build/outputs/apk/full/release/app-full-release-unsigned.apk"
BROWSER_APKS = ("SystemWebView.apk", "ChromeModernPublic.apk")
WEBVIEW_PREBUILT = "external/chromium-webview/prebuilt/arm64/webview.apk"
BROWSER_PREBUILT = "external/chromium/prebuilt/arm64/ChromeModernPublic.apk"
NETWORK_STACK_CERT = "build/target/product/security/networkstack"
GIT_IDENTITY = (("user.name", "unknown"), ("user.email", "unknown@localhost"))

# gclient sync is flaky on its own; give it more attempts than a clone
GCLIENT_SYNC_ATTEMPTS = 5

REPO_JOBS = 32

ANDROID_ENV = {
    "LANG": "C",
    "_JAVA_OPTIONS": "-XX:-UsePerfData",
    "DISPLAY_BUILD_NUMBER": "true",
}

CHROMIUM_ARGS = """\
target_os = "android"
target_cpu = "arm64"
is_debug = false
is_official_build = true
is_component_build = false
symbol_level = 1
ffmpeg_branding = "Chrome"
proprietary_codecs = true
android_channel = "stable"
android_default_version_name = "{version}"
android_default_version_code = "{version_code}"
"""


def plan_stages(profile: DeviceProfile) -> list[Stage]:
    """Return the ordered stage list for a device.

    The kernel stage is only present for families whose kernel must be
    rebuilt to embed the verity key.
    """
    stages = [
        Stage.DEPENDENCIES,
        Stage.BROWSER_ENGINE,
        Stage.SOURCE_INIT,
        Stage.SOURCE_SYNC,
        Stage.KEYS,
        Stage.VENDOR,
        Stage.APP_STORE_CLIENT,
        Stage.CUSTOMIZE,
    ]
    if profile.legacy_kernel_rebuild:
        stages.append(Stage.KERNEL)
    stages += [
        Stage.COMPILE,
        Stage.PACKAGE,
        Stage.SIGN,
        Stage.IMAGES,
        Stage.ARCHIVE,
    ]
    return stages


def chromium_version_code(version: str) -> str:
    """Version code for a chromium build, e.g. 90.0.4430.91 -> 443009152."""
    parts = version.split(".")
    return "%s%03d52" % (parts[2], int(parts[3]))


@dataclass(frozen=True)
class ExecutorPaths:
    """Fixed locations inside the build container.

    Attributes:
        build_dir: Platform source tree.
        keys_root: Persistent keys volume.
        release_dir: Host release directory (blob store).
        cache_dir: Persistent volume caching browser builds.
        scripts_dir: Persistent volume for cloned patch and script repos.
        home: Home directory holding SDK, depot_tools and side checkouts.
    """

    build_dir: Path = Path("/build/build")
    keys_root: Path = Path("/keys")
    release_dir: Path = Path("/release")
    cache_dir: Path = Path("/release-cache")
    scripts_dir: Path = Path("/script")
    home: Path = Path.home()

    @property
    def sdk_dir(self) -> Path:
        return self.home / "sdk"

    @property
    def browser_cache(self) -> Path:
        return self.cache_dir / "chromium"


class BuildExecutor:
    """Runs build stages for one device.

    Args:
        config: Build configuration.
        profile: Target device profile.
        state: Run state; the executor fills in key_dir, artifacts and
            completed_stages.
        runner: Command runner.
        retry_policy: Policy for network-bound steps.
        paths: Container paths.
        http: HTTP client for downloads.
        build_number: Build number; defaults to the current UTC hour.
        build_timestamp: Build start time in epoch seconds.
    """

    def __init__(
        self,
        config: BuildConfig,
        profile: DeviceProfile,
        state: BuildRunState,
        runner: CommandRunner,
        retry_policy: RetryPolicy | None = None,
        paths: ExecutorPaths | None = None,
        http: httpx.Client | None = None,
        build_number: str | None = None,
        build_timestamp: int | None = None,
    ) -> None:
        self.config = config
        self.profile = profile
        self.state = state
        self.runner = runner
        self.retry_policy = retry_policy or RetryPolicy(
            attempts=config.retry_attempts,
            initial_delay=config.retry_initial_delay,
        )
        self.paths = paths or ExecutorPaths()
        self.http = http
        self.build_number = build_number or datetime.now(timezone.utc).strftime(
            "%Y.%m.%d.%H"
        )
        self.build_timestamp = build_timestamp or int(time.time())
        self.key_manager = KeyManager(self.paths.keys_root, self.build_dir, runner)
        self._handlers: dict[Stage, Callable[[], None]] = {
            Stage.DEPENDENCIES: self.install_dependencies,
            Stage.BROWSER_ENGINE: self.build_browser_engine,
            Stage.SOURCE_INIT: self.init_source,
            Stage.SOURCE_SYNC: self.sync_source,
            Stage.KEYS: self.setup_keys,
            Stage.VENDOR: self.extract_vendor,
            Stage.APP_STORE_CLIENT: self.build_app_store_client,
            Stage.CUSTOMIZE: self.customize,
            Stage.KERNEL: self.rebuild_kernel,
            Stage.COMPILE: self.compile,
            Stage.PACKAGE: self.package,
            Stage.SIGN: self.sign,
            Stage.IMAGES: self.generate_images,
            Stage.ARCHIVE: self.archive,
        }

    @property
    def build_dir(self) -> Path:
        return self.paths.build_dir

    @property
    def device(self) -> str:
        return self.profile.codename

    @property
    def key_dir(self) -> Path:
        return self.state.key_dir or self.key_manager.key_dir(self.device)

    @property
    def release_out(self) -> Path:
        """Release output directory, relative to the source tree."""
        return Path("out") / f"release-{self.device}-{self.build_number}"

    @property
    def target_files_name(self) -> str:
        return f"{self.device}-target_files-{self.build_number}.zip"

    def execute(self, stage: Stage) -> None:
        """Run a single stage.

        Raises:
            StageError: Wrapping whatever the stage raised.
        """
        handler = self._handlers.get(stage)
        if handler is None:
            raise StageError(stage.value, ValueError(f"No handler for {stage.value}"))
        log_header(logger, stage.value)
        try:
            handler()
        except (LocalStackError, OSError) as e:
            raise StageError(stage.value, e) from e
        self.state.completed_stages.append(stage)

    def run(self, stages: list[Stage] | None = None) -> BuildArtifactSet:
        """Run stages in order, stopping at the first failure.

        Args:
            stages: Stage list; defaults to plan_stages() for the device.

        Returns:
            The artifacts located by the archive stage.

        Raises:
            StageError: From the first failing stage.
        """
        for stage in stages if stages is not None else plan_stages(self.profile):
            self.execute(stage)
        if self.state.artifacts is None:
            raise StageError(
                Stage.ARCHIVE.value,
                PrerequisiteError("Build finished without producing artifacts"),
            )
        return self.state.artifacts

    # Helpers

    def _retry(self, description: str, fn: Callable[[], object]) -> None:
        self.retry_policy.call(description, fn)

    def _android_shell(self, script: str, timeout: float | None = None) -> None:
        """Run a snippet in the source tree with the platform build env loaded."""
        self.runner.bash(
            "source build/envsetup.sh\nchrt -b -p 0 $$ || true\n" + script,
            cwd=self.build_dir,
            env={**ANDROID_ENV, "BUILD_NUMBER": self.build_number},
            timeout=timeout,
        )

    def _download(self, url: str, dest: Path) -> None:
        def attempt() -> None:
            client = self.http or httpx.Client(follow_redirects=True)
            try:
                with client.stream("GET", url, timeout=300) as response:
                    response.raise_for_status()
                    with dest.open("wb") as f:
                        for chunk in response.iter_bytes():
                            f.write(chunk)
            except httpx.HTTPError as e:
                raise FetchError(f"Failed to download {url}: {e}") from e
            finally:
                if self.http is None:
                    client.close()

        self._retry(f"download {url}", attempt)

    def _step_context(self) -> StepContext:
        return StepContext(
            runner=self.runner,
            retry_policy=self.retry_policy,
            workspace=self.paths.scripts_dir,
            http=self.http,
            env={"DEVICE": self.device, "KEYS_DIR": str(self.key_dir)},
        )

    # Stages

    def install_dependencies(self) -> None:
        """Prepare the build directory, Android SDK and git identity."""
        self.build_dir.mkdir(parents=True, exist_ok=True)

        sdk = self.paths.sdk_dir
        if not (sdk / "tools/bin/sdkmanager").is_file():
            logger.info("Installing Android SDK into %s", sdk)
            sdk.mkdir(parents=True, exist_ok=True)
            archive = sdk / "sdk-tools.zip"
            self._download(ANDROID_SDK_URL, archive)
            self.runner.run(["unzip", "-o", str(archive)], cwd=sdk)
            self.runner.bash("yes | ./tools/bin/sdkmanager --licenses", cwd=sdk)
            self.runner.run(
                ["./tools/android", "update", "sdk", "-u", "--use-sdk-wrapper"],
                cwd=sdk,
            )
            self.runner.bash(
                "yes | ./tools/bin/sdkmanager "
                '"build-tools;27.0.3" "platforms;android-27"',
                cwd=sdk,
            )
        else:
            logger.info("Android SDK already present")

        for key, default in GIT_IDENTITY:
            result = self.runner.run(
                ["git", "config", "--get", "--global", key], capture=True, check=False
            )
            if result.returncode != 0:
                self.runner.run(["git", "config", "--global", key, default])
        self.runner.run(["git", "config", "--global", "color.ui", "true"])

    def build_browser_engine(self) -> None:
        """Build chromium unless the cached build already matches."""
        version = self.state.latest.browser_engine
        cache = self.paths.browser_cache
        marker = cache / "revision"
        current = marker.read_text().strip() if marker.is_file() else ""
        logger.info("Chromium current: %s", current or "(none)")
        logger.info("Chromium latest: %s", version)
        if current == version and all((cache / apk).is_file() for apk in BROWSER_APKS):
            logger.info("Chromium latest (%s) matches current (%s)", version, current)
            return

        logger.info("Building chromium %s", version)
        home = self.paths.home
        depot_tools = home / "depot_tools"
        if not depot_tools.is_dir():
            clone_repo(self._step_context(), DEPOT_TOOLS_URL, depot_tools)
        env = {"PATH": f"{os.environ.get('PATH', '')}:{depot_tools}"}

        checkout = home / "chromium"
        checkout.mkdir(parents=True, exist_ok=True)
        if not (checkout / "src").is_dir():
            self._retry(
                "fetch chromium",
                lambda: self.runner.run(
                    ["fetch", "--nohooks", "android"], cwd=checkout, env=env
                ),
            )
        src = checkout / "src"
        self._retry(
            "git fetch chromium",
            lambda: self.runner.run(["git", "fetch", "origin"], cwd=src, env=env),
        )
        self.runner.run(["git", "checkout", version, "-f"], cwd=src, env=env)

        logger.info("Running gclient sync (this takes a while)")
        self.retry_policy.with_attempts(GCLIENT_SYNC_ATTEMPTS).call(
            "gclient sync",
            lambda: self.runner.run(
                ["gclient", "sync", "--with_branch_heads", "--jobs", "32", "-RDf"],
                cwd=src,
                env=env,
                input="y\n" * 16,
            ),
        )
        self.runner.run(["git", "clean", "-dff"], cwd=src, env=env)
        self.runner.run(["git", "checkout", "--", "."], cwd=src, env=env)

        out = src / "out/Default"
        out.mkdir(parents=True, exist_ok=True)
        (out / "args.gn").write_text(
            CHROMIUM_ARGS.format(
                version=version, version_code=chromium_version_code(version)
            )
        )
        self.runner.run(["gn", "gen", "out/Default"], cwd=src, env=env)
        for target in ("chrome_modern_public_apk", "system_webview_apk"):
            logger.info("Building chromium %s target", target)
            self.runner.run(
                ["autoninja", "-C", "out/Default/", target], cwd=src, env=env
            )

        cache.mkdir(parents=True, exist_ok=True)
        for apk in BROWSER_APKS:
            shutil.copyfile(out / "apks" / apk, cache / apk)
        marker.write_text(f"{version}\n")

    def init_source(self) -> None:
        """Initialize the platform checkout and write the manifest overlay."""
        self.build_dir.mkdir(parents=True, exist_ok=True)
        if (self.build_dir / ".repo").is_dir():
            self.runner.run(
                ["repo", "forall", "-vc", "git reset --hard"],
                cwd=self.build_dir,
                check=False,
            )
        branch = self.state.latest.platform_branch
        if not branch:
            raise PrerequisiteError("No platform branch resolved for this build")
        self._retry(
            "repo init",
            lambda: self.runner.run(
                [
                    "repo",
                    "init",
                    "--manifest-url",
                    MANIFEST_URL,
                    "--manifest-branch",
                    branch,
                    "--depth",
                    "1",
                ],
                cwd=self.build_dir,
                input="",
            ),
        )
        overlay = render_manifest(self.config, self.state.latest.privileged_extension)
        ManifestOverlay(overlay).apply(self.build_dir, self._step_context())

    def sync_source(self) -> None:
        self.retry_policy.with_attempts(self.config.sync_attempts).call(
            "repo sync",
            lambda: self.runner.run(
                [
                    "repo",
                    "sync",
                    "-c",
                    "--no-tags",
                    "--no-clone-bundle",
                    "--force-sync",
                    "--jobs",
                    str(REPO_JOBS),
                ],
                cwd=self.build_dir,
            ),
        )

    def setup_keys(self) -> None:
        bundle = self.key_manager.ensure_keys(self.profile)
        self.state.key_dir = bundle.directory

    def extract_vendor(self) -> None:
        """Extract vendor blobs for the platform build, bounded by a timeout."""
        build_id = self.state.latest.platform_build
        prepare = self.build_dir / "vendor/android-prepare-vendor"
        self.runner.run(
            [
                str(prepare / "execute-all.sh"),
                "--debugfs",
                "--keep",
                "--yes",
                "--device",
                self.device,
                "--buildID",
                build_id,
                "--output",
                str(prepare),
            ],
            cwd=self.build_dir,
            timeout=self.config.vendor_timeout,
        )

        extracted = prepare / self.device / build_id.lower() / "vendor/google_devices"
        dest = self.build_dir / "vendor/google_devices"
        dest.mkdir(parents=True, exist_ok=True)
        names = [self.device]
        if self.profile.needs_family_vendor:
            names.append(self.profile.family)
        for name in names:
            if (dest / name).exists():
                shutil.rmtree(dest / name)
            shutil.move(str(extracted / name), str(dest / name))
            logger.info("Installed vendor files for %s", name)

    def build_app_store_client(self) -> None:
        """Build the F-Droid client outside the platform tree."""
        checkout = self.paths.home / "fdroidclient"
        clone_repo(self._step_context(), FDROID_CLIENT_URL, checkout)
        props = f"sdk.dir={self.paths.sdk_dir}\n"
        (checkout / "local.properties").write_text(props)
        (checkout / "app/local.properties").write_text(props)
        self.runner.run(
            ["git", "checkout", self.state.latest.app_store_client], cwd=checkout
        )
        self._retry(
            "gradle assembleRelease",
            lambda: self.runner.run(["./gradlew", "assembleRelease"], cwd=checkout),
        )
        dest = self.build_dir / "packages/apps/F-Droid/F-Droid.apk"
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(checkout / FDROID_APK, dest)

    def customize(self) -> None:
        """Apply the customization pipeline and install the browser builds."""
        steps = customization.build_steps(
            self.config,
            self.profile,
            self.state.latest.privileged_extension,
            self.key_dir,
        )
        customization.apply(steps, self.build_dir, self._step_context())

        cache = self.paths.browser_cache
        webview = self.build_dir / WEBVIEW_PREBUILT
        browser = self.build_dir / BROWSER_PREBUILT
        for source, dest in (
            (cache / "SystemWebView.apk", webview),
            (cache / "ChromeModernPublic.apk", browser),
        ):
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, dest)

    def rebuild_kernel(self) -> None:
        """Rebuild the kernel so it embeds this stack's verity key."""
        source = self.paths.home / "kernel/google" / self.profile.family
        clone_repo(self._step_context(), KERNEL_SOURCE_URL, source)

        image = (
            self.build_dir / f"device/google/{self.profile.family}-kernel/Image.lz4-dtb"
        )
        result = self.runner.run(
            [
                "bash",
                "-c",
                f"lz4cat '{image}' | grep -a 'Linux version' | cut -d ' ' -f3 "
                "| cut -d'-' -f2 | sed 's/^g//g'",
            ],
            capture=True,
        )
        commit = result.stdout.strip()
        if not commit:
            raise PrerequisiteError(f"Unable to determine kernel commit from {image}")
        logger.info("Checking out kernel commit %s", commit)
        self.runner.run(["git", "checkout", commit], cwd=source)

        prebuilts = self.build_dir / "prebuilts"
        path = ":".join(
            str(prebuilts / p)
            for p in (
                "gcc/linux-x86/aarch64/aarch64-linux-android-4.9/bin",
                "gcc/linux-x86/arm/arm-linux-androideabi-4.9/bin",
                "misc/linux-x86/lz4",
                "misc/linux-x86/dtc",
                "misc/linux-x86/libufdt",
            )
        )
        verity_cert = source / "verity_user.der.x509"
        verity_cert.unlink(missing_ok=True)
        verity_cert.symlink_to(self.key_dir / "verity_user.der.x509")
        self.runner.bash(
            f"make O=out ARCH=arm64 {self.profile.family}_defconfig\n"
            f"make -j{self.config.nproc} O=out ARCH=arm64 "
            "CROSS_COMPILE=aarch64-linux-android- "
            "CROSS_COMPILE_ARM32=arm-linux-androideabi-",
            cwd=source,
            env={"PATH": f"{path}:{os.environ.get('PATH', '')}"},
        )
        shutil.copyfile(source / "out/arch/arm64/boot/Image.lz4-dtb", image)
        for stale in (self.build_dir / "out").glob("build_*"):
            if stale.is_dir():
                shutil.rmtree(stale)
            else:
                stale.unlink()

    def compile(self) -> None:
        shutil.rmtree(self.build_dir / "out", ignore_errors=True)
        logger.info("BUILD_NUMBER=%s", self.build_number)
        self._android_shell(
            f"choosecombo release aosp_{self.device} {self.config.build_type}\n"
            f"make -j {self.config.nproc} target-files-package"
        )

    def package(self) -> None:
        self._android_shell(
            f"choosecombo release aosp_{self.device} {self.config.build_type}\n"
            f"make -j {self.config.nproc} brillo_update_payload"
        )

    def sign(self) -> None:
        """Sign the target files and generate the OTA package."""
        key_dir = self.key_dir
        out = self.build_dir / self.release_out
        out.mkdir(parents=True, exist_ok=True)
        unsigned = (
            self.build_dir
            / f"out/target/product/{self.device}/obj/PACKAGING"
            / "target_files_intermediates"
            / f"aosp_{self.device}-target_files-{self.build_number}.zip"
        )
        signed = out / self.target_files_name
        env = {
            "PATH": f"{self.build_dir}/prebuilts/build-tools/linux-x86/bin:"
            f"{os.environ.get('PATH', '')}"
        }

        logger.info("Running sign_target_files_apks")
        self.runner.run(
            [
                "build/tools/releasetools/sign_target_files_apks",
                "-o",
                "-d",
                str(key_dir),
                "-k",
                f"{NETWORK_STACK_CERT}={key_dir / 'networkstack'}",
                *signing_flags(self.profile.signing_mode, key_dir),
                str(unsigned),
                str(signed),
            ],
            cwd=self.build_dir,
            env=env,
        )

        logger.info("Running ota_from_target_files")
        self.runner.run(
            [
                "build/tools/releasetools/ota_from_target_files",
                *ota_flags(self.profile, key_dir),
                str(signed),
                str(out / f"{self.device}-ota_update-{self.build_number}.zip"),
            ],
            cwd=self.build_dir,
            env=env,
        )

    def generate_images(self) -> None:
        out = self.build_dir / self.release_out
        script = self.build_dir / "build/tools/releasetools/img_from_target_files.py"
        text = script.read_text()
        stored = text.replace("zipfile.ZIP_DEFLATED", "zipfile.ZIP_STORED")
        if stored != text:
            script.write_text(stored)

        logger.info("Running img_from_target_files")
        self.runner.run(
            [
                "build/tools/releasetools/img_from_target_files",
                str(out / self.target_files_name),
                str(out / f"{self.device}-img-{self.build_number}.zip"),
            ],
            cwd=self.build_dir,
        )

    def archive(self) -> None:
        """Generate the factory image tarball and compress it."""
        out = self.build_dir / self.release_out
        generator = self.build_dir / "device/common/generate-factory-images-common.sh"
        lines = []
        for line in generator.read_text().splitlines(keepends=True):
            if line.startswith("mv "):
                continue
            line = line.replace("zip -r", "tar cvf")
            lines.append(line.replace("factory.zip", "factory.tar"))
        generator.write_text("".join(lines))

        board_info = (
            self.build_dir
            / f"vendor/google_devices/{self.device}/vendor-board-info.txt"
        ).read_text()
        bootloader = _match(r"require version-bootloader=(.+)", board_info)
        radio = _match(r"require version-baseband=(.+)", board_info)
        version = _match(
            r"BUILD_ID=(.+)", (self.build_dir / "build/core/build_id.mk").read_text()
        )
        tarball = f"{self.device}-factory-{self.build_number}.tar"

        logger.info("Running generate-factory-images")
        self.runner.bash(
            "source ../../device/common/clear-factory-images-variables.sh\n"
            f"DEVICE={self.device}\n"
            f"PRODUCT={self.device}\n"
            f"BOOTLOADER={bootloader}\n"
            f"RADIO={radio}\n"
            "PREFIX=aosp_\n"
            f"BUILD={self.build_number}\n"
            f"VERSION={version}\n"
            "source ../../device/common/generate-factory-images-common.sh\n"
            f"mv {self.device}-{version}-factory.tar {tarball}\n"
            f"rm -f {tarball}.xz\n",
            cwd=out,
        )
        logger.info("Compressing factory image")
        self.runner.run(["xz", "-v", "-T0", "-9", "-z", tarball], cwd=out)

        artifacts = BuildArtifactSet(
            ota_package=out / f"{self.device}-ota_update-{self.build_number}.zip",
            factory_image=out / f"{tarball}.xz",
            target_files=out / self.target_files_name,
            build_number=self.build_number,
            build_timestamp=self.build_timestamp,
        )
        for path in (
            artifacts.ota_package,
            artifacts.factory_image,
            artifacts.target_files,
        ):
            if not path.is_file():
                raise CommandError(f"Expected build output {path} is missing")
        self.state.artifacts = artifacts


def _match(pattern: str, text: str) -> str:
    m = re.search(pattern, text)
    if m is None:
        raise PrerequisiteError(f"Pattern {pattern!r} not found")
    return m.group(1).strip().lower()


__all__ = [
    "ANDROID_SDK_URL",
    "MANIFEST_URL",
    "BuildExecutor",
    "ExecutorPaths",
    "chromium_version_code",
    "plan_stages",
]
