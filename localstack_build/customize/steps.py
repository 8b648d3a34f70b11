"""Customization step variants.

Each step edits the synchronized source tree in one well-defined way. Steps
are plain frozen dataclasses with an ``apply(tree, context)`` method and an
``idempotent`` flag; idempotent steps guard every edit so re-running them
against an already-customized tree leaves it unchanged.

Cloning and downloading go through the retry policy. A failure while
*applying* a patch or script is never retried: the tree is no longer
trusted and the run aborts.
"""

from __future__ import annotations

import hashlib
import logging
import shutil
import ssl
from dataclasses import dataclass, field
from pathlib import Path
from typing import ClassVar

import httpx

from localstack_build.customize.manifest import LOCAL_MANIFEST_PATH
from localstack_build.errors import CommandError, FetchError, PatchApplicationError
from localstack_build.retry import RetryPolicy
from localstack_build.shell import CommandRunner

logger = logging.getLogger(__name__)

# Product makefile that receives PRODUCT_PACKAGES registrations
PACKAGE_MAKEFILE = "build/make/target/product/handheld_system.mk"
PRODUCT_MAKEFILE_GLOB = "build/make/target/product/*.mk"
PREBUILT_DIR = "packages/apps/Custom"
HOSTS_FILE_PATH = "system/core/rootdir/etc/hosts"

# Timeout for hosts file downloads (seconds)
DOWNLOAD_TIMEOUT = 60


@dataclass
class StepContext:
    """Shared resources for applying steps.

    Attributes:
        runner: Command runner for git/patch/bash.
        retry_policy: Policy for clones and downloads.
        workspace: Scratch directory for cloned patch and script repos.
        http: Optional HTTP client for downloads.
        env: Extra environment for shell scripts.
    """

    runner: CommandRunner
    retry_policy: RetryPolicy
    workspace: Path
    http: httpx.Client | None = None
    env: dict[str, str] = field(default_factory=dict)


def clone_repo(
    context: StepContext, repo: str, dest: Path, branch: str | None = None
) -> None:
    """Clone a repository, retrying the whole clone on failure.

    Any partial checkout left by a failed attempt is removed before the
    next attempt.

    Raises:
        RetryExhaustedError: If every attempt failed.
    """

    def attempt() -> None:
        if dest.exists():
            shutil.rmtree(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        args = ["git", "clone"]
        if branch:
            args += ["--branch", branch]
        args += [repo, str(dest)]
        context.runner.run(args)

    context.retry_policy.call(f"git clone {repo}", attempt)


def certificate_fingerprint(pem_path: Path) -> str:
    """SHA-256 fingerprint (lowercase hex) of a PEM certificate's DER form."""
    der = ssl.PEM_cert_to_DER_cert(pem_path.read_text(encoding="ascii"))
    return hashlib.sha256(der).hexdigest()


def _write_if_changed(path: Path, content: str) -> bool:
    if path.is_file() and path.read_text(encoding="utf-8") == content:
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return True


class CustomizationStep:
    """Base class for customization steps."""

    idempotent: ClassVar[bool] = True

    def describe(self) -> str:
        return type(self).__name__

    def apply(self, tree: Path, context: StepContext) -> None:
        raise NotImplementedError


@dataclass(frozen=True)
class ManifestRemoval(CustomizationStep):
    """Delete every line containing any pattern from matching makefiles."""

    patterns: tuple[str, ...]
    glob: str = PRODUCT_MAKEFILE_GLOB

    def describe(self) -> str:
        return f"remove {', '.join(self.patterns)} from {self.glob}"

    def apply(self, tree: Path, context: StepContext) -> None:
        for mk_file in sorted(tree.glob(self.glob)):
            lines = mk_file.read_text(encoding="utf-8").splitlines(keepends=True)
            kept = [ln for ln in lines if not any(p in ln for p in self.patterns)]
            if len(kept) != len(lines):
                logger.debug(
                    "Removed %d line(s) from %s", len(lines) - len(kept), mk_file
                )
                mk_file.write_text("".join(kept), encoding="utf-8")


@dataclass(frozen=True)
class ManifestOverlay(CustomizationStep):
    """Write the local manifest overlay document."""

    content: str
    path: str = LOCAL_MANIFEST_PATH

    def describe(self) -> str:
        return f"write manifest overlay {self.path}"

    def apply(self, tree: Path, context: StepContext) -> None:
        _write_if_changed(tree / self.path, self.content)


@dataclass(frozen=True)
class FileWrite(CustomizationStep):
    """Replace a file's content wholesale."""

    path: str
    content: str

    def describe(self) -> str:
        return f"write {self.path}"

    def apply(self, tree: Path, context: StepContext) -> None:
        if _write_if_changed(tree / self.path, self.content):
            logger.info("Wrote %s", self.path)


@dataclass(frozen=True)
class TextSubstitution(CustomizationStep):
    """Replace every occurrence of ``old`` with ``new`` in one file.

    Attributes:
        path: File relative to the tree.
        old: Text to replace.
        new: Replacement text.
        required: Fail if the file does not exist (otherwise skip quietly).
        guard: If this text is already in the file the edit is skipped;
            needed whenever ``new`` contains ``old``.
    """

    path: str
    old: str
    new: str
    required: bool = True
    guard: str | None = None

    def describe(self) -> str:
        return f"patch {self.path}"

    def apply(self, tree: Path, context: StepContext) -> None:
        target = tree / self.path
        if not target.is_file():
            if self.required:
                raise PatchApplicationError(
                    f"Cannot patch missing file {self.path}", code="missing_file"
                )
            logger.debug("Skipping %s: file not present", self.path)
            return

        text = target.read_text(encoding="utf-8")
        if self.guard is not None and self.guard in text:
            logger.debug("Skipping %s: already patched", self.path)
            return
        if self.old not in text:
            logger.debug("Skipping %s: pattern not found", self.path)
            return
        target.write_text(text.replace(self.old, self.new), encoding="utf-8")


@dataclass(frozen=True)
class PackageRegistration(CustomizationStep):
    """Append ``PRODUCT_PACKAGES += <module>`` lines not already present."""

    modules: tuple[str, ...]
    makefile: str = PACKAGE_MAKEFILE

    def describe(self) -> str:
        return f"register {', '.join(self.modules)} in {self.makefile}"

    def apply(self, tree: Path, context: StepContext) -> None:
        mk_file = tree / self.makefile
        if not mk_file.is_file():
            raise PatchApplicationError(
                f"Expected {self.makefile} does not exist", code="missing_makefile"
            )
        text = mk_file.read_text(encoding="utf-8")
        present = {line.strip() for line in text.splitlines()}
        additions = []
        for module in self.modules:
            line = f"PRODUCT_PACKAGES += {module}"
            if line in present:
                continue
            logger.info("Adding %s to %s", line, self.makefile)
            additions.append(line)
            present.add(line)
        if not additions:
            return
        if text and not text.endswith("\n"):
            text += "\n"
        mk_file.write_text(text + "\n".join(additions) + "\n", encoding="utf-8")


@dataclass(frozen=True)
class RepoPatchSet(CustomizationStep):
    """Clone a repository of patch files and apply each one in order.

    A patch whose reverse applies cleanly is already in the tree and is
    skipped.
    """

    repo: str
    patches: tuple[str, ...]
    index: int
    branch: str | None = None

    def describe(self) -> str:
        return f"apply patches from {self.repo}"

    def apply(self, tree: Path, context: StepContext) -> None:
        checkout = context.workspace / "patches" / str(self.index)
        clone_repo(context, self.repo, checkout, self.branch)

        for name in self.patches:
            patch_file = checkout / name
            if self._already_applied(tree, patch_file, context):
                logger.info("Patch %s already applied", name)
                continue
            logger.info("Applying patch %s", name)
            try:
                context.runner.run(
                    [
                        "patch",
                        "-p1",
                        "-f",
                        "--no-backup-if-mismatch",
                        "-i",
                        str(patch_file),
                    ],
                    cwd=tree,
                    input="",
                )
            except CommandError as e:
                raise PatchApplicationError(
                    f"Patch {name} from {self.repo} failed to apply: {e}"
                ) from e

    @staticmethod
    def _already_applied(tree: Path, patch_file: Path, context: StepContext) -> bool:
        result = context.runner.run(
            ["patch", "-p1", "-R", "-f", "--dry-run", "-i", str(patch_file)],
            cwd=tree,
            input="",
            capture=True,
            check=False,
        )
        return result.returncode == 0


@dataclass(frozen=True)
class ShellScript(CustomizationStep):
    """Clone a repository of shell scripts and source each one in the tree.

    Scripts are arbitrary, so this step makes no idempotency promise.
    """

    idempotent: ClassVar[bool] = False

    repo: str
    scripts: tuple[str, ...]
    index: int
    branch: str | None = None

    def describe(self) -> str:
        return f"run scripts from {self.repo}"

    def apply(self, tree: Path, context: StepContext) -> None:
        checkout = context.workspace / "scripts" / str(self.index)
        clone_repo(context, self.repo, checkout, self.branch)

        for name in self.scripts:
            logger.info("Applying shell script %s", name)
            try:
                context.runner.run(
                    ["bash", "-e", "-c", '. "$1"', "bash", str(checkout / name)],
                    cwd=tree,
                    env={"BUILD_DIR": str(tree), **context.env},
                )
            except CommandError as e:
                raise PatchApplicationError(
                    f"Script {name} from {self.repo} failed: {e}",
                    code="script_failed",
                ) from e


@dataclass(frozen=True)
class PrebuiltPackage(CustomizationStep):
    """Clone a prebuilt app repository into the tree and register its modules."""

    repo: str
    modules: tuple[str, ...]
    index: int

    @property
    def location(self) -> str:
        return f"{PREBUILT_DIR}/{self.index}"

    def describe(self) -> str:
        return f"add prebuilts from {self.repo}"

    def apply(self, tree: Path, context: StepContext) -> None:
        logger.info(
            "Putting custom prebuilts from %s in build tree location %s",
            self.repo,
            self.location,
        )
        clone_repo(context, self.repo, tree / self.location)
        if self.modules:
            PackageRegistration(self.modules).apply(tree, context)


@dataclass(frozen=True)
class HostsFileReplacement(CustomizationStep):
    """Download a hosts file over the one shipped in the tree."""

    url: str
    path: str = HOSTS_FILE_PATH

    def describe(self) -> str:
        return f"replace hosts file with {self.url}"

    def apply(self, tree: Path, context: StepContext) -> None:
        logger.info("Replacing hosts file with %s", self.url)
        client = context.http or httpx.Client(follow_redirects=True)
        try:
            content = context.retry_policy.call(
                f"download {self.url}", lambda: self._download(client)
            )
        finally:
            if context.http is None:
                client.close()
        target = tree / self.path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)

    def _download(self, client: httpx.Client) -> bytes:
        try:
            response = client.get(self.url, timeout=DOWNLOAD_TIMEOUT)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise FetchError(f"Failed to download {self.url}: {e}") from e
        return response.content


@dataclass(frozen=True)
class PrivilegedExtensionWhitelist(CustomizationStep):
    """Whitelist this stack's release and platform certificates.

    The official app store key entry is replaced with the device's release
    key fingerprint, followed by a new entry for the platform key.
    """

    key_dir: Path
    official_key: str
    path: str

    def describe(self) -> str:
        return "whitelist signing certificates in privileged extension"

    def apply(self, tree: Path, context: StepContext) -> None:
        certs = {}
        for name in ("releasekey", "platform"):
            pem = self.key_dir / f"{name}.x509.pem"
            if not pem.is_file():
                raise PatchApplicationError(
                    f"Missing certificate {pem}", code="missing_certificate"
                )
            certs[name] = certificate_fingerprint(pem)

        TextSubstitution(
            self.path,
            old=f'{self.official_key}")',
            new=(
                f'{certs["releasekey"]}"),\n'
                f'            new Pair<>("org.fdroid.fdroid", "{certs["platform"]}")'
            ),
            guard=certs["releasekey"],
        ).apply(tree, context)


__all__ = [
    "HOSTS_FILE_PATH",
    "PACKAGE_MAKEFILE",
    "PREBUILT_DIR",
    "PRODUCT_MAKEFILE_GLOB",
    "CustomizationStep",
    "FileWrite",
    "HostsFileReplacement",
    "ManifestOverlay",
    "ManifestRemoval",
    "PackageRegistration",
    "PrebuiltPackage",
    "PrivilegedExtensionWhitelist",
    "RepoPatchSet",
    "ShellScript",
    "StepContext",
    "TextSubstitution",
    "certificate_fingerprint",
    "clone_repo",
]
