"""Signing key lifecycle.

Keys for a device are generated once, all together, the first time the
device is built. A key directory is either absent/empty or complete: new
keys are generated into a scratch directory next to it and renamed into
place only when every command has succeeded. Key names introduced later
(currently the network stack key) are added individually without touching
existing keys.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

from localstack_build.devices import DeviceProfile
from localstack_build.errors import CommandError, KeyGenerationError
from localstack_build.shell import CommandRunner
from localstack_build.types import SigningMode

logger = logging.getLogger(__name__)

CERTIFICATE_SUBJECT = "/CN=RattlesnakeOS"
KEY_NAMES = ("releasekey", "platform", "shared", "media", "networkstack", "verity")
NETWORK_STACK_KEY = "networkstack"


@dataclass(frozen=True)
class KeyBundle:
    """A device's signing key material on disk.

    Attributes:
        device: Device codename.
        directory: Directory holding the keys.
        signing_mode: Signing mode the bundle was prepared for.
    """

    device: str
    directory: Path
    signing_mode: SigningMode

    def path(self, name: str) -> Path:
        return self.directory / name

    def has_key(self, name: str) -> bool:
        return (self.directory / f"{name}.pk8").is_file()

    def names(self) -> list[str]:
        return sorted(p.name[: -len(".pk8")] for p in self.directory.glob("*.pk8"))


def _is_empty(directory: Path) -> bool:
    return not directory.exists() or not any(directory.iterdir())


class KeyManager:
    """Creates and migrates per-device key bundles.

    Args:
        keys_root: Root of the persistent keys volume.
        build_dir: Source tree (provides make_key, avbtool, verity tools).
        runner: Command runner.
        subject: Certificate subject for generated keys.
    """

    def __init__(
        self,
        keys_root: Path,
        build_dir: Path,
        runner: CommandRunner,
        subject: str = CERTIFICATE_SUBJECT,
    ) -> None:
        self.keys_root = keys_root
        self.build_dir = build_dir
        self.runner = runner
        self.subject = subject

    def key_dir(self, device: str) -> Path:
        return self.keys_root / device

    def ensure_keys(self, profile: DeviceProfile) -> KeyBundle:
        """Ensure a complete key bundle exists for a device.

        Args:
            profile: Device profile (selects verity or AVB key material).

        Returns:
            The device's KeyBundle.

        Raises:
            KeyGenerationError: If any key command fails.
        """
        directory = self.key_dir(profile.codename)
        if _is_empty(directory):
            logger.info("No keys were found - generating keys")
            self._generate_all(profile, directory)
        else:
            logger.info("Keys already exist for %s", profile.codename)

        if not (directory / f"{NETWORK_STACK_KEY}.pk8").is_file():
            logger.info("Did not find networkstack key - generating one")
            self._make_key(NETWORK_STACK_KEY, directory)

        return KeyBundle(profile.codename, directory, profile.signing_mode)

    def _generate_all(self, profile: DeviceProfile, directory: Path) -> None:
        scratch = directory.with_name(f".{directory.name}.partial")
        if scratch.exists():
            logger.warning("Removing leftover partial key directory %s", scratch)
            shutil.rmtree(scratch)
        scratch.mkdir(parents=True)

        try:
            for name in KEY_NAMES:
                self._make_key(name, scratch)
            if profile.signing_mode is SigningMode.VERITY_ONLY:
                self._gen_verity_key(scratch)
            else:
                self._gen_avb_key(scratch)
        except (CommandError, KeyGenerationError, OSError) as e:
            shutil.rmtree(scratch, ignore_errors=True)
            raise KeyGenerationError(
                f"Key generation for {profile.codename} failed: {e}"
            ) from e

        if directory.exists():
            directory.rmdir()
        scratch.rename(directory)
        logger.info("Generated keys for %s in %s", profile.codename, directory)

    def _make_key(self, name: str, directory: Path) -> None:
        directory.mkdir(parents=True, exist_ok=True)
        # make_key exits 1 even on success; judge by the files it leaves behind
        self.runner.run(
            [str(self.build_dir / "development/tools/make_key"), name, self.subject],
            cwd=directory,
            input="",
            check=False,
        )
        for suffix in (".pk8", ".x509.pem"):
            if not (directory / f"{name}{suffix}").is_file():
                raise KeyGenerationError(f"make_key did not produce {name}{suffix}")

    def _gen_verity_key(self, directory: Path) -> None:
        logger.info("Generating verity key")
        cert = directory / "verity.x509.pem"
        self.runner.run(["make", "-j", "20", "generate_verity_key"], cwd=self.build_dir)
        self.runner.run(
            [
                str(self.build_dir / "out/host/linux-x86/bin/generate_verity_key"),
                "-convert",
                str(cert),
                str(directory / "verity_key"),
            ],
            cwd=self.build_dir,
        )
        self.runner.run(["make", "clobber"], cwd=self.build_dir)
        self.runner.run(
            [
                "openssl",
                "x509",
                "-outform",
                "der",
                "-in",
                str(cert),
                "-out",
                str(directory / "verity_user.der.x509"),
            ]
        )

    def _gen_avb_key(self, directory: Path) -> None:
        logger.info("Generating AVB key")
        avb_key = directory / "avb.pem"
        self.runner.run(["openssl", "genrsa", "-out", str(avb_key), "2048"])
        self.runner.run(
            [
                str(self.build_dir / "external/avb/avbtool"),
                "extract_public_key",
                "--key",
                str(avb_key),
                "--output",
                str(directory / "avb_pkmd.bin"),
            ],
            cwd=self.build_dir,
        )


__all__ = [
    "CERTIFICATE_SUBJECT",
    "KEY_NAMES",
    "NETWORK_STACK_KEY",
    "KeyBundle",
    "KeyManager",
]
