"""Signing flag selection.

Pure functions mapping a device's signing mode onto the release tool flags.
"""

from __future__ import annotations

from pathlib import Path

from localstack_build.devices import DeviceProfile
from localstack_build.types import SigningMode

AVB_ALGORITHM = "SHA256_RSA2048"


def signing_flags(mode: SigningMode, key_dir: Path) -> list[str]:
    """Flags for sign_target_files_apks.

    Args:
        mode: Device signing mode.
        key_dir: Device key directory.

    Returns:
        Verity key replacement flags, or one or two AVB key scopes. Chained
        mode signs the root vbmeta struct and the system partition struct
        with the same key.
    """
    if mode is SigningMode.VERITY_ONLY:
        return [
            "--replace_verity_public_key",
            str(key_dir / "verity_key.pub"),
            "--replace_verity_private_key",
            str(key_dir / "verity"),
            "--replace_verity_keyid",
            str(key_dir / "verity.x509.pem"),
        ]

    avb_key = str(key_dir / "avb.pem")
    flags = ["--avb_vbmeta_key", avb_key, "--avb_vbmeta_algorithm", AVB_ALGORITHM]
    if mode is SigningMode.VBMETA_CHAINED:
        flags += ["--avb_system_key", avb_key, "--avb_system_algorithm", AVB_ALGORITHM]
    return flags


def ota_flags(profile: DeviceProfile, key_dir: Path) -> list[str]:
    """Flags for ota_from_target_files, including family-specific extras."""
    return ["--block", "-k", str(key_dir / "releasekey"), *profile.extra_release_flags]


__all__ = ["AVB_ALGORITHM", "ota_flags", "signing_flags"]
