"""Device profiles.

Device-family special cases (signing mode, retrofit OTA flag, legacy kernel
rebuild, vendor big-brother family) live here as data rather than as
conditionals scattered through the build.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from localstack_build.types import SigningMode

logger = logging.getLogger(__name__)

RETROFIT_DYNAMIC_PARTITIONS = "--retrofit_dynamic_partitions"


@dataclass(frozen=True)
class DeviceProfile:
    """Static description of how to build and sign one device.

    Attributes:
        codename: Device codename (e.g. crosshatch).
        family: Device family; vendor files and device tree live under it.
        signing_mode: Verified boot scheme used when signing.
        extra_release_flags: Extra OTA generation flags.
        friendly_name: Marketing name.
        legacy_kernel_rebuild: Kernel must be rebuilt to embed the verity key.
        board_model: Model string the upstream tree ships (defaults to the codename).
        deprecated: Device no longer receives security updates.
        known: False for the fallback profile of an unknown codename.
    """

    codename: str
    family: str
    signing_mode: SigningMode
    extra_release_flags: tuple[str, ...] = ()
    friendly_name: str = ""
    legacy_kernel_rebuild: bool = False
    board_model: str = ""
    deprecated: bool = False
    known: bool = True

    @property
    def product_makefile(self) -> str:
        """Path of the product makefile relative to the source tree."""
        return f"device/google/{self.family}/aosp_{self.codename}.mk"

    @property
    def upstream_model(self) -> str:
        """PRODUCT_MODEL value in the unmodified product makefile."""
        return f"AOSP on {self.board_model or self.codename}"

    @property
    def needs_family_vendor(self) -> bool:
        """Smaller devices also need their big brother's vendor files."""
        return self.codename != self.family


_RETROFIT = (RETROFIT_DYNAMIC_PARTITIONS,)

DEVICE_PROFILES: dict[str, DeviceProfile] = {
    p.codename: p
    for p in (
        DeviceProfile(
            "sailfish",
            "marlin",
            SigningMode.VERITY_ONLY,
            friendly_name="Pixel",
            board_model="msm8996",
            legacy_kernel_rebuild=True,
            deprecated=True,
        ),
        DeviceProfile(
            "marlin",
            "marlin",
            SigningMode.VERITY_ONLY,
            friendly_name="Pixel XL",
            board_model="msm8996",
            legacy_kernel_rebuild=True,
            deprecated=True,
        ),
        DeviceProfile(
            "walleye",
            "muskie",
            SigningMode.VBMETA_SIMPLE,
            friendly_name="Pixel 2",
        ),
        DeviceProfile(
            "taimen",
            "taimen",
            SigningMode.VBMETA_SIMPLE,
            friendly_name="Pixel 2 XL",
        ),
        DeviceProfile(
            "blueline",
            "crosshatch",
            SigningMode.VBMETA_CHAINED,
            _RETROFIT,
            friendly_name="Pixel 3",
        ),
        DeviceProfile(
            "crosshatch",
            "crosshatch",
            SigningMode.VBMETA_CHAINED,
            _RETROFIT,
            friendly_name="Pixel 3 XL",
        ),
        DeviceProfile(
            "sargo",
            "bonito",
            SigningMode.VBMETA_CHAINED,
            _RETROFIT,
            friendly_name="Pixel 3a",
        ),
        DeviceProfile(
            "bonito",
            "bonito",
            SigningMode.VBMETA_CHAINED,
            _RETROFIT,
            friendly_name="Pixel 3a XL",
        ),
    )
}


def supported_devices() -> list[str]:
    """Return supported codenames in catalog order."""
    return list(DEVICE_PROFILES)


def supported_devices_output() -> str:
    """Return the human-readable list, e.g. 'marlin (Pixel XL), ...'."""
    return ", ".join(
        f"{p.codename} ({p.friendly_name})" for p in DEVICE_PROFILES.values()
    )


def is_supported(codename: str) -> bool:
    return codename in DEVICE_PROFILES


def get_profile(codename: str) -> DeviceProfile:
    """Look up a device profile.

    Unknown codenames fall back to Pixel 3 defaults with a warning rather
    than failing.

    Args:
        codename: Device codename.

    Returns:
        The catalog profile or a fallback profile.
    """
    profile = DEVICE_PROFILES.get(codename)
    if profile is not None:
        return profile
    logger.warning("warning: unknown device %s, using Pixel 3 defaults", codename)
    return DeviceProfile(
        codename=codename,
        family=codename,
        signing_mode=SigningMode.VBMETA_CHAINED,
        friendly_name=codename,
        known=False,
    )


__all__ = [
    "DEVICE_PROFILES",
    "RETROFIT_DYNAMIC_PARTITIONS",
    "DeviceProfile",
    "get_profile",
    "is_supported",
    "supported_devices",
    "supported_devices_output",
]
