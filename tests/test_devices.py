"""Tests for device profiles and signing flag selection."""

from pathlib import Path

import pytest

from localstack_build.devices import (
    RETROFIT_DYNAMIC_PARTITIONS,
    get_profile,
    is_supported,
    supported_devices,
    supported_devices_output,
)
from localstack_build.keys.signing import ota_flags, signing_flags
from localstack_build.types import SigningMode


class TestDeviceCatalog:
    """Test the supported device catalog."""

    def test_supported_devices_in_catalog_order(self) -> None:
        """All eight codenames are listed, oldest first."""
        assert supported_devices() == [
            "sailfish",
            "marlin",
            "walleye",
            "taimen",
            "blueline",
            "crosshatch",
            "sargo",
            "bonito",
        ]

    def test_supported_devices_output(self) -> None:
        """The human-readable list pairs codenames with marketing names."""
        output = supported_devices_output()
        assert output.startswith("sailfish (Pixel), marlin (Pixel XL)")
        assert "bonito (Pixel 3a XL)" in output

    def test_is_supported(self) -> None:
        """Only catalog codenames are supported."""
        assert is_supported("crosshatch")
        assert not is_supported("oriole")


class TestDeviceProfiles:
    """Test per-device special cases."""

    def test_crosshatch_is_chained_with_retrofit(self) -> None:
        """crosshatch signs chained vbmeta and retrofits dynamic partitions."""
        profile = get_profile("crosshatch")
        assert profile.signing_mode is SigningMode.VBMETA_CHAINED
        assert RETROFIT_DYNAMIC_PARTITIONS in profile.extra_release_flags
        assert not profile.legacy_kernel_rebuild

    def test_marlin_is_verity_with_kernel_rebuild(self) -> None:
        """marlin uses verity keys and needs its kernel rebuilt."""
        profile = get_profile("marlin")
        assert profile.signing_mode is SigningMode.VERITY_ONLY
        assert profile.legacy_kernel_rebuild
        assert profile.deprecated

    def test_taimen_is_simple_vbmeta(self) -> None:
        """taimen uses a single AVB key scope and no extra OTA flags."""
        profile = get_profile("taimen")
        assert profile.signing_mode is SigningMode.VBMETA_SIMPLE
        assert profile.extra_release_flags == ()

    def test_family_vendor(self) -> None:
        """Smaller devices need their family's vendor files."""
        assert get_profile("sargo").needs_family_vendor
        assert not get_profile("bonito").needs_family_vendor

    def test_product_makefile(self) -> None:
        """Product makefiles live under the family device tree."""
        assert (
            get_profile("blueline").product_makefile
            == "device/google/crosshatch/aosp_blueline.mk"
        )

    def test_unknown_device_falls_back(self, caplog) -> None:
        """Unknown codenames get a default profile and a warning, not an error."""
        profile = get_profile("oriole")
        assert profile.codename == "oriole"
        assert profile.known is False
        assert profile.signing_mode is SigningMode.VBMETA_CHAINED
        assert "unknown device oriole" in caplog.text


class TestSigningFlags:
    """Test signing flag selection."""

    def test_verity_only(self) -> None:
        """Verity mode replaces the verity key and uses no AVB flags."""
        flags = signing_flags(SigningMode.VERITY_ONLY, Path("/keys/marlin"))
        assert "--replace_verity_private_key" in flags
        assert "/keys/marlin/verity" in flags
        assert not any(f.startswith("--avb") for f in flags)

    def test_vbmeta_simple(self) -> None:
        """Simple mode signs one vbmeta scope."""
        flags = signing_flags(SigningMode.VBMETA_SIMPLE, Path("/keys/taimen"))
        assert flags == [
            "--avb_vbmeta_key",
            "/keys/taimen/avb.pem",
            "--avb_vbmeta_algorithm",
            "SHA256_RSA2048",
        ]

    def test_vbmeta_chained(self) -> None:
        """Chained mode signs root and system scopes with the same key."""
        flags = signing_flags(SigningMode.VBMETA_CHAINED, Path("/keys/crosshatch"))
        assert flags.count("/keys/crosshatch/avb.pem") == 2
        assert "--avb_system_key" in flags
        assert "--avb_system_algorithm" in flags

    @pytest.mark.parametrize(
        ("device", "expected"),
        [("crosshatch", True), ("bonito", True), ("taimen", False), ("marlin", False)],
    )
    def test_retrofit_ota_flag(self, device, expected) -> None:
        """Only the retrofit families pass the retrofit OTA flag."""
        flags = ota_flags(get_profile(device), Path("/keys") / device)
        assert (RETROFIT_DYNAMIC_PARTITIONS in flags) is expected
        assert flags[:3] == ["--block", "-k", f"/keys/{device}/releasekey"]
