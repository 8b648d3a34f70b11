"""Ordered customization pipeline.

``build_steps()`` turns a BuildConfig into the fixed sequence of steps:

1. remove disallowed upstream components from the product makefiles
2. write the manifest overlay
3. custom patch sets, then custom shell scripts, in configured order
4. custom prebuilt apps (and the custom hosts file, when configured)
5. built-in source patches
6. registration of the stack's own packages

``apply()`` runs them in that order and stops at the first failure.
"""

from __future__ import annotations

import logging
from pathlib import Path

from localstack_build.config import BuildConfig
from localstack_build.customize.manifest import render_manifest
from localstack_build.customize.steps import (
    CustomizationStep,
    FileWrite,
    HostsFileReplacement,
    ManifestOverlay,
    ManifestRemoval,
    PackageRegistration,
    PrebuiltPackage,
    PrivilegedExtensionWhitelist,
    RepoPatchSet,
    ShellScript,
    StepContext,
    TextSubstitution,
)
from localstack_build.devices import DeviceProfile
from localstack_build.logs import log_header

logger = logging.getLogger(__name__)

# Makefile lines dropped from every product makefile
REMOVAL_PATTERNS = ("Browser2", "Calendar \\", "Calendar.apk", "QuickSearchBox")

OFFICIAL_FDROID_KEY = "43238d512c1e5eb2d6569f4a3afbf5523418b82e0a3ed1552770abb9a9c9ccab"

FIRST_PARTY_PACKAGES = ("Updater", "F-DroidPrivilegedExtension", "F-Droid", "chromium")
ATTESTATION_PACKAGE = "Auditor"

PRIV_EXT_SRC = (
    "packages/apps/F-DroidPrivilegedExtension/app/src/main/java"
    "/org/fdroid/fdroid/privileged"
)
LAUNCHER_SRC = "packages/apps/Launcher3/src/com/android/launcher3"
DESKCLOCK_MANIFEST = "packages/apps/DeskClock/AndroidManifest.xml"
UPDATABLE_APEX = "$(call inherit-product, $(SRC_TARGET_DIR)/product/updatable_apex.mk)"
FOREGROUND_SERVICE = (
    '<uses-permission android:name="android.permission.FOREGROUND_SERVICE" />'
)
READ_EXTERNAL_STORAGE = (
    '<uses-permission android:name="android.permission.READ_EXTERNAL_STORAGE" />'
)

WEBVIEW_PACKAGES = """\
<?xml version="1.0" encoding="utf-8"?>
<webviewproviders>
    <webviewprovider description="Chromium" packageName="org.chromium.chrome" availableByDefault="true">
    </webviewprovider>
</webviewproviders>
"""


def _device_config_steps(profile: DeviceProfile) -> list[CustomizationStep]:
    if not profile.known:
        return []
    return [
        TextSubstitution(
            profile.product_makefile,
            old=f"PRODUCT_MODEL := {profile.upstream_model}",
            new=f"PRODUCT_MODEL := {profile.friendly_name}",
            required=False,
        ),
        TextSubstitution(
            profile.product_makefile,
            old="PRODUCT_MANUFACTURER := google",
            new="PRODUCT_MANUFACTURER := Google",
            required=False,
        ),
    ]


def builtin_patches(
    config: BuildConfig, profile: DeviceProfile, key_dir: Path
) -> list[CustomizationStep]:
    """Source patches applied to every build."""
    steps: list[CustomizationStep] = [
        # swipe up gesture available as an option
        TextSubstitution(
            "frameworks/base/core/res/res/values/config.xml",
            old='<bool name="config_swipe_up_gesture_setting_available">false</bool>',
            new='<bool name="config_swipe_up_gesture_setting_available">true</bool>',
        ),
        # suggestion cards not disappearing in settings
        TextSubstitution(
            "packages/apps/Settings/res/values/config.xml",
            old='<bool name="config_use_legacy_suggestion">true</bool>',
            new='<bool name="config_use_legacy_suggestion">false</bool>',
        ),
        *_device_config_steps(profile),
        FileWrite(
            "frameworks/base/core/res/res/xml/config_webview_packages.xml",
            WEBVIEW_PACKAGES,
        ),
        TextSubstitution(
            "packages/apps/Updater/res/values/config.xml",
            old="s3bucket",
            new=f"{config.release_url.rstrip('/')}/",
        ),
        TextSubstitution(
            f"{PRIV_EXT_SRC}/PrivilegedService.java",
            old="BuildConfig.APPLICATION_ID",
            new='"org.fdroid.fdroid.privileged"',
        ),
        PrivilegedExtensionWhitelist(
            key_dir=key_dir,
            official_key=OFFICIAL_FDROID_KEY,
            path=f"{PRIV_EXT_SRC}/ClientWhitelist.java",
        ),
        TextSubstitution(
            f"{LAUNCHER_SRC}/config/BaseFlags.java",
            old="QSB_ON_FIRST_SCREEN = true;",
            new="QSB_ON_FIRST_SCREEN = false;",
        ),
        TextSubstitution(
            f"{LAUNCHER_SRC}/provider/ImportDataTask.java",
            old="boolean createEmptyRowOnFirstScreen;",
            new="boolean createEmptyRowOnFirstScreen = false;",
        ),
        # both alarm clock edits are skipped once the permission is present
        TextSubstitution(
            DESKCLOCK_MANIFEST,
            old='<uses-sdk android:minSdkVersion="19" android:targetSdkVersion="28" />',
            new='<uses-sdk android:minSdkVersion="19" android:targetSdkVersion="25" />',
            guard="android.permission.FOREGROUND_SERVICE",
        ),
        TextSubstitution(
            DESKCLOCK_MANIFEST,
            old=READ_EXTERNAL_STORAGE,
            new=f"{READ_EXTERNAL_STORAGE}\n    {FOREGROUND_SERVICE}",
            guard="android.permission.FOREGROUND_SERVICE",
        ),
        # no apex updates; pixel 2 opts in via wahoo, everything else via mainline
        TextSubstitution(
            "device/google/wahoo/device.mk", UPDATABLE_APEX, "", required=False
        ),
        TextSubstitution(
            "build/make/target/product/mainline_system.mk",
            UPDATABLE_APEX,
            "",
            required=False,
        ),
    ]
    return steps


def first_party_packages(config: BuildConfig) -> tuple[str, ...]:
    """Product packages added by the stack, plus custom project modules."""
    modules = list(FIRST_PARTY_PACKAGES)
    if config.attestation_server:
        modules.append(ATTESTATION_PACKAGE)
    for project in config.custom_manifest_projects:
        modules.extend(project.modules)
    return tuple(modules)


def build_steps(
    config: BuildConfig,
    profile: DeviceProfile,
    fdroid_priv_version: str,
    key_dir: Path,
) -> list[CustomizationStep]:
    """Build the ordered customization step list.

    Args:
        config: Build configuration.
        profile: Target device profile.
        fdroid_priv_version: Privileged extension version pinned in the manifest.
        key_dir: Device key directory (certificates for the whitelist patch).

    Returns:
        Steps in application order.
    """
    steps: list[CustomizationStep] = [
        ManifestRemoval(REMOVAL_PATTERNS),
        ManifestOverlay(render_manifest(config, fdroid_priv_version)),
    ]
    steps += [
        RepoPatchSet(p.repo, p.patches, index=i, branch=p.branch)
        for i, p in enumerate(config.custom_patches)
    ]
    steps += [
        ShellScript(s.repo, s.scripts, index=i, branch=s.branch)
        for i, s in enumerate(config.custom_scripts)
    ]
    steps += [
        PrebuiltPackage(p.repo, p.modules, index=i)
        for i, p in enumerate(config.custom_prebuilts)
    ]
    if config.hosts_file:
        steps.append(HostsFileReplacement(config.hosts_file))
    else:
        logger.info("No custom hosts file requested")
    steps += builtin_patches(config, profile, key_dir)
    steps.append(PackageRegistration(first_party_packages(config)))
    return steps


def apply(
    steps: list[CustomizationStep], tree: Path, context: StepContext
) -> None:
    """Apply steps to the source tree in order.

    Args:
        steps: Steps from build_steps().
        tree: Source tree root.
        context: Shared step resources.

    Raises:
        PatchApplicationError: A patch or script failed; the tree is not
            trusted any more.
        RetryExhaustedError: A clone or download never succeeded.
    """
    log_header(logger, "customization pipeline")
    for number, step in enumerate(steps, start=1):
        logger.info("[%d/%d] %s", number, len(steps), step.describe())
        step.apply(tree, context)


__all__ = [
    "FIRST_PARTY_PACKAGES",
    "OFFICIAL_FDROID_KEY",
    "REMOVAL_PATTERNS",
    "apply",
    "build_steps",
    "builtin_patches",
    "first_party_packages",
]
