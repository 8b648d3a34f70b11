"""Local manifest overlay generation.

The overlay adds the stack's own projects to the upstream source tree,
removes unwanted upstream apps, and injects any configured remotes and
projects. It is written to ``.repo/local_manifests`` before the source sync.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET

from localstack_build.config import BuildConfig
from localstack_build.errors import ConfigError
from localstack_build.templating import render

MANIFEST_TEMPLATE = "local_manifest.xml.j2"
LOCAL_MANIFEST_PATH = ".repo/local_manifests/rattlesnakeos.xml"

# Upstream projects dropped from the tree
REMOVED_PROJECTS = (
    "platform/packages/apps/Browser2",
    "platform/packages/apps/Calendar",
    "platform/packages/apps/QuickSearchBox",
)


def render_manifest(config: BuildConfig, fdroid_priv_version: str) -> str:
    """Render the local manifest overlay.

    Order inside the document: stack projects, static removals, custom
    remotes, custom projects, then the attestation project when enabled.

    Args:
        config: Build configuration.
        fdroid_priv_version: Privileged extension tag to pin.

    Returns:
        Manifest XML text.

    Raises:
        ConfigError: If the rendered document is not well-formed XML.
    """
    text = render(
        MANIFEST_TEMPLATE,
        android_version=config.android_version,
        fdroid_priv_version=fdroid_priv_version,
        removed_projects=REMOVED_PROJECTS,
        remotes=config.custom_manifest_remotes,
        projects=config.custom_manifest_projects,
        attestation=config.attestation_server,
    )
    try:
        ET.fromstring(text.encode("utf-8"))
    except ET.ParseError as e:
        raise ConfigError(
            f"Generated manifest overlay is not valid XML: {e}",
            code="invalid_manifest",
        ) from e
    return text


__all__ = ["LOCAL_MANIFEST_PATH", "REMOVED_PROJECTS", "render_manifest"]
