"""Staleness decision engine.

``decide()`` is pure: given the latest and recorded versions and the two
override flags it always returns the same BuildDecision. ``load_recorded()``
reads the checkpoint written by the publisher after the last successful
build.
"""

from __future__ import annotations

import logging

from localstack_build.publish.blobstore import (
    CHROMIUM_REVISION_KEY,
    FDROID_PRIV_REVISION_KEY,
    FDROID_REVISION_KEY,
    STACK_REVISION_KEY,
    BlobStore,
    vendor_key,
)
from localstack_build.types import COMPARED_FIELDS, BuildDecision, ComponentVersionSet

logger = logging.getLogger(__name__)

INITIAL_BUILD_REASON = "initial build"
FORCE_BUILD_REASON = "No build is required, but FORCE_BUILD=true"
IGNORE_VERSION_CHECKS_REASON = "No build is required, but IGNORE_VERSION_CHECKS=true"


def decide(
    latest: ComponentVersionSet,
    recorded: ComponentVersionSet | None,
    force_build: bool = False,
    ignore_version_checks: bool = False,
) -> BuildDecision:
    """Decide whether a build is required.

    Args:
        latest: Versions resolved from upstream.
        recorded: Versions checkpointed by the last successful build, or None
            if this device has never been built.
        force_build: Build even if nothing changed.
        ignore_version_checks: Stack-level setting with the same effect.

    Returns:
        BuildDecision with one reason per mismatching field, or the override
        reasons when nothing differs.
    """
    if recorded is None:
        return BuildDecision(required=True, reasons=(INITIAL_BUILD_REASON,))

    reasons: list[str] = []
    recorded_values = recorded.compared_values()
    for field_name, label in COMPARED_FIELDS:
        old = recorded_values[field_name]
        new = getattr(latest, field_name)
        if old != new:
            reasons.append(f"{label} {old or '(none)'} != {new}")

    if reasons:
        return BuildDecision(required=True, reasons=tuple(reasons))

    if force_build:
        reasons.append(FORCE_BUILD_REASON)
    if ignore_version_checks:
        reasons.append(IGNORE_VERSION_CHECKS_REASON)
    return BuildDecision(required=bool(reasons), reasons=tuple(reasons))


def load_recorded(store: BlobStore, device: str) -> ComponentVersionSet | None:
    """Read the checkpointed versions for a device.

    Args:
        store: Release blob store.
        device: Device codename.

    Returns:
        The recorded versions, or None when no checkpoint key exists at all.
        Individual missing keys read as empty strings so they register as
        mismatches.
    """
    values = {
        "stack": store.read_text(STACK_REVISION_KEY),
        "platform_build": store.read_text(vendor_key(device)),
        "browser_engine": store.read_text(CHROMIUM_REVISION_KEY),
        "app_store_client": store.read_text(FDROID_REVISION_KEY),
        "privileged_extension": store.read_text(FDROID_PRIV_REVISION_KEY),
    }
    if all(v is None for v in values.values()):
        logger.info("No recorded build state for %s", device)
        return None
    return ComponentVersionSet(**{k: v or "" for k, v in values.items()})


def log_decision(decision: BuildDecision) -> None:
    if decision.required:
        logger.info("New build is required: %s", decision.summary)
    else:
        logger.info(
            "Build not required as all components are already up to date."
        )


__all__ = [
    "FORCE_BUILD_REASON",
    "IGNORE_VERSION_CHECKS_REASON",
    "INITIAL_BUILD_REASON",
    "decide",
    "load_recorded",
    "log_decision",
]
