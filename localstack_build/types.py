"""Shared type definitions for localstack_build.

This module contains enums and dataclasses shared across subpackages to
avoid circular imports.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any


class SigningMode(str, Enum):
    """Verified boot signing scheme for a device family."""

    VERITY_ONLY = "verity_only"
    VBMETA_SIMPLE = "vbmeta_simple"
    VBMETA_CHAINED = "vbmeta_chained"


class BuildStatus(str, Enum):
    """Status of an orchestration run."""

    PENDING = "pending"
    RUNNING = "running"
    SKIPPED = "skipped"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class Stage(str, Enum):
    """Build executor stages, in the order they normally run."""

    DEPENDENCIES = "dependencies"
    BROWSER_ENGINE = "browser_engine"
    SOURCE_INIT = "source_init"
    SOURCE_SYNC = "source_sync"
    KEYS = "keys"
    VENDOR = "vendor"
    APP_STORE_CLIENT = "app_store_client"
    CUSTOMIZE = "customize"
    KERNEL = "kernel"
    COMPILE = "compile"
    PACKAGE = "package"
    SIGN = "sign"
    IMAGES = "images"
    ARCHIVE = "archive"
    PUBLISH = "publish"


# Fields compared by the staleness decision engine, with their display labels.
COMPARED_FIELDS: tuple[tuple[str, str], ...] = (
    ("stack", "Stack version"),
    ("platform_build", "Platform build"),
    ("browser_engine", "Chromium version"),
    ("app_store_client", "F-Droid version"),
    ("privileged_extension", "F-Droid privileged extension version"),
)


@dataclass(frozen=True)
class ComponentVersionSet:
    """Resolved or recorded component versions for one device.

    Attributes:
        stack: Stack software version.
        platform_build: Platform build id (e.g. RQ3A.211001.001).
        browser_engine: Chromium version.
        app_store_client: F-Droid client version.
        privileged_extension: F-Droid privileged extension version.
        platform_branch: Platform source branch; not part of the checkpoint.
    """

    stack: str
    platform_build: str
    browser_engine: str
    app_store_client: str
    privileged_extension: str
    platform_branch: str | None = None

    def compared_values(self) -> dict[str, str]:
        """Return the values that participate in staleness comparison."""
        return {name: getattr(self, name) for name, _ in COMPARED_FIELDS}

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ComponentVersionSet:
        return cls(
            stack=data["stack"],
            platform_build=data["platform_build"],
            browser_engine=data["browser_engine"],
            app_store_client=data["app_store_client"],
            privileged_extension=data["privileged_extension"],
            platform_branch=data.get("platform_branch"),
        )


@dataclass(frozen=True)
class BuildDecision:
    """Outcome of the staleness decision engine."""

    required: bool
    reasons: tuple[str, ...] = ()

    @property
    def summary(self) -> str:
        if not self.reasons:
            return "no build needed"
        return "; ".join(self.reasons)


@dataclass(frozen=True)
class BuildArtifactSet:
    """Outputs of one build attempt.

    Attributes:
        ota_package: Signed OTA update zip.
        factory_image: Compressed factory image (.tar.xz).
        target_files: Signed target-files zip.
        build_number: Build number / date string (e.g. 2021.10.05.12).
        build_timestamp: Epoch seconds when the build started.
    """

    ota_package: Path
    factory_image: Path
    target_files: Path
    build_number: str
    build_timestamp: int


@dataclass
class BuildRunState:
    """Mutable state threaded through one build run.

    The host fills in ``latest`` and ``decision``; the in-container executor
    adds the key bundle location and the produced artifacts.
    """

    device: str
    force_build: bool
    latest: ComponentVersionSet
    decision: BuildDecision
    key_dir: Path | None = None
    artifacts: BuildArtifactSet | None = None
    completed_stages: list[Stage] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Serialize the portion of the state that crosses into the container."""
        return {
            "device": self.device,
            "force_build": self.force_build,
            "latest": self.latest.to_dict(),
            "decision": {
                "required": self.decision.required,
                "reasons": list(self.decision.reasons),
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BuildRunState:
        decision = data["decision"]
        return cls(
            device=data["device"],
            force_build=bool(data["force_build"]),
            latest=ComponentVersionSet.from_dict(data["latest"]),
            decision=BuildDecision(
                required=bool(decision["required"]),
                reasons=tuple(decision.get("reasons", ())),
            ),
        )


__all__ = [
    "COMPARED_FIELDS",
    "BuildArtifactSet",
    "BuildDecision",
    "BuildRunState",
    "BuildStatus",
    "ComponentVersionSet",
    "SigningMode",
    "Stage",
]
