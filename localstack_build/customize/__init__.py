"""Source tree customization: manifest overlay, patches, package registration."""

from localstack_build.customize.manifest import render_manifest
from localstack_build.customize.pipeline import apply, build_steps
from localstack_build.customize.steps import CustomizationStep, StepContext

__all__ = [
    "CustomizationStep",
    "StepContext",
    "apply",
    "build_steps",
    "render_manifest",
]
