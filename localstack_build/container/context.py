"""Container image build context.

The context directory holds everything the image build needs: the rendered
Dockerfile, the dependency install scripts, the build entrypoint and a copy
of this package (the in-container half of the orchestrator runs from it).
The frozen configuration is also stored here so `build` uses exactly what
was deployed.
Files are only rewritten when their content changes so the runtime's layer
cache stays warm between runs.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

from localstack_build.config import DEPLOYED_CONFIG_NAME, BuildConfig
from localstack_build.templating import get_environment, render

logger = logging.getLogger(__name__)

BASE_IMAGE = "ubuntu:22.04"

DEPENDENCY_SCRIPTS = ("install-build-deps.sh", "install-build-deps-android.sh")

# Third-party packages the in-container executor imports
RUNTIME_REQUIREMENTS = (
    "httpx",
    "jinja2",
    "pydantic>=2",
    "pydantic-settings>=2",
    "pyyaml",
    "rich",
    "sqlalchemy>=2",
    "tenacity",
    "typer",
    "docker",
)

PACKAGE_DIR = Path(__file__).resolve().parent.parent


def _write_if_changed(path: Path, content: str, mode: int | None = None) -> bool:
    if path.is_file() and path.read_text(encoding="utf-8") == content:
        return False
    path.write_text(content, encoding="utf-8")
    if mode is not None:
        path.chmod(mode)
    logger.debug("Wrote %s", path)
    return True


def _sync_package(dest: Path) -> None:
    target = dest / PACKAGE_DIR.name
    if target.exists():
        shutil.rmtree(target)
    shutil.copytree(
        PACKAGE_DIR,
        target,
        ignore=shutil.ignore_patterns("__pycache__", "*.pyc"),
    )


def materialize_context(
    config: BuildConfig,
    context_dir: Path | None = None,
    uid: int | None = None,
    gid: int | None = None,
) -> Path:
    """Write the image build context for a configuration.

    Args:
        config: Build configuration.
        context_dir: Destination; defaults to ``config.context_dir``.
        uid: User id owning build files in the container (current user).
        gid: Group id owning build files in the container (current group).

    Returns:
        The context directory.
    """
    context_dir = context_dir or config.context_dir
    context_dir.mkdir(parents=True, exist_ok=True)
    uid = os.getuid() if uid is None else uid
    gid = os.getgid() if gid is None else gid

    changed = _write_if_changed(
        context_dir / "Dockerfile",
        render("Dockerfile.j2", base_image=BASE_IMAGE, uid=uid, gid=gid),
    )
    loader = get_environment().loader
    for script in DEPENDENCY_SCRIPTS:
        source, _, _ = loader.get_source(get_environment(), script)
        changed |= _write_if_changed(context_dir / script, source, mode=0o755)
    changed |= _write_if_changed(
        context_dir / "build.sh",
        render(
            "build.sh.j2",
            name=config.name,
            stack_version=config.stack_version,
            device=config.device,
            nproc=config.nproc,
            config_json=config.model_dump_json(indent=2),
        ),
        mode=0o755,
    )
    changed |= _write_if_changed(
        context_dir / DEPLOYED_CONFIG_NAME, config.model_dump_json(indent=2) + "\n"
    )
    changed |= _write_if_changed(
        context_dir / "requirements.txt", "\n".join(RUNTIME_REQUIREMENTS) + "\n"
    )
    _sync_package(context_dir / "src")

    if changed:
        logger.info("Updated build context in %s", context_dir)
    else:
        logger.info("Build context in %s is up to date", context_dir)
    return context_dir


__all__ = ["BASE_IMAGE", "RUNTIME_REQUIREMENTS", "materialize_context"]
