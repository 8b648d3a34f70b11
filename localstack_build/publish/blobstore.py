"""Key/value blob store with path-like keys.

Keys look like ``/crosshatch-vendor`` or ``/chromium/revision``. They are
mapped onto a directory (the host release directory, bind-mounted into the
build container). Writes go to a temporary file first and are renamed into
place so a reader never sees a partial value.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path

from localstack_build.errors import BlobStoreError

logger = logging.getLogger(__name__)

# Checkpointed component versions
STACK_REVISION_KEY = "/rattlesnakeos-stack/revision"
CHROMIUM_REVISION_KEY = "/chromium/revision"
FDROID_REVISION_KEY = "/fdroid/revision"
FDROID_PRIV_REVISION_KEY = "/fdroid-priv/revision"


def vendor_key(device: str) -> str:
    """Key holding the checkpointed platform build id for a device."""
    return f"/{device}-vendor"


def channel_key(device: str, channel: str) -> str:
    """Key of the release-channel pointer read by the updater app."""
    return f"/{device}-{channel}"


def factory_latest_key(device: str) -> str:
    return f"/{device}-factory-latest.tar.xz"


def target_files_prefix(device: str) -> str:
    return f"/{device}-target"


class BlobStore:
    """Filesystem-backed blob store.

    Args:
        root: Directory that holds all blobs.
    """

    def __init__(self, root: Path) -> None:
        self.root = root

    def _path(self, key: str) -> Path:
        rel = key.lstrip("/")
        if not rel or ".." in Path(rel).parts:
            raise BlobStoreError(f"Invalid blob key: {key!r}", code="invalid_key")
        return self.root / rel

    def exists(self, key: str) -> bool:
        return self._path(key).is_file()

    def read_text(self, key: str) -> str | None:
        """Return the stripped text stored at ``key``, or None if absent."""
        path = self._path(key)
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8").strip()

    def write_text(self, key: str, value: str) -> None:
        self._atomic_write(key, (value.rstrip("\n") + "\n").encode("utf-8"))

    def put_file(self, key: str, source: Path) -> None:
        """Copy a local file into the store under ``key``."""
        dest = self._path(key)
        dest.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=dest.parent, suffix=".tmp")
        os.close(fd)
        tmp_path = Path(tmp_name)
        try:
            shutil.copyfile(source, tmp_path)
            os.replace(tmp_path, dest)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise BlobStoreError(
                f"Failed to store {source} at {key}: {e}", code="put_failed"
            ) from e
        logger.debug("Stored %s at %s", source, key)

    def list(self, prefix: str) -> list[str]:
        """List keys directly under a directory-like prefix, sorted."""
        directory = self._path(prefix)
        if not directory.is_dir():
            return []
        base = "/" + prefix.strip("/")
        return sorted(f"{base}/{p.name}" for p in directory.iterdir() if p.is_file())

    def delete(self, key: str) -> bool:
        path = self._path(key)
        if not path.exists():
            return False
        path.unlink()
        logger.debug("Deleted %s", key)
        return True

    def _atomic_write(self, key: str, data: bytes) -> None:
        dest = self._path(key)
        dest.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=dest.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, dest)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise BlobStoreError(
                f"Failed to write {key}: {e}", code="write_failed"
            ) from e


__all__ = [
    "CHROMIUM_REVISION_KEY",
    "FDROID_PRIV_REVISION_KEY",
    "FDROID_REVISION_KEY",
    "STACK_REVISION_KEY",
    "BlobStore",
    "BlobStoreError",
    "channel_key",
    "factory_latest_key",
    "target_files_prefix",
    "vendor_key",
]
