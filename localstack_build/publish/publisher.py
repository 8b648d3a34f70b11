"""Artifact publisher.

Publishing order matters: the OTA package and its channel pointer go first,
then the factory image and target-files archive, and only then the version
checkpoint. The checkpoint is what the next run's staleness decision reads,
so it must never be written for a build whose artifacts are not stored.
"""

from __future__ import annotations

import logging
import zipfile
from pathlib import Path

from localstack_build.errors import PublishError, RetryExhaustedError
from localstack_build.logs import log_header
from localstack_build.publish.blobstore import (
    CHROMIUM_REVISION_KEY,
    FDROID_PRIV_REVISION_KEY,
    FDROID_REVISION_KEY,
    STACK_REVISION_KEY,
    BlobStore,
    channel_key,
    factory_latest_key,
    target_files_prefix,
    vendor_key,
)
from localstack_build.retry import RetryPolicy
from localstack_build.types import BuildArtifactSet, ComponentVersionSet

logger = logging.getLogger(__name__)

OTA_METADATA_ENTRY = "META-INF/com/android/metadata"


def read_ota_timestamp(ota_package: Path) -> str:
    """Read ``post-timestamp`` from an OTA package's embedded metadata.

    Args:
        ota_package: Path to the OTA update zip.

    Returns:
        The timestamp value as written in the metadata.

    Raises:
        PublishError: If the package or the entry cannot be read.
    """
    try:
        with zipfile.ZipFile(ota_package) as zf:
            metadata = zf.read(OTA_METADATA_ENTRY).decode("utf-8")
    except (OSError, KeyError, zipfile.BadZipFile) as e:
        raise PublishError(
            f"Cannot read OTA metadata from {ota_package}: {e}",
            code="invalid_ota_package",
        ) from e

    for line in metadata.splitlines():
        key, sep, value = line.partition("=")
        if sep and key.strip() == "post-timestamp":
            return value.strip()
    raise PublishError(
        f"No post-timestamp in OTA metadata of {ota_package}",
        code="invalid_ota_package",
    )


class ArtifactPublisher:
    """Publishes build artifacts to the release blob store.

    Args:
        store: Release blob store.
        device: Device codename.
        channel: Release channel (e.g. stable).
        retry_policy: Policy for the factory image and target-files uploads.
    """

    def __init__(
        self,
        store: BlobStore,
        device: str,
        channel: str = "stable",
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self.store = store
        self.device = device
        self.channel = channel
        self.retry_policy = retry_policy or RetryPolicy()

    @property
    def release_channel(self) -> str:
        return channel_key(self.device, self.channel)

    def publish(
        self, artifacts: BuildArtifactSet, versions: ComponentVersionSet
    ) -> None:
        """Publish artifacts and checkpoint the versions they were built from.

        Args:
            artifacts: Outputs of the build.
            versions: Resolved versions the build used.

        Raises:
            PublishError: If any artifact could not be stored. Nothing is
                checkpointed in that case.
        """
        log_header(logger, "publish")
        self.publish_ota(artifacts, versions)
        self.publish_factory_image(artifacts)
        self.publish_target_files(artifacts)
        self.checkpoint(versions)

    def publish_ota(
        self, artifacts: BuildArtifactSet, versions: ComponentVersionSet
    ) -> None:
        """Store the OTA package and point the release channel at it."""
        timestamp = read_ota_timestamp(artifacts.ota_package)
        self.store.put_file(f"/{artifacts.ota_package.name}", artifacts.ota_package)
        self.store.write_text(
            self.release_channel,
            f"{artifacts.build_number} {timestamp} {versions.platform_build}",
        )
        self.store.write_text(
            f"{self.release_channel}-true-timestamp", str(artifacts.build_timestamp)
        )
        logger.info(
            "Published OTA %s to channel %s",
            artifacts.ota_package.name,
            self.release_channel,
        )

    def publish_factory_image(self, artifacts: BuildArtifactSet) -> None:
        key = factory_latest_key(self.device)
        self._upload(key, artifacts.factory_image)
        logger.info("Published factory image to %s", key)

    def publish_target_files(self, artifacts: BuildArtifactSet) -> None:
        """Archive the target-files package and prune older archives."""
        prefix = target_files_prefix(self.device)
        key = f"{prefix}/{self.device}-target-files-{artifacts.build_number}.zip"
        self._upload(key, artifacts.target_files)
        for old in self.store.list(prefix):
            if old != key:
                logger.info("Removing old target files %s", old)
                self.store.delete(old)

    def checkpoint(self, versions: ComponentVersionSet) -> None:
        """Record the versions of a successfully published build."""
        self.store.write_text(STACK_REVISION_KEY, versions.stack)
        self.store.write_text(vendor_key(self.device), versions.platform_build)
        self.store.write_text(CHROMIUM_REVISION_KEY, versions.browser_engine)
        self.store.write_text(FDROID_REVISION_KEY, versions.app_store_client)
        self.store.write_text(FDROID_PRIV_REVISION_KEY, versions.privileged_extension)
        logger.info("Checkpointed versions for %s", self.device)

    def _upload(self, key: str, source: Path) -> None:
        if not source.is_file():
            raise PublishError(
                f"Artifact {source} does not exist", code="missing_artifact"
            )
        try:
            self.retry_policy.call(
                f"upload {source.name}", lambda: self.store.put_file(key, source)
            )
        except RetryExhaustedError as e:
            raise PublishError(f"Failed to upload {source} to {key}: {e}") from e


__all__ = ["OTA_METADATA_ENTRY", "ArtifactPublisher", "read_ota_timestamp"]
