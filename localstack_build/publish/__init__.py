"""Artifact publishing.

This module handles:
- The path-keyed blob store mapped onto the release directory
- Release-channel pointers for the updater app
- Factory image and target-files archival with pruning
- Checkpointing resolved component versions after a successful publish
"""

from localstack_build.publish.blobstore import BlobStore, BlobStoreError
from localstack_build.publish.publisher import ArtifactPublisher, read_ota_timestamp

__all__ = ["ArtifactPublisher", "BlobStore", "BlobStoreError", "read_ota_timestamp"]
