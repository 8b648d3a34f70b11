"""Signing key lifecycle and signing-mode selection."""

from localstack_build.keys.manager import KeyBundle, KeyManager
from localstack_build.keys.signing import ota_flags, signing_flags

__all__ = ["KeyBundle", "KeyManager", "ota_flags", "signing_flags"]
