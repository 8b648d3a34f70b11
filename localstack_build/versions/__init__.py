"""Version resolution and staleness decisions.

This module handles:
- Resolving the latest upstream component versions
- Reading the recorded checkpoint for a device
- Deciding whether a build is required
"""

from localstack_build.versions.decision import decide, load_recorded

__all__ = ["decide", "load_recorded"]
