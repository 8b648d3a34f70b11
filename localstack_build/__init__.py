"""LocalStack Build - reproducible custom Android OS builds in a disposable container.

This package decides whether a rebuild is needed from upstream component
versions, runs the build inside an isolated container, applies an ordered
customization pipeline, signs, and publishes the resulting artifacts.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
