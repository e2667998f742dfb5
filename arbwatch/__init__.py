"""
DEX spread monitoring and paper-trading toolkit.

Shared building blocks (exceptions, logging helpers, retry policy and
Prometheus metrics) used by the ``dexsim`` spread engine and the dashboard.
"""

from arbwatch.version import __version__

PROJECT_NAME = "arbwatch"
VERSION = __version__

__all__ = ["PROJECT_NAME", "VERSION", "__version__"]
