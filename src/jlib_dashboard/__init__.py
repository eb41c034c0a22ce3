"""JLib Dashboard - monitoring for Java applications and their JAR dependencies."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("jlib-dashboard")
except PackageNotFoundError:
    # Package is not installed (e.g., running from source without pip install)
    __version__ = "0.0.0.dev0"

# Re-export core public API
from jlib_dashboard.app import main

# NOTE: Update this list when adding new exports to this module.
__all__ = [
    "__version__",
    "main",
]
