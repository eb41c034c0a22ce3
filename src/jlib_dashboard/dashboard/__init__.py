"""HTTP surface of the JLib Dashboard.

Key components:
- create_app: FastAPI application factory owning the refresh lifecycle
- create_routes: The proxy API and the real-time event stream
"""

from jlib_dashboard.dashboard.app import create_app
from jlib_dashboard.dashboard.routes import create_routes

# NOTE: Update this list when adding new exports to this module.
__all__ = [
    "create_app",
    "create_routes",
]
