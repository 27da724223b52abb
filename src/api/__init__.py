"""
HTTP API for water heater polls and bridge monitoring
"""

from .main_api import BridgeAPI
from .poll_routes import create_poll_routes
from .system_routes import create_system_routes

__all__ = ['BridgeAPI', 'create_poll_routes', 'create_system_routes']
