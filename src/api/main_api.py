"""
Main FastAPI application setup
"""

from fastapi import FastAPI
import logging

from .poll_routes import create_poll_routes
from .system_routes import create_system_routes

logger = logging.getLogger(__name__)


class BridgeAPI:
    """HTTP surface for water heater polls and bridge monitoring"""

    def __init__(self, poll_handler, registry, connection):
        self.poll_handler = poll_handler
        self.registry = registry
        self.connection = connection
        self.app = FastAPI(
            title="Energy Smart Water Heater Bridge",
            description="Receives water heater polls and bridges them to MQTT",
            version="1.0.0"
        )
        self._setup_routes()

    def _setup_routes(self):
        """Setup FastAPI routes using modular approach"""
        self.app.include_router(create_poll_routes(self.poll_handler))
        self.app.include_router(create_system_routes(self.registry, self.connection))
