"""
Bridge Server - Main orchestrator for the MQTT connection and the poll web server
"""

import asyncio
import logging
from typing import Optional
import uvicorn

# Local imports
from config_loader import load_config, setup_logging
from bridge.command_intake import CommandIntake
from bridge.discovery import DiscoveryBuilder
from bridge.poll_handler import PollHandler
from bridge.registry import DeviceRegistry
from bridge.topics import TopicCodec
from api.main_api import BridgeAPI
from services.mqtt_connection import MqttConnection

logger = logging.getLogger(__name__)

class BridgeServer:
    """Wires the bridge core to MQTT and HTTP and runs until asked to stop"""

    def __init__(self, config_path: str = "config/config.yaml", config: Optional[dict] = None,
                 client_factory=None):
        self.config = config if config is not None else load_config(config_path)
        setup_logging(self.config)

        mqtt_config = self.config['mqtt']
        self.codec = TopicCodec(mqtt_config['prefix'])
        self.registry = DeviceRegistry()
        self.intake = CommandIntake(self.registry, self.codec)
        self.connection = MqttConnection(mqtt_config, self.registry, self.codec, self.intake,
                                         client_factory=client_factory)
        self.discovery = DiscoveryBuilder(self.codec, mqtt_config['discovery_prefix'])
        self.poll_handler = PollHandler(self.registry, self.connection, self.codec, self.discovery)

        self.api = BridgeAPI(self.poll_handler, self.registry, self.connection)

        self.running = False
        self._api_server: Optional[uvicorn.Server] = None
        self._stopped = False
        self._shutdown_requested = False

    async def start(self):
        """Connect to MQTT, then serve polls until shutdown is requested"""
        logger.info("Starting Energy Smart water heater bridge...")

        try:
            self.connection.start()
            self.running = True
            await self._start_api_server()
        except Exception as e:
            logger.error(f"Bridge startup failed: {e}")
            raise
        finally:
            await self.stop()

    def request_shutdown(self):
        """
        One-shot shutdown signal; safe to call from a signal handler. A request
        that arrives before the web server exists is applied when it is created.
        """
        if self._shutdown_requested:
            return
        logger.info("Shutdown requested")
        self._shutdown_requested = True
        if self._api_server is not None:
            self._api_server.should_exit = True

    async def stop(self):
        """Publish offline and disconnect from the broker"""
        if self._stopped:
            return
        self._stopped = True
        self.running = False
        logger.info("Stopping bridge...")

        # paho's disconnect wait blocks, keep it off the event loop
        await asyncio.get_running_loop().run_in_executor(None, self.connection.stop)

        pending = sum(len(entry.mailbox) for entry in self.registry.devices())
        if pending:
            logger.info(f"Discarding {pending} undelivered commands")
        logger.info("Bridge stopped")

    async def _start_api_server(self):
        """Start the FastAPI server the water heaters poll"""
        webserver = self.config['webserver']
        config = uvicorn.Config(
            app=self.api.app,
            host=webserver['host'],
            port=webserver['port'],
            log_config=None,
            access_log=False
        )
        self._api_server = uvicorn.Server(config)
        if self._shutdown_requested:
            self._api_server.should_exit = True

        logger.info(f"Listening for water heater polls on {webserver['host']}:{webserver['port']}")
        await self._api_server.serve()
