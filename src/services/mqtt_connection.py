"""
MQTT connection lifecycle for the bridge

Wraps a paho-mqtt client: last will, credentials, automatic reconnect,
presence announcement, command subscriptions and orderly shutdown.
Reconnect backoff belongs to paho; the bridge only logs connection events.
"""

import logging
import ssl
import threading
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional

import paho.mqtt.client as mqtt
from paho.mqtt.enums import CallbackAPIVersion

from bridge.command_intake import CommandIntake
from bridge.registry import DeviceRegistry
from bridge.topics import COMMAND_KINDS, TopicCodec

logger = logging.getLogger(__name__)

ONLINE = "online"
OFFLINE = "offline"


class ConnectionState(Enum):
    """Bridge connection state"""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"


class MqttConnection:
    """Owns the paho client and routes its callbacks into the bridge core"""

    def __init__(self, mqtt_config: Dict[str, Any], registry: DeviceRegistry, codec: TopicCodec,
                 intake: CommandIntake, client_factory: Optional[Callable[..., Any]] = None):
        self.config = mqtt_config
        self.registry = registry
        self.codec = codec
        self.intake = intake
        self._client_factory = client_factory or mqtt.Client

        self.host = mqtt_config['server']
        self.port = mqtt_config['port']
        self.reconnect_delay = mqtt_config['reconnect_delay_seconds']
        self.shutdown_timeout = mqtt_config['shutdown_timeout_seconds']

        self.client = None
        self.state = ConnectionState.DISCONNECTED
        self.connected_since: Optional[datetime] = None
        self.connect_count = 0
        self._disconnected = threading.Event()
        self._state_lock = threading.Lock()

    def _set_state(self, state: ConnectionState) -> None:
        with self._state_lock:
            if self.state != state:
                logger.debug(f"MQTT state {self.state.value} -> {state.value}")
            self.state = state

    def _build_client(self):
        client = self._client_factory(
            callback_api_version=CallbackAPIVersion.VERSION2,
            client_id=self.config['client_id'],
        )

        client.will_set(self.codec.status_topic, OFFLINE, qos=0, retain=True)

        if self.config.get('username'):
            client.username_pw_set(self.config['username'], self.config.get('password'))

        tls_config = self.config.get('tls', {})
        if tls_config.get('enabled'):
            client.tls_set(ca_certs=tls_config.get('ca_cert_path'), cert_reqs=ssl.CERT_REQUIRED)
            if tls_config.get('insecure'):
                client.tls_insecure_set(True)
                logger.warning("MQTT TLS hostname verification disabled")

        client.reconnect_delay_set(min_delay=self.reconnect_delay, max_delay=self.reconnect_delay)

        client.on_connect = self._on_connect
        client.on_connect_fail = self._on_connect_fail
        client.on_disconnect = self._on_disconnect
        client.on_message = self._on_message
        return client

    def start(self) -> None:
        """Connect in the background; paho keeps reconnecting until stop()"""
        logger.info(f"Connecting to MQTT broker {self.host}:{self.port}")
        self._disconnected.clear()
        self.client = self._build_client()
        self._set_state(ConnectionState.CONNECTING)
        self.client.connect_async(self.host, self.port, keepalive=self.config['keepalive'])
        self.client.loop_start()

    def stop(self) -> None:
        """Announce offline, disconnect, and wait (bounded) for the disconnect to finish"""
        if self.client is None:
            return

        self._set_state(ConnectionState.DISCONNECTING)
        logger.info("Publishing controller offline")
        info = self._raw_publish(self.codec.status_topic, OFFLINE, retain=True)
        if info is not None and info.rc == mqtt.MQTT_ERR_SUCCESS:
            try:
                info.wait_for_publish(timeout=self.shutdown_timeout)
            except (RuntimeError, ValueError) as e:
                logger.warning(f"Offline status was not delivered: {e}")

        self.client.disconnect()
        if not self._disconnected.wait(timeout=self.shutdown_timeout):
            logger.warning(f"MQTT disconnect did not complete within {self.shutdown_timeout}s")

        self.client.loop_stop()
        self.client = None
        self._set_state(ConnectionState.DISCONNECTED)
        self.connected_since = None
        logger.info("MQTT connection closed")

    def publish(self, topic: str, payload: str, retain: bool = True) -> bool:
        """Fire-and-forget QoS 0 publish; returns False if paho refused it"""
        info = self._raw_publish(topic, payload, retain)
        if info is None:
            return False
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            logger.debug(f"Publish to {topic} not sent: {mqtt.error_string(info.rc)}")
            return False
        return True

    def _raw_publish(self, topic: str, payload: str, retain: bool):
        client = self.client
        if client is None:
            logger.debug(f"Publish to {topic} skipped: no MQTT client")
            return None
        try:
            return client.publish(topic, payload, qos=0, retain=retain)
        except Exception as e:
            logger.error(f"Publish to {topic} failed: {e}")
            return None

    def status(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "broker": f"{self.host}:{self.port}",
            "connected_since": self.connected_since.isoformat() if self.connected_since else None,
            "connect_count": self.connect_count,
        }

    @property
    def is_connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED

    # ================== paho callbacks (network thread) ==================

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code.is_failure:
            logger.warning(f"Error connecting to MQTT broker: {reason_code}")
            return

        logger.info(f"Connected to MQTT broker {self.host}:{self.port}")
        self._set_state(ConnectionState.CONNECTED)
        self.connected_since = datetime.now(timezone.utc)
        self.connect_count += 1

        # Clear discovery state so configs are republished on next check-in
        self.registry.reset()

        for kind in COMMAND_KINDS:
            topic_filter = self.codec.command_filter(kind)
            client.subscribe(topic_filter, qos=0)
            logger.debug(f"Subscribed to {topic_filter}")

        logger.debug("Publishing controller online")
        self.publish(self.codec.status_topic, ONLINE, retain=True)

    def _on_connect_fail(self, client, userdata):
        logger.warning(f"Error connecting to MQTT broker {self.host}:{self.port}, "
                       f"retrying in {self.reconnect_delay}s")

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None):
        self.connected_since = None
        if self.state == ConnectionState.DISCONNECTING:
            logger.debug("Disconnected")
            self._disconnected.set()
            return

        self._set_state(ConnectionState.CONNECTING)
        logger.warning(f"Disconnected from MQTT broker: {reason_code}")

    def _on_message(self, client, userdata, msg):
        try:
            self.intake.handle_message(msg.topic, msg.payload)
        except Exception:
            logger.exception(f"Error handling message on {msg.topic}")
