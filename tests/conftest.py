from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import pytest

from bridge.command_intake import CommandIntake
from bridge.discovery import DiscoveryBuilder
from bridge.poll_handler import PollHandler
from bridge.registry import DeviceRegistry
from bridge.topics import TopicCodec

PREFIX = "energysmart"
DISCOVERY_PREFIX = "homeassistant"


class RecordingPublisher:
    """Collects publishes instead of sending them to a broker"""

    def __init__(self) -> None:
        self.messages: list[tuple[str, str, bool]] = []

    def publish(self, topic: str, payload: str, retain: bool = True) -> bool:
        self.messages.append((topic, payload, retain))
        return True

    def topics(self) -> list[str]:
        return [topic for topic, _, _ in self.messages]

    def last(self, topic: str) -> str | None:
        for t, payload, _ in reversed(self.messages):
            if t == topic:
                return payload
        return None

    def clear(self) -> None:
        self.messages.clear()


class FakeMessageInfo:
    def __init__(self, rc: int = 0) -> None:
        self.rc = rc
        self.waited_for: float | None = None

    def wait_for_publish(self, timeout: float | None = None) -> None:
        self.waited_for = timeout


class FakeMqttClient:
    """Stands in for paho's Client; records calls and lets tests drive callbacks"""

    def __init__(self, callback_api_version: Any = None, client_id: str = "") -> None:
        self.callback_api_version = callback_api_version
        self.client_id = client_id
        self.will: tuple[str, str, int, bool] | None = None
        self.credentials: tuple[str, str | None] | None = None
        self.tls: dict[str, Any] | None = None
        self.reconnect_delay: tuple[int, int] | None = None
        self.connect_args: tuple[str, int, int] | None = None
        self.loop_running = False
        self.subscriptions: list[str] = []
        self.published: list[tuple[str, str, int, bool]] = []
        self.disconnect_calls = 0
        self.fire_disconnect = True

        self.on_connect = None
        self.on_connect_fail = None
        self.on_disconnect = None
        self.on_message = None

    def will_set(self, topic: str, payload: str, qos: int = 0, retain: bool = False) -> None:
        self.will = (topic, payload, qos, retain)

    def username_pw_set(self, username: str, password: str | None = None) -> None:
        self.credentials = (username, password)

    def tls_set(self, **kwargs: Any) -> None:
        self.tls = kwargs

    def tls_insecure_set(self, value: bool) -> None:
        self.tls = {**(self.tls or {}), "insecure": value}

    def reconnect_delay_set(self, min_delay: int = 1, max_delay: int = 120) -> None:
        self.reconnect_delay = (min_delay, max_delay)

    def connect_async(self, host: str, port: int = 1883, keepalive: int = 60) -> None:
        self.connect_args = (host, port, keepalive)

    def loop_start(self) -> None:
        self.loop_running = True

    def loop_stop(self) -> None:
        self.loop_running = False

    def subscribe(self, topic: str, qos: int = 0) -> None:
        self.subscriptions.append(topic)

    def publish(self, topic: str, payload: str, qos: int = 0, retain: bool = False) -> FakeMessageInfo:
        self.published.append((topic, payload, qos, retain))
        return FakeMessageInfo()

    def disconnect(self) -> None:
        self.disconnect_calls += 1
        if self.fire_disconnect and self.on_disconnect:
            self.on_disconnect(self, None, None, SimpleNamespace(is_failure=False, value=0), None)

    # Helpers for tests
    def simulate_connect(self, failure: bool = False) -> None:
        self.on_connect(self, None, None, SimpleNamespace(is_failure=failure, value=0), None)

    def simulate_message(self, topic: str, payload: bytes) -> None:
        self.on_message(self, None, SimpleNamespace(topic=topic, payload=payload))


@pytest.fixture
def codec() -> TopicCodec:
    return TopicCodec(PREFIX)


@pytest.fixture
def registry() -> DeviceRegistry:
    return DeviceRegistry()


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def discovery(codec: TopicCodec) -> DiscoveryBuilder:
    return DiscoveryBuilder(codec, DISCOVERY_PREFIX)


@pytest.fixture
def poll_handler(registry, publisher, codec, discovery) -> PollHandler:
    return PollHandler(registry, publisher, codec, discovery)


@pytest.fixture
def intake(registry, codec) -> CommandIntake:
    return CommandIntake(registry, codec)


@pytest.fixture
def mqtt_config() -> dict[str, Any]:
    return {
        "server": "broker.local",
        "port": 1883,
        "username": None,
        "password": None,
        "client_id": "energysmart-bridge",
        "prefix": PREFIX,
        "discovery_prefix": DISCOVERY_PREFIX,
        "reconnect_delay_seconds": 5,
        "keepalive": 60,
        "shutdown_timeout_seconds": 1,
        "tls": {"enabled": False, "ca_cert_path": None, "insecure": False},
    }


@pytest.fixture
def fake_client_factory():
    created: list[FakeMqttClient] = []

    def factory(**kwargs: Any) -> FakeMqttClient:
        client = FakeMqttClient(**kwargs)
        created.append(client)
        return client

    factory.created = created
    return factory
