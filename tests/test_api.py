from __future__ import annotations

import asyncio
from pathlib import Path
from urllib.parse import urlencode

import pytest
import uvicorn
import yaml
from fastapi.testclient import TestClient

from api.poll_routes import POLL_PATH
from services.bridge_server import BridgeServer
from config_loader import load_config

FORM_HEADERS = {"Content-Type": "application/x-www-form-urlencoded"}

POLL_FORM = {
    "DeviceText": "ABCDEF",
    "Password": "",
    "ModuleApi": "1.5",
    "ModFwVer": "3.1",
    "Mode": "Hybrid",
    "SetPoint": "120",
    "MaxSetPoint": "140",
    "UpperTemp": "118",
    "LowerTemp": "96",
    "UpdateRate": "300",
    "HotWaterVol": "High",
    "Grid": "Enabled",
    "AirFilterStatus": "OK",
    "LeakDetect": "NotDetected",
    "SystemInHeating": "False",
    "DryFire": "None",
    "SignalStrength": "-50",
    "FaultCodes": "0",
}


@pytest.fixture
def server(tmp_path: Path, fake_client_factory) -> BridgeServer:
    config_file = tmp_path / "config.yaml"
    config_file.write_text(yaml.safe_dump({
        "mqtt": {"server": "broker.local", "shutdown_timeout_seconds": 1},
        "logging": {"file": str(tmp_path / "logs" / "bridge.log"), "console_output": False},
    }))
    server = BridgeServer(config=load_config(str(config_file)), client_factory=fake_client_factory)
    server.connection.start()
    fake_client_factory.created[0].simulate_connect()
    return server


@pytest.fixture
def client(server: BridgeServer) -> TestClient:
    return TestClient(server.api.app)


@pytest.fixture
def mqtt_client(server: BridgeServer, fake_client_factory):
    return fake_client_factory.created[0]


def _poll(client: TestClient, **overrides: str):
    form = {**POLL_FORM, **overrides}
    return client.post(POLL_PATH, content=urlencode(form), headers=FORM_HEADERS)


def _last(mqtt_client, topic: str) -> str | None:
    for t, payload, _, _ in reversed(mqtt_client.published):
        if t == topic:
            return payload
    return None


def test_end_to_end_poll_and_command(client: TestClient, mqtt_client) -> None:
    response = _poll(client)

    assert response.status_code == 200
    assert response.json() == {}
    discovery = [t for t, _, _, _ in mqtt_client.published if t.startswith("homeassistant/")]
    assert "homeassistant/water_heater/ABCDEF/config" in discovery
    assert _last(mqtt_client, "energysmart/ABCDEF/mode_state") == "eco"
    assert _last(mqtt_client, "energysmart/ABCDEF/setpoint_state") == "120"

    mqtt_client.simulate_message("energysmart/ABCDEF/setpoint_command", b"130")

    response = _poll(client)
    assert response.status_code == 200
    assert response.json() == {"SetPoint": "130"}

    assert _poll(client).json() == {}


def test_discovery_published_once_per_connection(client: TestClient, mqtt_client) -> None:
    _poll(client)
    _poll(client)
    configs = [t for t, _, _, _ in mqtt_client.published if t == "homeassistant/water_heater/ABCDEF/config"]
    assert len(configs) == 1

    mqtt_client.simulate_connect()
    _poll(client)
    configs = [t for t, _, _, _ in mqtt_client.published if t == "homeassistant/water_heater/ABCDEF/config"]
    assert len(configs) == 2


def test_command_for_unpolled_device_is_dropped(client: TestClient, mqtt_client, server: BridgeServer) -> None:
    mqtt_client.simulate_message("energysmart/000000/setpoint_command", b"130")

    assert "000000" not in server.registry
    assert client.get("/api/devices").json() == []


def test_poll_with_query_string(client: TestClient) -> None:
    response = client.get(POLL_PATH, params={"DeviceText": "ABCDEF", "Mode": "Electric"})
    assert response.status_code == 200
    assert response.json() == {}


@pytest.mark.parametrize(
    "overrides",
    [{"DeviceText": ""}, {"DeviceText": "zz-top"}, {"SetPoint": "warm"}],
)
def test_malformed_poll_is_client_error(client: TestClient, server: BridgeServer, overrides: dict) -> None:
    response = _poll(client, **overrides)

    assert response.status_code == 400
    assert "detail" in response.json()
    assert len(server.registry) == 0


def test_mode_command_reaches_device(client: TestClient, mqtt_client) -> None:
    _poll(client)
    mqtt_client.simulate_message("energysmart/ABCDEF/mode_command", b"heat_pump")
    mqtt_client.simulate_message("energysmart/ABCDEF/updaterate_command", b"60")

    assert _poll(client).json() == {"Mode": "Efficiency"}
    assert _poll(client).json() == {"UpdateRate": "60"}


def test_health_and_devices(client: TestClient, mqtt_client) -> None:
    _poll(client)
    mqtt_client.simulate_message("energysmart/ABCDEF/setpoint_command", b"125")

    health = client.get("/api/system/health").json()
    assert health["status"] == "healthy"
    assert health["mqtt"]["state"] == "connected"
    assert health["device_count"] == 1
    assert health["pending_commands"] == 1

    devices = client.get("/api/devices").json()
    assert devices[0]["device_id"] == "ABCDEF"
    assert devices[0]["pending_commands"] == 1


def test_shutdown_requested_before_web_server_starts(tmp_path: Path, fake_client_factory,
                                                      monkeypatch: pytest.MonkeyPatch) -> None:
    config_file = tmp_path / "config.yaml"
    config_file.write_text(yaml.safe_dump({
        "mqtt": {"server": "broker.local", "shutdown_timeout_seconds": 1},
        "logging": {"file": str(tmp_path / "logs" / "bridge.log"), "console_output": False},
    }))
    server = BridgeServer(config=load_config(str(config_file)), client_factory=fake_client_factory)
    exit_flags: list[bool] = []

    async def serve(self, sockets=None) -> None:
        exit_flags.append(self.should_exit)

    monkeypatch.setattr(uvicorn.Server, "serve", serve)
    server.request_shutdown()
    asyncio.run(server.start())

    assert exit_flags == [True]
    client = fake_client_factory.created[0]
    assert client.published[-1] == ("energysmart/status", "offline", 0, True)
    assert client.disconnect_calls == 1
