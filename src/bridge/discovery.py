"""
Home Assistant MQTT discovery descriptors for a water heater

One retained config message per entity: the water heater itself, binary
sensors for every fault flag, plain sensors for temperatures and diagnostics,
and a number entity for the poll interval.
"""

import json
from dataclasses import dataclass, field
from typing import Dict, List, Tuple, Any, Optional

from .models import TelemetrySnapshot
from .topics import TopicCodec, TopicKind
from .translator import BUS_MODES, ON, OFF

SET_POINT_MIN = 80
SET_POINT_MAX = 150
UPDATE_RATE_MIN = 30
UPDATE_RATE_MAX = 300

DEFAULT_MODEL = "Heat Pump Water Heater"

DiscoveryRecord = List[Tuple[str, str]]


@dataclass(frozen=True)
class EntitySpec:
    """Static description of one exposed entity"""
    component: str
    object_id: str
    name: str
    state_kind: TopicKind
    extra: Dict[str, Any] = field(default_factory=dict)


BINARY_SENSORS = (
    EntitySpec("binary_sensor", "heating", "Heating", TopicKind.SYSTEMINHEATING_STATE,
               {"device_class": "heat"}),
    EntitySpec("binary_sensor", "grid", "Grid", TopicKind.GRID_STATE,
               {"device_class": "power"}),
    EntitySpec("binary_sensor", "airfilterstatus", "Air Filter", TopicKind.AIR_FILTER_STATUS_STATE,
               {"device_class": "problem"}),
    EntitySpec("binary_sensor", "condensepumpfail", "Condensate Pump", TopicKind.CONDENSE_PUMP_FAIL_STATE,
               {"device_class": "problem"}),
    EntitySpec("binary_sensor", "leakdetect", "Leak Detection", TopicKind.LEAK_DETECT_STATE,
               {"device_class": "moisture"}),
    EntitySpec("binary_sensor", "ecoerror", "Eco Error", TopicKind.ECO_ERROR_STATE,
               {"device_class": "problem"}),
    EntitySpec("binary_sensor", "dryfire", "Dry Fire", TopicKind.DRYFIRE_STATE,
               {"device_class": "problem"}),
    EntitySpec("binary_sensor", "elementfail", "Element", TopicKind.ELEMENTFAIL_STATE,
               {"device_class": "problem"}),
    EntitySpec("binary_sensor", "tanksensorfail", "Tank Sensor", TopicKind.TANKSENSORFAIL_STATE,
               {"device_class": "problem"}),
    EntitySpec("binary_sensor", "leak", "Leak", TopicKind.LEAK_STATE,
               {"device_class": "moisture"}),
    EntitySpec("binary_sensor", "masterdispfail", "Display", TopicKind.MASTER_DISP_FAIL_STATE,
               {"device_class": "problem"}),
    EntitySpec("binary_sensor", "compsensorfail", "Compressor Sensor", TopicKind.COMP_SENSOR_FAIL_STATE,
               {"device_class": "problem"}),
    EntitySpec("binary_sensor", "syssensorfail", "System Sensor", TopicKind.SYS_SENSOR_FAIL_STATE,
               {"device_class": "problem"}),
    EntitySpec("binary_sensor", "systemfail", "System", TopicKind.SYSTEM_FAIL_STATE,
               {"device_class": "problem"}),
)

SENSORS = (
    EntitySpec("sensor", "rawmode", "Raw Mode", TopicKind.RAW_MODE_STATE,
               {"entity_category": "diagnostic"}),
    EntitySpec("sensor", "hotwatervol", "Hot Water Volume", TopicKind.HOTWATERVOL_STATE,
               {"icon": "mdi:water-percent"}),
    EntitySpec("sensor", "uppertemp", "Upper Tank Temperature", TopicKind.UPPERTEMP_STATE,
               {"device_class": "temperature", "unit_of_measurement": "°F", "state_class": "measurement"}),
    EntitySpec("sensor", "lowertemp", "Lower Tank Temperature", TopicKind.LOWERTEMP_STATE,
               {"device_class": "temperature", "unit_of_measurement": "°F", "state_class": "measurement"}),
    EntitySpec("sensor", "faultcodes", "Fault Codes", TopicKind.FAULTCODES_STATE,
               {"entity_category": "diagnostic", "icon": "mdi:alert-circle-outline"}),
    EntitySpec("sensor", "signalstrength", "Signal Strength", TopicKind.SIGNALSTRENGTH_STATE,
               {"device_class": "signal_strength", "unit_of_measurement": "dBm",
                "entity_category": "diagnostic"}),
)

NUMBERS = (
    EntitySpec("number", "updaterate", "Update Rate", TopicKind.UPDATERATE_STATE,
               {"command_topic_kind": TopicKind.UPDATERATE_COMMAND, "min": UPDATE_RATE_MIN,
                "max": UPDATE_RATE_MAX, "step": 1, "unit_of_measurement": "s",
                "entity_category": "config", "icon": "mdi:timer-sync-outline"}),
)

ENTITIES = BINARY_SENSORS + SENSORS + NUMBERS


class DiscoveryBuilder:
    """Builds the discovery record for a device id"""

    def __init__(self, codec: TopicCodec, discovery_prefix: str):
        self.codec = codec
        self.discovery_prefix = discovery_prefix.rstrip("/")

    def device_block(self, device_id: str, snapshot: Optional[TelemetrySnapshot] = None) -> Dict[str, Any]:
        """Device registry entry, enriched with firmware details when a poll is at hand"""
        block = {
            "identifiers": [f"energysmart_{device_id}"],
            "name": f"Water Heater {device_id}",
            "manufacturer": "Energy Smart",
            "model": DEFAULT_MODEL,
        }
        if snapshot is not None:
            if snapshot.master_model:
                block["model"] = snapshot.master_model
            if snapshot.module_firmware:
                block["sw_version"] = snapshot.module_firmware
            if snapshot.master_firmware:
                block["hw_version"] = snapshot.master_firmware
        return block

    def water_heater_config(self, device_id: str, device: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "name": None,
            "unique_id": f"energysmart_{device_id}_water_heater",
            "modes": list(BUS_MODES),
            "mode_state_topic": self.codec.format(device_id, TopicKind.MODE_STATE),
            "mode_command_topic": self.codec.format(device_id, TopicKind.MODE_COMMAND),
            "temperature_state_topic": self.codec.format(device_id, TopicKind.SETPOINT_STATE),
            "temperature_command_topic": self.codec.format(device_id, TopicKind.SETPOINT_COMMAND),
            "current_temperature_topic": self.codec.format(device_id, TopicKind.UPPERTEMP_STATE),
            "min_temp": SET_POINT_MIN,
            "max_temp": SET_POINT_MAX,
            "precision": 1.0,
            "temperature_unit": "F",
            "availability_topic": self.codec.status_topic,
            "device": device,
        }

    def entity_config(self, device_id: str, spec: EntitySpec, device: Dict[str, Any]) -> Dict[str, Any]:
        config = {
            "name": spec.name,
            "unique_id": f"energysmart_{device_id}_{spec.object_id}",
            "state_topic": self.codec.format(device_id, spec.state_kind),
            "availability_topic": self.codec.status_topic,
        }
        if spec.component == "binary_sensor":
            config["payload_on"] = ON
            config["payload_off"] = OFF

        for key, value in spec.extra.items():
            if key == "command_topic_kind":
                config["command_topic"] = self.codec.format(device_id, value)
            else:
                config[key] = value

        config["device"] = device
        return config

    def build(self, device_id: str, snapshot: Optional[TelemetrySnapshot] = None) -> DiscoveryRecord:
        """Return (topic, JSON payload) pairs for every entity of a device"""
        device = self.device_block(device_id, snapshot)
        record = [(
            f"{self.discovery_prefix}/water_heater/{device_id}/config",
            json.dumps(self.water_heater_config(device_id, device)),
        )]
        for spec in ENTITIES:
            topic = f"{self.discovery_prefix}/{spec.component}/{device_id}/{spec.object_id}/config"
            record.append((topic, json.dumps(self.entity_config(device_id, spec, device))))
        return record
