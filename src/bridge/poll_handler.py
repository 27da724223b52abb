"""
Handles one poll from a water heater: announce, publish state, hand back a command
"""

import json
import logging
from typing import List, Optional, Tuple

from .discovery import DiscoveryBuilder
from .models import Command, TelemetrySnapshot
from .registry import DeviceRegistry
from .topics import TopicCodec, TopicKind
from . import translator

logger = logging.getLogger(__name__)


def _number(value: Optional[int]) -> Optional[str]:
    return None if value is None else str(value)


def state_payloads(snapshot: TelemetrySnapshot) -> List[Tuple[TopicKind, Optional[str]]]:
    """Translate a snapshot into (state kind, payload) pairs; None payloads are skipped"""
    return [
        (TopicKind.MAXSETPOINT_STATE, _number(snapshot.max_set_point)),
        (TopicKind.SETPOINT_STATE, _number(snapshot.set_point)),
        (TopicKind.MODE_STATE, translator.mode_to_bus(snapshot.mode)),
        (TopicKind.SYSTEMINHEATING_STATE, translator.bool_state(snapshot.system_in_heating)),
        (TopicKind.HOTWATERVOL_STATE, snapshot.hot_water_vol),
        (TopicKind.UPPERTEMP_STATE, _number(snapshot.upper_temp)),
        (TopicKind.LOWERTEMP_STATE, _number(snapshot.lower_temp)),
        (TopicKind.UPDATERATE_STATE, _number(snapshot.update_rate)),
        (TopicKind.DRYFIRE_STATE, translator.flag_state(snapshot.dry_fire)),
        (TopicKind.ELEMENTFAIL_STATE, translator.flag_state(snapshot.element_fail)),
        (TopicKind.TANKSENSORFAIL_STATE, translator.flag_state(snapshot.tank_sensor_fail)),
        (TopicKind.FAULTCODES_STATE, snapshot.fault_codes),
        (TopicKind.SIGNALSTRENGTH_STATE, snapshot.signal_strength),
        (TopicKind.RAW_MODE_STATE, snapshot.mode),
        (TopicKind.GRID_STATE, translator.grid_state(snapshot.grid)),
        (TopicKind.AIR_FILTER_STATUS_STATE, translator.air_filter_state(snapshot.air_filter_status)),
        (TopicKind.CONDENSE_PUMP_FAIL_STATE, translator.bool_state(snapshot.condense_pump_fail)),
        (TopicKind.LEAK_DETECT_STATE, translator.leak_detect_state(snapshot.leak_detect)),
        (TopicKind.ECO_ERROR_STATE, translator.bool_state(snapshot.eco_error)),
        (TopicKind.LEAK_STATE, translator.flag_state(snapshot.leak)),
        (TopicKind.MASTER_DISP_FAIL_STATE, translator.flag_state(snapshot.master_disp_fail)),
        (TopicKind.COMP_SENSOR_FAIL_STATE, translator.flag_state(snapshot.comp_sensor_fail)),
        (TopicKind.SYS_SENSOR_FAIL_STATE, translator.flag_state(snapshot.sys_sensor_fail)),
        (TopicKind.SYSTEM_FAIL_STATE, translator.flag_state(snapshot.system_fail)),
    ]


class PollHandler:
    """Turns a water heater poll into MQTT publishes and a reply command"""

    def __init__(self, registry: DeviceRegistry, publisher, codec: TopicCodec, discovery: DiscoveryBuilder):
        self.registry = registry
        self.publisher = publisher
        self.codec = codec
        self.discovery = discovery

    def handle_poll(self, snapshot: TelemetrySnapshot) -> Command:
        device_id = snapshot.device_id
        _, is_new = self.registry.lookup_or_create(device_id)

        if is_new:
            logger.debug(f"Publishing water heater config {device_id}")
            self.publish_discovery(device_id, snapshot)

        logger.debug(f"Publishing water heater state {device_id}")
        self.publish_state(snapshot)

        command = self.registry.dequeue(device_id)
        if not command.is_empty:
            logger.debug(f"Sent queued command {device_id} {json.dumps(command.to_response())}")
        return command

    def publish_discovery(self, device_id: str, snapshot: Optional[TelemetrySnapshot] = None) -> int:
        """Publish every discovery descriptor for a device, returns the number sent"""
        sent = 0
        for topic, payload in self.discovery.build(device_id, snapshot):
            if self._publish(topic, payload):
                sent += 1
        return sent

    def publish_state(self, snapshot: TelemetrySnapshot) -> None:
        for kind, payload in state_payloads(snapshot):
            if payload is None:
                continue
            self._publish(self.codec.format(snapshot.device_id, kind), payload)

    def _publish(self, topic: str, payload: str) -> bool:
        try:
            return self.publisher.publish(topic, payload, retain=True)
        except Exception as e:
            logger.warning(f"Publish to {topic} failed: {e}")
            return False
