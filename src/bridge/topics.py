"""
MQTT topic names for water heater state and commands

Topics are shaped <prefix>/<device id>/<kind>, e.g. energysmart/0A1B2C/setpoint_state
"""

import re
import logging
from enum import Enum
from typing import Optional, Tuple

logger = logging.getLogger(__name__)


class TopicKind(Enum):
    """Every state and command suffix the bridge knows about"""
    MAXSETPOINT_STATE = "maxsetpoint_state"
    SETPOINT_STATE = "setpoint_state"
    SETPOINT_COMMAND = "setpoint_command"
    MODE_STATE = "mode_state"
    MODE_COMMAND = "mode_command"
    SYSTEMINHEATING_STATE = "systeminheating_state"
    HOTWATERVOL_STATE = "hotwatervol_state"
    UPPERTEMP_STATE = "uppertemp_state"
    LOWERTEMP_STATE = "lowertemp_state"
    UPDATERATE_STATE = "updaterate_state"
    UPDATERATE_COMMAND = "updaterate_command"
    DRYFIRE_STATE = "dryfire_state"
    ELEMENTFAIL_STATE = "elementfail_state"
    TANKSENSORFAIL_STATE = "tanksensorfail_state"
    FAULTCODES_STATE = "faultcodes_state"
    SIGNALSTRENGTH_STATE = "signalstrength_state"
    RAW_MODE_STATE = "raw_mode_state"
    GRID_STATE = "grid_state"
    AIR_FILTER_STATUS_STATE = "air_filter_status_state"
    CONDENSE_PUMP_FAIL_STATE = "condense_pump_fail_state"
    LEAK_DETECT_STATE = "leak_detect_state"
    ECO_ERROR_STATE = "eco_error_state"
    LEAK_STATE = "leak_state"
    MASTER_DISP_FAIL_STATE = "master_disp_fail_state"
    COMP_SENSOR_FAIL_STATE = "comp_sensor_fail_state"
    SYS_SENSOR_FAIL_STATE = "sys_sensor_fail_state"
    SYSTEM_FAIL_STATE = "system_fail_state"

    @property
    def is_command(self) -> bool:
        return self.value.endswith("_command")

    @property
    def is_state(self) -> bool:
        return self.value.endswith("_state")

    @property
    def state_kind(self) -> "TopicKind":
        """State topic reporting the value a command kind changes"""
        if not self.is_command:
            return self
        return TopicKind(self.value[:-len("_command")] + "_state")

    @classmethod
    def from_suffix(cls, suffix: str) -> Optional["TopicKind"]:
        return _KINDS_BY_SUFFIX.get(suffix.lower())


_KINDS_BY_SUFFIX = {kind.value: kind for kind in TopicKind}

COMMAND_KINDS = tuple(kind for kind in TopicKind if kind.is_command)


class TopicCodec:
    """Parses and formats per-device topics under one prefix"""

    def __init__(self, prefix: str):
        self.prefix = prefix.rstrip("/")
        self._pattern = re.compile(re.escape(self.prefix) + r"/([A-F0-9]+)/([^/]+)")

    def parse(self, topic: str) -> Optional[Tuple[str, TopicKind]]:
        """Return (device id, kind) or None for topics the bridge does not own"""
        match = self._pattern.fullmatch(topic)
        if not match:
            return None

        kind = TopicKind.from_suffix(match.group(2))
        if kind is None:
            logger.debug(f"Ignoring unknown topic suffix: {topic}")
            return None

        return match.group(1), kind

    def format(self, device_id: str, kind: TopicKind) -> str:
        return f"{self.prefix}/{device_id}/{kind.value}"

    def command_filter(self, kind: TopicKind) -> str:
        """Wildcard subscription covering a command kind for all devices"""
        return f"{self.prefix}/+/{kind.value}"

    @property
    def status_topic(self) -> str:
        return f"{self.prefix}/status"
