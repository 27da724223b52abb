"""
Validates commands arriving over MQTT and queues them for the target water heater
"""

import logging
import re
from typing import Optional, Union

from .discovery import SET_POINT_MIN, SET_POINT_MAX, UPDATE_RATE_MIN, UPDATE_RATE_MAX
from .models import Command
from .registry import DeviceRegistry
from .topics import TopicCodec, TopicKind
from . import translator

logger = logging.getLogger(__name__)

# Plain ASCII numerals only: int() and float() would also take "1_00" or Arabic-Indic digits
_INTEGER = re.compile(r"[+-]?[0-9]+")
_DECIMAL = re.compile(r"[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)")


def parse_update_rate(payload: str) -> Optional[Command]:
    """Integer seconds in [30, 300]"""
    if not _INTEGER.fullmatch(payload):
        return None
    update_rate = int(payload)
    if not UPDATE_RATE_MIN <= update_rate <= UPDATE_RATE_MAX:
        return None
    return Command(update_rate=str(update_rate))


def parse_mode(payload: str) -> Command:
    """Unrecognized modes are still queued, carrying no mode change"""
    return Command(mode=translator.mode_to_device(payload))


def parse_set_point(payload: str) -> Optional[Command]:
    """Number in [80, 150], truncated to an integer"""
    if not _DECIMAL.fullmatch(payload):
        return None
    set_point = float(payload)
    if not SET_POINT_MIN <= set_point <= SET_POINT_MAX:
        return None
    return Command(set_point=str(int(set_point)))


_PARSERS = {
    TopicKind.UPDATERATE_COMMAND: parse_update_rate,
    TopicKind.MODE_COMMAND: parse_mode,
    TopicKind.SETPOINT_COMMAND: parse_set_point,
}


class CommandIntake:
    """Routes inbound command messages into device mailboxes"""

    def __init__(self, registry: DeviceRegistry, codec: TopicCodec):
        self.registry = registry
        self.codec = codec

    def handle_message(self, topic: str, payload: Union[bytes, str]) -> bool:
        """Returns True when a command was queued"""
        parsed = self.codec.parse(topic)
        if parsed is None:
            return False

        device_id, kind = parsed
        parser = _PARSERS.get(kind)
        if parser is None:
            logger.debug(f"Ignoring non-command topic {topic}")
            return False

        if isinstance(payload, bytes):
            try:
                payload = payload.decode("utf-8")
            except UnicodeDecodeError:
                logger.warning(f"Dropping undecodable payload on {topic}")
                return False
        payload = payload.strip()

        logger.debug(f"Received: Id: {device_id}, Command: {kind.value}, Value: {payload}")

        if device_id not in self.registry:
            logger.info(f"Dropping {kind.value} for water heater {device_id} that has not polled yet")
            return False

        command = parser(payload)
        if command is None:
            logger.info(f"Dropping invalid {kind.value} payload {payload!r} for {device_id}")
            return False

        if not self.registry.enqueue(device_id, command):
            return False

        logger.debug(f"Queued {device_id} {command.to_response()}")
        return True
