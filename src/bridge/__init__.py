"""
Core translation and queueing between water heater polls and MQTT
"""

from .models import TelemetrySnapshot, Command, EMPTY_COMMAND
from .topics import TopicKind, TopicCodec, COMMAND_KINDS
from .registry import DeviceRegistry, Mailbox
from .discovery import DiscoveryBuilder
from .poll_handler import PollHandler
from .command_intake import CommandIntake

__all__ = ['TelemetrySnapshot', 'Command', 'EMPTY_COMMAND', 'TopicKind', 'TopicCodec', 'COMMAND_KINDS',
           'DeviceRegistry', 'Mailbox', 'DiscoveryBuilder', 'PollHandler', 'CommandIntake']
