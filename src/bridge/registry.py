"""
Registry of water heaters that have polled the bridge

Each device owns a mailbox of commands waiting for its next poll. The map is
guarded by one lock used only for get-or-insert and reset; every mailbox has
its own lock so a poll draining one device never waits on another.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from .models import Command, EMPTY_COMMAND

logger = logging.getLogger(__name__)


class Mailbox:
    """FIFO of commands for one device"""

    def __init__(self):
        self._queue = deque()
        self._lock = threading.Lock()

    def put(self, command: Command) -> None:
        with self._lock:
            self._queue.append(command)

    def pop(self) -> Optional[Command]:
        """Remove and return the oldest command, or None if empty"""
        with self._lock:
            if not self._queue:
                return None
            return self._queue.popleft()

    def __len__(self) -> int:
        with self._lock:
            return len(self._queue)


@dataclass
class DeviceEntry:
    """Registry bookkeeping for one device"""
    device_id: str
    mailbox: Mailbox = field(default_factory=Mailbox)
    first_seen: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_poll: Optional[datetime] = None


class DeviceRegistry:
    """Thread-safe map from device id to its mailbox"""

    def __init__(self):
        self._devices: Dict[str, DeviceEntry] = {}
        self._lock = threading.Lock()

    def lookup_or_create(self, device_id: str) -> Tuple[Mailbox, bool]:
        """
        Return the device's mailbox and whether the device is new in the
        current connection epoch. A device is new on its first poll ever and
        on its first poll after reset().
        """
        with self._lock:
            entry = self._devices.get(device_id)
            is_new = entry is None
            if is_new:
                entry = DeviceEntry(device_id)
                self._devices[device_id] = entry
                logger.info(f"Registered new water heater {device_id}")

            entry.last_poll = datetime.now(timezone.utc)
            return entry.mailbox, is_new

    def enqueue(self, device_id: str, command: Command) -> bool:
        """Queue a command; dropped if the device has never polled"""
        with self._lock:
            entry = self._devices.get(device_id)

        if entry is None:
            logger.info(f"Dropping command for unknown water heater {device_id}")
            return False

        entry.mailbox.put(command)
        return True

    def dequeue(self, device_id: str) -> Command:
        """Pop the oldest command, or the empty command if none is waiting"""
        with self._lock:
            entry = self._devices.get(device_id)

        if entry is None:
            return EMPTY_COMMAND

        command = entry.mailbox.pop()
        return command if command is not None else EMPTY_COMMAND

    def reset(self) -> None:
        """
        Forget every device. Pending commands are discarded and each device is
        registered and announced again on its next poll.
        """
        with self._lock:
            dropped = len(self._devices)
            self._devices.clear()
        logger.debug(f"Registry reset, forgot {dropped} devices")

    def devices(self) -> List[DeviceEntry]:
        with self._lock:
            return list(self._devices.values())

    def __contains__(self, device_id: str) -> bool:
        with self._lock:
            return device_id in self._devices

    def __len__(self) -> int:
        with self._lock:
            return len(self._devices)
