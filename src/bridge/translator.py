"""
Value translation between the water heater's raw vocabulary and MQTT payloads
"""

from typing import Optional

ON = "ON"
OFF = "OFF"

UNKNOWN_MODE = "unknown"

# Device mode name -> Home Assistant water_heater operation mode
DEVICE_TO_BUS_MODE = {
    "Efficiency": "heat_pump",
    "Hybrid": "eco",
    "Electric": "electric",
    "Vacation": "off",
}

BUS_TO_DEVICE_MODE = {bus: device for device, bus in DEVICE_TO_BUS_MODE.items()}

BUS_MODES = tuple(BUS_TO_DEVICE_MODE)

# Spellings a fail flag uses when nothing is wrong
_CLEAR_FLAG_VALUES = {"", "none", "0", "false", "off", "clear"}


def mode_to_bus(device_mode: Optional[str]) -> str:
    """Map a device mode to its bus name, 'unknown' for anything unrecognized"""
    return DEVICE_TO_BUS_MODE.get(device_mode, UNKNOWN_MODE)


def mode_to_device(bus_mode: Optional[str]) -> Optional[str]:
    """Map a bus mode to the device mode, None meaning no mode change"""
    return BUS_TO_DEVICE_MODE.get(bus_mode)


def flag_state(raw: Optional[str]) -> str:
    """Tri-state fail flag: absent or clear -> OFF, set -> ON"""
    if raw is None or raw.strip().lower() in _CLEAR_FLAG_VALUES:
        return OFF
    return ON


def bool_state(value: bool) -> str:
    return ON if value else OFF


def grid_state(raw: Optional[str]) -> str:
    # "Disabled" means the heater is not drawing on grid power
    return OFF if raw == "Disabled" else ON


def air_filter_state(raw: Optional[str]) -> str:
    return OFF if raw == "OK" else ON


def leak_detect_state(raw: Optional[str]) -> str:
    return OFF if raw == "NotDetected" else ON
