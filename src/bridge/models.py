"""
Data structures exchanged between the water heater and the bridge
"""

import re
from dataclasses import dataclass, asdict
from typing import Dict, Optional, Mapping

DEVICE_ID_PATTERN = re.compile(r"[A-F0-9]+")


def _parse_int(fields: Mapping[str, str], name: str) -> Optional[int]:
    """Parse an optional integer form field, raising ValueError when malformed"""
    raw = fields.get(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw.strip())
    except ValueError:
        raise ValueError(f"Field {name} must be an integer, got {raw!r}")


def _parse_bool(fields: Mapping[str, str], name: str) -> bool:
    raw = fields.get(name)
    if raw is None:
        return False
    return raw.strip().lower() in ("true", "1", "yes", "on")


def _text(fields: Mapping[str, str], name: str) -> Optional[str]:
    raw = fields.get(name)
    if raw is None:
        return None
    return raw.strip()


def normalize_device_id(raw: Optional[str]) -> str:
    """Return the canonical uppercase device id or raise ValueError"""
    if raw is None or not raw.strip():
        raise ValueError("Missing DeviceText")
    device_id = raw.strip().upper()
    if not DEVICE_ID_PATTERN.fullmatch(device_id):
        raise ValueError(f"DeviceText must be hexadecimal, got {raw!r}")
    return device_id


@dataclass(frozen=True)
class TelemetrySnapshot:
    """State reported by a water heater in one poll"""
    device_id: str

    # Module metadata for the discovery device block
    module_firmware: Optional[str] = None
    master_firmware: Optional[str] = None
    master_model: Optional[str] = None

    # Numeric state
    set_point: Optional[int] = None
    max_set_point: Optional[int] = None
    upper_temp: Optional[int] = None
    lower_temp: Optional[int] = None
    update_rate: Optional[int] = None
    hot_water_vol: Optional[str] = None
    signal_strength: Optional[str] = None
    fault_codes: Optional[str] = None

    # Enumerated state
    mode: Optional[str] = None
    grid: Optional[str] = None
    air_filter_status: Optional[str] = None
    leak_detect: Optional[str] = None

    # Boolean state
    system_in_heating: bool = False
    condense_pump_fail: bool = False
    eco_error: bool = False

    # Tri-state fail flags: None (absent), a clear marker, or a set marker
    dry_fire: Optional[str] = None
    element_fail: Optional[str] = None
    tank_sensor_fail: Optional[str] = None
    leak: Optional[str] = None
    master_disp_fail: Optional[str] = None
    comp_sensor_fail: Optional[str] = None
    sys_sensor_fail: Optional[str] = None
    system_fail: Optional[str] = None

    @classmethod
    def from_form(cls, fields: Mapping[str, str]) -> "TelemetrySnapshot":
        """
        Build a snapshot from the decoded form fields of a poll request.
        Raises ValueError if the device id or a numeric field is malformed.
        """
        return cls(
            device_id=normalize_device_id(fields.get("DeviceText")),
            module_firmware=_text(fields, "ModFwVer"),
            master_firmware=_text(fields, "MasterFwVer"),
            master_model=_text(fields, "MasterModelId"),
            set_point=_parse_int(fields, "SetPoint"),
            max_set_point=_parse_int(fields, "MaxSetPoint"),
            upper_temp=_parse_int(fields, "UpperTemp"),
            lower_temp=_parse_int(fields, "LowerTemp"),
            update_rate=_parse_int(fields, "UpdateRate"),
            hot_water_vol=_text(fields, "HotWaterVol"),
            signal_strength=_text(fields, "SignalStrength"),
            fault_codes=_text(fields, "FaultCodes"),
            mode=_text(fields, "Mode"),
            grid=_text(fields, "Grid"),
            air_filter_status=_text(fields, "AirFilterStatus"),
            leak_detect=_text(fields, "LeakDetect"),
            system_in_heating=_parse_bool(fields, "SystemInHeating"),
            condense_pump_fail=_parse_bool(fields, "CondensePumpFail"),
            eco_error=_parse_bool(fields, "EcoError"),
            dry_fire=_text(fields, "DryFire"),
            element_fail=_text(fields, "ElementFail"),
            tank_sensor_fail=_text(fields, "TankSensorFail"),
            leak=_text(fields, "Leak"),
            master_disp_fail=_text(fields, "MasterDispFail"),
            comp_sensor_fail=_text(fields, "CompSensorFail"),
            sys_sensor_fail=_text(fields, "SysSensorFail"),
            system_fail=_text(fields, "SystemFail"),
        )


@dataclass(frozen=True)
class Command:
    """A pending change for one water heater, in device representation"""
    update_rate: Optional[str] = None
    mode: Optional[str] = None
    set_point: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.update_rate is None and self.mode is None and self.set_point is None

    def to_response(self) -> Dict[str, str]:
        """Serialize using the device's field names, omitting unset fields"""
        names = {"update_rate": "UpdateRate", "mode": "Mode", "set_point": "SetPoint"}
        return {names[key]: value for key, value in asdict(self).items() if value is not None}


EMPTY_COMMAND = Command()
