"""
Configuration loader for the Energy Smart water heater bridge
Loads and validates configuration from YAML files
"""

import os
import yaml
import logging
from typing import Dict, Any
from pathlib import Path
from datetime import datetime
import pytz

logger = logging.getLogger(__name__)

# Environment variables that override config file values (container deployments)
ENV_OVERRIDES = {
    'MQTT_SERVER': ('mqtt', 'server'),
    'MQTT_PORT': ('mqtt', 'port'),
    'MQTT_USERNAME': ('mqtt', 'username'),
    'MQTT_PASSWORD': ('mqtt', 'password'),
}


def load_config(config_path: str = "config/config.yaml") -> Dict[str, Any]:
    """
    Load configuration from YAML file with validation
    """
    try:
        config_file = Path(config_path)
        if not config_file.exists():
            logger.error(f"Configuration file not found: {config_path}")
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_file, 'r') as f:
            config = yaml.safe_load(f) or {}

        _apply_env_overrides(config)

        # Validate required sections
        _validate_config(config)

        # Apply defaults
        config = _apply_defaults(config)

        logger.info(f"Configuration loaded from {config_path}")
        return config

    except Exception as e:
        logger.error(f"Failed to load configuration: {e}")
        raise

def _apply_env_overrides(config: Dict) -> None:
    """Copy MQTT_* environment variables into the config"""
    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            config.setdefault(section, {})
            if config[section] is None:
                config[section] = {}
            config[section][key] = int(value) if key == 'port' else value

def _validate_config(config: Dict) -> None:
    """Validate that required configuration sections exist"""
    if not isinstance(config.get('mqtt'), dict):
        raise ValueError("Missing required configuration section: mqtt")

    mqtt = config['mqtt']
    if not mqtt.get('server'):
        raise ValueError("mqtt.server is required")

    if mqtt.get('password') and not mqtt.get('username'):
        logger.warning("mqtt.password is set without mqtt.username - credentials will not be used")

    for key in ('prefix', 'discovery_prefix'):
        value = mqtt.get(key)
        if value is not None and ('+' in value or '#' in value):
            raise ValueError(f"mqtt.{key} must not contain MQTT wildcards")

    # Validate TLS settings if present
    tls = mqtt.get('tls') or {}
    if tls.get('enabled') and tls.get('ca_cert_path'):
        cert_path = Path(tls['ca_cert_path'])
        if not cert_path.exists():
            logger.warning(f"MQTT CA certificate not found: {tls['ca_cert_path']}")

def _apply_defaults(config: Dict) -> Dict:
    """Apply default values to configuration"""

    # MQTT defaults
    mqtt_defaults = {
        'port': 1883,
        'username': None,
        'password': None,
        'client_id': 'energysmart-bridge',
        'prefix': 'energysmart',
        'discovery_prefix': 'homeassistant',
        'reconnect_delay_seconds': 5,
        'keepalive': 60,
        'shutdown_timeout_seconds': 5
    }
    for key, default_value in mqtt_defaults.items():
        if key not in config['mqtt']:
            config['mqtt'][key] = default_value

    tls_defaults = {
        'enabled': False,
        'ca_cert_path': None,
        'insecure': False
    }
    if not config['mqtt'].get('tls'):
        config['mqtt']['tls'] = {}
    for key, default_value in tls_defaults.items():
        if key not in config['mqtt']['tls']:
            config['mqtt']['tls'][key] = default_value

    # Web server defaults (the water heater module posts here)
    if not config.get('webserver'):
        config['webserver'] = {}
    webserver_defaults = {
        'host': '0.0.0.0',
        'port': 8001
    }
    for key, default_value in webserver_defaults.items():
        if key not in config['webserver']:
            config['webserver'][key] = default_value

    # Logging defaults
    if not config.get('logging'):
        config['logging'] = {}
    logging_defaults = {
        'level': 'INFO',
        'file': 'logs/energysmart_bridge.log',
        'console_output': True,
        'timezone': 'UTC'
    }
    for key, default_value in logging_defaults.items():
        if key not in config['logging']:
            config['logging'][key] = default_value

    return config


class TimezoneFormatter(logging.Formatter):
    """Formatter that renders timestamps in a configured timezone"""

    def __init__(self, fmt=None, timezone_name: str = 'UTC'):
        super().__init__(fmt)
        self.tz = pytz.timezone(timezone_name)

    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created, tz=self.tz)
        if datefmt:
            return dt.strftime(datefmt)
        else:
            # Default format: YYYY-MM-DD HH:MM:SS TZ
            return dt.strftime('%Y-%m-%d %H:%M:%S %Z')

def setup_logging(config: Dict) -> None:
    """Setup logging based on configuration"""
    log_config = config.get('logging', {})
    level = log_config.get('level', 'INFO')
    timezone_name = log_config.get('timezone', 'UTC')

    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    formatter = TimezoneFormatter(log_format, timezone_name)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    # Console handler
    if log_config.get('console_output', True):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    # File handler
    log_file = log_config.get('file')
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Access log would print one line per device poll
    logging.getLogger('uvicorn.access').setLevel(logging.WARNING)

    logger.info(f"Logging configured: level={level}, timezone={timezone_name}, "
                f"console={log_config.get('console_output', True)}, file={log_file}")

def get_sample_config() -> Dict:
    """Return a sample configuration for reference"""
    return {
        "mqtt": {
            "server": "localhost",
            "port": 1883,
            "username": None,
            "password": None,
            "client_id": "energysmart-bridge",
            "prefix": "energysmart",
            "discovery_prefix": "homeassistant",
            "reconnect_delay_seconds": 5,
            "keepalive": 60,
            "shutdown_timeout_seconds": 5,
            "tls": {
                "enabled": False,
                "ca_cert_path": None,
                "insecure": False
            }
        },
        "webserver": {
            "host": "0.0.0.0",
            "port": 8001
        },
        "logging": {
            "level": "INFO",
            "file": "logs/energysmart_bridge.log",
            "console_output": True,
            "timezone": "UTC"
        }
    }
