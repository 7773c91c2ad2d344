"""Runtime configuration.

Settings live in a JSON file next to where the server is started.  A missing
file means defaults; keys missing from the file are filled in from
DEFAULT_CONFIG.  Valve mode and schedule are not stored here and do not
survive a restart.
"""

from __future__ import annotations

import json
import os
from typing import Any, Dict, Optional

from .errors import ConfigError
from .model import VALVE_COUNT

CONFIG_PATH = os.environ.get("GARDENPI_CONFIG", "gardenpi.json")

DEFAULT_CONFIG: Dict[str, Any] = {
    "web": {"host": "127.0.0.1", "port": 50050},
    # Seconds between reconciler ticks.
    "interval": 5.0,
    # "console" prints a status table, "gpio" drives relays via gpiozero.
    "sink": "console",
    # BCM pin numbers in valve order, valve1 first.  `active_high`
    # determines whether writing a logical 1 energises the relay.
    "gpio": {"pins": [5, 6, 12, 13, 16, 19, 20, 26], "active_high": True},
}

SINKS = ("console", "gpio")


def _merge(defaults: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    out = json.loads(json.dumps(defaults))
    for k, v in overrides.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _merge(out[k], v)
        else:
            out[k] = v
    return out


def validate_config(cfg: Dict[str, Any]) -> Dict[str, Any]:
    if not isinstance(cfg.get("web"), dict) or not isinstance(cfg.get("gpio"), dict):
        raise ConfigError("web and gpio must be objects")
    try:
        cfg["interval"] = float(cfg["interval"])
        cfg["web"]["port"] = int(cfg["web"]["port"])
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid number in config: {e}") from None
    if cfg["interval"] <= 0:
        raise ConfigError("interval must be positive")
    if cfg["sink"] not in SINKS:
        raise ConfigError(f"sink must be one of {', '.join(SINKS)}")
    pins = cfg["gpio"].get("pins")
    if not isinstance(pins, list) or len(pins) != VALVE_COUNT:
        raise ConfigError(f"gpio.pins must list exactly {VALVE_COUNT} pins")
    return cfg


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load the JSON config, merge defaults and apply environment overrides."""
    path = path or CONFIG_PATH
    data: Dict[str, Any] = {}
    if os.path.exists(path):
        try:
            with open(path, "r") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise ConfigError(f"Could not read {path}: {e}") from None
        if not isinstance(data, dict):
            raise ConfigError(f"{path} must contain a JSON object")
    cfg = _merge(DEFAULT_CONFIG, data)
    host = os.environ.get("GARDENPI_HOST")
    if host:
        cfg["web"]["host"] = host
    port = os.environ.get("GARDENPI_PORT")
    if port:
        cfg["web"]["port"] = port
    return validate_config(cfg)
