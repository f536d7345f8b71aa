"""Configuration constants and the YAML configuration loader.

The relay is configured by an optional YAML file (``config/tty_relay.yaml``
next to the executable, or in the repository root during development)::

    polarity: "NO"          # NO or NC wiring of the relay contact
    port: /dev/ttyUSB0      # optional fixed device path
    baudrate: 9600
    timeout: 0.1
    jog_hold_seconds: 0.5
    usb_ids: ["1a86:7523"]  # accepted vid:pid pairs for auto-detection

Every key is optional; a missing file yields the defaults.
"""
from __future__ import annotations

import logging
import math
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Final, Mapping, Optional, Tuple

import yaml

from tty_relay.tools.polarity import Polarity, parse_polarity
from tty_relay.tools.port_locator import SUPPORTED_USB_IDS
from tty_relay.tools.signal_lines import DEFAULT_BAUDRATE, DEFAULT_TIMEOUT
from tty_relay.tools.usb_relay_controller import JOG_HOLD_SECONDS, MAX_DELAY_SECONDS
from tty_relay.util.errors import ConfigError, InvalidArgument

APP_NAME: Final[str] = "tty_relay"
CONFIG_FILENAME: Final[str] = "tty_relay.yaml"
PORT_ENV_KEY: Final[str] = "TTY_RELAY_PORT"
CONFIG_KEYS: Final[frozenset[str]] = frozenset({
    "polarity",
    "port",
    "baudrate",
    "timeout",
    "jog_hold_seconds",
    "usb_ids",
})


def get_config_base() -> Path:
    """Return the configuration directory path.

    Prefer a ``config`` directory alongside the executable; if missing,
    fall back to ``config`` in the repository root.
    """
    exe_dir = Path(sys.argv[0]).resolve().parent
    candidate = exe_dir / "config"
    if candidate.exists():
        return candidate
    return Path(__file__).resolve().parents[2] / "config"


def default_config_path() -> Path:
    return get_config_base() / CONFIG_FILENAME


@dataclass(frozen=True)
class RelayConfig:
    """Settings for one relay invocation."""

    polarity: Polarity = Polarity.NO
    port: Optional[str] = None
    baudrate: int = DEFAULT_BAUDRATE
    timeout: float = DEFAULT_TIMEOUT
    jog_hold_seconds: float = JOG_HOLD_SECONDS
    usb_ids: Tuple[Tuple[int, int], ...] = field(default=SUPPORTED_USB_IDS)


def _read_yaml_dict(path: Path) -> dict[str, Any]:
    """Return mapping parsed from *path*, raising on malformed YAML."""
    if not path.exists():
        logging.debug("Config file %s does not exist; using empty mapping", path)
        return {}
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read config file {path}: {exc}") from exc
    try:
        data = yaml.safe_load(content) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse YAML file {path}: {exc}") from exc
    if not isinstance(data, Mapping):
        raise ConfigError(f"Config file {path} must contain a mapping, got {type(data).__name__}")
    return dict(data)


def _parse_usb_id(value: Any) -> Tuple[int, int]:
    if isinstance(value, str) and ":" in value:
        vid_text, pid_text = value.split(":", 1)
        try:
            return int(vid_text.strip(), 16), int(pid_text.strip(), 16)
        except ValueError:
            pass
    elif isinstance(value, (list, tuple)) and len(value) == 2:
        vid, pid = value
        if isinstance(vid, int) and isinstance(pid, int):
            return vid, pid
    raise ConfigError(f"usb_ids entries must look like '1a86:7523' or [vid, pid], got {value!r}")


def _positive_number(key: str, value: Any, *, allow_zero: bool, maximum: Optional[float] = None) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{key} must be a number, got {value!r}")
    try:
        number = float(value)
    except OverflowError:
        raise ConfigError(f"{key} is out of range, got {value!r}") from None
    if not math.isfinite(number):
        raise ConfigError(f"{key} must be a number, got {value!r}")
    if number < 0 or (number == 0 and not allow_zero):
        raise ConfigError(f"{key} must be {'non-negative' if allow_zero else 'positive'}, got {value!r}")
    if maximum is not None and number > maximum:
        raise ConfigError(f"{key} must not exceed {maximum}, got {value!r}")
    return number


def parse_config(data: Mapping[str, Any]) -> RelayConfig:
    """Validate a raw configuration mapping into a :class:`RelayConfig`.

    Unknown keys are logged and ignored.
    """
    unknown = set(data) - CONFIG_KEYS
    if unknown:
        logging.warning("Ignoring unknown config keys: %s", ", ".join(sorted(unknown)))
    defaults = RelayConfig()
    raw_polarity = data.get("polarity")
    if raw_polarity is False:
        # YAML 1.1 reads a bare NO as a boolean.
        raw_polarity = Polarity.NO.value
    try:
        polarity = parse_polarity(raw_polarity)
    except InvalidArgument as exc:
        raise ConfigError(str(exc)) from None

    port = data.get("port")
    if port is not None and not isinstance(port, str):
        raise ConfigError(f"port must be a device path, got {port!r}")
    port = (port or "").strip() or None

    baudrate = data.get("baudrate", defaults.baudrate)
    if isinstance(baudrate, bool) or not isinstance(baudrate, int) or baudrate <= 0:
        raise ConfigError(f"baudrate must be a positive integer, got {baudrate!r}")

    timeout = _positive_number("timeout", data.get("timeout", defaults.timeout), allow_zero=True)
    hold = _positive_number(
        "jog_hold_seconds", data.get("jog_hold_seconds", defaults.jog_hold_seconds),
        allow_zero=False,
        maximum=MAX_DELAY_SECONDS,
    )

    raw_ids = data.get("usb_ids")
    if raw_ids is None:
        usb_ids = defaults.usb_ids
    elif isinstance(raw_ids, (list, tuple)) and raw_ids:
        usb_ids = tuple(_parse_usb_id(item) for item in raw_ids)
    else:
        raise ConfigError(f"usb_ids must be a non-empty list, got {raw_ids!r}")

    return RelayConfig(
        polarity=polarity,
        port=port,
        baudrate=baudrate,
        timeout=timeout,
        jog_hold_seconds=hold,
        usb_ids=usb_ids,
    )


def load_config(path: str | os.PathLike[str] | None = None) -> RelayConfig:
    """Load the relay configuration.

    ``path`` defaults to :func:`default_config_path`.  An explicitly given
    path must exist; the default one may be absent.
    """
    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise ConfigError(f"Config file {config_path} does not exist")
    else:
        config_path = default_config_path()
    config = parse_config(_read_yaml_dict(config_path))
    logging.debug("Loaded relay config from %s: %s", config_path, config)
    return config


def resolve_port(explicit: Optional[str], config: RelayConfig) -> Optional[str]:
    """Return the device path chosen by argument, environment or config.

    ``None`` means the port locator has to search for the device.
    """
    if explicit:
        logging.debug("Serial port selected by argument: %s", explicit)
        return explicit
    env_port = os.environ.get(PORT_ENV_KEY, "").strip()
    if env_port:
        logging.debug("Serial port selected by %s: %s", PORT_ENV_KEY, env_port)
        return env_port
    if config.port:
        logging.debug("Serial port selected by config: %s", config.port)
        return config.port
    return None


__all__ = [
    "APP_NAME",
    "CONFIG_FILENAME",
    "PORT_ENV_KEY",
    "RelayConfig",
    "get_config_base",
    "default_config_path",
    "parse_config",
    "load_config",
    "resolve_port",
]
