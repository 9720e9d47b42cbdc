"""
Load/save monitor config (JSON) in user app data directory.
Keys are camelCase, matching the display module's configuration block.
MonitorConfig is validated once at engine construction; invalid targets prevent start.
"""
import json
import os
import sys
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urlsplit

# Default config
DEFAULT_UPDATE_INTERVAL_MS = 60 * 1000
DEFAULT_PING_ADDRESS = "8.8.8.8"
DEFAULT_HTTP_TEST_URL = "https://www.google.com"
DEFAULT_CONSIDER_DOWN_AFTER_FAILS = 3
DEFAULT_MAX_HISTORY = 5
DEFAULT_PING_TIMEOUT_MS = 2000
DEFAULT_HTTP_TIMEOUT_MS = 5000
DEFAULT_USER_AGENT = "MagicMirror InternetMonitor"
PING_METHODS = ("icmp", "tcp")
DEFAULT_PING_METHOD = "icmp"
DEFAULT_PING_PORT = 53


class ConfigurationError(ValueError):
    """Raised when the monitor cannot start with the given configuration."""


def get_config_dir() -> Path:
    """User app data directory for config and logs."""
    if sys.platform == "win32":
        base = os.environ.get("APPDATA", os.path.expanduser("~"))
    else:
        base = os.path.expanduser("~")
    return Path(base) / "InternetMonitor"


def get_config_path() -> Path:
    return get_config_dir() / "config.json"


def get_default_config() -> dict[str, Any]:
    return {
        "updateInterval": DEFAULT_UPDATE_INTERVAL_MS,
        "pingAddress": DEFAULT_PING_ADDRESS,
        "httpTestUrl": DEFAULT_HTTP_TEST_URL,
        "considerDownAfterFails": DEFAULT_CONSIDER_DOWN_AFTER_FAILS,
        "maxHistory": DEFAULT_MAX_HISTORY,
        "pingTimeout": DEFAULT_PING_TIMEOUT_MS,
        "httpTimeout": DEFAULT_HTTP_TIMEOUT_MS,
        "pingMethod": DEFAULT_PING_METHOD,
        "pingPort": DEFAULT_PING_PORT,
        "alertOnDisconnect": False,
        "userAgent": DEFAULT_USER_AGENT,
        "showDetails": True,
        "logPath": "",
    }


def ensure_config_dir() -> None:
    get_config_dir().mkdir(parents=True, exist_ok=True)


def load_config(path: Optional[Path] = None) -> dict[str, Any]:
    path = path or get_config_path()
    if not path.exists():
        return get_default_config()
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            return get_default_config()
        # Merge with defaults so new keys exist
        default = get_default_config()
        for k, v in default.items():
            if k not in data:
                data[k] = v
        return data
    except (json.JSONDecodeError, OSError):
        return get_default_config()


def save_config(config: dict[str, Any], path: Optional[Path] = None) -> None:
    if path is None:
        ensure_config_dir()
        path = get_config_path()
    with open(path, "w", encoding="utf-8") as f:
        json.dump(config, f, indent=2, ensure_ascii=False)


def config_to_dict(c: "MonitorConfig") -> dict[str, Any]:
    return {
        "updateInterval": int(round(c.update_interval * 1000)),
        "pingAddress": c.ping_address,
        "httpTestUrl": c.http_test_url,
        "considerDownAfterFails": c.consider_down_after_fails,
        "maxHistory": c.max_history,
        "pingTimeout": c.ping_timeout,
        "httpTimeout": c.http_timeout,
        "pingMethod": c.ping_method,
        "pingPort": c.ping_port,
        "alertOnDisconnect": c.alert_on_disconnect,
        "userAgent": c.user_agent,
        "showDetails": c.show_details,
        "logPath": c.log_path,
    }


def _target(d: dict[str, Any], key: str, default: str) -> str:
    """Probe targets must be strings; null or other JSON types mean the target is missing."""
    if key not in d:
        return default
    value = d[key]
    if not isinstance(value, str):
        raise ConfigurationError(f"{key} is missing or not a string: {value!r}")
    return value


def dict_to_config(d: dict[str, Any]) -> "MonitorConfig":
    """Build a MonitorConfig from a JSON dict. Missing targets or malformed numbers raise ConfigurationError."""
    ping_address = _target(d, "pingAddress", DEFAULT_PING_ADDRESS)
    http_test_url = _target(d, "httpTestUrl", DEFAULT_HTTP_TEST_URL)
    try:
        return MonitorConfig(
            update_interval=float(d.get("updateInterval", DEFAULT_UPDATE_INTERVAL_MS)) / 1000.0,
            ping_address=ping_address,
            http_test_url=http_test_url,
            consider_down_after_fails=int(d.get("considerDownAfterFails", DEFAULT_CONSIDER_DOWN_AFTER_FAILS)),
            max_history=int(d.get("maxHistory", DEFAULT_MAX_HISTORY)),
            ping_timeout=int(d.get("pingTimeout", DEFAULT_PING_TIMEOUT_MS)),
            http_timeout=int(d.get("httpTimeout", DEFAULT_HTTP_TIMEOUT_MS)),
            ping_method=str(d.get("pingMethod", DEFAULT_PING_METHOD)),
            ping_port=int(d.get("pingPort", DEFAULT_PING_PORT)),
            alert_on_disconnect=bool(d.get("alertOnDisconnect", False)),
            user_agent=str(d.get("userAgent", DEFAULT_USER_AGENT)),
            show_details=bool(d.get("showDetails", True)),
            log_path=str(d.get("logPath", "") or ""),
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Malformed config value: {e}") from e


class MonitorConfig:
    """Immutable settings for one monitor instance. Timeouts in ms, interval in seconds."""

    __slots__ = (
        "update_interval",
        "ping_address",
        "http_test_url",
        "consider_down_after_fails",
        "max_history",
        "ping_timeout",
        "http_timeout",
        "ping_method",
        "ping_port",
        "alert_on_disconnect",
        "user_agent",
        "show_details",
        "log_path",
    )

    def __init__(
        self,
        update_interval: float = DEFAULT_UPDATE_INTERVAL_MS / 1000.0,
        ping_address: str = DEFAULT_PING_ADDRESS,
        http_test_url: str = DEFAULT_HTTP_TEST_URL,
        consider_down_after_fails: int = DEFAULT_CONSIDER_DOWN_AFTER_FAILS,
        max_history: int = DEFAULT_MAX_HISTORY,
        ping_timeout: int = DEFAULT_PING_TIMEOUT_MS,
        http_timeout: int = DEFAULT_HTTP_TIMEOUT_MS,
        ping_method: str = DEFAULT_PING_METHOD,
        ping_port: int = DEFAULT_PING_PORT,
        alert_on_disconnect: bool = False,
        user_agent: str = DEFAULT_USER_AGENT,
        show_details: bool = True,
        log_path: str = "",
    ):
        values = {
            "update_interval": float(update_interval),
            "ping_address": ping_address.strip(),
            "http_test_url": http_test_url.strip(),
            "consider_down_after_fails": int(consider_down_after_fails),
            "max_history": int(max_history),
            "ping_timeout": int(ping_timeout),
            "http_timeout": int(http_timeout),
            "ping_method": ping_method.strip().lower(),
            "ping_port": int(ping_port),
            "alert_on_disconnect": bool(alert_on_disconnect),
            "user_agent": user_agent.strip() or DEFAULT_USER_AGENT,
            "show_details": bool(show_details),
            "log_path": log_path,
        }
        for name, value in values.items():
            object.__setattr__(self, name, value)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"MonitorConfig is immutable; cannot set {name!r}")

    def __repr__(self) -> str:
        return (
            f"MonitorConfig(ping={self.ping_address!r}, http={self.http_test_url!r}, "
            f"interval={self.update_interval}s, fails={self.consider_down_after_fails}, "
            f"history={self.max_history})"
        )

    def replace(self, **changes: Any) -> "MonitorConfig":
        """Copy with some fields changed (e.g. a CLI interval override)."""
        kwargs = {name: getattr(self, name) for name in self.__slots__}
        kwargs.update(changes)
        return MonitorConfig(**kwargs)

    def validate(self) -> None:
        """Raise ConfigurationError if the monitor cannot run with these settings."""
        host = self.ping_address
        if not host:
            raise ConfigurationError("pingAddress is empty")
        if host.startswith("-") or any(ch.isspace() for ch in host):
            raise ConfigurationError(f"pingAddress is not a host name or address: {host!r}")
        parts = urlsplit(self.http_test_url)
        if parts.scheme not in ("http", "https") or not parts.hostname:
            raise ConfigurationError(f"httpTestUrl must be an http(s) URL: {self.http_test_url!r}")
        if self.ping_method not in PING_METHODS:
            raise ConfigurationError(f"pingMethod must be one of {PING_METHODS}, got {self.ping_method!r}")
        if not 0 < self.ping_port < 65536:
            raise ConfigurationError(f"pingPort out of range: {self.ping_port}")
        if self.update_interval <= 0:
            raise ConfigurationError("updateInterval must be positive")
        if self.consider_down_after_fails < 1:
            raise ConfigurationError("considerDownAfterFails must be at least 1")
        if self.max_history < 1:
            raise ConfigurationError("maxHistory must be at least 1")
        if self.ping_timeout <= 0 or self.http_timeout <= 0:
            raise ConfigurationError("probe timeouts must be positive")
