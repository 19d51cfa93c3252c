# udprole/config/settings.py

import logging
import os

from udprole.core.errors import ConfigError
from udprole.core.models import Role

STRATEGY_NAMES = ("bind_race", "fixed", "probe")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def parse_role(value):
    if value is None or isinstance(value, Role):
        return value
    try:
        return Role(str(value).strip().lower())
    except ValueError:
        raise ConfigError(f"Unknown role: {value!r} (expected host or client)") from None


class Settings:
    """
    Centralized runtime settings.
    Override via environment variables.
    """

    def __init__(
        self,
        interface_ip: str = "0.0.0.0",
        remote_host: str = "127.0.0.1",
        port: int = 7777,
        strategy: str = "bind_race",
        role: Role | str | None = None,
        poll_interval: float = 0.01,
        probe_timeout: float = 2.0,
        join_timeout: float = 2.0,
        peer_timeout: float = 30.0,
        keepalive_interval: float = 0.0,
        log_level: str = "INFO",
        ui_enabled: bool = False,
        ui_host: str = "127.0.0.1",
        ui_port: int = 5000,
    ):
        self.interface_ip = interface_ip
        self.remote_host = remote_host
        self.port = port
        self.strategy = strategy
        self.role = parse_role(role)
        self.poll_interval = poll_interval
        self.probe_timeout = probe_timeout
        self.join_timeout = join_timeout
        self.peer_timeout = peer_timeout
        self.keepalive_interval = keepalive_interval
        self.log_level = log_level
        self.ui_enabled = ui_enabled
        self.ui_host = ui_host
        self.ui_port = ui_port

    @classmethod
    def from_env(cls):
        return cls(
            interface_ip=os.getenv("UDPROLE_INTERFACE", "0.0.0.0"),
            remote_host=os.getenv("UDPROLE_REMOTE_HOST", "127.0.0.1"),
            port=_env_int("UDPROLE_PORT", 7777),
            strategy=os.getenv("UDPROLE_STRATEGY", "bind_race").strip().lower(),
            role=os.getenv("UDPROLE_ROLE") or None,
            poll_interval=_env_float("UDPROLE_POLL_INTERVAL", 0.01),
            probe_timeout=_env_float("UDPROLE_PROBE_TIMEOUT", 2.0),
            join_timeout=_env_float("UDPROLE_JOIN_TIMEOUT", 2.0),
            peer_timeout=_env_float("UDPROLE_PEER_TIMEOUT", 30.0),
            keepalive_interval=_env_float("UDPROLE_KEEPALIVE", 0.0),
            log_level=os.getenv("UDPROLE_LOG_LEVEL", "INFO").upper(),
            ui_enabled=_env_flag("UDPROLE_UI"),
            ui_host=os.getenv("UDPROLE_UI_HOST", "127.0.0.1"),
            ui_port=_env_int("UDPROLE_UI_PORT", 5000),
        )

    def validate(self):
        """
        Raise ConfigError on the first invalid value. Returns self.
        """
        if not 0 < self.port < 65536:
            raise ConfigError(f"Port out of range: {self.port}")
        if not 0 < self.ui_port < 65536:
            raise ConfigError(f"UI port out of range: {self.ui_port}")
        if self.strategy not in STRATEGY_NAMES:
            raise ConfigError(
                f"Unknown strategy {self.strategy!r}; choose one of {', '.join(STRATEGY_NAMES)}"
            )
        if self.strategy == "fixed" and self.role is None:
            raise ConfigError("Strategy 'fixed' needs a role (host or client)")
        if self.poll_interval <= 0:
            raise ConfigError("poll_interval must be positive")
        if self.probe_timeout <= 0:
            raise ConfigError("probe_timeout must be positive")
        if self.join_timeout < 0:
            raise ConfigError("join_timeout must not be negative")
        if self.peer_timeout <= 0:
            raise ConfigError("peer_timeout must be positive")
        if self.keepalive_interval < 0:
            raise ConfigError("keepalive_interval must not be negative")
        if not isinstance(logging.getLevelName(self.log_level), int):
            raise ConfigError(f"Unknown log level: {self.log_level!r}")
        return self

    def __repr__(self) -> str:
        role = self.role.value if self.role else None
        return (
            f"Settings(strategy={self.strategy!r}, role={role!r}, "
            f"interface_ip={self.interface_ip!r}, remote_host={self.remote_host!r}, "
            f"port={self.port})"
        )
