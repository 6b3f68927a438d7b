"""
Configuration for the app-v1 server.

Values come from environment variables (optionally loaded from a .env file).
With nothing set, the server binds 0.0.0.0:8080 and drains without a deadline.
"""
import os
import logging
from typing import Optional
from dotenv import load_dotenv

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8080
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_BACKLOG = 2048

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class ConfigError(ValueError):
    """Raised when an environment variable holds an unusable value."""


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a valid integer, got {raw!r}")


def _timeout_env(name: str) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number of seconds, got {raw!r}")
    if value < 0:
        raise ConfigError(f"{name} must not be negative, got {raw!r}")
    return value


class Config:
    """Server settings."""

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        log_level: str = DEFAULT_LOG_LEVEL,
        shutdown_timeout: Optional[float] = None,
        backlog: int = DEFAULT_BACKLOG,
    ):
        if not 0 <= port <= 65535:
            raise ConfigError(f"port must be between 0 and 65535, got {port}")
        self.host = host
        self.port = port
        self.log_level = log_level.upper()
        # None means wait for in-flight requests forever
        self.shutdown_timeout = shutdown_timeout
        self.backlog = backlog

    @classmethod
    def from_env(cls, load_env_file: bool = True) -> "Config":
        """Build a Config from APP_HOST, APP_PORT, LOG_LEVEL, SHUTDOWN_TIMEOUT and APP_BACKLOG."""
        if load_env_file:
            load_dotenv()
        return cls(
            host=os.getenv("APP_HOST") or DEFAULT_HOST,
            port=_int_env("APP_PORT", DEFAULT_PORT),
            log_level=os.getenv("LOG_LEVEL") or DEFAULT_LOG_LEVEL,
            shutdown_timeout=_timeout_env("SHUTDOWN_TIMEOUT"),
            backlog=_int_env("APP_BACKLOG", DEFAULT_BACKLOG),
        )

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    def __repr__(self):
        return (
            f"Config(host={self.host!r}, port={self.port}, log_level={self.log_level!r}, "
            f"shutdown_timeout={self.shutdown_timeout}, backlog={self.backlog})"
        )


def setup_logging(level: str = DEFAULT_LOG_LEVEL) -> logging.Logger:
    """Configure root logging and return the package logger."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT
    )
    return logging.getLogger("app_v1")
