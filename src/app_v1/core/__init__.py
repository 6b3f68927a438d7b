# Shared configuration and logging setup
from .config import Config, ConfigError, setup_logging, DEFAULT_HOST, DEFAULT_PORT

__all__ = [
    "Config",
    "ConfigError",
    "setup_logging",
    "DEFAULT_HOST",
    "DEFAULT_PORT",
]
