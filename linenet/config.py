"""
linenet configuration and logging setup.

Settings live under a `linenet:` section of a YAML file. Every key is optional:

    linenet:
      host: 127.0.0.1         # server a LineClient connects to
      port: 8000              # port to connect to / listen on (0 = any free port when listening)
      listen_host: 0.0.0.0    # interface a LineServer binds
      connect_timeout: 4.0    # seconds
      encoding: utf-8
      print_traffic: false    # print every line sent and received, in colour
      log_level: INFO
      log_file: linenet.log   # omit for console only
      log_max_bytes: 1000000
      log_backup_count: 3
"""

import codecs
import logging
from dataclasses import dataclass, fields
from logging.handlers import RotatingFileHandler
from typing import Any, Optional, Self

import yaml

from .api.types import Const
from .exceptions import LineConfigurationError


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class LineNetConfig:
    host: str = Const.DEFAULT_HOST
    port: int = Const.DEFAULT_PORT
    listen_host: str = Const.LISTEN_HOST
    connect_timeout: float = Const.CONNECT_TIMEOUT
    encoding: str = Const.ENCODING
    print_traffic: bool = False
    log_level: str = "INFO"
    log_file: Optional[str] = None
    log_max_bytes: int = 1_000_000
    log_backup_count: int = 3

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> Self:
        data = data or {}
        if not isinstance(data, dict):
            raise LineConfigurationError("linenet config must be a mapping")
        known = {f.name for f in fields(cls)}
        unknown = [k for k in data if k not in known]
        if unknown:
            raise LineConfigurationError(f"Unknown linenet config fields: {', '.join(sorted(unknown))}")
        config = cls(**data)
        config.validate()
        return config

    def validate(self) -> None:
        for name in ("host", "listen_host"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value:
                raise LineConfigurationError(f"Invalid {name}: {value!r}")

        # bool is an int subclass, so rule it out explicitly
        if not isinstance(self.port, int) or isinstance(self.port, bool) or not 0 <= self.port <= 65535:
            raise LineConfigurationError(f"Invalid port number: {self.port!r}")

        if not isinstance(self.connect_timeout, (int, float)) or isinstance(self.connect_timeout, bool) or self.connect_timeout <= 0:
            raise LineConfigurationError(f"Invalid connect_timeout: {self.connect_timeout!r}")

        try:
            codecs.lookup(self.encoding)
        except (LookupError, TypeError):
            raise LineConfigurationError(f"Unknown encoding: {self.encoding!r}")

        if not isinstance(self.print_traffic, bool):
            raise LineConfigurationError(f"print_traffic must be true or false, got {self.print_traffic!r}")

        if not isinstance(self.log_level, str) or self.log_level.upper() not in LOG_LEVELS:
            raise LineConfigurationError(f"Invalid log_level: {self.log_level!r}. Use one of {', '.join(LOG_LEVELS)}")
        self.log_level = self.log_level.upper()

        for name in ("log_max_bytes", "log_backup_count"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise LineConfigurationError(f"Invalid {name}: {value!r}")


def load_config(path: str) -> LineNetConfig:
    """Read and validate the linenet section of a YAML file"""
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise LineConfigurationError(f"Failed to parse {path}: {e}") from e
    if data is None:
        return LineNetConfig()
    if not isinstance(data, dict):
        raise LineConfigurationError(f"{path} must contain a mapping")
    return LineNetConfig.from_dict(data.get("linenet"))


def setup_logging(config: LineNetConfig, name: str = "linenet") -> logging.Logger:
    """Configure a logger with a console handler and, if configured, a rotating file handler."""
    logger = logging.getLogger(name)
    logger.setLevel(config.log_level)

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(config.log_level)
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s.%(msecs)03d %(levelname)s: %(message)s', datefmt='%H:%M:%S'
    ))
    logger.addHandler(console_handler)

    # File handler
    if config.log_file:
        file_handler = RotatingFileHandler(
            config.log_file,
            maxBytes=config.log_max_bytes,
            backupCount=config.log_backup_count
        )
        file_handler.setLevel(config.log_level)
        file_handler.setFormatter(logging.Formatter(fmt="%(asctime)s\t%(levelname)s\t%(message)s", datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(file_handler)

    return logger
