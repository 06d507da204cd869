"""
Configuration loading.

Settings come from a TOML file (optional; defaults apply when it is
missing), then environment variables (and a .env file) override
individual values.
"""

import logging
import os
import tomllib
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from gnt2influx.exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = 'config.toml'

# Environment variable -> (section, key)
ENV_OVERRIDES = {
    'INFLUXDB_URL': ('influxdb', 'url'),
    'INFLUXDB_DATABASE': ('influxdb', 'database'),
    'INFLUXDB_USERNAME': ('influxdb', 'username'),
    'INFLUXDB_PASSWORD': ('influxdb', 'password'),
    'INFLUXDB_ORG': ('influxdb', 'org'),
    'INFLUXDB_TOKEN': ('influxdb', 'token'),
    'LOG_LEVEL': ('logging', 'level'),
    'LOG_FORMAT': ('logging', 'format'),
    'LOG_FILE': ('logging', 'file'),
    'BATCH_SIZE': ('processing', 'batch_size'),
    'SKIP_INVALID': ('processing', 'skip_invalid'),
}


class InfluxDbConfig(BaseModel):
    """InfluxDB connection settings."""

    url: str = 'http://localhost:8086'
    database: str = 'gnettrack'
    username: str = ''
    password: str = ''
    org: Optional[str] = None
    token: Optional[str] = None

    @field_validator('org', 'token', mode='before')
    @classmethod
    def _blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class LoggingConfig(BaseModel):
    """Log output settings."""

    level: str = 'info'
    format: str = 'console'
    file: Optional[str] = None

    @field_validator('file', mode='before')
    @classmethod
    def _blank_file(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class ProcessingConfig(BaseModel):
    """Parsing and upload settings."""

    batch_size: int = 1000
    skip_invalid: bool = True

    @field_validator('batch_size')
    @classmethod
    def validate_batch_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError('batch_size must be positive')
        return v


class Config(BaseModel):
    """Main application configuration."""

    influxdb: InfluxDbConfig = Field(default_factory=InfluxDbConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    processing: ProcessingConfig = Field(default_factory=ProcessingConfig)

    @classmethod
    def from_file(cls, path: str) -> 'Config':
        """Read a TOML configuration file."""
        try:
            with open(path, 'rb') as f:
                data = tomllib.load(f)
        except OSError as e:
            raise ConfigError(f"Cannot read configuration file {path}: {e}") from e
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML in {path}: {e}") from e

        return cls.from_dict(data, source=path)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], source: str = '<dict>') -> 'Config':
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration in {source}: {e}") from e


def _apply_env_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value is not None:
            data.setdefault(section, {})[key] = value
    return data


def load_config(path: str = DEFAULT_CONFIG_PATH, use_env: bool = True) -> Config:
    """Load configuration from a TOML file plus environment overrides.

    A missing file is not an error: defaults are used instead.
    """
    if Path(path).exists():
        config = Config.from_file(path)
        logger.debug(f"Loaded configuration from {path}")
    else:
        logger.info(f"Configuration file {path} not found, using default settings")
        config = Config()

    if not use_env:
        return config

    load_dotenv(find_dotenv(usecwd=True))
    data = _apply_env_overrides(config.model_dump())
    return Config.from_dict(data, source='environment')
