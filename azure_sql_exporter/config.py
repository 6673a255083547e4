import logging                  # For structured logging
from pathlib import Path        # For clean file path handling
from typing import Tuple

import pytz
import yaml                     # For loading the .yaml config file
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

MASK = "******"

LOG_LEVELS = {
    'debug': logging.DEBUG,
    'info': logging.INFO,
    'warning': logging.WARNING,
    'error': logging.ERROR,
    'critical': logging.CRITICAL,
}


class ConfigError(Exception):
    """Raised when the target list cannot be read or is malformed."""


class Database(BaseModel):
    """Connection parameters for one Azure SQL database.

    str() and repr() never include the password; use dsn() or
    connect_kwargs() when the secret is actually needed.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    server: str
    user: str
    password: str = Field(repr=False)
    port: int = Field(ge=1, le=65535)

    @field_validator('name', 'server', 'user', 'password', mode='before')
    @classmethod
    def validate_not_empty(cls, v):
        """YAML scalars such as numeric passwords are kept as text."""
        if v is None or isinstance(v, (dict, list)):
            raise ValueError('must be a non-empty string')
        v = str(v)
        if not v.strip():
            raise ValueError('must be a non-empty string')
        return v

    @field_validator('port', mode='before')
    @classmethod
    def validate_port_type(cls, v):
        if isinstance(v, bool):
            raise ValueError('must be an integer')
        return v

    def connect_kwargs(self):
        return {
            "server": self.server,
            "user": self.user,
            "password": self.password,
            "port": self.port,
            "database": self.name,
        }

    def dsn(self):
        return self._format(self.password)

    def labels(self):
        """Label values in (server, database) order."""
        return (self.server, self.name)

    def redact(self, text):
        """Mask every occurrence of the password in text."""
        text = str(text)
        if self.password:
            text = text.replace(self.password, MASK)
        return text

    def _format(self, password):
        return (f"server={self.server};user id={self.user};password={password};"
                f"port={self.port};database={self.name}")

    def __str__(self):
        return self._format(MASK)

    def __repr__(self):
        return f"Database({self._format(MASK)})"


class ExporterConfig(BaseModel):
    """Validated config file: the target list plus the optional 'global' settings."""
    model_config = ConfigDict(frozen=True)

    databases: Tuple[Database, ...] = Field(min_length=1)
    timezone: str = 'system'
    log_level: str = 'info'
    log_scraped_metrics: bool = False

    @field_validator('timezone', mode='before')
    @classmethod
    def validate_timezone(cls, v):
        v = str(v)
        if v != 'system':
            try:
                pytz.timezone(v)
            except pytz.UnknownTimeZoneError:
                raise ValueError(f'Unknown timezone: {v}')
        return v

    @field_validator('log_level', mode='before')
    @classmethod
    def validate_log_level(cls, v):
        v = str(v).lower()
        if v not in LOG_LEVELS:
            raise ValueError(f'Unknown log level: {v}')
        return v

    @model_validator(mode='after')
    def validate_unique_targets(self):
        # Targets sharing (server, database) labels would overwrite each other's series
        seen = {}
        for i, db in enumerate(self.databases):
            first = seen.setdefault(db.labels(), i)
            if first != i:
                raise ValueError(
                    f"databases[{first}] and databases[{i}] both target database "
                    f"'{db.name}' on server '{db.server}'"
                )
        return self


def _format_location(loc):
    text = ''
    for part in loc:
        text += f'[{part}]' if isinstance(part, int) else (f'.{part}' if text else str(part))
    return text


def _raw_passwords(raw):
    entries = raw.get('databases') if isinstance(raw, dict) else None
    if not isinstance(entries, list):
        return []
    return [str(e['password']) for e in entries
            if isinstance(e, dict) and e.get('password') not in (None, '')]


def _validation_message(error, raw):
    """Summarise a ValidationError without echoing input values."""
    lines = []
    for err in error.errors():
        location = _format_location(err['loc']) or 'config'
        lines.append(f"{location}: {err['msg']}")
    message = '; '.join(lines)
    for password in _raw_passwords(raw):
        message = message.replace(password, MASK)
    return message


def parse_config(raw):
    if not isinstance(raw, dict):
        raise ConfigError("Config file must contain a mapping at the top level")

    global_config = raw.get('global') or {}
    if not isinstance(global_config, dict):
        raise ConfigError("'global' must be a mapping")

    settings = {k: v for k, v in global_config.items()
                if k in ('timezone', 'log_level', 'log_scraped_metrics')}
    try:
        return ExporterConfig(databases=raw.get('databases'), **settings)
    except ValidationError as e:
        raise ConfigError(f"Invalid config: {_validation_message(e, raw)}") from None


def load_config(path):
    """
    Loads the exporter YAML config from path.
    Raises ConfigError if the file is unreadable or malformed.
    """
    config_path = Path(path)
    logging.info(f"Loading config from: {config_path}")
    try:
        with config_path.open() as f:
            raw = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Unable to read file {config_path}: {e}")
    except yaml.YAMLError as e:
        raise ConfigError(f"Unable to parse file {config_path}: {e}")

    config = parse_config(raw)
    # Exclude passwords from logging
    logging.info(f"Loaded {len(config.databases)} database(s): {[str(db) for db in config.databases]}")
    logging.info(f"log_scraped_metrics enabled: {config.log_scraped_metrics}")
    return config
