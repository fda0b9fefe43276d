"""
Configuration Management

Handles loading configuration from a YAML file and environment variables.

Priority (highest to lowest):
1. Command-line flags (applied by main.py)
2. Environment variables (RTRANSFER_*)
3. Config file (YAML)
4. Default values
"""

import os
from dataclasses import dataclass, field, asdict, fields
from pathlib import Path
from typing import Optional
import logging

import yaml

logger = logging.getLogger(__name__)

DEFAULT_PORT = 9000
DEFAULT_CHUNK_SIZE = 64 * 1024  # 64KB
DEFAULT_MAX_WORKERS = 10

ENV_PREFIX = 'RTRANSFER_'


@dataclass
class TransferConfig:
    """Sender and receiver configuration"""
    # Network
    host: str = 'localhost'
    bind_host: str = '0.0.0.0'
    port: int = DEFAULT_PORT
    connect_timeout: float = 10.0
    idle_timeout: float = 300.0  # seconds a peer may stay silent, 0 disables

    # Receiver
    output_dir: Path = field(default_factory=lambda: Path('.'))
    max_workers: int = DEFAULT_MAX_WORKERS

    # Transfer
    chunk_size: int = DEFAULT_CHUNK_SIZE
    checksum_algorithm: str = 'md5'

    # Transport encryption
    tls_enabled: bool = False
    cert_file: Optional[Path] = None
    key_file: Optional[Path] = None
    key_password: Optional[str] = None
    ca_file: Optional[Path] = None
    verify_hostname: bool = False

    # Logging
    log_level: str = 'INFO'
    log_file: Optional[str] = 'rtransfer.log'

    def __post_init__(self):
        self.output_dir = Path(self.output_dir)
        for name in ('cert_file', 'key_file', 'ca_file'):
            value = getattr(self, name)
            if value is not None:
                setattr(self, name, Path(value))
        self.validate()

    def validate(self):
        """Reject values the transfer engine cannot work with"""
        if not 0 <= self.port <= 65535:
            raise ValueError(f"Invalid port: {self.port}")
        if self.chunk_size <= 0:
            raise ValueError(f"Chunk size must be positive: {self.chunk_size}")
        if self.max_workers <= 0:
            raise ValueError(f"Worker count must be positive: {self.max_workers}")
        if self.idle_timeout < 0:
            raise ValueError(f"Idle timeout cannot be negative: {self.idle_timeout}")

    @classmethod
    def from_file(cls, path: Path) -> 'TransferConfig':
        """Load configuration from a YAML file"""
        path = Path(path)
        if not path.exists():
            logger.warning(f"Config file not found: {path}, using defaults")
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Config file must contain a mapping: {path}")

        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning(f"Ignoring unknown config keys: {', '.join(sorted(unknown))}")

        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def from_env(cls, base: Optional['TransferConfig'] = None) -> 'TransferConfig':
        """Apply RTRANSFER_* environment variables on top of base"""
        config = base if base is not None else cls()
        values = asdict(config)

        for f in fields(cls):
            raw = os.getenv(ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            values[f.name] = _coerce(f.name, raw)

        return cls(**values)

    def to_dict(self) -> dict:
        """Convert to a YAML-friendly dictionary"""
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, Path):
                data[key] = str(value)
        return data

    def save(self, path: Path):
        """Save configuration to a YAML file"""
        with open(path, 'w') as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False)


def _coerce(name: str, raw: str):
    if name in ('port', 'max_workers', 'chunk_size'):
        return int(raw)
    if name in ('connect_timeout', 'idle_timeout'):
        return float(raw)
    if name in ('tls_enabled', 'verify_hostname'):
        return raw.strip().lower() in ('1', 'true', 'yes', 'on')
    return raw


def load_config(config_path: Optional[Path] = None) -> TransferConfig:
    """
    Load configuration from file and environment.

    Environment variables override file settings.
    """
    config = TransferConfig()
    if config_path:
        config = TransferConfig.from_file(config_path)
    return TransferConfig.from_env(config)

