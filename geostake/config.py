"""
Configuration management for the registry.
"""
import json
import os
from dataclasses import dataclass, asdict

from geostake.geo import PROXIMITY_TOLERANCE
from geostake.models import MAX_NAME_BYTES, MAX_DESCRIPTION_CHARS


@dataclass
class RegistryConfig:
    """Lifecycle rules."""
    chain_id: int = 1
    proximity_tolerance: int = PROXIMITY_TOLERANCE  # scaled-degree delta per axis
    max_name_bytes: int = MAX_NAME_BYTES
    max_description_chars: int = MAX_DESCRIPTION_CHARS

    def __post_init__(self):
        if self.proximity_tolerance <= 0:
            raise ValueError("proximity_tolerance must be positive")


@dataclass
class DatabaseConfig:
    """Database configuration."""
    path: str = "./geostake_data"
    write_buffer_size: int = 4 * 1024 * 1024  # 4MB
    max_open_files: int = 1000


@dataclass
class MonitoringConfig:
    """Monitoring configuration."""
    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = 9090


@dataclass
class Config:
    """Main configuration."""
    registry: RegistryConfig
    database: DatabaseConfig
    monitoring: MonitoringConfig

    @classmethod
    def default(cls) -> 'Config':
        return cls(
            registry=RegistryConfig(),
            database=DatabaseConfig(),
            monitoring=MonitoringConfig()
        )

    @classmethod
    def from_file(cls, path: str) -> 'Config':
        """Load configuration from JSON file. Missing sections use defaults."""
        with open(path, 'r') as f:
            data = json.load(f)

        return cls(
            registry=RegistryConfig(**data.get('registry', {})),
            database=DatabaseConfig(**data.get('database', {})),
            monitoring=MonitoringConfig(**data.get('monitoring', {}))
        )

    def to_file(self, path: str):
        """Save configuration to JSON file."""
        os.makedirs(os.path.dirname(path) or '.', exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    def to_dict(self) -> dict:
        return {
            'registry': asdict(self.registry),
            'database': asdict(self.database),
            'monitoring': asdict(self.monitoring)
        }
