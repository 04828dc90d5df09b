"""Configuration loading and validation."""

from .config import Config, DestinationConfig, GitConfig, LoggingConfig, MigrationConfig, SourceConfig

__all__ = [
    'Config',
    'SourceConfig',
    'DestinationConfig',
    'MigrationConfig',
    'GitConfig',
    'LoggingConfig',
]
