"""Configuration management."""

from .config import (
    AdoConfig,
    Config,
    GithubConfig,
    LoggingConfig,
    RetryConfig,
    ScriptConfig,
    StorageConfig,
)

__all__ = [
    'AdoConfig',
    'Config',
    'GithubConfig',
    'LoggingConfig',
    'RetryConfig',
    'ScriptConfig',
    'StorageConfig',
]
