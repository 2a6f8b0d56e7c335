"""Configuration module for vpnattach."""

from vpnattach.config.settings import (
    AwsConfig,
    LoggingConfig,
    ManagerConfig,
    PollingConfig,
    TimeoutConfig,
    load_config,
)

__all__ = [
    "ManagerConfig",
    "TimeoutConfig",
    "PollingConfig",
    "AwsConfig",
    "LoggingConfig",
    "load_config",
]
