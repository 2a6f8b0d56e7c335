"""Centralized configuration for attachment lifecycle operations.

Configuration can be loaded from YAML files and validated at startup.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Optional

import yaml

from vpnattach.utils.result import ConfigError, Err, Ok, Result


@dataclass
class TimeoutConfig:
    """Per-operation timeouts in seconds."""

    create: int = 600
    delete: int = 600


@dataclass
class PollingConfig:
    """Polling cadence and not-found handling for waits."""

    delay: float = 0.0
    min_interval: float = 0.5
    max_interval: float = 10.0
    backoff_factor: float = 2.0

    # Absences tolerated right after create before giving up
    not_found_checks: int = 20

    # Absences required before a delete counts as complete
    delete_not_found_tolerance: int = 1

    def cadence(self) -> dict[str, Any]:
        """Keyword arguments for the WaitSpec factories."""
        return {
            "delay": self.delay,
            "min_interval": self.min_interval,
            "max_interval": self.max_interval,
            "backoff_factor": self.backoff_factor,
            "not_found_checks": self.not_found_checks,
        }


@dataclass
class AwsConfig:
    """AWS client settings."""

    region: str = "us-west-2"
    profile: Optional[str] = None
    endpoint_url: Optional[str] = None
    partition: Optional[str] = None
    max_attempts: int = 5


@dataclass
class LoggingConfig:
    """Logging settings."""

    level: str = "info"
    format: str = "json"


@dataclass
class ManagerConfig:
    """Complete configuration for the attachment manager."""

    parallelism: int = 4

    timeouts: TimeoutConfig = field(default_factory=TimeoutConfig)
    polling: PollingConfig = field(default_factory=PollingConfig)
    aws: AwsConfig = field(default_factory=AwsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> Result["ManagerConfig", ConfigError]:
        """
        Load configuration from a YAML file.

        Args:
            path: Path to YAML configuration file

        Returns:
            Result with loaded config or error
        """
        path = Path(path)

        if not path.exists():
            return Err(ConfigError(
                field="path",
                message=f"Configuration file not found: {path}",
            ))

        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            return Err(ConfigError(
                field="yaml",
                message=f"Failed to parse YAML: {e}",
            ))
        except OSError as e:
            return Err(ConfigError(
                field="file",
                message=f"Failed to read config file: {e}",
            ))

        if not isinstance(data, dict):
            return Err(ConfigError(
                field="yaml",
                message="Top level of the configuration must be a mapping",
            ))

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Result["ManagerConfig", ConfigError]:
        """
        Create configuration from a dictionary.

        Args:
            data: Configuration dictionary

        Returns:
            Result with loaded config or error
        """
        try:
            timeouts_data = data.get("timeouts", {})
            timeouts = TimeoutConfig(
                create=int(timeouts_data.get("create", 600)),
                delete=int(timeouts_data.get("delete", 600)),
            )

            polling_data = data.get("polling", {})
            polling = PollingConfig(
                delay=float(polling_data.get("delay", 0.0)),
                min_interval=float(polling_data.get("min_interval", 0.5)),
                max_interval=float(polling_data.get("max_interval", 10.0)),
                backoff_factor=float(polling_data.get("backoff_factor", 2.0)),
                not_found_checks=int(polling_data.get("not_found_checks", 20)),
                delete_not_found_tolerance=int(polling_data.get("delete_not_found_tolerance", 1)),
            )

            aws_data = data.get("aws", {})
            aws = AwsConfig(
                region=aws_data.get("region", "us-west-2"),
                profile=aws_data.get("profile"),
                endpoint_url=aws_data.get("endpoint_url"),
                partition=aws_data.get("partition"),
                max_attempts=int(aws_data.get("max_attempts", 5)),
            )

            logging_data = data.get("logging", {})
            logging_config = LoggingConfig(
                level=logging_data.get("level", "info"),
                format=logging_data.get("format", "json"),
            )

            config = cls(
                parallelism=int(data.get("parallelism", 4)),
                timeouts=timeouts,
                polling=polling,
                aws=aws,
                logging=logging_config,
            )

            return Ok(config)

        except (AttributeError, TypeError, ValueError) as e:
            return Err(ConfigError(
                field="unknown",
                message=f"Failed to parse configuration: {e}",
            ))

    def validate(self) -> Result[None, ConfigError]:
        """
        Validate configuration values.

        Returns:
            Result indicating success or validation error
        """
        if not 1 <= self.parallelism <= 32:
            return Err(ConfigError(
                field="parallelism",
                message=f"Must be between 1 and 32, got {self.parallelism}",
            ))

        for name, value in [
            ("create", self.timeouts.create),
            ("delete", self.timeouts.delete),
        ]:
            if value < 1:
                return Err(ConfigError(
                    field=f"timeouts.{name}",
                    message=f"Must be positive, got {value}",
                ))

        if self.polling.min_interval <= 0:
            return Err(ConfigError(
                field="polling.min_interval",
                message=f"Must be positive, got {self.polling.min_interval}",
            ))
        if self.polling.max_interval < self.polling.min_interval:
            return Err(ConfigError(
                field="polling.max_interval",
                message=(
                    f"Must be at least min_interval ({self.polling.min_interval}), "
                    f"got {self.polling.max_interval}"
                ),
            ))
        if self.polling.backoff_factor < 1.0:
            return Err(ConfigError(
                field="polling.backoff_factor",
                message=f"Must be at least 1.0, got {self.polling.backoff_factor}",
            ))
        if self.polling.not_found_checks < 0:
            return Err(ConfigError(
                field="polling.not_found_checks",
                message=f"Must not be negative, got {self.polling.not_found_checks}",
            ))
        if self.polling.delete_not_found_tolerance < 1:
            return Err(ConfigError(
                field="polling.delete_not_found_tolerance",
                message=f"Must be at least 1, got {self.polling.delete_not_found_tolerance}",
            ))

        if self.aws.max_attempts < 1:
            return Err(ConfigError(
                field="aws.max_attempts",
                message=f"Must be at least 1, got {self.aws.max_attempts}",
            ))

        return Ok(None)

    def with_aws(self, **overrides: Any) -> "ManagerConfig":
        """Return a copy with non-None AWS settings replaced."""
        values = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, aws=replace(self.aws, **values))


def load_config(config_dir: Path = None) -> Result[ManagerConfig, ConfigError]:
    """
    Load configuration from the standard location.

    Loads from config/defaults.yaml, overlays config/timeouts.yaml if present,
    then applies AWS settings from the environment.

    Args:
        config_dir: Configuration directory (defaults to ./config)

    Returns:
        Result with loaded config or error
    """
    if config_dir is None:
        config_dir = Path("./config")

    config_dir = Path(config_dir)

    defaults_path = config_dir / "defaults.yaml"
    if defaults_path.exists():
        result = ManagerConfig.from_yaml(defaults_path)
        if result.is_err():
            return result
        config = result.unwrap()
    else:
        config = ManagerConfig()

    timeouts_path = config_dir / "timeouts.yaml"
    if timeouts_path.exists():
        try:
            with open(timeouts_path) as f:
                overlay = yaml.safe_load(f) or {}

            if "timeouts" in overlay:
                td = overlay["timeouts"]
                config.timeouts = TimeoutConfig(
                    create=int(td.get("create", config.timeouts.create)),
                    delete=int(td.get("delete", config.timeouts.delete)),
                )

        except (OSError, yaml.YAMLError, AttributeError, TypeError, ValueError) as e:
            return Err(ConfigError(
                field="timeouts_overlay",
                message=f"Failed to load timeouts overlay: {e}",
            ))

    config = config.with_aws(
        region=get_env_region(),
        profile=os.environ.get("AWS_PROFILE"),
        endpoint_url=os.environ.get("VPNATTACH_ENDPOINT_URL"),
    )

    return config.validate().map(lambda _: config)


def get_env_region() -> Optional[str]:
    """Get the AWS region from environment."""
    return os.environ.get("AWS_REGION") or os.environ.get("AWS_DEFAULT_REGION")
