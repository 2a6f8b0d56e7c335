"""Utility modules for vpnattach."""

from vpnattach.utils.logging import (
    bind_operation,
    configure_logging,
    get_correlation_id,
    get_logger,
    set_correlation_id,
)
from vpnattach.utils.result import (
    ConfigError,
    Err,
    ExitCode,
    Ok,
    Result,
    ResultError,
)

__all__ = [
    # Logging
    "configure_logging",
    "get_logger",
    "get_correlation_id",
    "set_correlation_id",
    "bind_operation",
    # Result
    "Ok",
    "Err",
    "Result",
    "ResultError",
    "ConfigError",
    "ExitCode",
]
