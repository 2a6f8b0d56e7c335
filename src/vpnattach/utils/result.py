"""Ok/Err results and CLI exit codes.

Configuration loading returns a Result instead of raising, so the CLI can
report a bad config file with a precise field and exit code.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, NoReturn, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")
U = TypeVar("U")


class ResultError(Exception):
    """Raised when a Result is unwrapped on the wrong side."""


@dataclass(frozen=True)
class Ok(Generic[T]):
    """A successful value."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_err(self) -> NoReturn:
        raise ResultError(f"expected an error, got Ok({self.value!r})")

    def map(self, fn: Callable[[T], U]) -> "Ok[U]":
        """Apply fn to the value."""
        return Ok(fn(self.value))

    def and_then(self, fn: Callable[[T], "Result[U, E]"]) -> "Result[U, E]":
        """Feed the value into the next fallible step."""
        return fn(self.value)


@dataclass(frozen=True)
class Err(Generic[E]):
    """A failure carrying an error value."""

    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> NoReturn:
        raise ResultError(f"expected a value, got Err({self.error})")

    def unwrap_err(self) -> E:
        return self.error

    def map(self, fn: Callable[[T], U]) -> "Err[E]":
        return self

    def and_then(self, fn: Callable[[T], "Result[U, E]"]) -> "Err[E]":
        return self


Result = Union[Ok[T], Err[E]]


@dataclass(frozen=True)
class ConfigError:
    """A configuration value that could not be loaded or is out of range."""

    field: str
    message: str

    def __str__(self) -> str:
        return f"Config error in '{self.field}': {self.message}"


class ExitCode:
    """Process exit codes for the vpnattach CLI."""

    SUCCESS = 0
    GENERAL_ERROR = 1
    USAGE_ERROR = 2

    CONFIG_ERROR = 10

    # Lifecycle failures (20-29)
    NOT_FOUND = 20
    DELETE_REFUSED = 21
    WAIT_TIMEOUT = 22
    OPERATION_FAILED = 23
