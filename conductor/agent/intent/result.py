"""Minimal Ok/Err result for fallible optimisation steps."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def is_ok(self) -> bool:
        return True

    def map(self, fn: Callable[[T], U]) -> "Ok[U]":
        return Ok(fn(self.value))

    def unwrap_or_else(self, fallback: Callable[[Exception], T]) -> T:  # noqa: ARG002
        return self.value


@dataclass(frozen=True)
class Err:
    error: Exception

    @property
    def is_ok(self) -> bool:
        return False

    def map(self, fn: Callable) -> "Err":  # noqa: ARG002
        return self

    def unwrap_or_else(self, fallback: Callable[[Exception], T]) -> T:
        return fallback(self.error)


Result = Ok[T] | Err


async def attempt(awaitable: Awaitable[T]) -> "Ok[T] | Err":
    """Await and capture any exception as Err."""
    try:
        return Ok(await awaitable)
    except Exception as e:
        return Err(e)
