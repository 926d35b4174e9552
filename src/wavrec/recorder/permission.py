"""Microphone permission boundary.

A session consults its provider synchronously on every start().
"""

from collections.abc import Callable
from typing import Protocol


class PermissionProvider(Protocol):
    """Reports whether capture access is currently granted."""

    def is_granted(self) -> bool:
        """Return True if capture is allowed right now."""
        ...


class StaticPermission:
    """Fixed permission answer, togglable at runtime."""

    def __init__(self, granted: bool = True) -> None:
        self.granted = granted

    def is_granted(self) -> bool:
        """Return the current answer."""
        return self.granted


class CallablePermission:
    """Adapts a zero-argument callable to PermissionProvider."""

    def __init__(self, check: Callable[[], bool]) -> None:
        self._check = check

    def is_granted(self) -> bool:
        """Evaluate the wrapped check."""
        return bool(self._check())


__all__ = ["CallablePermission", "PermissionProvider", "StaticPermission"]
