"""Exception taxonomy for the notification trigger engine."""

from __future__ import annotations


class RoutineNotifierError(RuntimeError):
    """Base class for errors raised by the routine notifier."""


class ConfigFetchFailed(RoutineNotifierError):
    """Raised when the key-value store is unreachable or returns malformed data."""


class EmptyState(RoutineNotifierError):
    """An expected condition in which there is nothing to notify."""


class NoActiveRoutine(EmptyState):
    def __init__(self) -> None:
        super().__init__("No active routine")


class RoutineNotFound(EmptyState):
    def __init__(self, routine_id: str) -> None:
        super().__init__("Active routine not found")
        self.routine_id = routine_id


class NoSubscribedDevices(EmptyState):
    def __init__(self) -> None:
        super().__init__("No devices subscribed")


class DeliveryFailed(RoutineNotifierError):
    """Raised when the push gateway rejects or fails to accept a notification."""


__all__ = [
    "RoutineNotifierError",
    "ConfigFetchFailed",
    "EmptyState",
    "NoActiveRoutine",
    "RoutineNotFound",
    "NoSubscribedDevices",
    "DeliveryFailed",
]
