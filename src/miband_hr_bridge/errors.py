from __future__ import annotations
from typing import Optional


class BridgeError(Exception):
    """Base class for failures the bridge surfaces to its caller."""


class AdapterUnavailable(BridgeError):
    """No usable Bluetooth adapter; scanning cannot start."""

    def __init__(self, adapter: str, reason: str = ""):
        self.adapter = adapter
        self.reason = reason
        msg = f"Bluetooth adapter {adapter!r} unavailable"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class StoreInvariantViolation(BridgeError):
    """The live-value store was used in a way that breaks its guarantees.

    Raised when the store lock cannot be taken within its timeout or when an
    update would move the last-update time backwards. Either one is a
    programming defect and must not be retried.
    """


class BackgroundTaskFailed(BridgeError):
    """A task the bridge runs next to ingestion (HTTP server, status heartbeat) ended."""

    def __init__(self, task_name: str, cause: Optional[BaseException] = None):
        self.task_name = task_name
        self.cause = cause
        msg = f"background task {task_name!r} stopped"
        if cause is not None:
            msg += f": {cause!r}"
        super().__init__(msg)
