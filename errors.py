"""
Error taxonomy for the console data layer.

Pydantic's ValidationError covers form validation; everything here is about
stored state or the lifecycle of a record.
"""
from typing import Optional


class ConsoleError(Exception):
    pass


class StorageError(ConsoleError):
    def __init__(self, key: str, reason: Optional[str] = None):
        self.key = key
        self.reason = reason
        msg = f"Could not persist '{key}'"
        super().__init__(f"{msg}: {reason}" if reason else msg)


class CorruptedStateError(ConsoleError):
    def __init__(self, key: str, reason: Optional[str] = None):
        self.key = key
        self.reason = reason
        msg = f"Stored document '{key}' is corrupted"
        super().__init__(f"{msg}: {reason}" if reason else msg)


class NotFoundError(ConsoleError):
    def __init__(self, resource: str, item_id: str):
        self.resource = resource
        self.item_id = item_id
        super().__init__(f"{resource} '{item_id}' not found")


class InvalidTransitionError(ConsoleError):
    def __init__(self, resource: str, item_id: str, current: str, requested: str):
        self.resource = resource
        self.item_id = item_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Cannot move {resource} '{item_id}' from '{current}' to '{requested}'"
        )


class InvalidQueryError(ConsoleError):
    pass
