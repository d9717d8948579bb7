"""
Error kinds raised by the staging hierarchy.

Every error is recoverable: the caller re-prompts the operator (pick another
parent, confirm the cascade) and the store is left exactly as it was.
"""
from typing import List


class StagingError(Exception):
    """Base class for rejected staging operations."""
    pass


class InvalidParent(StagingError):
    """Raised when a parent reference is neither ROOT nor a live position."""

    def __init__(self, parent_ref, message: str = None):
        self.parent_ref = parent_ref
        super().__init__(message or f"Parent {parent_ref!r} does not exist")


class CycleDetected(StagingError):
    """Raised when a parent reassignment would make a node its own ancestor."""

    def __init__(self, position: int, parent_ref):
        self.position = position
        self.parent_ref = parent_ref
        if parent_ref == position:
            message = f"Device {position} cannot be its own parent"
        else:
            message = f"Device {parent_ref} is a descendant of device {position}"
        super().__init__(message)


class HasChildren(StagingError):
    """Raised when removing a node with descendants without cascade confirmation."""

    def __init__(self, position: int, descendants: List[int]):
        self.position = position
        self.descendants = descendants
        super().__init__(
            f"Device {position} has {len(descendants)} descendant device(s); "
            f"confirm the cascade to remove them as well"
        )


class InvalidPosition(StagingError, IndexError):
    """Raised when a position does not address a staged device."""

    def __init__(self, position):
        self.position = position
        super().__init__(f"No staged device at position {position!r}")
