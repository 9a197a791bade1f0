"""Error taxonomy shared by the store and the router."""

from __future__ import annotations


class MembankError(Exception):
    """Base class for all memory bank errors."""


class ValidationError(MembankError):
    """Caller input is missing or malformed. Raised before any store access."""


class DuplicateName(MembankError):
    """A document with this name already exists."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Document already exists: {name}")
        self.name = name


class NotFound(MembankError):
    """The requested document does not exist."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Document not found: {name}")
        self.name = name


class StorageUnavailable(MembankError):
    """The storage engine failed (I/O, corruption, locking)."""
