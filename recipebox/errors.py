"""Error types raised by the RecipeBox core."""

from __future__ import annotations


class RecipeBoxError(Exception):
    """Base class for every error the core raises."""


class InvalidArgument(RecipeBoxError, ValueError):
    """Caller supplied a malformed identifier or value."""


class MissingField(InvalidArgument):
    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"{field} is required")


class NotFound(RecipeBoxError, LookupError):
    def __init__(self, resource: str, identifier: object) -> None:
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} {identifier} not found")


class DuplicateName(RecipeBoxError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__("Tag name already exists")


class StoreError(RecipeBoxError):
    """The store failed; the surrounding transaction has been rolled back."""
