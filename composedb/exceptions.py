"""Custom exception hierarchy for composedb."""

from __future__ import annotations


class ComposeDBError(Exception):
    """Base for all composedb errors."""


class ValidationError(ComposeDBError):
    """Caller-supplied input violates a precondition."""


class ConflictError(ComposeDBError):
    """A uniqueness constraint rejected the write."""


class ComposeConflictError(ConflictError):
    """A compose with the given job id already exists."""


class NotFoundError(ComposeDBError):
    """The requested record does not exist for this tenant."""


class ComposeNotFoundError(NotFoundError):
    """No compose with the given job id exists for the requesting account.

    Raised both for absent records and for records owned by another
    account, so callers cannot discover other tenants' composes.
    """


class ConnectivityError(ComposeDBError):
    """The database could not be opened."""


class SchemaVersionError(ComposeDBError):
    """The database schema is older than the store requires."""


class MigrationError(ComposeDBError):
    """A migration step failed. The schema stays at the last good version."""

    def __init__(self, message: str, version: int | None = None) -> None:
        super().__init__(message)
        self.version = version


class MigrationCatalogError(MigrationError):
    """The migration catalog is malformed (gaps, duplicates, bad modules)."""
