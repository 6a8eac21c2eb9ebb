"""
Exception hierarchy for the Observatory discovery engine.

Most failures in this package are recoverable and handled where they occur:
storage backends raise StorageUnavailableError and the state store degrades
to in-memory operation, the record parser raises CorruptPersistedStateError
and the store falls back to defaults. Only KnowledgeGraphConfigError is
expected to reach the host, since a broken graph definition is a startup
configuration problem.
"""

from __future__ import annotations

from typing import Any


class ObservatoryError(Exception):
    """Base exception for all Observatory errors.

    Attributes:
        message: Human-readable error message
        details: Optional dictionary of additional error context
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize the error.

        Args:
            message: Human-readable error message
            details: Optional dictionary of additional error context
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class StorageUnavailableError(ObservatoryError):
    """Durable storage could not be read or written.

    Covers quota exhaustion, permission problems and disabled storage.

    Attributes:
        key: Storage key involved in the failed operation
    """

    def __init__(self, message: str, key: str, details: dict[str, Any] | None = None):
        super().__init__(message, details)
        self.key = key


class CorruptPersistedStateError(ObservatoryError):
    """A persisted record could not be parsed into a mapping."""


class KnowledgeGraphConfigError(ObservatoryError):
    """The static knowledge graph definition is invalid.

    Attributes:
        node_ids: Node ids implicated in the problem (duplicates, cycle members)
    """

    def __init__(
        self,
        message: str,
        node_ids: list[str] | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.node_ids = node_ids or []


__all__ = [
    "ObservatoryError",
    "StorageUnavailableError",
    "CorruptPersistedStateError",
    "KnowledgeGraphConfigError",
]
