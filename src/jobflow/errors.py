"""Typed failures surfaced by the store, the aggregation engine and the dispatcher.

The HTTP layer maps them to status codes in :mod:`jobflow.api.app`.
"""

from __future__ import annotations

from typing import Any


class NotFoundError(ValueError):
    def __init__(self, entity: str, entity_id: object):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class ValidationFailure(ValueError):
    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None):
        super().__init__(message)
        self.errors = errors or []


class InvalidStateError(ValueError):
    pass


class TransportFailure(RuntimeError):
    pass


class VaultConfigurationError(RuntimeError):
    pass
