# Overview: Domain error taxonomy shared by the lifecycle services and routes.

"""
Every error carries enough context to explain the rejection to the caller.
Routes never build these messages themselves: each route turns a caught
SupplyChainError into JSON using ``http_status`` and ``to_dict``.

PersistenceFailure is the only class whose message is generic; the
underlying storage exception is logged server-side and kept on ``__cause__``.
"""

from __future__ import annotations


class SupplyChainError(Exception):
    """Base class for domain errors surfaced to API callers."""

    http_status = 400

    def to_dict(self) -> dict:
        return {"error": str(self)}


class NotFound(SupplyChainError):
    http_status = 404

    def __init__(self, entity: str, reference):
        self.entity = entity
        self.reference = reference
        super().__init__(f"{entity} {reference} not found")

    def to_dict(self) -> dict:
        return {"error": str(self), "entity": self.entity, "reference": str(self.reference)}


class ForbiddenTransition(SupplyChainError):
    """
    Raised when a role may not move a product from its current status to
    the requested one.
    """

    http_status = 403

    def __init__(self, role, current_status, requested_status):
        self.role = getattr(role, "value", role)
        self.current_status = getattr(current_status, "value", current_status)
        self.requested_status = getattr(requested_status, "value", requested_status)
        super().__init__(
            f"{self.role} cannot change status from {self.current_status} to {self.requested_status}"
        )

    def to_dict(self) -> dict:
        return {
            "error": str(self),
            "role": self.role,
            "from": self.current_status,
            "to": self.requested_status,
        }


class RoleNotPermitted(SupplyChainError):
    http_status = 403

    def __init__(self, role, allowed_roles):
        self.role = getattr(role, "value", role)
        self.allowed_roles = [getattr(r, "value", r) for r in allowed_roles]
        super().__init__(
            f"Not authorized. Required roles: {', '.join(self.allowed_roles)}. Your role: {self.role}"
        )

    def to_dict(self) -> dict:
        return {"error": str(self), "role": self.role, "allowed_roles": self.allowed_roles}


class InsufficientQuantity(SupplyChainError):
    http_status = 400

    def __init__(self, tracking_number: str, requested: int, available: int):
        self.tracking_number = tracking_number
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient product quantity for {tracking_number}: "
            f"requested {requested}, available {available}"
        )

    def to_dict(self) -> dict:
        return {
            "error": str(self),
            "product": self.tracking_number,
            "requested": self.requested,
            "available": self.available,
        }


class ConflictError(SupplyChainError):
    """409-level business rule conflict (e.g., duplicate tracking number)."""

    http_status = 409


class TransactionError(SupplyChainError):
    """Ledger entry cannot accept the requested change."""

    http_status = 409


class ConcurrentUpdateError(SupplyChainError):
    """The product changed underneath the request and retries were exhausted."""

    http_status = 409

    def __init__(self, reference, message: str | None = None):
        self.reference = reference
        super().__init__(message or f"Product {reference} was modified concurrently; reload and retry")

    def to_dict(self) -> dict:
        return {"error": str(self), "reference": str(self.reference)}


class PersistenceFailure(SupplyChainError):
    http_status = 500

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Could not complete {operation}; no changes were saved")
