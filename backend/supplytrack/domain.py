# Overview: Closed vocabularies shared by models, services, and routes.

"""
Supply-chain domain vocabulary.

Roles and statuses are closed enums. Every service compares against these
members rather than raw strings; raw request input is converted once at the
edge with the ``parse`` helpers below.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    ADMIN = "admin"
    MANUFACTURER = "manufacturer"
    SUPPLIER = "supplier"
    DISTRIBUTOR = "distributor"
    CUSTOMER = "customer"
    QUALITY_INSPECTOR = "quality-inspector"

    @classmethod
    def parse(cls, value) -> "Role | None":
        """Return the matching Role, or None for anything unrecognised."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


class ProductStatus(str, Enum):
    MANUFACTURED = "manufactured"
    QUALITY_CHECK = "quality-check"
    IN_SUPPLY = "in-supply"
    IN_DISTRIBUTION = "in-distribution"
    DELIVERED = "delivered"

    @classmethod
    def parse(cls, value) -> "ProductStatus | None":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


class TransactionStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    IN_TRANSIT = "in-transit"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DELAYED = "delayed"

    @classmethod
    def parse(cls, value) -> "TransactionStatus | None":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"
    PARTIALLY_PAID = "partially-paid"


class ProductCategory(str, Enum):
    FASTENERS = "Fasteners"
    TOOLS_AND_EQUIPMENT = "Tools & Equipment"
    INDUSTRIAL_COMPONENTS = "Industrial Components"
    HARDWARE = "Hardware"


# Tracking-number prefixes per category
CATEGORY_PREFIXES = {
    ProductCategory.FASTENERS: "FAS",
    ProductCategory.TOOLS_AND_EQUIPMENT: "TLS",
    ProductCategory.INDUSTRIAL_COMPONENTS: "IND",
    ProductCategory.HARDWARE: "HRD",
}

# Transactions in these states accept no further timeline entries
TERMINAL_TRANSACTION_STATUSES = frozenset({
    TransactionStatus.COMPLETED,
    TransactionStatus.CANCELLED,
})

# Label used for ledger entries created by an explicit ownership transfer
TRANSFER_LABEL = "transfer"
SALE_LABEL = "sale"


@dataclass(frozen=True)
class Actor:
    """
    The acting identity for one engine call.

    Supplied by the identity collaborator (bearer-token validation in the
    HTTP layer, or the caller directly) and trusted as-is by the services.
    """
    id: int
    role: Role

    @classmethod
    def from_user(cls, user) -> "Actor":
        return cls(id=user.id, role=Role(user.role))
