# Overview: Role-based product status transition table; pure decision functions.

"""
Product Status Transition Rules

================================================================================
PURPOSE: Decide which role may move a product from one status to another
================================================================================

STATE MACHINE (per role):

    supplier:           manufactured  -> in-supply
                        quality-check -> in-supply
    quality-inspector:  quality-check -> manufactured | in-supply
    distributor:        in-supply     -> in-distribution
                        in-distribution -> delivered
    admin:              union of the above

RULES:
1. Anything not listed is rejected, including same-status "transitions".
2. Unknown roles and unknown statuses have no allowed transitions.
3. These functions have no side effects and read no state; the same inputs
   always give the same answer.

Manufacturers and customers never change status through this table.
Ownership transfer (transfer_service) deliberately does not consult it.

================================================================================
"""

from __future__ import annotations

from types import MappingProxyType

from ..domain import ProductStatus, Role
from .errors import ForbiddenTransition

_S = ProductStatus

TRANSITIONS = MappingProxyType({
    Role.SUPPLIER: MappingProxyType({
        _S.MANUFACTURED: frozenset({_S.IN_SUPPLY}),
        _S.QUALITY_CHECK: frozenset({_S.IN_SUPPLY}),
    }),
    Role.QUALITY_INSPECTOR: MappingProxyType({
        _S.QUALITY_CHECK: frozenset({_S.MANUFACTURED, _S.IN_SUPPLY}),
    }),
    Role.DISTRIBUTOR: MappingProxyType({
        _S.IN_SUPPLY: frozenset({_S.IN_DISTRIBUTION}),
        _S.IN_DISTRIBUTION: frozenset({_S.DELIVERED}),
    }),
    Role.ADMIN: MappingProxyType({
        _S.MANUFACTURED: frozenset({_S.IN_SUPPLY}),
        _S.QUALITY_CHECK: frozenset({_S.MANUFACTURED, _S.IN_SUPPLY}),
        _S.IN_SUPPLY: frozenset({_S.IN_DISTRIBUTION}),
        _S.IN_DISTRIBUTION: frozenset({_S.DELIVERED}),
    }),
})

# Roles allowed to call the status-change operation at all
STATUS_CHANGE_ROLES = frozenset(TRANSITIONS.keys())

# Target statuses whose transition writes a ledger transaction
LEDGER_STATUSES = frozenset({_S.IN_SUPPLY, _S.IN_DISTRIBUTION, _S.DELIVERED})

# Target status that hands ownership to the acting identity
OWNERSHIP_STATUS = _S.IN_DISTRIBUTION


def allowed_transitions(role, current_status) -> frozenset[ProductStatus]:
    """
    Statuses ``role`` may move a product to from ``current_status``.

    Accepts enum members or their raw string values. Unknown input yields an
    empty set.
    """
    role = Role.parse(role)
    current = ProductStatus.parse(current_status)
    if role is None or current is None:
        return frozenset()
    return TRANSITIONS.get(role, {}).get(current, frozenset())


def can_transition(role, current_status, requested_status) -> bool:
    requested = ProductStatus.parse(requested_status)
    if requested is None:
        return False
    return requested in allowed_transitions(role, current_status)


def require_transition(role, current_status, requested_status) -> ProductStatus:
    """
    Validate a transition and return the requested status as an enum member.

    Raises:
        ForbiddenTransition: with role, current and requested status embedded
    """
    if not can_transition(role, current_status, requested_status):
        raise ForbiddenTransition(role, current_status, requested_status)
    return ProductStatus(requested_status)
