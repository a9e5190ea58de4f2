# Overview: Transition executor; applies validated product status changes and quality-check passes.

"""
Product Lifecycle Executor

================================================================================
PURPOSE: Apply one lifecycle step to a product as a single unit of work
================================================================================

change_status():
    1. Load + lock the product, validate (role, current, requested)
    2. Capture previous status and owner
    3. Set status and location
    4. in-supply / in-distribution / delivered -> one ledger transaction
       (previous owner -> actor, quantity 1)
    5. in-distribution -> ownership passes to the actor
    6. Append one timeline entry
    7. Commit all of the above together, or none of it

A rejected transition raises before anything is written. A stale product
version or lock conflict rolls the whole unit back and re-runs it from a
fresh read (see concurrency.run_atomic), so the transition is re-validated
against whatever the other writer left behind.

quality_check_pass():
    Automated pass-through: always moves the product to in-supply, whatever
    its current status, and records the inspection on the timeline. It does
    not evaluate inspection criteria and writes no ledger transaction.

================================================================================
"""

from __future__ import annotations

import logging

from ..domain import Actor, ProductStatus
from ..models import Product
from .concurrency import run_atomic
from .errors import ConcurrentUpdateError
from .ledger_service import record_movement
from .products_service import append_timeline_entry, resolve_product, resolve_user, touch
from .transition_rules import LEDGER_STATUSES, OWNERSHIP_STATUS, require_transition

logger = logging.getLogger(__name__)


def change_status(
    product_ref,
    *,
    actor: Actor,
    requested_status,
    location: str,
    notes: str | None = None,
    expected_version: int | None = None,
) -> Product:
    """
    Move a product to ``requested_status`` on behalf of ``actor``.

    Args:
        product_ref: numeric id or tracking number
        actor: acting identity (trusted)
        requested_status: target ProductStatus (enum or raw value)
        location: where the product is now
        notes: timeline description; defaults to a generated message
        expected_version: optional optimistic-concurrency guard from the client

    Returns:
        The updated product (committed)

    Raises:
        NotFound: product does not exist
        ForbiddenTransition: (role, current, requested) not in the table
        ConcurrentUpdateError: expected_version is stale, or retries exhausted
        PersistenceFailure: storage failed; nothing was applied
    """
    def _op():
        product = resolve_product(product_ref, lock=True)

        if expected_version is not None and product.version_id != expected_version:
            raise ConcurrentUpdateError(
                product.tracking_number,
                f"Product {product.tracking_number} is at version {product.version_id}, "
                f"not {expected_version}; reload and retry",
            )

        target = require_transition(actor.role, product.status, requested_status)

        previous_status = product.status
        previous_owner_id = product.current_owner_id

        product.status = target.value
        product.current_location = location

        if target in LEDGER_STATUSES:
            resolve_user(actor.id)
            record_movement(
                product,
                from_user_id=previous_owner_id,
                to_user_id=actor.id,
                label=target,
                location=location,
                quantity=1,
                actor_id=actor.id,
            )

        if target == OWNERSHIP_STATUS:
            product.current_owner_id = actor.id

        append_timeline_entry(
            product,
            status=target,
            title=f"Status Updated: {target.value}",
            location=location,
            handler_user_id=actor.id,
            description=notes or f"Product status updated to {target.value}",
        )
        touch(product)
        return product, previous_status

    product, previous_status = run_atomic(_op, operation="change status", reference=product_ref)
    logger.info(
        "Product %s: %s -> %s by %s %s",
        product.tracking_number, previous_status, product.status, actor.role.value, actor.id,
    )
    return product


def quality_check_pass(
    product_ref,
    *,
    actor: Actor,
    notes: str | None = None,
    check_details: dict | None = None,
) -> Product:
    """
    Record an automated quality-check pass and set the product to in-supply.

    Not idempotent in timeline length: each call appends one entry.

    Raises:
        NotFound: product does not exist
    """
    def _op():
        product = resolve_product(product_ref, lock=True)
        product.status = ProductStatus.IN_SUPPLY.value
        append_timeline_entry(
            product,
            status=ProductStatus.IN_SUPPLY,
            title="Quality Check: Passed",
            location=product.current_location,
            handler_user_id=actor.id,
            description=notes or "Automated quality check passed",
            metadata=check_details or {"automated": True},
        )
        touch(product)
        return product

    product = run_atomic(_op, operation="quality check", reference=product_ref)
    logger.info("Product %s passed quality check (user %s)", product.tracking_number, actor.id)
    return product
