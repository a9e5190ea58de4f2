# backend/supplytrack/services/transfer_service.py
"""
Ownership transfer service.

Moves a product from its current owner to another identity and records the
movement in the ledger (label ``transfer``).

Unlike change_status, a transfer does not consult the transition table: it
is allowed at any product status and leaves the status unchanged. The only
gate is the role allowlist enforced by the route (supplier, distributor,
admin).
"""
from __future__ import annotations

import logging

from ..domain import TRANSFER_LABEL, Actor, Role
from ..models import Product
from .concurrency import run_atomic
from .ledger_service import record_movement
from .products_service import append_timeline_entry, resolve_product, resolve_user, touch

logger = logging.getLogger(__name__)

TRANSFER_ROLES = frozenset({Role.SUPPLIER, Role.DISTRIBUTOR, Role.ADMIN})


def transfer_ownership(
    product_ref,
    *,
    actor: Actor,
    destination_user_id,
    location: str,
    notes: str | None = None,
) -> Product:
    """
    Transfer ``product_ref`` to ``destination_user_id`` at ``location``.

    Returns:
        The updated product (committed)

    Raises:
        NotFound: product or destination identity missing
    """
    def _op():
        product = resolve_product(product_ref, lock=True)
        destination = resolve_user(destination_user_id)
        resolve_user(actor.id)

        previous_owner_id = product.current_owner_id

        record_movement(
            product,
            from_user_id=previous_owner_id,
            to_user_id=destination.id,
            label=TRANSFER_LABEL,
            location=location,
            quantity=1,
            actor_id=actor.id,
        )

        product.current_owner_id = destination.id
        product.current_location = location

        append_timeline_entry(
            product,
            status=product.status,
            title="Ownership Transferred",
            location=location,
            handler_user_id=actor.id,
            description=notes or "Product ownership transferred",
            metadata={"from_user": previous_owner_id, "to_user": destination.id},
        )
        touch(product)
        return product

    product = run_atomic(_op, operation="transfer ownership", reference=product_ref)
    logger.info(
        "Product %s transferred to user %s by user %s",
        product.tracking_number, product.current_owner_id, actor.id,
    )
    return product
