# Overview: Transaction ledger writer; movement records, explicit sales/shipments, status and delay updates.

from __future__ import annotations

import logging
import secrets
import string
import time
from datetime import datetime
from typing import Optional

from ..domain import (
    SALE_LABEL,
    PaymentStatus,
    TERMINAL_TRANSACTION_STATUSES,
    Actor,
    TransactionStatus,
)
from ..extensions import db
from ..models import Product, Transaction, TransactionDelay, TransactionTimelineEntry
from ..time_utils import parse_iso_datetime, utcnow
from ..validation import ValidationError
from .concurrency import run_atomic
from .errors import InsufficientQuantity, NotFound, TransactionError
from .products_service import resolve_product, resolve_user, touch

logger = logging.getLogger(__name__)

# Ledger invariants:
# - Transactions are never deleted; timeline entries and delay records are
#   only ever added.
# - total_amount_cents = quantity x product.price_cents, fixed at creation.
#   The status-change path records quantity 1, so its total is the unit price.
# - Transaction.status always equals the status of its newest timeline entry.
# - Ledger rows share the DB transaction of the product change that caused
#   them. Only the public operations wrapped in run_atomic commit.

_ALPHABET = string.digits + string.ascii_uppercase
DEFAULT_CARRIER = "Internal"
DEFAULT_COORDINATES = (0, 0)


def generate_transaction_id() -> str:
    """``TXN-<millis><5 random chars>``; uniqueness is also enforced by the DB."""
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(5))
    return f"TXN-{int(time.time() * 1000)}{suffix}"


def _parse_when(value, key: str) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return parse_iso_datetime(value)
    except (TypeError, ValueError, AttributeError):
        raise ValidationError(f"{key} must be an ISO-8601 datetime")


def _parse_destination(value) -> dict:
    """Normalise ``shipment_details.destination`` to {address, coordinates}."""
    if value is None:
        return {"address": None, "coordinates": list(DEFAULT_COORDINATES)}
    if not isinstance(value, dict):
        raise ValidationError("shipment_details.destination must be an object")

    address = value.get("address")
    if address is not None and not isinstance(address, str):
        raise ValidationError("shipment_details.destination.address must be a string")

    coordinates = value.get("coordinates")
    if coordinates is None:
        coordinates = list(DEFAULT_COORDINATES)
    elif (
        not isinstance(coordinates, (list, tuple))
        or len(coordinates) != 2
        or any(isinstance(c, bool) or not isinstance(c, (int, float)) for c in coordinates)
    ):
        raise ValidationError("shipment_details.destination.coordinates must be [longitude, latitude]")
    return {"address": (address or "").strip() or None, "coordinates": list(coordinates)}


def _append_event(
    tx: Transaction,
    *,
    status: TransactionStatus,
    address: str | None,
    notes: str | None,
    handled_by_user_id: int | None,
    coordinates=DEFAULT_COORDINATES,
) -> TransactionTimelineEntry:
    entry = TransactionTimelineEntry(
        position=len(tx.timeline) + 1,
        status=status.value,
        location_address=address,
        location_coordinates=list(coordinates),
        occurred_at=utcnow(),
        notes=notes,
        handled_by_user_id=handled_by_user_id,
    )
    tx.timeline.append(entry)
    tx.status = status.value
    return entry


def record_movement(
    product: Product,
    *,
    from_user_id: int,
    to_user_id: int,
    label: str,
    location: str | None,
    quantity: int = 1,
    actor_id: int | None = None,
) -> Transaction:
    """
    Write one ledger transaction for a product movement.

    Used by the status-change and transfer paths. Origin and destination
    are both the movement location: the entry records "moved here", not a
    point-to-point shipment. Does not touch product quantity and does not
    commit; the caller's unit of work owns the transaction.
    """
    address = location or product.current_location
    tx = Transaction(
        transaction_id=generate_transaction_id(),
        product_id=product.id,
        product_tracking_number=product.tracking_number,
        from_user_id=from_user_id,
        to_user_id=to_user_id,
        quantity=quantity,
        label=getattr(label, "value", label),
        total_amount_cents=product.price_cents * quantity,
        payment_status=PaymentStatus.PENDING.value,
        carrier=DEFAULT_CARRIER,
        shipment_tracking_number=product.tracking_number,
        origin_address=address,
        origin_coordinates=list(DEFAULT_COORDINATES),
        destination_address=address,
        destination_coordinates=list(DEFAULT_COORDINATES),
        current_location_address=address,
        current_location_updated_at=utcnow(),
        created_by_user_id=actor_id,
    )
    _append_event(
        tx,
        status=TransactionStatus.PROCESSING,
        address=address,
        notes=f"Product status updated to {tx.label}",
        handled_by_user_id=actor_id,
    )
    db.session.add(tx)
    db.session.flush()
    logger.info(
        "Ledger %s: %s x%d %s user %s -> user %s",
        tx.transaction_id, product.tracking_number, quantity, tx.label, from_user_id, to_user_id,
    )
    return tx


def create_transaction(
    product_ref,
    *,
    actor: Actor,
    to_user_id,
    quantity,
    shipment_details: Optional[dict] = None,
) -> Transaction:
    """
    Explicit sale/shipment from ``actor`` to ``to_user_id``.

    Decrements product quantity by ``quantity`` in the same DB transaction
    as the ledger insert.

    Raises:
        ValidationError: quantity is not a positive integer
        NotFound: product or receiving user missing
        InsufficientQuantity: quantity exceeds the product's available stock
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("quantity must be a positive integer")
    details = shipment_details or {}
    if not isinstance(details, dict):
        raise ValidationError("shipment_details must be an object")
    destination = _parse_destination(details.get("destination"))
    for key in ("carrier", "tracking_number"):
        if details.get(key) is not None and not isinstance(details[key], str):
            raise ValidationError(f"shipment_details.{key} must be a string")
    estimated_delivery = _parse_when(details.get("estimated_delivery"), "estimated_delivery")

    def _op():
        product = resolve_product(product_ref, lock=True)
        resolve_user(actor.id)
        recipient = resolve_user(to_user_id)

        if product.quantity < quantity:
            raise InsufficientQuantity(product.tracking_number, quantity, product.quantity)

        origin = product.current_location
        tx = Transaction(
            transaction_id=generate_transaction_id(),
            product_id=product.id,
            product_tracking_number=product.tracking_number,
            from_user_id=actor.id,
            to_user_id=recipient.id,
            quantity=quantity,
            label=SALE_LABEL,
            total_amount_cents=product.price_cents * quantity,
            payment_status=PaymentStatus.PENDING.value,
            carrier=details.get("carrier") or DEFAULT_CARRIER,
            shipment_tracking_number=details.get("tracking_number") or product.tracking_number,
            origin_address=origin,
            origin_coordinates=list(DEFAULT_COORDINATES),
            destination_address=destination["address"] or origin,
            destination_coordinates=destination["coordinates"],
            current_location_address=origin,
            current_location_updated_at=utcnow(),
            estimated_delivery=estimated_delivery,
            created_by_user_id=actor.id,
        )
        _append_event(
            tx,
            status=TransactionStatus.PROCESSING,
            address=origin,
            notes="Transaction initiated",
            handled_by_user_id=actor.id,
        )
        db.session.add(tx)

        product.quantity -= quantity
        touch(product)
        db.session.flush()
        return tx

    tx = run_atomic(_op, operation="create transaction", reference=product_ref)
    logger.info("Transaction %s created by user %s (qty %d)", tx.transaction_id, actor.id, quantity)
    return tx


def resolve_transaction(ref) -> Transaction:
    q = db.session.query(Transaction)
    if isinstance(ref, int) or (isinstance(ref, str) and ref.isdigit()):
        q = q.filter(Transaction.id == int(ref))
    else:
        q = q.filter(Transaction.transaction_id == str(ref))
    tx = q.first()
    if tx is None:
        raise NotFound("Transaction", ref)
    return tx


def _require_open(tx: Transaction) -> None:
    if tx.status in {s.value for s in TERMINAL_TRANSACTION_STATUSES}:
        raise TransactionError(f"Transaction {tx.transaction_id} is {tx.status} and cannot be updated")


def update_transaction_status(
    ref,
    *,
    actor: Actor,
    status,
    location: str | None = None,
    notes: str | None = None,
) -> Transaction:
    """
    Append a timeline entry and move the transaction to ``status``.

    ``completed`` stamps actual delivery. Completed and cancelled
    transactions are closed.
    """
    new_status = TransactionStatus.parse(status)
    if new_status is None:
        allowed = ", ".join(s.value for s in TransactionStatus)
        raise ValidationError(f"status must be one of: {allowed}")

    def _op():
        tx = resolve_transaction(ref)
        _require_open(tx)
        address = location or tx.destination_address
        _append_event(
            tx,
            status=new_status,
            address=address,
            notes=notes or f"Status updated to {new_status.value}",
            handled_by_user_id=actor.id,
        )
        tx.current_location_address = address
        tx.current_location_updated_at = utcnow()
        if new_status == TransactionStatus.COMPLETED:
            tx.actual_delivery = utcnow()
        db.session.flush()
        return tx

    tx = run_atomic(_op, operation="update transaction status", reference=ref)
    logger.info("Transaction %s -> %s by user %s", tx.transaction_id, tx.status, actor.id)
    return tx


def report_delay(
    ref,
    *,
    actor: Actor,
    reason: str,
    location: str | None = None,
    estimated_resolution: datetime | None = None,
) -> Transaction:
    """Record an active delay and move the transaction to ``delayed``."""
    def _op():
        tx = resolve_transaction(ref)
        _require_open(tx)
        tx.delays.append(TransactionDelay(
            reason=reason,
            location=location,
            reported_at=utcnow(),
            estimated_resolution=estimated_resolution,
            status="active",
        ))
        _append_event(
            tx,
            status=TransactionStatus.DELAYED,
            address=location or tx.current_location_address,
            notes=f"Delay reported: {reason}",
            handled_by_user_id=actor.id,
        )
        db.session.flush()
        return tx

    return run_atomic(_op, operation="report delay", reference=ref)


def resolve_delay(ref, delay_id: int, *, actor: Actor) -> Transaction:
    """Mark a delay resolved. The transaction status is left to the next update."""
    def _op():
        tx = resolve_transaction(ref)
        delay = next((d for d in tx.delays if d.id == delay_id), None)
        if delay is None:
            raise NotFound("Delay", delay_id)
        if delay.status == "resolved":
            raise TransactionError(f"Delay {delay_id} is already resolved")
        delay.status = "resolved"
        delay.resolved_at = utcnow()
        db.session.flush()
        return tx

    tx = run_atomic(_op, operation="resolve delay", reference=ref)
    logger.info("Delay %s on %s resolved by user %s", delay_id, tx.transaction_id, actor.id)
    return tx


def list_transactions(
    *,
    product_id: int | None = None,
    user_id: int | None = None,
    status: str | None = None,
    limit: int = 200,
) -> list[Transaction]:
    """Newest first. ``user_id`` matches either side of the movement."""
    q = db.session.query(Transaction)
    if product_id is not None:
        q = q.filter(Transaction.product_id == product_id)
    if user_id is not None:
        q = q.filter((Transaction.from_user_id == user_id) | (Transaction.to_user_id == user_id))
    if status:
        q = q.filter(Transaction.status == status)
    return q.order_by(Transaction.created_at.desc(), Transaction.id.desc()).limit(limit).all()


def product_transaction_summaries(product: Product) -> list[dict]:
    return [tx.to_summary() for tx in list_transactions(product_id=product.id)]
