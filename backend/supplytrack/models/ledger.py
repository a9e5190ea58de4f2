from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Transaction(db.Model):
    """
    Ledger entry: one product movement between two identities.

    Not a database transaction. Rows are created once by ledger_service and
    afterwards only gain timeline entries and delay records; the top-level
    status always mirrors the newest timeline entry.

    total_amount_cents is quantity x unit price at creation time and is never
    recomputed.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_transactions_quantity_positive"),
        db.Index("ix_transactions_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.String(64), nullable=False, unique=True, index=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    product_tracking_number = db.Column(db.String(64), nullable=False, index=True)

    from_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    to_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(32), nullable=False, default="pending", index=True)

    # What caused the movement: a product status, "transfer" or "sale"
    label = db.Column(db.String(32), nullable=False)

    total_amount_cents = db.Column(db.Integer, nullable=False)
    payment_status = db.Column(db.String(32), nullable=False, default="pending")

    # Shipment details
    carrier = db.Column(db.String(128), nullable=False, default="Internal")
    shipment_tracking_number = db.Column(db.String(64), nullable=False)
    origin_address = db.Column(db.String(255), nullable=False)
    origin_coordinates = db.Column(db.JSON, nullable=False, default=lambda: [0, 0])
    destination_address = db.Column(db.String(255), nullable=False)
    destination_coordinates = db.Column(db.JSON, nullable=False, default=lambda: [0, 0])
    current_location_address = db.Column(db.String(255), nullable=True)
    current_location_updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    estimated_delivery = db.Column(db.DateTime(timezone=True), nullable=True)
    actual_delivery = db.Column(db.DateTime(timezone=True), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product", backref=db.backref("ledger_transactions", lazy="dynamic"))
    from_user = db.relationship("User", foreign_keys=[from_user_id])
    to_user = db.relationship("User", foreign_keys=[to_user_id])
    timeline = db.relationship(
        "TransactionTimelineEntry",
        back_populates="transaction",
        order_by="TransactionTimelineEntry.position",
        cascade="all, delete-orphan",
    )
    delays = db.relationship(
        "TransactionDelay",
        back_populates="transaction",
        order_by="TransactionDelay.id",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Transaction {self.transaction_id} product_id={self.product_id} status={self.status!r}>"

    def to_summary(self) -> dict:
        """Lightweight shape embedded in product responses."""
        return {
            "id": self.transaction_id,
            "date": to_utc_z(self.created_at),
            "from": self.from_user.display_name if self.from_user else None,
            "to": self.to_user.display_name if self.to_user else None,
            "quantity": self.quantity,
            "status": self.status,
            "type": self.label,
            "amount_cents": self.total_amount_cents,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "product_id": self.product_id,
            "product_tracking_number": self.product_tracking_number,
            "from_user_id": self.from_user_id,
            "to_user_id": self.to_user_id,
            "quantity": self.quantity,
            "status": self.status,
            "label": self.label,
            "total_amount_cents": self.total_amount_cents,
            "payment_status": self.payment_status,
            "shipment_details": {
                "carrier": self.carrier,
                "tracking_number": self.shipment_tracking_number,
                "origin": {
                    "address": self.origin_address,
                    "coordinates": self.origin_coordinates,
                },
                "destination": {
                    "address": self.destination_address,
                    "coordinates": self.destination_coordinates,
                },
                "current_location": {
                    "address": self.current_location_address,
                    "updated_at": to_utc_z(self.current_location_updated_at),
                },
                "estimated_delivery": to_utc_z(self.estimated_delivery),
                "actual_delivery": to_utc_z(self.actual_delivery),
                "delays": [d.to_dict() for d in self.delays],
            },
            "timeline": [entry.to_dict() for entry in self.timeline],
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class TransactionTimelineEntry(db.Model):
    __tablename__ = "transaction_timeline_entries"
    __table_args__ = (
        db.UniqueConstraint("transaction_pk", "position", name="uq_transaction_timeline_position"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_pk = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(32), nullable=False)
    location_address = db.Column(db.String(255), nullable=True)
    location_coordinates = db.Column(db.JSON, nullable=False, default=lambda: [0, 0])
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    notes = db.Column(db.Text, nullable=True)
    handled_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    transaction = db.relationship("Transaction", back_populates="timeline")
    handled_by = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "position": self.position,
            "status": self.status,
            "location": {
                "address": self.location_address,
                "coordinates": self.location_coordinates,
            },
            "timestamp": to_utc_z(self.occurred_at),
            "notes": self.notes,
            "handled_by": {
                "user_id": self.handled_by_user_id,
                "name": self.handled_by.display_name,
                "role": self.handled_by.role,
            } if self.handled_by else None,
        }


class TransactionDelay(db.Model):
    __tablename__ = "transaction_delays"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    transaction_pk = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)

    reason = db.Column(db.String(255), nullable=False)
    location = db.Column(db.String(255), nullable=True)
    reported_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    estimated_resolution = db.Column(db.DateTime(timezone=True), nullable=True)
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    # active | resolved
    status = db.Column(db.String(16), nullable=False, default="active")

    transaction = db.relationship("Transaction", back_populates="delays")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "reason": self.reason,
            "location": self.location,
            "reported_at": to_utc_z(self.reported_at),
            "estimated_resolution": to_utc_z(self.estimated_resolution),
            "resolved_at": to_utc_z(self.resolved_at),
            "status": self.status,
        }
