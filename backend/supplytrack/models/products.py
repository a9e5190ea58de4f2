from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Product(db.Model):
    """
    A tracked product instance or batch.

    TRACKING NUMBER: the human-facing unique identity. Routes accept either the
    numeric id or the tracking number (see products_service.resolve_product).

    LIFECYCLE FIELDS:
    status, current_owner_id, current_location and the timeline are written
    only by the lifecycle services (product_lifecycle_service, transfer_service).
    Detail edits go through products_service.update_product_details, which
    refuses these fields.

    CONCURRENCY:
    version_id is the ORM version counter. Every UPDATE is conditional on the
    version that was read, so a concurrent writer gets StaleDataError instead
    of silently overwriting the other request's transition.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_products_quantity_nonnegative"),
        db.CheckConstraint("price_cents >= 0", name="ck_products_price_nonnegative"),
        db.Index("ix_products_category_status", "category", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tracking_number = db.Column(db.String(64), nullable=False, unique=True, index=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(64), nullable=False, index=True)
    sub_category = db.Column(db.String(128), nullable=True)

    # Free-form: material, size, grade, dimensions, mechanicalProperties, ...
    specifications = db.Column(db.JSON, nullable=False, default=dict)

    manufacturer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    current_owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    current_location = db.Column(db.String(255), nullable=False)

    status = db.Column(db.String(32), nullable=False, default="manufactured", index=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    # Authoritative storage in cents
    price_cents = db.Column(db.Integer, nullable=False, default=0)

    batch_number = db.Column(db.String(64), nullable=True, index=True)
    manufacturing_date = db.Column(db.DateTime(timezone=True), nullable=True)
    expiry_date = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    manufacturer = db.relationship("User", foreign_keys=[manufacturer_id])
    current_owner = db.relationship("User", foreign_keys=[current_owner_id])
    timeline = db.relationship(
        "ProductTimelineEntry",
        back_populates="product",
        order_by="ProductTimelineEntry.position",
        cascade="all, delete-orphan",
        lazy="select",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} tracking_number={self.tracking_number!r} status={self.status!r}>"

    def to_dict(self, *, include_timeline: bool = True, transactions: list[dict] | None = None) -> dict:
        data = {
            "id": self.id,
            "tracking_number": self.tracking_number,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "sub_category": self.sub_category,
            "specifications": self.specifications or {},
            "manufacturer_id": self.manufacturer_id,
            "manufacturer": self.manufacturer.display_name if self.manufacturer else None,
            "current_owner_id": self.current_owner_id,
            "current_owner": self.current_owner.display_name if self.current_owner else None,
            "current_location": self.current_location,
            "status": self.status,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "batch_number": self.batch_number,
            "manufacturing_date": to_utc_z(self.manufacturing_date),
            "expiry_date": to_utc_z(self.expiry_date),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_timeline:
            data["timeline"] = [entry.to_dict() for entry in self.timeline]
        if transactions is not None:
            data["transactions"] = transactions
        return data


class ProductTimelineEntry(db.Model):
    """
    Append-only audit record of one lifecycle event on a product.

    position is a per-product sequence (1, 2, 3, ...). The unique constraint
    means two writers racing to append at the same position cannot both
    commit; insertion order is chronological order.
    """
    __tablename__ = "product_timeline_entries"
    __table_args__ = (
        db.UniqueConstraint("product_id", "position", name="uq_product_timeline_position"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(32), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    location = db.Column(db.String(255), nullable=True)
    handler_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    description = db.Column(db.Text, nullable=True)
    entry_metadata = db.Column("metadata", db.JSON, nullable=True)

    product = db.relationship("Product", back_populates="timeline")
    handler = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "position": self.position,
            "status": self.status,
            "title": self.title,
            "date": to_utc_z(self.occurred_at),
            "location": self.location,
            "handler_id": self.handler_user_id,
            "handler": self.handler.display_name if self.handler else "System",
            "description": self.description,
            "metadata": self.entry_metadata,
        }
