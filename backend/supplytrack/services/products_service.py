# Overview: Service-layer operations for the product catalogue; lookup, creation, reads, detail edits.

from __future__ import annotations

import logging
import secrets
import string
import time

from ..domain import CATEGORY_PREFIXES, Actor, ProductCategory, ProductStatus, Role
from ..extensions import db
from ..models import Product, ProductTimelineEntry, User
from ..time_utils import utcnow
from .concurrency import lock_for_update, run_atomic
from .errors import ConflictError, NotFound

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_uppercase

# Status each role may see when listing; roles not listed see everything
ROLE_VISIBLE_STATUS = {
    Role.DISTRIBUTOR: ProductStatus.IN_DISTRIBUTION,
    Role.SUPPLIER: ProductStatus.IN_SUPPLY,
    Role.CUSTOMER: ProductStatus.DELIVERED,
    Role.MANUFACTURER: ProductStatus.MANUFACTURED,
}

# Fields a detail edit may touch. Lifecycle fields are never in this set.
DETAIL_FIELDS = frozenset({
    "name", "description", "sub_category", "specifications", "current_location",
    "quantity", "price_cents", "batch_number", "manufacturing_date", "expiry_date",
})


def _base36(n: int) -> str:
    out = ""
    while n:
        n, r = divmod(n, 36)
        out = _BASE36[r] + out
    return out or "0"


def generate_tracking_number(category: str | None = None) -> str:
    """
    ``<PREFIX>-<base36 millis>-<5 random base36 chars>``.

    PREFIX comes from the category (FAS, TLS, IND, HRD) or TRK otherwise.
    """
    prefix = "TRK"
    parsed = None
    if category is not None:
        try:
            parsed = ProductCategory(category)
        except ValueError:
            parsed = None
    if parsed is not None:
        prefix = CATEGORY_PREFIXES[parsed]
    suffix = "".join(secrets.choice(_BASE36) for _ in range(5))
    return f"{prefix}-{_base36(int(time.time() * 1000))}-{suffix}"


def _first(q, lock: bool):
    if lock:
        q = lock_for_update(q)
    return q.first()


def resolve_product(ref, *, lock: bool = False) -> Product:
    """
    Load a product by tracking number or numeric id.

    A string is matched against tracking numbers first; only an all-digit
    string with no such tracking number falls back to the id.

    Raises:
        NotFound: no product matches ``ref``
    """
    product = None
    if isinstance(ref, str):
        product = _first(db.session.query(Product).filter(Product.tracking_number == ref), lock)
    if product is None and (
        (isinstance(ref, int) and not isinstance(ref, bool)) or (isinstance(ref, str) and ref.isdigit())
    ):
        product = _first(db.session.query(Product).filter(Product.id == int(ref)), lock)
    if product is None:
        raise NotFound("Product", ref)
    return product


def resolve_by_tracking_number(tracking_number: str) -> Product:
    """Strict tracking-number lookup; never interprets the value as an id."""
    product = db.session.query(Product).filter(Product.tracking_number == tracking_number).first()
    if product is None:
        raise NotFound("Product", tracking_number)
    return product


def resolve_user(user_id) -> User:
    user = None
    if isinstance(user_id, int) and not isinstance(user_id, bool):
        user = db.session.get(User, user_id)
    elif isinstance(user_id, str) and user_id.isdigit():
        user = db.session.get(User, int(user_id))
    if user is None or not user.is_active:
        raise NotFound("User", user_id)
    return user


def touch(product: Product) -> None:
    """Mark the product row dirty so the version counter always advances."""
    product.updated_at = utcnow()


def append_timeline_entry(
    product: Product,
    *,
    status: str,
    title: str,
    location: str | None,
    handler_user_id: int | None,
    description: str | None,
    metadata: dict | None = None,
) -> ProductTimelineEntry:
    """
    Append one entry at the next position. Existing entries are never
    touched.
    """
    position = len(product.timeline) + 1
    entry = ProductTimelineEntry(
        position=position,
        status=getattr(status, "value", status),
        title=title,
        occurred_at=utcnow(),
        location=location,
        handler_user_id=handler_user_id,
        description=description,
        entry_metadata=metadata,
    )
    product.timeline.append(entry)
    return entry


def create_product(*, actor: Actor, patch: dict) -> Product:
    """
    Create a product owned and manufactured by ``actor``.

    Manufacturers start products at ``manufactured``. Suppliers and admins
    register stock that has already cleared the automated check, so the
    product starts at ``in-supply`` with both entries on its timeline.

    ``patch`` is a validated payload (see validation.validate_payload).
    """
    def _op():
        tracking_number = patch.get("tracking_number") or generate_tracking_number(patch.get("category"))
        exists = db.session.query(Product.id).filter_by(tracking_number=tracking_number).first()
        if exists:
            raise ConflictError(f"Tracking number {tracking_number} already exists")

        resolve_user(actor.id)
        fields = {k: v for k, v in patch.items() if k != "tracking_number"}
        product = Product(
            tracking_number=tracking_number,
            manufacturer_id=actor.id,
            current_owner_id=actor.id,
            status=ProductStatus.MANUFACTURED.value,
            **fields,
        )
        if product.specifications is None:
            product.specifications = {}
        db.session.add(product)

        append_timeline_entry(
            product,
            status=ProductStatus.MANUFACTURED,
            title="Product Manufactured",
            location=product.current_location,
            handler_user_id=actor.id,
            description="Product added to inventory",
        )
        if actor.role != Role.MANUFACTURER:
            product.status = ProductStatus.IN_SUPPLY.value
            append_timeline_entry(
                product,
                status=ProductStatus.IN_SUPPLY,
                title="Quality Check Passed",
                location=product.current_location,
                handler_user_id=actor.id,
                description="Product passed automated quality check",
                metadata={"automated": True},
            )
        db.session.flush()
        return product

    product = run_atomic(_op, operation="create product", reference=patch.get("tracking_number"))
    logger.info("Product %s created by user %s with status %s", product.tracking_number, actor.id, product.status)
    return product


def get_product(ref) -> Product:
    return resolve_product(ref)


def get_timeline(ref) -> list[ProductTimelineEntry]:
    return list(resolve_product(ref).timeline)


def category_summary() -> list[dict]:
    """
    Product counts per category, broken down by sub-category.

    Returns:
        [{"category": str, "total_count": int,
          "sub_categories": [{"name": str | None, "count": int}, ...]}, ...]
    """
    rows = (
        db.session.query(Product.category, Product.sub_category, db.func.count(Product.id))
        .group_by(Product.category, Product.sub_category)
        .order_by(Product.category.asc(), Product.sub_category.asc())
        .all()
    )

    summary: dict[str, dict] = {}
    for category, sub_category, count in rows:
        entry = summary.setdefault(category, {"category": category, "total_count": 0, "sub_categories": []})
        entry["sub_categories"].append({"name": sub_category, "count": count})
        entry["total_count"] += count
    return list(summary.values())


def list_materials() -> list[str]:
    material = Product.specifications["material"].as_string()
    rows = db.session.query(material).filter(material.isnot(None)).distinct().all()
    return sorted({value for (value,) in rows if value})


def list_products(
    *,
    actor: Actor,
    category: str | None = None,
    sub_category: str | None = None,
    status: str | None = None,
    page: int = 1,
    per_page: int = 10,
) -> dict:
    """
    List products visible to ``actor``, newest first.

    Role-scoped visibility: distributors see in-distribution, suppliers
    in-supply, customers delivered, manufacturers manufactured. Admins and
    inspectors see everything and may filter by ``status``.
    """
    q = db.session.query(Product)

    visible = ROLE_VISIBLE_STATUS.get(actor.role)
    if visible is not None:
        q = q.filter(Product.status == visible.value)
    elif status:
        q = q.filter(Product.status == status)

    if category:
        q = q.filter(Product.category == category)
    if sub_category:
        q = q.filter(Product.sub_category == sub_category)

    total = q.count()
    items = (
        q.order_by(Product.created_at.desc(), Product.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return {
        "items": [p.to_dict(include_timeline=False) for p in items],
        "pagination": {
            "total": total,
            "page": page,
            "per_page": per_page,
            "pages": (total + per_page - 1) // per_page,
        },
    }


def update_product_details(ref, *, patch: dict) -> Product:
    """
    Edit descriptive fields. Status, owner, manufacturer and timeline are
    not editable here; the lifecycle services own them.
    """
    illegal = sorted(set(patch) - DETAIL_FIELDS)
    if illegal:
        raise ConflictError(f"Fields cannot be edited directly: {', '.join(illegal)}")

    def _op():
        product = resolve_product(ref, lock=True)
        for key, value in patch.items():
            setattr(product, key, value)
        touch(product)
        db.session.flush()
        return product

    return run_atomic(_op, operation="update product", reference=ref)
