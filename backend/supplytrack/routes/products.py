# Overview: Flask API routes for products and their lifecycle; parses input and returns JSON responses.

# backend/supplytrack/routes/products.py
"""
Product routes.

<ref> accepts the tracking number or the numeric product id; a matching
tracking number wins. /track/<tracking_number> matches tracking numbers only.

SECURITY: All routes require authentication. Role allowlists per route:
- create:          manufacturer, supplier, admin
- edit details:    supplier, admin
- change status:   supplier, distributor, quality-inspector, admin
                   (the transition table decides the rest)
- quality check:   supplier, quality-inspector, admin
- transfer:        supplier, distributor, admin
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_role
from ..domain import Role
from ..models import Product
from ..services import ledger_service, product_lifecycle_service, products_service, transfer_service
from ..services.errors import SupplyChainError
from ..services.transition_rules import STATUS_CHANGE_ROLES
from ..services.transfer_service import TRANSFER_ROLES
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    coerce_int,
    enforce_rules_product,
    optional_text,
    require_text,
    validate_payload,
)

PRODUCT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "tracking_number", "name", "description", "category", "sub_category",
        "specifications", "current_location", "quantity", "price_cents",
        "batch_number", "manufacturing_date", "expiry_date",
    }),
    required_on_create=frozenset({"name", "category", "current_location", "quantity", "price_cents"}),
)

PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=products_service.DETAIL_FIELDS,
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _page_args() -> tuple[int, int]:
    default = current_app.config.get("DEFAULT_PAGE_SIZE", 10)
    maximum = current_app.config.get("MAX_PAGE_SIZE", 100)
    page = request.args.get("page", default=1, type=int) or 1
    per_page = request.args.get("per_page", default=default, type=int) or default
    if page < 1:
        raise ValidationError("page must be >= 1")
    return page, max(1, min(per_page, maximum))


@products_bp.get("")
@require_auth
def list_products_route():
    """
    List products visible to the caller's role.

    Query params: category, sub_category, status (admin / inspector only),
    page, per_page.
    """
    try:
        page, per_page = _page_args()
        result = products_service.list_products(
            actor=g.actor,
            category=request.args.get("category"),
            sub_category=request.args.get("sub_category"),
            status=request.args.get("status"),
            page=page,
            per_page=per_page,
        )
        return jsonify(result), 200
    except SupplyChainError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to list products")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("")
@require_auth
@require_role(Role.MANUFACTURER, Role.SUPPLIER, Role.ADMIN)
def create_product_route():
    """
    Create a product owned by the caller.

    Manufacturers create products at 'manufactured'; suppliers and admins
    register products that start at 'in-supply'.
    """
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_CREATE_POLICY, partial=False)
        enforce_rules_product(patch)
        product = products_service.create_product(actor=g.actor, patch=patch)
        return jsonify(product.to_dict()), 201
    except SupplyChainError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/categories")
@require_auth
def product_categories_route():
    """Product counts per category and sub-category."""
    try:
        return jsonify(products_service.category_summary()), 200
    except Exception:
        current_app.logger.exception("Failed to load product categories")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/materials")
@require_auth
def product_materials_route():
    """Distinct specifications.material values."""
    try:
        return jsonify(products_service.list_materials()), 200
    except Exception:
        current_app.logger.exception("Failed to load product materials")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/track/<tracking_number>")
@require_auth
def track_product_route(tracking_number: str):
    """Public-facing tracking view: product, timeline and ledger summaries."""
    try:
        product = products_service.resolve_by_tracking_number(tracking_number)
        summaries = ledger_service.product_transaction_summaries(product)
        return jsonify(product.to_dict(transactions=summaries)), 200
    except SupplyChainError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to track product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<ref>")
@require_auth
def get_product_route(ref: str):
    try:
        product = products_service.get_product(ref)
        return jsonify(product.to_dict()), 200
    except SupplyChainError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to load product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<ref>/timeline")
@require_auth
def product_timeline_route(ref: str):
    try:
        entries = products_service.get_timeline(ref)
        return jsonify([entry.to_dict() for entry in entries]), 200
    except SupplyChainError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to load product timeline")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<ref>/transactions")
@require_auth
def product_transactions_route(ref: str):
    try:
        product = products_service.resolve_product(ref)
        return jsonify(ledger_service.product_transaction_summaries(product)), 200
    except SupplyChainError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to load product transactions")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.patch("/<ref>")
@require_auth
@require_role(Role.SUPPLIER, Role.ADMIN)
def update_product_route(ref: str):
    """
    Edit descriptive fields. status, timeline, manufacturer and owner are
    rejected with 400.
    """
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
        enforce_rules_product(patch)
        product = products_service.update_product_details(ref, patch=patch)
        return jsonify(product.to_dict()), 200
    except SupplyChainError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.patch("/<ref>/status")
@require_auth
@require_role(*STATUS_CHANGE_ROLES)
def change_status_route(ref: str):
    """
    Move a product to a new lifecycle status.

    Request body:
    {
        "status": str,
        "location": str,
        "notes": str (optional),
        "expected_version": int (optional)
    }

    Returns:
        200: Updated product
        400: Invalid request
        403: Role may not make this transition (role/from/to in body)
        404: Product not found
        409: Product changed concurrently
    """
    data = request.get_json(silent=True) or {}
    try:
        status = require_text(data, "status", max_length=32)
        location = require_text(data, "location")
        notes = optional_text(data, "notes")
        expected_version = data.get("expected_version")
        if expected_version is not None:
            expected_version = coerce_int("expected_version", expected_version)

        product = product_lifecycle_service.change_status(
            ref,
            actor=g.actor,
            requested_status=status,
            location=location,
            notes=notes,
            expected_version=expected_version,
        )
        return jsonify(product.to_dict()), 200
    except SupplyChainError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to change product status")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("/<ref>/quality-check")
@require_auth
@require_role(Role.SUPPLIER, Role.QUALITY_INSPECTOR, Role.ADMIN)
def quality_check_route(ref: str):
    """
    Automated quality-check pass; the product moves to in-supply.

    Request body (optional): {"notes": str, "check_details": object}
    """
    data = request.get_json(silent=True) or {}
    try:
        check_details = data.get("check_details")
        if check_details is not None and not isinstance(check_details, dict):
            raise ValidationError("check_details must be an object")
        product = product_lifecycle_service.quality_check_pass(
            ref,
            actor=g.actor,
            notes=optional_text(data, "notes"),
            check_details=check_details,
        )
        return jsonify(product.to_dict()), 200
    except SupplyChainError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to record quality check")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("/<ref>/transfer")
@require_auth
@require_role(*TRANSFER_ROLES)
def transfer_route(ref: str):
    """
    Transfer ownership to another identity.

    Request body:
    {
        "destination_user_id": int,
        "location": str,
        "notes": str (optional)
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        if data.get("destination_user_id") is None:
            raise ValidationError("destination_user_id is required")
        destination_user_id = coerce_int("destination_user_id", data["destination_user_id"])
        product = transfer_service.transfer_ownership(
            ref,
            actor=g.actor,
            destination_user_id=destination_user_id,
            location=require_text(data, "location"),
            notes=optional_text(data, "notes"),
        )
        return jsonify(product.to_dict()), 200
    except SupplyChainError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to transfer product")
        return jsonify({"error": "Internal server error"}), 500
