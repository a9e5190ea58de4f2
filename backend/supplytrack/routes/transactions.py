# Overview: Flask API routes for ledger transactions; parses input and returns JSON responses.

# backend/supplytrack/routes/transactions.py
"""Ledger transaction routes. <ref> accepts the numeric id or the transaction id."""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..services import ledger_service
from ..services.errors import SupplyChainError
from ..time_utils import parse_iso_datetime
from ..validation import ValidationError, coerce_int, optional_text, require_text

transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


@transactions_bp.get("")
@require_auth
def list_transactions_route():
    """
    Query params: product_id, user_id, status, limit (default 200, max 500)
    """
    try:
        limit = request.args.get("limit", default=200, type=int) or 200
        limit = max(1, min(limit, 500))
        txs = ledger_service.list_transactions(
            product_id=request.args.get("product_id", type=int),
            user_id=request.args.get("user_id", type=int),
            status=request.args.get("status"),
            limit=limit,
        )
        return jsonify([tx.to_dict() for tx in txs]), 200
    except SupplyChainError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to list transactions")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.post("")
@require_auth
def create_transaction_route():
    """
    Create a sale/shipment from the caller to another identity.

    Request body:
    {
        "product_id": int | str (id or tracking number),
        "to_user_id": int,
        "quantity": int,
        "shipment_details": {
            "carrier": str,
            "tracking_number": str,
            "estimated_delivery": ISO-8601,
            "destination": {"address": str, "coordinates": [lon, lat]}
        } (optional)
    }

    Returns:
        201: Transaction created; product quantity decremented
        400: Invalid request or insufficient quantity
        404: Product or recipient not found
    """
    data = request.get_json(silent=True) or {}
    try:
        for key in ("product_id", "to_user_id", "quantity"):
            if data.get(key) is None:
                raise ValidationError(f"{key} is required")

        tx = ledger_service.create_transaction(
            data["product_id"],
            actor=g.actor,
            to_user_id=coerce_int("to_user_id", data["to_user_id"]),
            quantity=coerce_int("quantity", data["quantity"]),
            shipment_details=data.get("shipment_details"),
        )
        return jsonify(tx.to_dict()), 201
    except SupplyChainError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.get("/<ref>")
@require_auth
def get_transaction_route(ref: str):
    try:
        return jsonify(ledger_service.resolve_transaction(ref).to_dict()), 200
    except SupplyChainError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to load transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.patch("/<ref>/status")
@require_auth
def update_transaction_status_route(ref: str):
    """
    Request body: {"status": str, "location": str (optional), "notes": str (optional)}
    """
    data = request.get_json(silent=True) or {}
    try:
        tx = ledger_service.update_transaction_status(
            ref,
            actor=g.actor,
            status=require_text(data, "status", max_length=32),
            location=optional_text(data, "location", max_length=255),
            notes=optional_text(data, "notes"),
        )
        return jsonify(tx.to_dict()), 200
    except SupplyChainError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update transaction status")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.post("/<ref>/delays")
@require_auth
def report_delay_route(ref: str):
    """
    Request body: {"reason": str, "location": str (optional), "estimated_resolution": ISO-8601 (optional)}
    """
    data = request.get_json(silent=True) or {}
    try:
        estimated_resolution = None
        if data.get("estimated_resolution"):
            try:
                estimated_resolution = parse_iso_datetime(data["estimated_resolution"])
            except (TypeError, ValueError, AttributeError):
                raise ValidationError("estimated_resolution must be an ISO-8601 datetime")

        tx = ledger_service.report_delay(
            ref,
            actor=g.actor,
            reason=require_text(data, "reason"),
            location=optional_text(data, "location", max_length=255),
            estimated_resolution=estimated_resolution,
        )
        return jsonify(tx.to_dict()), 201
    except SupplyChainError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to report delay")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.post("/<ref>/delays/<int:delay_id>/resolve")
@require_auth
def resolve_delay_route(ref: str, delay_id: int):
    try:
        tx = ledger_service.resolve_delay(ref, delay_id, actor=g.actor)
        return jsonify(tx.to_dict()), 200
    except SupplyChainError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to resolve delay")
        return jsonify({"error": "Internal server error"}), 500
