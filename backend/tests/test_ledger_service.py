"""
Ledger tests: explicit sales/shipments, status updates and delays.
"""

from datetime import datetime

import pytest

from supplytrack.domain import ProductStatus as S, Role
from supplytrack.extensions import db
from supplytrack.models import Product, Transaction
from supplytrack.services import ledger_service, product_lifecycle_service
from supplytrack.services.errors import InsufficientQuantity, NotFound, TransactionError
from supplytrack.validation import ValidationError


@pytest.fixture
def stocked(make_product, users):
    return make_product(status=S.IN_SUPPLY, owner=users[Role.SUPPLIER], quantity=10, price_cents=1250)


class TestCreateTransaction:

    def test_decrements_quantity_and_prices_by_quantity(self, stocked, users, actors):
        tx = ledger_service.create_transaction(
            stocked.id,
            actor=actors[Role.SUPPLIER],
            to_user_id=users[Role.CUSTOMER].id,
            quantity=4,
        )

        assert tx.transaction_id.startswith("TXN-")
        assert tx.quantity == 4
        assert tx.total_amount_cents == 5000
        assert tx.label == "sale"
        assert tx.status == "processing"
        assert tx.payment_status == "pending"
        assert tx.from_user_id == users[Role.SUPPLIER].id
        assert tx.to_user_id == users[Role.CUSTOMER].id
        assert [e.notes for e in tx.timeline] == ["Transaction initiated"]
        assert db.session.get(Product, stocked.id).quantity == 6

    def test_insufficient_quantity_leaves_product_unchanged(self, make_product, users, actors):
        product = make_product(status=S.IN_SUPPLY, quantity=3)

        with pytest.raises(InsufficientQuantity) as exc_info:
            ledger_service.create_transaction(
                product.id,
                actor=actors[Role.SUPPLIER],
                to_user_id=users[Role.CUSTOMER].id,
                quantity=5,
            )

        assert exc_info.value.requested == 5
        assert exc_info.value.available == 3
        db.session.expire_all()
        assert db.session.get(Product, product.id).quantity == 3
        assert db.session.query(Transaction).count() == 0

    def test_exact_stock_can_be_sold(self, stocked, users, actors):
        ledger_service.create_transaction(
            stocked.tracking_number, actor=actors[Role.SUPPLIER], to_user_id=users[Role.CUSTOMER].id, quantity=10,
        )
        assert db.session.get(Product, stocked.id).quantity == 0

    @pytest.mark.parametrize("quantity", [0, -1, True, 1.5, "2"])
    def test_quantity_must_be_positive_integer(self, stocked, users, actors, quantity):
        with pytest.raises(ValidationError):
            ledger_service.create_transaction(
                stocked.id, actor=actors[Role.SUPPLIER], to_user_id=users[Role.CUSTOMER].id, quantity=quantity,
            )

    def test_unknown_recipient(self, stocked, actors):
        with pytest.raises(NotFound):
            ledger_service.create_transaction(stocked.id, actor=actors[Role.SUPPLIER], to_user_id=9999, quantity=1)

    def test_inactive_recipient(self, stocked, make_user, actors):
        gone = make_user(Role.CUSTOMER, is_active=False)
        with pytest.raises(NotFound):
            ledger_service.create_transaction(stocked.id, actor=actors[Role.SUPPLIER], to_user_id=gone.id, quantity=1)

    def test_shipment_details(self, stocked, users, actors):
        tx = ledger_service.create_transaction(
            stocked.id,
            actor=actors[Role.SUPPLIER],
            to_user_id=users[Role.CUSTOMER].id,
            quantity=1,
            shipment_details={
                "carrier": "FastFreight",
                "tracking_number": "FF-123",
                "estimated_delivery": "2030-01-02T03:04:05Z",
                "destination": {"address": "1 Main St", "coordinates": [-73.9, 40.7]},
            },
        )
        assert tx.carrier == "FastFreight"
        assert tx.shipment_tracking_number == "FF-123"
        assert tx.estimated_delivery == datetime(2030, 1, 2, 3, 4, 5)
        assert tx.destination_address == "1 Main St"
        assert tx.destination_coordinates == [-73.9, 40.7]
        assert tx.origin_address == stocked.current_location

    def test_bad_estimated_delivery(self, stocked, users, actors):
        with pytest.raises(ValidationError):
            ledger_service.create_transaction(
                stocked.id,
                actor=actors[Role.SUPPLIER],
                to_user_id=users[Role.CUSTOMER].id,
                quantity=1,
                shipment_details={"estimated_delivery": "next tuesday"},
            )
        db.session.expire_all()
        assert db.session.get(Product, stocked.id).quantity == 10


    @pytest.mark.parametrize("destination", ["NYC", {"coordinates": "abc"}, {"coordinates": [1, 2, 3]}])
    def test_malformed_destination(self, stocked, users, actors, destination):
        with pytest.raises(ValidationError):
            ledger_service.create_transaction(
                stocked.id,
                actor=actors[Role.SUPPLIER],
                to_user_id=users[Role.CUSTOMER].id,
                quantity=1,
                shipment_details={"destination": destination},
            )
        db.session.expire_all()
        assert db.session.get(Product, stocked.id).quantity == 10
        assert db.session.query(Transaction).count() == 0

    def test_destination_defaults_to_origin(self, stocked, users, actors):
        tx = ledger_service.create_transaction(
            stocked.id, actor=actors[Role.SUPPLIER], to_user_id=users[Role.CUSTOMER].id, quantity=1,
        )
        assert tx.destination_address == stocked.current_location
        assert tx.destination_coordinates == [0, 0]


class TestTransactionStatus:

    @pytest.fixture
    def tx(self, stocked, users, actors):
        return ledger_service.create_transaction(
            stocked.id, actor=actors[Role.SUPPLIER], to_user_id=users[Role.CUSTOMER].id, quantity=2,
        )

    def test_status_follows_newest_entry(self, tx, actors):
        updated = ledger_service.update_transaction_status(
            tx.transaction_id, actor=actors[Role.DISTRIBUTOR], status="in-transit", location="I-95",
        )
        assert updated.status == "in-transit"
        assert updated.timeline[-1].status == "in-transit"
        assert updated.timeline[-1].location_address == "I-95"
        assert updated.current_location_address == "I-95"
        assert [e.position for e in updated.timeline] == [1, 2]

    def test_completed_stamps_delivery_and_closes(self, tx, actors):
        updated = ledger_service.update_transaction_status(tx.id, actor=actors[Role.ADMIN], status="completed")
        assert updated.actual_delivery is not None

        with pytest.raises(TransactionError):
            ledger_service.update_transaction_status(tx.id, actor=actors[Role.ADMIN], status="in-transit")

    def test_cancelled_is_closed(self, tx, actors):
        ledger_service.update_transaction_status(tx.id, actor=actors[Role.ADMIN], status="cancelled")
        with pytest.raises(TransactionError):
            ledger_service.report_delay(tx.id, actor=actors[Role.ADMIN], reason="Storm")

    def test_unknown_status(self, tx, actors):
        with pytest.raises(ValidationError):
            ledger_service.update_transaction_status(tx.id, actor=actors[Role.ADMIN], status="teleported")

    def test_missing_transaction(self, actors):
        with pytest.raises(NotFound):
            ledger_service.update_transaction_status("TXN-NOPE", actor=actors[Role.ADMIN], status="in-transit")


class TestDelays:

    @pytest.fixture
    def tx(self, stocked, users, actors):
        return ledger_service.create_transaction(
            stocked.id, actor=actors[Role.SUPPLIER], to_user_id=users[Role.CUSTOMER].id, quantity=1,
        )

    def test_report_and_resolve(self, tx, actors):
        delayed = ledger_service.report_delay(
            tx.id,
            actor=actors[Role.DISTRIBUTOR],
            reason="Weather",
            location="Denver",
            estimated_resolution=datetime(2030, 1, 1),
        )
        assert delayed.status == "delayed"
        assert len(delayed.delays) == 1
        delay = delayed.delays[0]
        assert delay.status == "active"
        assert delay.location == "Denver"

        resolved = ledger_service.resolve_delay(tx.id, delay.id, actor=actors[Role.DISTRIBUTOR])
        assert resolved.delays[0].status == "resolved"
        assert resolved.delays[0].resolved_at is not None
        assert resolved.status == "delayed"

        with pytest.raises(TransactionError):
            ledger_service.resolve_delay(tx.id, delay.id, actor=actors[Role.DISTRIBUTOR])

    def test_resolve_unknown_delay(self, tx, actors):
        with pytest.raises(NotFound):
            ledger_service.resolve_delay(tx.id, 12345, actor=actors[Role.ADMIN])


class TestQueries:

    def test_summaries_newest_first(self, make_product, users, actors):
        product = make_product(status=S.MANUFACTURED, price_cents=700)
        product_lifecycle_service.change_status(
            product.id, actor=actors[Role.SUPPLIER], requested_status="in-supply", location="Warehouse A",
        )
        product_lifecycle_service.change_status(
            product.id, actor=actors[Role.DISTRIBUTOR], requested_status="in-distribution", location="DC-NY",
        )

        summaries = ledger_service.product_transaction_summaries(db.session.get(Product, product.id))
        assert [s["type"] for s in summaries] == ["in-distribution", "in-supply"]
        assert all(s["amount_cents"] == 700 for s in summaries)
        assert summaries[0]["to"] == "Distributor Co"
        assert set(summaries[0]) == {"id", "date", "from", "to", "quantity", "status", "type", "amount_cents"}

    def test_list_by_user_matches_either_side(self, stocked, users, actors):
        ledger_service.create_transaction(
            stocked.id, actor=actors[Role.SUPPLIER], to_user_id=users[Role.CUSTOMER].id, quantity=1,
        )
        assert len(ledger_service.list_transactions(user_id=users[Role.SUPPLIER].id)) == 1
        assert len(ledger_service.list_transactions(user_id=users[Role.CUSTOMER].id)) == 1
        assert ledger_service.list_transactions(user_id=users[Role.DISTRIBUTOR].id) == []
        assert len(ledger_service.list_transactions(status="processing")) == 1
        assert ledger_service.list_transactions(status="completed") == []
