"""
Tests for the order transaction manager and admin order operations.
"""
import pytest
from unittest.mock import patch
from sqlalchemy.exc import OperationalError

from storefront.core.exceptions import (
    InsufficientStock, OrderNotFound, ProductNotFound, TransactionFailure, VersionConflict,
)
from storefront.db.models import AuditLog, Order, OrderItem, OrderStatus, Product
from storefront.services.order_validation import validate_order_submission, validate_order_update
from storefront.services.orders import create_order, get_order, list_orders, update_order


class TestCreateOrder:

    def test_creates_pending_order_with_items(self, db_session, product, order_payload):
        order = create_order(db_session, validate_order_submission(order_payload()))

        assert order.id
        assert order.status == OrderStatus.PENDING.value
        assert order.version == 1
        assert [(i.sku, i.quantity) for i in order.items] == [("LEI-M12-A-5P-M", 10)]
        assert order.items[0].order_id == order.id
        assert db_session.query(Order).count() == 1
        assert db_session.query(OrderItem).count() == 1

    def test_items_keep_submission_order(self, db_session, product, order_payload):
        db_session.add(Product(id="p2", sku="LEI-M8-3P-M", name="M8 Connector", in_stock=True))
        db_session.commit()
        body = order_payload()
        body["items"].insert(0, {"productId": "p2", "sku": "LEI-M8-3P-M", "name": "M8", "quantity": 3})

        order = create_order(db_session, validate_order_submission(body))

        reloaded = get_order(db_session, order.id)
        assert [i.sku for i in reloaded.items] == ["LEI-M8-3P-M", "LEI-M12-A-5P-M"]

    def test_initial_status_can_be_supplied(self, db_session, product, order_payload):
        order = create_order(db_session, validate_order_submission(order_payload(status="quoted")))
        assert order.status == "quoted"

    def test_inventory_failure_persists_nothing(self, db_session, product, order_payload):
        product.stock_quantity = 5
        db_session.commit()

        with pytest.raises(InsufficientStock):
            create_order(db_session, validate_order_submission(order_payload(quantity=10)))

        assert db_session.query(Order).count() == 0
        assert db_session.query(OrderItem).count() == 0

    def test_later_missing_product_rolls_back_everything(self, db_session, product, order_payload):
        body = order_payload()
        body["items"].append({"productId": "nope", "sku": "X-1", "name": "Ghost", "quantity": 1})

        with pytest.raises(ProductNotFound):
            create_order(db_session, validate_order_submission(body))

        assert db_session.query(Order).count() == 0
        assert db_session.query(OrderItem).count() == 0

    def test_database_failure_becomes_transaction_failure(self, db_session, product, order_payload):
        submission = validate_order_submission(order_payload())
        failure = OperationalError("INSERT INTO orders", {}, Exception("connection lost"))

        with patch.object(db_session, "commit", side_effect=failure):
            with pytest.raises(TransactionFailure) as exc_info:
                create_order(db_session, submission)

        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "Failed to create order"
        assert db_session.query(Order).count() == 0


class TestAdminOrderOperations:

    @pytest.fixture
    def order(self, db_session, product, order_payload):
        return create_order(db_session, validate_order_submission(order_payload()))

    def test_get_unknown_order(self, db_session):
        with pytest.raises(OrderNotFound):
            get_order(db_session, "does-not-exist")

    def test_list_orders_paginates_and_filters(self, db_session, product, order_payload):
        for _ in range(3):
            create_order(db_session, validate_order_submission(order_payload(quantity=1)))
        create_order(db_session, validate_order_submission(order_payload(quantity=1, status="approved")))

        orders, total = list_orders(db_session, page=1, limit=2)
        assert total == 4
        assert len(orders) == 2

        approved, approved_total = list_orders(db_session, status=OrderStatus.APPROVED)
        assert approved_total == 1
        assert approved[0].status == "approved"

    def test_update_status_bumps_version_and_audits(self, db_session, order, admin):
        updated = update_order(
            db_session, order.id, validate_order_update({"status": "quoted"}), admin_id=admin.id
        )

        assert updated.status == "quoted"
        assert updated.version == 2
        entry = db_session.query(AuditLog).filter_by(action="update_order").one()
        assert entry.entity_id == order.id
        assert entry.details == {"status": {"from": "pending", "to": "quoted"}}

    def test_any_status_transition_is_allowed(self, db_session, order):
        update_order(db_session, order.id, validate_order_update({"status": "rejected"}))
        updated = update_order(db_session, order.id, validate_order_update({"status": "pending"}))
        assert updated.status == "pending"

    def test_stale_version_conflicts(self, db_session, order):
        update = validate_order_update({"status": "approved", "version": 7})

        with pytest.raises(VersionConflict):
            update_order(db_session, order.id, update)

        assert get_order(db_session, order.id).status == "pending"

    def test_update_unknown_order(self, db_session):
        with pytest.raises(OrderNotFound):
            update_order(db_session, "missing", validate_order_update({"notes": "x"}))
