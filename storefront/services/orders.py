"""
Order (RFQ) transaction manager and admin order operations.
"""
from typing import List, Optional, Tuple

from sqlalchemy import desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from storefront.core.exceptions import (
    InventoryError, OrderNotFound, TransactionFailure, VersionConflict,
)
from storefront.core.logging import get_logger, audit_logger
from storefront.db.models import AuditLog, Order, OrderItem, OrderStatus
from storefront.services.inventory import check_inventory
from storefront.services.order_validation import OrderSubmission, OrderUpdate

logger = get_logger(__name__)


def create_order(db: Session, submission: OrderSubmission) -> Order:
    """
    Create an order and its line items in one transaction.

    1. Check every item against the catalog (row-locked reads)
    2. Insert the order header, status defaulting to pending
    3. Insert one OrderItem per submitted line
    4. Commit

    Inventory failures roll back and propagate unchanged. Database failures
    roll back and surface as TransactionFailure, which callers may retry.
    The returned order has ``items`` populated from the session, no re-read.
    """
    try:
        check_inventory(db, submission.items)

        order = Order(
            company_name=submission.company_name,
            contact_name=submission.contact_name,
            email=submission.email,
            phone=submission.phone,
            company_address=submission.company_address,
            notes=submission.notes,
            status=(submission.status or OrderStatus.PENDING).value,
        )
        db.add(order)
        db.flush()

        for position, item in enumerate(submission.items):
            order.items.append(OrderItem(
                order_id=order.id,
                product_id=item.product_id,
                sku=item.sku,
                name=item.name,
                quantity=item.quantity,
                notes=item.notes,
                position=position,
            ))

        db.commit()
    except InventoryError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Order transaction failed: {e}", exc_info=True)
        raise TransactionFailure() from e

    logger.info(
        f"Order {order.id} created with {len(order.items)} items",
        extra={"order_id": order.id},
    )
    return order


def get_order(db: Session, order_id: str) -> Order:
    """Load one order with its items or raise OrderNotFound."""
    order = db.query(Order).options(
        selectinload(Order.items)
    ).filter(Order.id == order_id).first()
    if not order:
        raise OrderNotFound(order_id)
    return order


def list_orders(
    db: Session,
    page: int = 1,
    limit: int = 20,
    status: Optional[OrderStatus] = None,
) -> Tuple[List[Order], int]:
    """Newest-first page of orders with items, plus the total match count."""
    query = db.query(Order)
    if status:
        query = query.filter(Order.status == status.value)

    total = query.count()
    orders = query.options(
        selectinload(Order.items)
    ).order_by(desc(Order.created_at)).offset((page - 1) * limit).limit(limit).all()

    return orders, total


def update_order(
    db: Session,
    order_id: str,
    update: OrderUpdate,
    admin_id: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> Order:
    """
    Apply an admin status/notes change.

    Any status may move to any other status. When ``update.version`` is sent
    it must match the stored version; concurrent writers are caught by the
    mapper's version counter as well. Both cases raise VersionConflict.
    """
    order = get_order(db, order_id)

    if update.version is not None and update.version != order.version:
        raise VersionConflict()

    changes = {}
    if update.status is not None and update.status.value != order.status:
        changes["status"] = {"from": order.status, "to": update.status.value}
        order.status = update.status.value
    if update.notes is not None and update.notes != order.notes:
        changes["notes"] = True
        order.notes = update.notes

    db.add(AuditLog(
        actor_type="admin",
        actor_id=admin_id,
        action="update_order",
        entity_type="order",
        entity_id=order.id,
        details=changes,
        ip_address=ip_address,
    ))

    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        raise VersionConflict()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Order {order_id} update failed: {e}", exc_info=True)
        raise TransactionFailure("Failed to update order") from e

    audit_logger.log(
        "update_order",
        actor_type="admin",
        actor_id=admin_id,
        entity_type="order",
        entity_id=order.id,
        details=changes,
    )
    return order
