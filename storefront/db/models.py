"""
SQLAlchemy ORM models for the storefront RFQ service.
"""
import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, Numeric,
    ForeignKey, Enum, JSON, CheckConstraint, Index
)
from sqlalchemy.orm import relationship

from storefront.db.session import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============= ENUMS =============

class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    QUOTED = "quoted"
    APPROVED = "approved"
    REJECTED = "rejected"


class AdminRole(str, enum.Enum):
    ADMIN = "admin"
    SUPERADMIN = "superadmin"


def enum_values(enum_cls):
    return [e.value for e in enum_cls]


# Stored as VARCHAR + CHECK rather than a native enum so the same schema runs
# on PostgreSQL and SQLite. Values are the lowercase enum values.
OrderStatusType = Enum(
    *enum_values(OrderStatus),
    name='orderstatus',
    native_enum=False,
    create_constraint=True,
    length=20,
)
AdminRoleType = Enum(
    *enum_values(AdminRole),
    name='adminrole',
    native_enum=False,
    create_constraint=True,
    length=20,
)


# ============= ACCOUNTS =============

class Customer(Base):
    """Storefront customer account (submits RFQs)."""
    __tablename__ = "customers"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    company = Column(String(255))
    phone = Column(String(50))
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    last_login = Column(DateTime(timezone=True))


class AdminUser(Base):
    """Back-office account."""
    __tablename__ = "admin_users"

    id = Column(String(36), primary_key=True, default=_uuid)
    username = Column(String(100), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    role = Column(AdminRoleType, default=AdminRole.ADMIN.value, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    last_login = Column(DateTime(timezone=True))


# ============= CATALOG =============

class Product(Base):
    """Catalog product. Read-only from the order flow's point of view."""
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=_uuid)
    sku = Column(String(100), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    category = Column(String(100), index=True)
    description = Column(Text)
    price = Column(Numeric(12, 2))
    price_type = Column(String(20), default="per_unit", nullable=False)
    in_stock = Column(Boolean, default=False, nullable=False)
    # NULL means stock is not tracked for this product
    stock_quantity = Column(Integer)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


# ============= ORDERS (RFQ) =============

class Order(Base):
    """One RFQ submission."""
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=_uuid)
    company_name = Column(String(255), nullable=False)
    contact_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(50), nullable=False)
    company_address = Column(Text)
    notes = Column(Text)
    status = Column(OrderStatusType, default=OrderStatus.PENDING.value, nullable=False, index=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
    )

    __mapper_args__ = {"version_id_col": version}


class OrderItem(Base):
    """
    One requested line. SKU and name are snapshots taken at submission time so
    later catalog edits don't rewrite historical orders.
    """
    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True, default=_uuid)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    # No FK: orders must survive product deletion
    product_id = Column(String(36), index=True)
    sku = Column(String(100), nullable=False)
    name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False)
    notes = Column(Text)
    position = Column(Integer, nullable=False, default=0)

    order = relationship("Order", back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
    )


class IdempotencyRecord(Base):
    """Cached response for a processed submission, keyed by idempotency key."""
    __tablename__ = "idempotency_records"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String(320), unique=True, nullable=False, index=True)
    response = Column(JSON, nullable=False)
    status_code = Column(Integer, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


# ============= AUDIT LOG =============

class AuditLog(Base):
    """Record of logins and back-office changes."""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    timestamp = Column(DateTime(timezone=True), default=_utcnow, index=True)
    actor_type = Column(String(20))  # admin, customer
    actor_id = Column(String(36))
    action = Column(String(100), nullable=False, index=True)
    entity_type = Column(String(100), index=True)
    entity_id = Column(String(64))
    details = Column(JSON)
    ip_address = Column(String(50))

    __table_args__ = (
        Index('ix_audit_logs_entity', 'entity_type', 'entity_id'),
    )
