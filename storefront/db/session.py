"""
Database session management with SQLAlchemy.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool
from typing import Generator
from contextlib import contextmanager

from storefront.core.config import settings
from storefront.core.logging import get_logger

logger = get_logger(__name__)


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        # In-memory SQLite must share one connection across threads
        options = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url.rstrip("/") == "sqlite:":
            options["poolclass"] = StaticPool
        return options
    return {
        "pool_pre_ping": True,
        "pool_size": 10,
        "max_overflow": 20,
        "pool_timeout": 30,
        "pool_recycle": 1800,
    }


engine = create_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Dependency for getting database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """Context manager for database session."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db():
    """
    Initialize database connection and run startup tasks.

    Schema is managed by Alembic migrations (`alembic upgrade head`), except
    in DEBUG where missing tables are created directly.

    Startup order:
    1. Run preflight check (validates DB connectivity)
    2. Verify schema exists
    3. Bootstrap admin if ADMIN_BOOTSTRAP_* env vars set and no admins exist
    4. Seed demo catalog ONLY if SEED_DEMO=true
    """
    from sqlalchemy import inspect

    from storefront.db.preflight import run_db_preflight
    run_db_preflight()

    from storefront.db import models  # noqa

    inspector = inspect(engine)
    existing_tables = inspector.get_table_names()
    required_tables = ['products', 'orders', 'order_items', 'idempotency_records']

    missing = [t for t in required_tables if t not in existing_tables]
    if missing:
        logger.warning(f"Database schema missing tables: {missing}. Run `alembic upgrade head`.")
        if settings.DEBUG:
            logger.warning("DEBUG=true: auto-creating tables (NOT for production!)")
            Base.metadata.create_all(bind=engine)
        else:
            # Requests will fail until migrations run; don't try to bootstrap
            return
    else:
        logger.info(f"Database schema verified: {len(existing_tables)} tables found")

    bootstrap_admin()

    if settings.SEED_DEMO:
        logger.info("SEED_DEMO=true: seeding demo catalog")
        seed_demo_data()


def bootstrap_admin():
    """
    Bootstrap the initial admin account from environment variables.

    Only runs if ADMIN_BOOTSTRAP_USERNAME and ADMIN_BOOTSTRAP_PASSWORD are set
    and no admin accounts exist yet.
    """
    from storefront.db.models import AdminUser, AdminRole
    from storefront.core.security import get_password_hash

    username = settings.ADMIN_BOOTSTRAP_USERNAME
    password = settings.ADMIN_BOOTSTRAP_PASSWORD

    if not username or not password:
        logger.info("Admin bootstrap: ADMIN_BOOTSTRAP_USERNAME/PASSWORD not set. Skipping.")
        return

    if len(password) < 10:
        logger.warning("ADMIN_BOOTSTRAP_PASSWORD must be at least 10 characters. Skipping bootstrap.")
        return

    with get_db_context() as db:
        if db.query(AdminUser).first():
            logger.info("Admin bootstrap: admin accounts already exist. Skipping.")
            return

        db.add(AdminUser(
            username=username,
            hashed_password=get_password_hash(password),
            role=AdminRole.SUPERADMIN.value,
            is_active=True,
        ))
        logger.info(f"Bootstrap admin created: {username}")


def seed_demo_data():
    """
    Seed a small demo catalog for development.

    WARNING: creates a predictable demo customer. Never enable SEED_DEMO in production.
    """
    from storefront.db.models import Product, Customer
    from storefront.core.security import get_password_hash

    products = [
        ("LEI-M12-A-5P-M", "M12 Connector A-coded 5-pin male", "Connectors", True, 150),
        ("LEI-M12-A-8P-F", "M12 Connector A-coded 8-pin female", "Connectors", True, 80),
        ("LEI-M8-3P-M", "M8 Connector 3-pin male", "Connectors", True, None),
        ("LEI-CBL-PUR-5M", "PUR cable 5 m, drag-chain suitable", "Cables", False, 0),
    ]

    with get_db_context() as db:
        if db.query(Product).first():
            logger.info("Demo catalog already exists. Skipping.")
            return

        for sku, name, category, in_stock, quantity in products:
            db.add(Product(
                sku=sku,
                name=name,
                category=category,
                in_stock=in_stock,
                stock_quantity=quantity,
            ))

        if not db.query(Customer).first():
            db.add(Customer(
                name="Demo Buyer",
                email="buyer@example.com",
                hashed_password=get_password_hash("demo1234567"),
                company="Acme Corp",
            ))
            logger.info("Created demo customer: buyer@example.com / demo1234567")

        logger.info(f"Demo catalog seeded: {len(products)} products")
