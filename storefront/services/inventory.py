"""
Inventory checks for RFQ line items.
"""
from typing import Dict, Iterable

from sqlalchemy.orm import Session

from storefront.core.exceptions import (
    InsufficientStock, OutOfStock, ProductNotFound, SkuMismatch,
)
from storefront.db.models import Product
from storefront.services.order_validation import OrderItemIn


def check_item(product: Product, item: OrderItemIn) -> None:
    """Raise the first business rule the line item violates."""
    if not product.in_stock:
        raise OutOfStock(item.sku)

    if product.sku != item.sku:
        raise SkuMismatch(item.product_id, expected=product.sku, submitted=item.sku)

    if product.stock_quantity is not None and product.stock_quantity < item.quantity:
        raise InsufficientStock(item.sku, available=product.stock_quantity, requested=item.quantity)


def check_inventory(db: Session, items: Iterable[OrderItemIn]) -> Dict[str, Product]:
    """
    Verify every line item against the catalog before anything is written.

    Products are read with ``SELECT ... FOR UPDATE`` so the rows stay locked
    until the surrounding transaction ends (ignored on SQLite). Stops at the
    first failing item.

    Returns:
        Products keyed by id
    """
    products: Dict[str, Product] = {}

    for item in items:
        product = products.get(item.product_id)
        if product is None:
            product = db.query(Product).filter(
                Product.id == item.product_id
            ).with_for_update().first()
            if not product:
                raise ProductNotFound(item.product_id)
            products[item.product_id] = product

        check_item(product, item)

    return products
