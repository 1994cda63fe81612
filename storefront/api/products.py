"""
Public catalog API routes (read-only).
"""
from decimal import Decimal
from typing import List, Optional
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session

from storefront.core.rate_limit import RateLimit
from storefront.core.csrf import csrf_protect
from storefront.core.schemas import CamelModel
from storefront.db.models import Product
from storefront.db.session import get_db

router = APIRouter(prefix="/api/products", tags=["Products"])

api_rate_limit = RateLimit("api")


# ============= SCHEMAS =============

class ProductResponse(CamelModel):
    id: str
    sku: str
    name: str
    category: Optional[str]
    description: Optional[str]
    price: Optional[Decimal]
    price_type: str
    in_stock: bool
    stock_quantity: Optional[int]
    created_at: Optional[datetime]


class ProductListResponse(CamelModel):
    products: List[ProductResponse]
    total: int
    page: int
    limit: int


# ============= ROUTES =============

@router.get(
    "",
    response_model=ProductListResponse,
    dependencies=[Depends(api_rate_limit), Depends(csrf_protect)],
)
async def list_products(
    search: Optional[str] = Query(None, max_length=100, description="Match name, SKU or description"),
    category: Optional[str] = Query(None),
    in_stock: Optional[bool] = Query(None, alias="inStock"),
    page: int = Query(1, ge=1),
    limit: int = Query(24, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """List catalog products with optional filters."""
    query = db.query(Product)

    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            Product.name.ilike(pattern),
            Product.sku.ilike(pattern),
            Product.description.ilike(pattern),
        ))

    if category:
        query = query.filter(Product.category == category)

    if in_stock is not None:
        query = query.filter(Product.in_stock == in_stock)

    total = query.count()
    products = query.order_by(Product.name).offset((page - 1) * limit).limit(limit).all()

    return ProductListResponse(
        products=[ProductResponse.model_validate(p) for p in products],
        total=total,
        page=page,
        limit=limit,
    )


@router.get(
    "/{product_id}",
    response_model=ProductResponse,
    dependencies=[Depends(api_rate_limit), Depends(csrf_protect)],
)
async def get_product(product_id: str, db: Session = Depends(get_db)):
    """Get a single product."""
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return ProductResponse.model_validate(product)
