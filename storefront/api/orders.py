"""
Order (RFQ) API routes.

Submission flow for POST /api/orders:
rate limit -> CSRF -> customer auth -> idempotency replay -> validation ->
inventory check + transactional insert -> cache response -> 201.
"""
from typing import List, Optional
from datetime import datetime

from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.core.config import settings
from storefront.core.csrf import csrf_protect
from storefront.core.exceptions import ValidationError
from storefront.core.logging import get_logger
from storefront.core.rate_limit import RateLimit
from storefront.core.rbac import require_admin, require_customer
from storefront.core.schemas import CamelModel
from storefront.db.models import Order, OrderStatus
from storefront.db.session import get_db
from storefront.services.idempotency import IdempotencyCache, MAX_KEY_LENGTH, scoped_key
from storefront.services.order_validation import validate_order_submission, validate_order_update
from storefront.services.orders import create_order, get_order, list_orders, update_order

router = APIRouter(prefix="/api/orders", tags=["Orders"])
logger = get_logger(__name__)

submit_rate_limit = RateLimit("order_submit")
update_rate_limit = RateLimit("order_update")
admin_rate_limit = RateLimit("admin")


# ============= SCHEMAS =============

class OrderItemResponse(CamelModel):
    id: str
    order_id: str
    product_id: Optional[str]
    sku: str
    name: str
    quantity: int
    notes: Optional[str]


class OrderResponse(CamelModel):
    id: str
    company_name: str
    contact_name: str
    email: str
    phone: str
    company_address: Optional[str]
    notes: Optional[str]
    status: OrderStatus
    version: int
    created_at: datetime
    updated_at: datetime
    items: List[OrderItemResponse]


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class OrderListResponse(CamelModel):
    orders: List[OrderResponse]
    pagination: Pagination


def serialize_order(order: Order) -> dict:
    """JSON-ready order body; also the form stored in the idempotency cache."""
    return OrderResponse.model_validate(order).model_dump(mode="json", by_alias=True)


async def _json_body(request: Request):
    try:
        return await request.json()
    except ValueError:
        raise ValidationError([{"field": "body", "message": "Request body must be valid JSON"}])


# ============= ROUTES =============

@router.post(
    "",
    status_code=201,
    response_model=OrderResponse,
    dependencies=[Depends(submit_rate_limit), Depends(csrf_protect)],
)
async def submit_order(
    request: Request,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    user_context: dict = Depends(require_customer),
    db: Session = Depends(get_db),
):
    """
    Submit an RFQ.

    Send an ``Idempotency-Key`` header and reuse it when retrying the same
    submission; a retry within the TTL returns the original 201 body. Without
    the header the server does not invent one, so retries are not de-duplicated.
    """
    cache = IdempotencyCache(db)
    cache_key = None

    if idempotency_key:
        if len(idempotency_key) > MAX_KEY_LENGTH:
            raise ValidationError([{
                "field": "Idempotency-Key",
                "message": f"Idempotency key must be at most {MAX_KEY_LENGTH} characters",
            }])
        cache_key = scoped_key("order", user_context["sub"], idempotency_key)
        cached = cache.get(cache_key)
        if cached:
            logger.info(f"Replaying cached response for idempotency key {idempotency_key}")
            return JSONResponse(
                content=cached.response,
                status_code=cached.status_code,
                headers={"Idempotency-Replayed": "true"},
            )
    else:
        logger.debug("Order submitted without Idempotency-Key; retries will not be de-duplicated")

    submission = validate_order_submission(await _json_body(request))
    order = create_order(db, submission)
    body = serialize_order(order)

    if cache_key:
        try:
            cache.put(cache_key, body, 201)
        except SQLAlchemyError as e:
            # The order is committed; a failed cache write only loses replay protection
            db.rollback()
            logger.error(f"Failed to cache response for order {order.id}: {e}", exc_info=True)

    return JSONResponse(content=body, status_code=201)


@router.get(
    "",
    response_model=OrderListResponse,
    dependencies=[Depends(admin_rate_limit), Depends(csrf_protect)],
)
async def list_orders_route(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.ORDERS_PAGE_SIZE, ge=1, le=settings.ORDERS_MAX_PAGE_SIZE),
    status: Optional[OrderStatus] = Query(None, description="Filter by status"),
    user_context: dict = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """List orders newest first, with items (admin only)."""
    orders, total = list_orders(db, page=page, limit=limit, status=status)
    total_pages = (total + limit - 1) // limit

    return {
        "orders": [serialize_order(o) for o in orders],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": total_pages,
            "hasNext": page < total_pages,
            "hasPrev": page > 1,
        },
    }


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    dependencies=[Depends(admin_rate_limit), Depends(csrf_protect)],
)
async def get_order_route(
    order_id: str,
    user_context: dict = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Get one order with its items (admin only)."""
    return serialize_order(get_order(db, order_id))


@router.put(
    "/{order_id}",
    response_model=OrderResponse,
    dependencies=[Depends(update_rate_limit), Depends(csrf_protect)],
)
async def update_order_route(
    order_id: str,
    request: Request,
    user_context: dict = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Update status and/or notes (admin only). Items are immutable."""
    update = validate_order_update(await _json_body(request))
    order = update_order(
        db,
        order_id,
        update,
        admin_id=user_context["sub"],
        ip_address=request.client.host if request.client else None,
    )
    return serialize_order(order)
