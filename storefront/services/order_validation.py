"""
Schema validation for RFQ submissions and admin order updates.

Raw JSON bodies are parsed into typed Pydantic models. Every violated rule is
reported (not just the first) as a ``{field, message}`` pair with dotted
camelCase paths such as ``items.0.quantity``.
"""
from typing import Annotated, Any, Dict, List, Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import (
    AfterValidator, Field, StrictInt, model_validator,
    ValidationError as PydanticValidationError,
)
from pydantic_core import PydanticCustomError

from storefront.core.exceptions import ValidationError
from storefront.core.schemas import CamelModel
from storefront.db.models import OrderStatus

# Column widths in storefront.db.models; quantity is a 32-bit INTEGER
MAX_QUANTITY = 2**31 - 1
MAX_NAME_LENGTH = 255
MAX_PHONE_LENGTH = 50
MAX_SKU_LENGTH = 100
MAX_ID_LENGTH = 36


def _trimmed(min_length: int, message: str):
    def check(value: str) -> str:
        value = value.strip()
        if len(value) < min_length:
            raise PydanticCustomError("too_short", message)
        return value
    return AfterValidator(check)


def _normalize_email(value: str) -> str:
    try:
        result = validate_email(value.strip(), check_deliverability=False, globally_deliverable=False)
    except EmailNotValidError:
        raise PydanticCustomError("invalid_email", "Invalid email address")
    return result.normalized.lower()


def _strip(value: str) -> str:
    return value.strip()


def _positive(value: int) -> int:
    if value <= 0:
        raise PydanticCustomError("not_positive", "Quantity must be a positive number")
    return value


def _non_empty_items(value: list) -> list:
    if not value:
        raise PydanticCustomError("too_short", "At least one item is required")
    return value


class OrderItemIn(CamelModel):
    product_id: Annotated[str, Field(max_length=MAX_ID_LENGTH), _trimmed(1, "Product ID is required")]
    sku: Annotated[str, Field(max_length=MAX_SKU_LENGTH), _trimmed(1, "SKU is required")]
    name: Annotated[str, Field(max_length=MAX_NAME_LENGTH), _trimmed(1, "Product name is required")]
    quantity: Annotated[StrictInt, Field(le=MAX_QUANTITY), AfterValidator(_positive)]
    notes: Optional[str] = None


class OrderSubmission(CamelModel):
    company_name: Annotated[
        str, Field(max_length=MAX_NAME_LENGTH), _trimmed(2, "Company name must be at least 2 characters")
    ]
    contact_name: Annotated[
        str, Field(max_length=MAX_NAME_LENGTH), _trimmed(2, "Contact name must be at least 2 characters")
    ]
    email: Annotated[str, Field(max_length=MAX_NAME_LENGTH), AfterValidator(_normalize_email)]
    phone: Annotated[
        str, Field(max_length=MAX_PHONE_LENGTH), _trimmed(10, "Phone number must be at least 10 characters")
    ]
    company_address: Optional[Annotated[str, AfterValidator(_strip)]] = None
    items: Annotated[List[OrderItemIn], AfterValidator(_non_empty_items)]
    notes: Optional[str] = None
    status: Optional[OrderStatus] = None


class OrderUpdate(CamelModel):
    status: Optional[OrderStatus] = None
    notes: Optional[str] = None
    # Optimistic lock: when sent, must match the stored order version
    version: Optional[StrictInt] = None

    @model_validator(mode="after")
    def require_a_change(self) -> "OrderUpdate":
        if self.status is None and self.notes is None:
            raise PydanticCustomError(
                "missing_fields", "At least one field must be provided for update"
            )
        return self


def error_details(exc: PydanticValidationError) -> List[Dict[str, str]]:
    """Flatten Pydantic errors into ``{field, message}`` pairs."""
    return [
        {
            "field": ".".join(str(part) for part in error["loc"]) or "body",
            "message": error["msg"],
        }
        for error in exc.errors()
    ]


def validate_order_submission(raw: Any) -> OrderSubmission:
    """Parse an untrusted RFQ body. Raises ValidationError listing every problem."""
    try:
        return OrderSubmission.model_validate(raw)
    except PydanticValidationError as exc:
        raise ValidationError(error_details(exc)) from exc


def validate_order_update(raw: Any) -> OrderUpdate:
    """Parse an admin status/notes update."""
    try:
        return OrderUpdate.model_validate(raw)
    except PydanticValidationError as exc:
        raise ValidationError(error_details(exc)) from exc
