"""
Tests for RFQ body validation.
"""
import pytest

from storefront.core.exceptions import ValidationError
from storefront.db.models import OrderStatus
from storefront.services.order_validation import (
    MAX_QUANTITY, validate_order_submission, validate_order_update,
)


def _fields(exc_info):
    return {d["field"]: d["message"] for d in exc_info.value.details}


class TestOrderSubmission:

    def test_valid_body_is_normalized(self, order_payload):
        body = order_payload(
            companyName="  Acme Industrial  ",
            email="  Jane@Acme-Industrial.COM ",
        )

        submission = validate_order_submission(body)

        assert submission.company_name == "Acme Industrial"
        assert submission.email == "jane@acme-industrial.com"
        assert submission.items[0].product_id == "p1"
        assert submission.items[0].quantity == 10
        assert submission.status is None

    def test_every_violation_is_reported(self, order_payload):
        body = order_payload(companyName="A", phone="123", items=[])

        with pytest.raises(ValidationError) as exc_info:
            validate_order_submission(body)

        fields = _fields(exc_info)
        assert fields["companyName"] == "Company name must be at least 2 characters"
        assert fields["phone"] == "Phone number must be at least 10 characters"
        assert fields["items"] == "At least one item is required"

    def test_invalid_email(self, order_payload):
        with pytest.raises(ValidationError) as exc_info:
            validate_order_submission(order_payload(email="not-an-email"))

        assert _fields(exc_info)["email"] == "Invalid email address"

    def test_special_use_domain_is_accepted(self, order_payload):
        submission = validate_order_submission(order_payload(email="Buyer@Plant.Local"))
        assert submission.email == "buyer@plant.local"

    @pytest.mark.parametrize("quantity", [MAX_QUANTITY + 1, 10**19])
    def test_quantity_above_column_range_rejected(self, order_payload, quantity):
        with pytest.raises(ValidationError) as exc_info:
            validate_order_submission(order_payload(quantity=quantity))

        assert "items.0.quantity" in _fields(exc_info)

    def test_largest_storable_quantity_accepted(self, order_payload):
        submission = validate_order_submission(order_payload(quantity=MAX_QUANTITY))
        assert submission.items[0].quantity == MAX_QUANTITY

    @pytest.mark.parametrize("field, length", [
        ("companyName", 256),
        ("contactName", 256),
        ("phone", 51),
    ])
    def test_header_strings_bounded_by_column_width(self, order_payload, field, length):
        with pytest.raises(ValidationError) as exc_info:
            validate_order_submission(order_payload(**{field: "9" * length}))

        assert field in _fields(exc_info)

    def test_overlong_email_rejected(self, order_payload):
        with pytest.raises(ValidationError) as exc_info:
            validate_order_submission(order_payload(email="a" * 250 + "@acme-industrial.com"))

        assert "email" in _fields(exc_info)

    @pytest.mark.parametrize("field, length", [
        ("productId", 37),
        ("sku", 101),
        ("name", 256),
    ])
    def test_item_strings_bounded_by_column_width(self, order_payload, field, length):
        body = order_payload()
        body["items"][0][field] = "x" * length

        with pytest.raises(ValidationError) as exc_info:
            validate_order_submission(body)

        assert f"items.0.{field}" in _fields(exc_info)

    @pytest.mark.parametrize("quantity", [0, -3])
    def test_non_positive_quantity_rejected(self, order_payload, quantity):
        with pytest.raises(ValidationError) as exc_info:
            validate_order_submission(order_payload(quantity=quantity))

        assert _fields(exc_info)["items.0.quantity"] == "Quantity must be a positive number"

    @pytest.mark.parametrize("quantity", ["5", 2.5, None])
    def test_quantity_must_be_an_integer(self, order_payload, quantity):
        with pytest.raises(ValidationError) as exc_info:
            validate_order_submission(order_payload(quantity=quantity))

        assert "items.0.quantity" in _fields(exc_info)

    def test_missing_item_fields_use_item_path(self, order_payload):
        body = order_payload()
        body["items"][0]["sku"] = "   "
        del body["items"][0]["name"]

        with pytest.raises(ValidationError) as exc_info:
            validate_order_submission(body)

        fields = _fields(exc_info)
        assert fields["items.0.sku"] == "SKU is required"
        assert "items.0.name" in fields

    def test_unknown_status_rejected(self, order_payload):
        with pytest.raises(ValidationError) as exc_info:
            validate_order_submission(order_payload(status="shipped"))

        assert "status" in _fields(exc_info)

    def test_non_object_body(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_order_submission(["not", "an", "object"])

        assert _fields(exc_info)

    def test_error_payload_shape(self, order_payload):
        with pytest.raises(ValidationError) as exc_info:
            validate_order_submission(order_payload(contactName="J"))

        body = exc_info.value.to_dict()
        assert body["error"] == "Validation failed"
        assert body["code"] == "validation_error"
        assert exc_info.value.status_code == 400


class TestOrderUpdate:

    def test_status_update(self):
        update = validate_order_update({"status": "quoted"})
        assert update.status == OrderStatus.QUOTED
        assert update.notes is None

    def test_notes_only_with_version(self):
        update = validate_order_update({"notes": "Called back", "version": 3})
        assert update.notes == "Called back"
        assert update.version == 3

    def test_empty_update_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_order_update({})

        assert _fields(exc_info)["body"] == "At least one field must be provided for update"

    def test_status_outside_enum_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_order_update({"status": "shipped"})

        assert "status" in _fields(exc_info)
