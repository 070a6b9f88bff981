"""
Error kind tests
"""
import pytest
from pydantic import BaseModel, Field, ValidationError
from sqlalchemy.exc import IntegrityError, OperationalError

from shopvault.core.errors import (
    DuplicateKey,
    InsufficientStock,
    NotFound,
    StaleDataError,
    Transient,
    ValidationFailed,
    translate_db_errors,
)


def test_kinds_map_to_status_codes():
    assert (NotFound("Order", "x").kind, NotFound.status_code) == ("NOT_FOUND", 404)
    assert InsufficientStock.status_code == 409
    assert ValidationFailed.status_code == 400
    assert isinstance(StaleDataError(), Transient)


def test_insufficient_stock_carries_both_quantities():
    exc = InsufficientStock("p-1", available=2, requested=5, name="Mug")
    assert exc.to_dict() == {
        "kind": "INSUFFICIENT_STOCK",
        "detail": "Insufficient stock for 'Mug': requested=5, available=2",
        "product_id": "p-1",
        "available": 2,
        "requested": 5,
    }


def test_pydantic_errors_become_validation_failed():
    class Sample(BaseModel):
        quantity: int = Field(..., ge=1)

    with pytest.raises(ValidationError) as exc_info:
        Sample(quantity=0)
    failed = ValidationFailed.from_pydantic(exc_info.value)
    assert failed.errors[0]["loc"] == "quantity"
    assert failed.message.startswith("Validation failed: quantity:")


def test_translate_db_errors():
    with pytest.raises(DuplicateKey) as exc_info:
        with translate_db_errors("Product", "sku"):
            raise IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed: products.sku"))
    assert exc_info.value.message == "Product with this sku already exists"

    with pytest.raises(Transient):
        with translate_db_errors():
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))
