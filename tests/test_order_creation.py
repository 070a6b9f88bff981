"""
Order creation tests

  1. Pricing: default tax, explicit pricing, price overrides
  2. Snapshots of customer and line items
  3. All-or-nothing reservation across lines
"""
import asyncio
from decimal import Decimal

import pytest

from shopvault.core.errors import InsufficientStock, NotFound, Transient, ValidationFailed
from shopvault.schemas.order import OrderSearch


# ─── Test 1: Pricing ───────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_order_reserves_stock_and_applies_default_tax(vault, make_product, make_user, make_order):
    product = await make_product(quantity=2, price="25.00")
    user = await make_user()

    order = await make_order(user, [(product, 2)])

    assert order.status == "PENDING"
    assert order.order_number == "ORD-20240315-0001"
    assert order.subtotal == Decimal("50.00")
    assert order.tax == Decimal("5.00")
    assert order.total == order.subtotal * Decimal("1.10")
    assert [(e.status, e.note, e.updated_by) for e in order.status_history] == [
        ("PENDING", "Order created", "SYSTEM")
    ]

    product = await vault.ledger.get_levels(product.id)
    assert (product.quantity, product.reserved, product.available) == (2, 2, 0)

    (sale,) = await vault.journal.by_order(order.id)
    assert (sale.type, sale.quantity, sale.quantity_before, sale.quantity_after) == ("SALE", -2, 2, 0)


@pytest.mark.asyncio
async def test_explicit_pricing_is_used_as_given(make_product, make_user, make_order):
    product = await make_product(quantity=10, price="20.00")
    user = await make_user()

    order = await make_order(
        user, [(product, 5)],
        pricing={"discount": "10.00", "tax": "0", "shipping": "5.50"},
    )

    assert order.subtotal == Decimal("100.00")
    assert order.discount == Decimal("10.00")
    assert order.tax == Decimal("0.00")
    assert order.shipping_cost == Decimal("5.50")
    assert order.total == Decimal("95.50")


@pytest.mark.asyncio
async def test_line_price_override_and_unit_discount(vault, make_product, make_user):
    product = await make_product(quantity=10, price="30.00")
    user = await make_user()

    order = await vault.orchestrator.create_order({
        "user_id": user.id,
        "items": [{"product_id": product.id, "quantity": 3, "price": "12.50", "discount": "2.50"}],
        "payment": {"method": "CARD"},
    })

    (item,) = order.items
    assert item.price == Decimal("12.50")
    assert item.subtotal == Decimal("30.00")
    assert order.tax == Decimal("3.00")


@pytest.mark.asyncio
async def test_order_discount_above_subtotal_is_rejected_and_released(vault, make_product, make_user, make_order):
    product = await make_product(quantity=5, price="10.00")
    user = await make_user()

    with pytest.raises(ValidationFailed):
        await make_order(user, [(product, 1)], pricing={"discount": "50.00"})

    product = await vault.ledger.get_levels(product.id)
    assert (product.reserved, product.available) == (0, 5)


# ─── Test 2: Snapshots ─────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_customer_and_items_are_snapshotted(vault, make_product, make_user, make_order):
    product = await make_product(quantity=5, price="9.99", name="Blue Mug")
    user = await make_user(email="Ada@Example.com", first_name="Ada", last_name="Lovelace")

    order = await make_order(user, [(product, 1)])
    assert order.customer == {
        "first_name": "Ada", "last_name": "Lovelace", "email": "ada@example.com", "phone": "",
    }
    (item,) = order.items
    assert (item.name, item.sku, item.price) == ("Blue Mug", product.sku, Decimal("9.99"))
    assert order.shipping_method == vault.settings.DEFAULT_SHIPPING_METHOD

    explicit = await make_order(
        user, [(product, 1)],
        customer={"first_name": "Grace", "last_name": "Hopper", "email": "grace@example.com"},
    )
    assert explicit.customer_email == "grace@example.com"


@pytest.mark.asyncio
async def test_order_lookups(vault, make_product, make_user, make_order):
    product = await make_product(quantity=10)
    user = await make_user()
    order = await make_order(user, [(product, 1)])

    assert (await vault.orders.get_by_number(order.order_number.lower())).id == order.id
    assert [o.id for o in await vault.orders.list_by_user(user.id)] == [order.id]
    assert [o.id for o in await vault.orders.list_by_status("PENDING")] == [order.id]
    with pytest.raises(NotFound):
        await vault.orders.get("missing")


# ─── Test 3: All-or-nothing reservation ────────────────────────────────────────
@pytest.mark.asyncio
async def test_failing_line_releases_earlier_reservations(vault, make_product, make_user, make_order):
    """A later line failing must hand back every unit reserved for the earlier lines."""
    first = await make_product(quantity=5)
    second = await make_product(quantity=5)
    short = await make_product(quantity=1)
    user = await make_user()

    with pytest.raises(InsufficientStock) as exc_info:
        await make_order(user, [(first, 2), (second, 3), (short, 3)])
    assert exc_info.value.product_id == short.id

    for product in (first, second, short):
        levels = await vault.ledger.get_levels(product.id)
        assert (levels.quantity, levels.reserved, levels.available) == (product.quantity, 0, product.quantity)

    types = [t.type for t in await vault.journal.by_product(first.id)]
    assert sorted(types) == ["RETURN", "SALE"]
    assert (await vault.orders.stats())["total_orders"] == 0


@pytest.mark.asyncio
async def test_missing_product_releases_earlier_reservations(vault, make_product, make_user):
    product = await make_product(quantity=5)
    user = await make_user()

    with pytest.raises(NotFound):
        await vault.orchestrator.create_order({
            "user_id": user.id,
            "items": [
                {"product_id": product.id, "quantity": 2},
                {"product_id": "no-such-product", "quantity": 1},
            ],
            "payment": {"method": "CARD"},
        })

    levels = await vault.ledger.get_levels(product.id)
    assert (levels.reserved, levels.available) == (0, 5)


@pytest.mark.asyncio
async def test_persist_failure_releases_reservations(vault, monkeypatch, make_product, make_user, make_order):
    product = await make_product(quantity=5)
    user = await make_user()

    async def unavailable():
        raise Transient("Database error: counter unavailable")

    monkeypatch.setattr(vault.order_numbers, "next", unavailable)
    with pytest.raises(Transient):
        await make_order(user, [(product, 4)])

    levels = await vault.ledger.get_levels(product.id)
    assert (levels.reserved, levels.available) == (0, 5)


@pytest.mark.asyncio
async def test_cancelled_creation_releases_reservations(vault, monkeypatch, make_product, make_user, make_order):
    product = await make_product(quantity=5)
    user = await make_user()

    async def interrupted():
        raise asyncio.CancelledError()

    monkeypatch.setattr(vault.order_numbers, "next", interrupted)
    with pytest.raises(asyncio.CancelledError):
        await make_order(user, [(product, 3)])

    levels = await vault.ledger.get_levels(product.id)
    assert (levels.reserved, levels.available) == (0, 5), "cancellation leaked a reservation"


@pytest.mark.asyncio
async def test_dropped_request_mid_creation_releases_reservations(vault, monkeypatch, make_product, make_user, make_order):
    """The creating task is cancelled while it waits on the order number."""
    product = await make_product(quantity=5)
    user = await make_user()
    waiting = asyncio.Event()

    async def stalled():
        waiting.set()
        await asyncio.Event().wait()

    monkeypatch.setattr(vault.order_numbers, "next", stalled)
    task = asyncio.create_task(make_order(user, [(product, 3)]))
    await waiting.wait()
    assert (await vault.ledger.get_levels(product.id)).reserved == 3

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    levels = await vault.ledger.get_levels(product.id)
    assert (levels.reserved, levels.available) == (0, 5)
    history = await vault.journal.by_product(product.id)
    assert [t.type for t in history].count("RETURN") == 1


@pytest.mark.asyncio
async def test_unknown_user_reserves_nothing(vault, make_product):
    product = await make_product(quantity=5)
    with pytest.raises(NotFound):
        await vault.orchestrator.create_order({
            "user_id": "ghost",
            "items": [{"product_id": product.id, "quantity": 1}],
            "payment": {"method": "CARD"},
        })
    assert await vault.journal.by_product(product.id) == []


@pytest.mark.asyncio
@pytest.mark.parametrize("items", [[], [{"product_id": "x", "quantity": 0}]])
async def test_malformed_order_is_rejected(vault, make_user, items):
    user = await make_user()
    with pytest.raises(ValidationFailed):
        await vault.orchestrator.create_order({"user_id": user.id, "items": items, "payment": {"method": "CARD"}})


# ─── Reporting ─────────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_search_and_stats(vault, clock, make_product, make_user, make_order):
    product = await make_product(quantity=50, price="10.00")
    alice = await make_user()
    bob = await make_user()
    for qty in (1, 2, 3):
        await make_order(alice, [(product, qty)])
        clock.advance(hours=1)
    cancelled = await make_order(bob, [(product, 4)])
    await vault.state_machine.cancel_order(cancelled.id, reason="changed mind")

    page = await vault.orders.search(OrderSearch(user_id=alice.id, limit=2))
    assert page["total"] == 3
    assert page["pages"] == 2
    assert [o.total for o in page["orders"]] == [Decimal("33.00"), Decimal("22.00")]

    stats = await vault.orders.stats()
    assert stats["total_orders"] == 4
    assert stats["by_status"]["CANCELLED"] == 1
    assert stats["total_revenue"] == Decimal("66.00")
    assert stats["average_order_value"] == Decimal("22.00")

    (day,) = await vault.orders.revenue_by_date_range(clock().replace(hour=0), clock())
    assert day == {"date": "2024-03-15", "revenue": Decimal("66.00"), "order_count": 3}
