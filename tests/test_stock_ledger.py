"""
Stock ledger tests

  1. Reserve / release scenario keeps quantity, reserved and available consistent
  2. Failed predicates leave the row untouched
  3. Concurrent reservations never oversell
  4. Status is derived from available, manual statuses survive
  5. Journal entries, fail-closed vs best-effort
  6. Stock cache write-through
"""
import asyncio

import pytest
from sqlalchemy import text

from shopvault.core.errors import InsufficientStock, NotFound, Transient, ValidationFailed
from shopvault.db.journal import JournalEntry
from shopvault.models.inventory import TransactionType


def levels(product):
    return (product.quantity, product.reserved, product.available)


# ─── Test 1: Reserve / release ─────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_reserve_then_release_scenario(vault, make_product):
    product = await make_product(quantity=10)
    assert levels(product) == (10, 0, 10)

    product = await vault.ledger.reserve(product.id, 3)
    assert levels(product) == (10, 3, 7)

    with pytest.raises(InsufficientStock) as exc_info:
        await vault.ledger.reserve(product.id, 8)
    assert exc_info.value.requested == 8
    assert exc_info.value.available == 7
    assert levels(await vault.ledger.get_levels(product.id)) == (10, 3, 7)

    product = await vault.ledger.release(product.id, 3)
    assert levels(product) == (10, 0, 10)


@pytest.mark.asyncio
async def test_reserve_exact_available_empties_product(vault, make_product):
    product = await make_product(quantity=4)
    product = await vault.ledger.reserve(product.id, 4)
    assert levels(product) == (4, 4, 0)
    assert product.status == "OUT_OF_STOCK"

    with pytest.raises(InsufficientStock):
        await vault.ledger.reserve(product.id, 1)


@pytest.mark.asyncio
async def test_release_more_than_reserved_is_rejected(vault, make_product):
    product = await make_product(quantity=10)
    await vault.ledger.reserve(product.id, 2)

    with pytest.raises(ValidationFailed):
        await vault.ledger.release(product.id, 3)
    assert levels(await vault.ledger.get_levels(product.id)) == (10, 2, 8)


@pytest.mark.asyncio
@pytest.mark.parametrize("quantity", [0, -1, 1.5, True])
async def test_non_positive_quantities_are_rejected(vault, make_product, quantity):
    product = await make_product(quantity=10)
    with pytest.raises(ValidationFailed):
        await vault.ledger.reserve(product.id, quantity)
    with pytest.raises(ValidationFailed):
        await vault.ledger.release(product.id, quantity)


@pytest.mark.asyncio
async def test_unknown_product_is_not_found(vault):
    with pytest.raises(NotFound):
        await vault.ledger.reserve("missing", 1)
    with pytest.raises(NotFound):
        await vault.ledger.adjust("missing", 5)
    with pytest.raises(NotFound):
        await vault.ledger.get_levels("missing")


# ─── Test 2: Adjust ────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_adjust_round_trip_restores_levels_and_status(vault, make_product):
    product = await make_product(quantity=10)
    before = (levels(product), product.status)

    product = await vault.ledger.adjust(product.id, 5)
    assert levels(product) == (15, 0, 15)

    product = await vault.ledger.adjust(product.id, -5)
    assert (levels(product), product.status) == before


@pytest.mark.asyncio
async def test_adjust_cannot_drop_quantity_below_reserved(vault, make_product):
    product = await make_product(quantity=10)
    await vault.ledger.reserve(product.id, 8)

    with pytest.raises(InsufficientStock) as exc_info:
        await vault.ledger.adjust(product.id, -5)
    assert exc_info.value.requested == 5
    assert levels(await vault.ledger.get_levels(product.id)) == (10, 8, 2)

    product = await vault.ledger.adjust(product.id, -2)
    assert levels(product) == (8, 8, 0)


@pytest.mark.asyncio
async def test_adjust_zero_delta_is_rejected(vault, make_product):
    product = await make_product(quantity=10)
    with pytest.raises(ValidationFailed):
        await vault.ledger.adjust(product.id, 0)


# ─── Test 3: Concurrency ───────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_concurrent_reservations_never_oversell(vault, make_product):
    """
    Twelve concurrent single-unit reservations against five units: exactly
    five succeed, the rest fail with InsufficientStock and write nothing.
    """
    product = await make_product(quantity=5)

    results = await asyncio.gather(
        *(vault.ledger.reserve(product.id, 1) for _ in range(12)),
        return_exceptions=True,
    )
    successes = [r for r in results if not isinstance(r, Exception)]
    failures = [r for r in results if isinstance(r, InsufficientStock)]

    assert len(successes) == 5, f"Expected 5 reservations, got {len(successes)}: oversold?"
    assert len(failures) == 7
    final = await vault.ledger.get_levels(product.id)
    assert levels(final) == (5, 5, 0)
    assert len(await vault.journal.by_product(product.id)) == 5


@pytest.mark.asyncio
async def test_concurrent_mixed_operations_keep_available_consistent(vault, make_product):
    product = await make_product(quantity=20)
    await vault.ledger.reserve(product.id, 6)

    ops = [vault.ledger.reserve(product.id, 2) for _ in range(4)]
    ops += [vault.ledger.release(product.id, 1) for _ in range(3)]
    ops += [vault.ledger.adjust(product.id, 3) for _ in range(2)]
    results = await asyncio.gather(*ops, return_exceptions=True)
    assert not [r for r in results if isinstance(r, Exception)]

    final = await vault.ledger.get_levels(product.id)
    assert final.quantity == 26
    assert final.reserved == 6 + 8 - 3
    assert final.available == final.quantity - final.reserved


# ─── Test 4: Status derivation ─────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_status_follows_available(vault, make_product):
    product = await make_product(quantity=3)
    assert product.status == "AVAILABLE"

    product = await vault.ledger.adjust(product.id, -3)
    assert product.status == "OUT_OF_STOCK"

    product = await vault.ledger.adjust(product.id, 2)
    assert product.status == "AVAILABLE"


@pytest.mark.asyncio
async def test_product_created_without_stock_is_out_of_stock(make_product):
    product = await make_product(quantity=0)
    assert product.status == "OUT_OF_STOCK"


@pytest.mark.asyncio
async def test_manual_status_survives_ledger_updates(vault, make_product):
    product = await make_product(quantity=5)
    await vault.products.set_status(product.id, "DISCONTINUED")

    product = await vault.ledger.reserve(product.id, 5)
    assert product.status == "DISCONTINUED"
    product = await vault.ledger.release(product.id, 5)
    assert product.status == "DISCONTINUED"

    product = await vault.products.set_status(product.id, "AVAILABLE")
    assert product.status == "AVAILABLE"


# ─── Test 5: Journal ───────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_every_mutation_is_journaled(vault, clock, make_product):
    product = await make_product(quantity=10)

    await vault.ledger.reserve(
        product.id, 3, entry=JournalEntry(TransactionType.SALE, order_id="order-1", notes="Reserved")
    )
    clock.advance(minutes=1)
    await vault.ledger.release(product.id, 3)
    clock.advance(minutes=1)
    await vault.ledger.adjust(product.id, -4)

    adjustment, release, sale = await vault.journal.by_product(product.id)
    assert (sale.type, sale.quantity, sale.quantity_before, sale.quantity_after) == ("SALE", -3, 10, 7)
    assert sale.order_id == "order-1"
    assert (release.type, release.quantity, release.quantity_before, release.quantity_after) == ("RETURN", 3, 7, 10)
    assert (adjustment.type, adjustment.quantity) == ("ADJUSTMENT", -4)
    assert (adjustment.quantity_before, adjustment.quantity_after) == (10, 6)

    summary = {row["type"]: row for row in await vault.journal.summary()}
    assert summary["SALE"]["count"] == 1
    assert summary["ADJUSTMENT"]["total_quantity"] == -4
    assert [t.id for t in await vault.journal.by_order("order-1")] == [sale.id]
    assert len(await vault.journal.by_date_range(clock().replace(hour=0), clock())) == 3


@pytest.mark.asyncio
async def test_failed_reservation_is_not_journaled(vault, make_product):
    product = await make_product(quantity=1)
    with pytest.raises(InsufficientStock):
        await vault.ledger.reserve(product.id, 2)
    assert await vault.journal.by_product(product.id) == []


@pytest.mark.asyncio
async def test_fail_closed_journal_rolls_back_the_mutation(vault, make_product):
    product = await make_product(quantity=10)
    async with vault.engine.begin() as conn:
        await conn.execute(text("DROP TABLE inventory_transactions"))

    with pytest.raises(Transient):
        await vault.ledger.reserve(product.id, 3)
    assert levels(await vault.ledger.get_levels(product.id)) == (10, 0, 10)


@pytest.mark.asyncio
async def test_store_failure_surfaces_as_transient(vault, make_product):
    product = await make_product(quantity=10)
    async with vault.engine.begin() as conn:
        await conn.execute(text("DROP TABLE products"))

    with pytest.raises(Transient):
        await vault.ledger.reserve(product.id, 1)
    with pytest.raises(Transient):
        await vault.ledger.adjust(product.id, 5)
    with pytest.raises(Transient):
        await vault.ledger.get_levels(product.id)


@pytest.mark.asyncio
async def test_best_effort_journal_keeps_the_mutation(vault, make_product):
    vault.journal.fail_closed = False
    product = await make_product(quantity=10)
    async with vault.engine.begin() as conn:
        await conn.execute(text("DROP TABLE inventory_transactions"))

    product = await vault.ledger.reserve(product.id, 3)
    assert levels(product) == (10, 3, 7)
    assert levels(await vault.ledger.get_levels(product.id)) == (10, 3, 7)


# ─── Test 6: Stock cache ───────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_committed_available_is_written_to_cache(vault, fake_redis, make_product):
    product = await make_product(quantity=10)
    await vault.ledger.reserve(product.id, 4)

    key = f"stock:{product.id}"
    assert fake_redis.store[key] == "6"
    assert fake_redis.ttls[key] == vault.settings.STOCK_CACHE_TTL_SECONDS


@pytest.mark.asyncio
async def test_failed_reservation_leaves_cache_alone(vault, fake_redis, make_product):
    product = await make_product(quantity=2)
    await vault.ledger.get_levels(product.id)
    with pytest.raises(InsufficientStock):
        await vault.ledger.reserve(product.id, 3)
    assert fake_redis.store[f"stock:{product.id}"] == "2"
