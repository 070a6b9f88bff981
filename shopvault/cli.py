"""
ShopVault — Command line interface

Every command builds its own container, runs one coroutine against it and
closes it again. Failures print ``Error [KIND]: message`` and exit 1.
"""
import asyncio
import logging
from decimal import Decimal, InvalidOperation

import click

from shopvault.core.config import get_settings
from shopvault.core.errors import ShopVaultError, translate_db_errors
from shopvault.core.logging import configure_logging
from shopvault.db.container import ShopVault
from shopvault.db.journal import JournalEntry
from shopvault.db.order_status import valid_next_statuses
from shopvault.models.inventory import TransactionType
from shopvault.models.order import OrderStatus
from shopvault.models.product import ProductStatus
from shopvault.schemas.order import OrderSearch

logger = logging.getLogger(__name__)


def _run(ctx: click.Context, action):
    """Run ``action(vault)`` on a fresh container and return its result."""
    opts = ctx.find_root().obj

    async def main():
        vault = ShopVault.from_settings(opts["settings"], database_url=opts["database_url"])
        try:
            await vault.init_db()
            return await action(vault)
        finally:
            await vault.close()

    try:
        with translate_db_errors():
            return asyncio.run(main())
    except ShopVaultError as exc:
        click.echo(f"Error [{exc.kind}]: {exc.message}", err=True)
        ctx.exit(1)


def _money(value: str | None) -> Decimal | None:
    if value is None:
        return None
    try:
        return Decimal(value)
    except InvalidOperation:
        raise click.BadParameter(f"'{value}' is not an amount")


def _parse_item(raw: str) -> dict:
    product_id, sep, quantity = raw.rpartition(":")
    if not sep or not product_id or not quantity.isdigit():
        raise click.BadParameter(f"'{raw}' must look like PRODUCT_ID:QUANTITY")
    return {"product_id": product_id, "quantity": int(quantity)}


def _echo_product(product):
    click.echo(f"{product.sku}  {product.name}")
    click.echo(f"  id:        {product.id}")
    click.echo(f"  price:     {product.price}")
    click.echo(f"  status:    {product.status}")
    click.echo(f"  stock:     quantity={product.quantity} reserved={product.reserved} available={product.available}")
    click.echo(f"  sold:      {product.total_sold} (revenue {product.revenue})")


def _echo_order(order):
    click.echo(f"{order.order_number}  [{order.status}]")
    click.echo(f"  id:        {order.id}")
    click.echo(f"  customer:  {order.customer_first_name} {order.customer_last_name} <{order.customer_email}>")
    for item in order.items:
        click.echo(f"  - {item.sku:<20} {item.quantity:>4} x {item.price:>10}  = {item.subtotal:>10}")
    click.echo(
        f"  subtotal {order.subtotal}  discount {order.discount}  tax {order.tax}  "
        f"shipping {order.shipping_cost}  total {order.total}"
    )
    for entry in order.status_history:
        click.echo(f"  {entry.timestamp:%Y-%m-%d %H:%M:%S}  {entry.status:<10} {entry.updated_by}: {entry.note}")


@click.group()
@click.option("--database-url", default=None, help="SQLAlchemy URL; defaults to DATABASE_URL / POSTGRES_* settings.")
@click.option("--redis/--no-redis", "use_redis", default=None, help="Toggle the Redis stock cache.")
@click.option("--log-level", default=None, help="Overrides LOG_LEVEL.")
@click.pass_context
def cli(ctx: click.Context, database_url, use_redis, log_level):
    """ShopVault — inventory and order management"""
    settings = get_settings()
    if use_redis is not None:
        settings = settings.model_copy(update={"REDIS_ENABLED": use_redis})
    configure_logging(log_level or settings.LOG_LEVEL)
    ctx.obj = {"settings": settings, "database_url": database_url}


@cli.command("init-db")
@click.pass_context
def init_db(ctx):
    """Create any missing tables."""
    _run(ctx, lambda vault: vault.init_db())
    click.echo("Database initialised")


# ── Products ──────────────────────────────────────────────────


@cli.group()
def product():
    """Manage products."""


@product.command("create")
@click.option("--name", required=True)
@click.option("--description", required=True)
@click.option("--sku", required=True)
@click.option("--price", required=True)
@click.option("--cost", default="0")
@click.option("--brand", default=None)
@click.option("--quantity", type=int, default=0, show_default=True)
@click.option("--reorder-point", type=int, default=None)
@click.pass_context
def product_create(ctx, name, description, sku, price, cost, brand, quantity, reorder_point):
    data = {
        "name": name,
        "description": description,
        "sku": sku,
        "price": _money(price),
        "cost": _money(cost),
        "brand": brand,
        "quantity": quantity,
        "reorder_point": reorder_point,
    }
    created = _run(ctx, lambda vault: vault.products.create(data))
    click.echo(f"Created product {created.sku} ({created.id})")


@product.command("show")
@click.argument("product_ref")
@click.option("--sku", "by_sku", is_flag=True, help="Treat PRODUCT_REF as a SKU.")
@click.pass_context
def product_show(ctx, product_ref, by_sku):
    if by_sku:
        found = _run(ctx, lambda vault: vault.products.get_by_sku(product_ref))
    else:
        found = _run(ctx, lambda vault: vault.products.get(product_ref))
    _echo_product(found)


@product.command("low-stock")
@click.option("--threshold", type=int, default=None)
@click.pass_context
def product_low_stock(ctx, threshold):
    for p in _run(ctx, lambda vault: vault.products.list_low_stock(threshold)):
        click.echo(f"{p.sku:<20} available={p.available:<6} reorder_point={p.reorder_point}")


@product.command("out-of-stock")
@click.pass_context
def product_out_of_stock(ctx):
    for p in _run(ctx, lambda vault: vault.products.list_out_of_stock()):
        click.echo(f"{p.sku:<20} quantity={p.quantity:<6} reserved={p.reserved}")


@product.command("top-sellers")
@click.option("--limit", type=int, default=10, show_default=True)
@click.pass_context
def product_top_sellers(ctx, limit):
    for p in _run(ctx, lambda vault: vault.products.top_sellers(limit)):
        click.echo(f"{p.sku:<20} sold={p.total_sold:<6} revenue={p.revenue}")


@product.command("set-status")
@click.argument("product_id")
@click.argument("new_status", type=click.Choice([s.value for s in ProductStatus]))
@click.pass_context
def product_set_status(ctx, product_id, new_status):
    updated = _run(ctx, lambda vault: vault.products.set_status(product_id, new_status))
    click.echo(f"{updated.sku} is now {updated.status}")


# ── Stock ─────────────────────────────────────────────────────


@cli.group()
def stock():
    """Inspect and move stock."""


@stock.command("show")
@click.argument("product_id")
@click.pass_context
def stock_show(ctx, product_id):
    p = _run(ctx, lambda vault: vault.ledger.get_levels(product_id))
    click.echo(f"{p.sku}: quantity={p.quantity} reserved={p.reserved} available={p.available} status={p.status}")


@stock.command("adjust")
@click.argument("product_id")
@click.argument("delta", type=int)
@click.option(
    "--type", "type_",
    type=click.Choice([t.value for t in TransactionType]),
    default=None,
    help="Journal type; RESTOCK for positive deltas, ADJUSTMENT otherwise.",
)
@click.option("--notes", default="")
@click.option("--by", "performed_by", default="SYSTEM", show_default=True)
@click.pass_context
def stock_adjust(ctx, product_id, delta, type_, notes, performed_by):
    if delta == 0:
        raise click.BadParameter("DELTA must be non-zero")
    type_ = type_ or (TransactionType.RESTOCK if delta > 0 else TransactionType.ADJUSTMENT)
    entry = JournalEntry(TransactionType(type_), notes=notes, performed_by=performed_by)
    p = _run(ctx, lambda vault: vault.ledger.adjust(product_id, delta, entry=entry))
    click.echo(f"{p.sku}: quantity={p.quantity} reserved={p.reserved} available={p.available}")


# ── Users ─────────────────────────────────────────────────────


@cli.group()
def user():
    """Manage customers."""


@user.command("create")
@click.option("--email", required=True)
@click.option("--first-name", required=True)
@click.option("--last-name", required=True)
@click.option("--phone", default="")
@click.pass_context
def user_create(ctx, email, first_name, last_name, phone):
    data = {"email": email, "first_name": first_name, "last_name": last_name, "phone": phone}
    created = _run(ctx, lambda vault: vault.users.create(data))
    click.echo(f"Created user {created.email} ({created.id})")


@user.command("show")
@click.argument("user_id")
@click.pass_context
def user_show(ctx, user_id):
    u = _run(ctx, lambda vault: vault.users.get(user_id))
    click.echo(f"{u.full_name} <{u.email}>")
    click.echo(f"  orders: {u.total_orders}  spent: {u.total_spent}  last order: {u.last_order_date or '-'}")


# ── Orders ────────────────────────────────────────────────────


@cli.group()
def order():
    """Manage orders."""


@order.command("create")
@click.option("--user", "user_id", required=True)
@click.option("--item", "items", multiple=True, required=True, help="PRODUCT_ID:QUANTITY, repeatable.")
@click.option("--payment", default="CARD", show_default=True)
@click.option("--discount", default="0")
@click.option("--tax", default=None, help="Defaults to DEFAULT_TAX_RATE of the subtotal.")
@click.option("--shipping", default="0")
@click.option("--notes", default="")
@click.pass_context
def order_create(ctx, user_id, items, payment, discount, tax, shipping, notes):
    data = {
        "user_id": user_id,
        "items": [_parse_item(raw) for raw in items],
        "payment": {"method": payment},
        "pricing": {"discount": _money(discount), "tax": _money(tax), "shipping": _money(shipping)},
        "customer_notes": notes,
    }
    created = _run(ctx, lambda vault: vault.orchestrator.create_order(data))
    click.echo(f"Created order {created.order_number} ({created.id}) total={created.total}")


@order.command("show")
@click.argument("order_ref")
@click.option("--number", "by_number", is_flag=True, help="Treat ORDER_REF as an order number.")
@click.pass_context
def order_show(ctx, order_ref, by_number):
    if by_number:
        found = _run(ctx, lambda vault: vault.orders.get_by_number(order_ref))
    else:
        found = _run(ctx, lambda vault: vault.orders.get(order_ref))
    _echo_order(found)
    nxt = ", ".join(s.value for s in valid_next_statuses(found.status)) or "none (terminal)"
    click.echo(f"  next:      {nxt}")


@order.command("status")
@click.argument("order_id")
@click.argument("new_status", type=click.Choice([s.value for s in OrderStatus]))
@click.option("--note", default="")
@click.option("--by", "updated_by", default="ADMIN", show_default=True)
@click.pass_context
def order_status(ctx, order_id, new_status, note, updated_by):
    updated = _run(ctx, lambda vault: vault.state_machine.transition(order_id, new_status, note, updated_by))
    click.echo(f"Order {updated.order_number} is now {updated.status}")


@order.command("cancel")
@click.argument("order_id")
@click.option("--reason", default="")
@click.option("--by", "cancelled_by", default="CUSTOMER", show_default=True)
@click.pass_context
def order_cancel(ctx, order_id, reason, cancelled_by):
    updated = _run(ctx, lambda vault: vault.state_machine.cancel_order(order_id, reason, cancelled_by))
    click.echo(f"Order {updated.order_number} cancelled")


@order.command("list")
@click.option("--user", "user_id", default=None)
@click.option("--status", "status_", type=click.Choice([s.value for s in OrderStatus]), default=None)
@click.option("--page", type=int, default=1, show_default=True)
@click.option("--limit", type=int, default=10, show_default=True)
@click.pass_context
def order_list(ctx, user_id, status_, page, limit):
    criteria = OrderSearch(user_id=user_id, status=status_, page=page, limit=limit)
    result = _run(ctx, lambda vault: vault.orders.search(criteria))
    for o in result["orders"]:
        click.echo(f"{o.order_number:<20} {o.status:<11} {o.total:>10}  {o.customer_email}")
    click.echo(f"page {result['page']}/{result['pages']} ({result['total']} orders)")


@order.command("stats")
@click.pass_context
def order_stats(ctx):
    stats = _run(ctx, lambda vault: vault.orders.stats())
    click.echo(f"orders: {stats['total_orders']}  revenue: {stats['total_revenue']}  "
               f"average: {stats['average_order_value']}")
    for status_, count in stats["by_status"].items():
        click.echo(f"  {status_:<11} {count}")


# ── Inventory log ─────────────────────────────────────────────


@cli.group()
def inventory():
    """Read the inventory transaction log."""


@inventory.command("history")
@click.option("--product", "product_id", default=None)
@click.option("--order", "order_id", default=None)
@click.option("--type", "type_", type=click.Choice([t.value for t in TransactionType]), default=None)
@click.option("--limit", type=int, default=50, show_default=True)
@click.pass_context
def inventory_history(ctx, product_id, order_id, type_, limit):
    if product_id:
        action = lambda vault: vault.journal.by_product(product_id, limit)  # noqa: E731
    elif order_id:
        action = lambda vault: vault.journal.by_order(order_id)  # noqa: E731
    elif type_:
        action = lambda vault: vault.journal.by_type(type_, limit)  # noqa: E731
    else:
        raise click.UsageError("Pass one of --product, --order or --type")
    for t in _run(ctx, action):
        click.echo(
            f"{t.created_at:%Y-%m-%d %H:%M:%S}  {t.type:<10} {t.quantity:>+6}  "
            f"{t.quantity_before:>5} -> {t.quantity_after:<5} {t.performed_by}  {t.notes}"
        )


@inventory.command("summary")
@click.pass_context
def inventory_summary(ctx):
    for row in _run(ctx, lambda vault: vault.journal.summary()):
        click.echo(f"{row['type']:<12} count={row['count']:<6} net={row['total_quantity']:+d}")


if __name__ == "__main__":
    cli()
