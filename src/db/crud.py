# src/db/crud.py
from __future__ import annotations

import random
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Iterable, List, Optional, Tuple

from db import models
from db.database import connect, transaction
from utils.logger import get_logger

_logger = get_logger(__name__)

_PRODUCT_COLUMNS = (
    "pid, name, category, retail_price, mrp, pickup_postal_code, "
    "is_trial_available, seller_id"
)
_ADDRESS_COLUMNS = "aid, street, city, state, postal_code, country, is_default"
_ORDER_COLUMNS = (
    "oid, uid, total, placed_at, status, ship_aid, ship_street, ship_city, "
    "ship_state, ship_postal_code, ship_country, is_trial_order, purchase_subtotal, "
    "trial_shipping_fee, total_shipping_fee, total_tax, delivery_person, "
    "delivery_phone, delivery_vehicle"
)


def _to_decimal(val) -> Optional[Decimal]:
    if val is None or val == "":
        return None
    try:
        return Decimal(str(val))
    except (InvalidOperation, ValueError):
        return None


def _money(val: Optional[Decimal]) -> Optional[str]:
    return None if val is None else str(val)


def _row_to_product(row) -> models.Product:
    return models.Product(
        pid=row[0],
        name=row[1],
        category=row[2],
        retail_price=_to_decimal(row[3]) or Decimal(0),
        mrp=_to_decimal(row[4]),
        pickup_postal_code=row[5] or None,
        is_trial_available=bool(row[6]),
        seller_id=row[7],
    )


def _row_to_address(row) -> models.Address:
    return models.Address(
        aid=row[0],
        street=row[1],
        city=row[2],
        state=row[3],
        postal_code=row[4] or None,
        country=row[5],
        is_default=bool(row[6]),
    )


# ---------------------------
# Customers & Addresses
# ---------------------------


async def get_customer(uid: str) -> Optional[models.Customer]:
    """Return the Customer row for a given uid, or None."""
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT uid, name, email FROM users WHERE uid = ?;", (uid,)
        )
        row = await cur.fetchone()
        await cur.close()
    if not row:
        return None
    return models.Customer(uid=row[0], name=row[1], email=row[2])


async def list_addresses(uid: str) -> List[models.Address]:
    """Addresses of a customer, default first."""
    async with connect() as conn:
        cur = await conn.execute(
            f"""
            SELECT {_ADDRESS_COLUMNS}
            FROM addresses
            WHERE uid = ?
            ORDER BY is_default DESC, aid;
            """,
            (uid,),
        )
        rows = await cur.fetchall()
        await cur.close()
    return [_row_to_address(row) for row in rows]


async def set_default_address(uid: str, aid: str) -> bool:
    """Mark `aid` as the customer's default address. False if it isn't theirs."""
    async with transaction() as conn:
        cur = await conn.execute(
            "SELECT 1 FROM addresses WHERE uid = ? AND aid = ?;", (uid, aid)
        )
        exists = await cur.fetchone()
        await cur.close()
        if not exists:
            return False
        await conn.execute(
            "UPDATE addresses SET is_default = (aid = ?) WHERE uid = ?;", (aid, uid)
        )
    return True


# ---------------------------
# Products
# ---------------------------


async def get_product(pid: str) -> Optional[models.Product]:
    """Fetch a product by pid."""
    async with connect() as conn:
        cur = await conn.execute(
            f"SELECT {_PRODUCT_COLUMNS} FROM products WHERE pid = ?;", (pid,)
        )
        row = await cur.fetchone()
        await cur.close()
    if not row:
        return None
    return _row_to_product(row)


async def list_products(category: Optional[str] = None) -> List[models.Product]:
    """All products ordered by pid, optionally only one category."""
    async with connect() as conn:
        if category:
            cur = await conn.execute(
                f"SELECT {_PRODUCT_COLUMNS} FROM products WHERE category = ? ORDER BY pid;",
                (category,),
            )
        else:
            cur = await conn.execute(
                f"SELECT {_PRODUCT_COLUMNS} FROM products ORDER BY pid;"
            )
        rows = await cur.fetchall()
        await cur.close()
    return [_row_to_product(row) for row in rows]


async def update_product_price(
    pid: str, retail_price: Optional[Decimal], mrp: Optional[Decimal] = None
) -> bool:
    """
    Update retail price and/or MRP (only provided fields). Return True if a row was updated.
    """
    if retail_price is None and mrp is None:
        return False
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT retail_price, mrp FROM products WHERE pid = ?;", (pid,)
        )
        row = await cur.fetchone()
        await cur.close()
        if not row:
            return False
        upd_price = _money(retail_price) if retail_price is not None else row[0]
        upd_mrp = _money(mrp) if mrp is not None else row[1]
        res = await conn.execute(
            "UPDATE products SET retail_price = ?, mrp = ? WHERE pid = ?;",
            (upd_price, upd_mrp, pid),
        )
        await conn.commit()
        return res.rowcount > 0


# ---------------------------
# GST Rates
# ---------------------------


async def fetch_rate_table() -> List[models.RateEntry]:
    """Every category rate, including the "Default" fallback if present."""
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT category, rate FROM gst_rates ORDER BY category;"
        )
        rows = await cur.fetchall()
        await cur.close()
    entries = []
    for category, rate in rows:
        value = _to_decimal(rate)
        if value is None:
            _logger.warning(f"Skipping malformed GST rate for {category!r}: {rate!r}")
            continue
        entries.append(models.RateEntry(category=category, rate=value))
    return entries


async def set_rate(category: str, rate: Decimal) -> None:
    """Insert or replace the rate for a category."""
    async with transaction() as conn:
        await conn.execute(
            """
            INSERT INTO gst_rates(category, rate) VALUES (?, ?)
            ON CONFLICT(category) DO UPDATE SET rate = excluded.rate;
            """,
            (category, _money(rate)),
        )


# ---------------------------
# Orders
# ---------------------------


async def create_order(
    user_id: str,
    items: Iterable[models.LineItem],
    total: Decimal,
    shipping_address: models.Address,
    is_trial_order: bool = False,
    totals: Optional[models.OrderTotals] = None,
    placed_at: Optional[datetime] = None,
) -> models.Order:
    """
    Persist an order and its items in one transaction and return it.

    `total` is stored exactly as given; it is never recomputed here. Each item
    keeps the price actually charged (retail price for purchases, 0 for trial
    items) so later price changes don't reach the order. When `totals` is
    given its breakdown is frozen alongside the total.
    """
    placed_at = placed_at or datetime.now()
    order_items = tuple(
        models.OrderItem(
            pid=i.pid,
            name=i.name,
            price=Decimal(0) if i.is_trial else i.unit_price,
            quantity=i.quantity,
            mode=i.mode,
            category=i.category,
            mrp=i.mrp,
        )
        for i in items
    )
    breakdown = (
        (
            totals.purchase_subtotal,
            totals.trial_shipping_fee,
            totals.total_shipping_fee,
            totals.total_tax,
        )
        if totals is not None
        else (Decimal(0), Decimal(0), Decimal(0), Decimal(0))
    )

    async with transaction() as conn:
        # pick unique order id
        while True:
            oid = f"ord_{random.randint(100000, 999999)}"
            cur = await conn.execute("SELECT 1 FROM orders WHERE oid = ?;", (oid,))
            exists = await cur.fetchone()
            await cur.close()
            if not exists:
                break

        await conn.execute(
            """
            INSERT INTO orders(oid, uid, total, placed_at, status, ship_aid, ship_street,
                               ship_city, ship_state, ship_postal_code, ship_country,
                               is_trial_order, purchase_subtotal, trial_shipping_fee,
                               total_shipping_fee, total_tax)
            VALUES (?, ?, ?, ?, 'Processing', ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                oid,
                user_id,
                _money(total),
                placed_at.isoformat(),
                shipping_address.aid,
                shipping_address.street,
                shipping_address.city,
                shipping_address.state,
                shipping_address.postal_code,
                shipping_address.country,
                int(is_trial_order),
                *(_money(v) for v in breakdown),
            ),
        )
        for line_no, item in enumerate(order_items, start=1):
            await conn.execute(
                """
                INSERT INTO order_items(oid, line_no, pid, name, price, quantity, mode, category, mrp)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    oid,
                    line_no,
                    item.pid,
                    item.name,
                    _money(item.price),
                    item.quantity,
                    item.mode.value,
                    item.category,
                    _money(item.mrp),
                ),
            )

    _logger.info(f"Created order {oid} for {user_id}: total {total}")
    return models.Order(
        oid=oid,
        user_id=user_id,
        items=order_items,
        total=total,
        placed_at=placed_at,
        status="Processing",
        shipping_address=shipping_address,
        is_trial_order=is_trial_order,
        purchase_subtotal=breakdown[0],
        trial_shipping_fee=breakdown[1],
        total_shipping_fee=breakdown[2],
        total_tax=breakdown[3],
    )


def _row_to_order(row, item_rows) -> models.Order:
    delivery = None
    if row[16]:
        delivery = models.DeliveryInfo(
            person_name=row[16], phone=row[17] or "", vehicle_number=row[18] or ""
        )
    return models.Order(
        oid=row[0],
        user_id=row[1],
        items=tuple(
            models.OrderItem(
                pid=r[0],
                name=r[1],
                price=_to_decimal(r[2]) or Decimal(0),
                quantity=int(r[3]),
                mode=models.PurchaseMode(r[4]),
                category=r[5],
                mrp=_to_decimal(r[6]),
            )
            for r in item_rows
        ),
        total=_to_decimal(row[2]) or Decimal(0),
        placed_at=datetime.fromisoformat(row[3]),
        status=row[4],
        shipping_address=models.Address(
            aid=row[5],
            street=row[6],
            city=row[7],
            state=row[8],
            postal_code=row[9] or None,
            country=row[10],
        ),
        is_trial_order=bool(row[11]),
        purchase_subtotal=_to_decimal(row[12]) or Decimal(0),
        trial_shipping_fee=_to_decimal(row[13]) or Decimal(0),
        total_shipping_fee=_to_decimal(row[14]) or Decimal(0),
        total_tax=_to_decimal(row[15]) or Decimal(0),
        delivery=delivery,
    )


async def _fetch_items(conn, oid: str) -> list:
    cur = await conn.execute(
        """
        SELECT pid, name, price, quantity, mode, category, mrp
        FROM order_items
        WHERE oid = ?
        ORDER BY line_no;
        """,
        (oid,),
    )
    rows = await cur.fetchall()
    await cur.close()
    return rows


async def fetch_order_by_id(oid: str) -> Optional[models.Order]:
    """Return the stored order with its frozen items and totals, or None."""
    async with connect() as conn:
        cur = await conn.execute(
            f"SELECT {_ORDER_COLUMNS} FROM orders WHERE oid = ?;", (oid,)
        )
        row = await cur.fetchone()
        await cur.close()
        if not row:
            return None
        item_rows = await _fetch_items(conn, oid)
    return _row_to_order(row, item_rows)


async def list_orders(
    uid: str, page: int, page_size: int = 5, is_trial: Optional[bool] = None
) -> Tuple[List[models.Order], int]:
    """
    List a customer's orders newest first, paginated; optionally only trial
    (or only regular) orders. Return (orders_for_page, total_count).
    """
    where = "uid = ?"
    params: list = [uid]
    if is_trial is not None:
        where += " AND is_trial_order = ?"
        params.append(int(is_trial))

    async with connect() as conn:
        cur = await conn.execute(
            f"SELECT COUNT(*) FROM orders WHERE {where};", tuple(params)
        )
        total = (await cur.fetchone())[0]
        await cur.close()
        offset = max(page - 1, 0) * page_size
        cur = await conn.execute(
            f"""
            SELECT {_ORDER_COLUMNS}
            FROM orders
            WHERE {where}
            ORDER BY placed_at DESC, oid
            LIMIT ? OFFSET ?;
            """,
            tuple(params + [page_size, offset]),
        )
        rows = await cur.fetchall()
        await cur.close()
        orders = [_row_to_order(row, await _fetch_items(conn, row[0])) for row in rows]
    return orders, total


async def update_order_status(
    oid: str, status: str, delivery: Optional[models.DeliveryInfo] = None
) -> bool:
    """Move an order to another status, optionally recording who delivers it."""
    if status not in models.ORDER_STATUSES:
        raise ValueError(f"Unknown order status: {status}")
    async with connect() as conn:
        if delivery is None:
            res = await conn.execute(
                "UPDATE orders SET status = ? WHERE oid = ?;", (status, oid)
            )
        else:
            res = await conn.execute(
                """
                UPDATE orders
                SET status = ?, delivery_person = ?, delivery_phone = ?, delivery_vehicle = ?
                WHERE oid = ?;
                """,
                (status, delivery.person_name, delivery.phone, delivery.vehicle_number, oid),
            )
        await conn.commit()
        return res.rowcount > 0
