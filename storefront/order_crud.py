from __future__ import annotations

import math
from decimal import Decimal
from typing import Dict, List, NamedTuple, Tuple

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from .errors import NotFound
from .models import Order, OrderItem, Product

CENTS = Decimal("0.01")

ORDER_STATUSES = ("pending", "processing", "shipped", "delivered", "cancelled")


class OrderLine(NamedTuple):
    product_id: int
    quantity: int
    unit_price: Decimal


def money(value) -> Decimal:
    return Decimal(str(value if value is not None else 0)).quantize(CENTS)


def order_total(lines: List[OrderLine]) -> Decimal:
    return sum((money(line.unit_price) * line.quantity for line in lines), Decimal("0.00")).quantize(CENTS)


def create_order(db: Session, *, user_id: int, lines: List[OrderLine], shipping_address: str) -> Order:
    """Write a pending order and its items inside the caller's transaction.

    The total is computed here from the captured unit prices. Nothing is
    committed; the caller decides.
    """
    if not lines:
        raise ValueError("an order needs at least one line")

    db_order = Order(
        user_id=user_id,
        total_amount=order_total(lines),
        shipping_address=shipping_address,
        status="pending",
    )
    db.add(db_order)
    db.flush()  # Get order ID without committing

    for line in lines:
        db.add(
            OrderItem(
                order_id=db_order.id,
                product_id=line.product_id,
                quantity=line.quantity,
                price=money(line.unit_price),
            )
        )
    db.flush()
    return db_order


# -----------------------------
# Queries (read-only)
# -----------------------------


def get_orders_by_user(db: Session, user_id: int, *, page: int = 1, limit: int = 10) -> Tuple[List[Order], Dict]:
    offset = (page - 1) * limit
    orders = (
        db.query(Order)
        .filter(Order.user_id == user_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    total_orders = get_user_order_count(db, user_id)
    total_pages = math.ceil(total_orders / limit) if limit else 0

    pagination = {
        "current_page": page,
        "total_pages": total_pages,
        "total_orders": total_orders,
        "has_next_page": page < total_pages,
        "has_prev_page": page > 1,
    }
    return orders, pagination


def get_user_order_count(db: Session, user_id: int) -> int:
    return db.query(Order).filter(Order.user_id == user_id).count()


def get_order_detail(db: Session, user_id: int, order_id: int) -> Dict:
    """Order header plus items, left-joined against the current catalog.

    An item whose product no longer exists keeps its captured price and
    quantity and gets product=None.
    """
    db_order = db.query(Order).filter(Order.id == order_id, Order.user_id == user_id).first()
    if db_order is None:
        raise NotFound("Order not found")

    rows = (
        db.query(OrderItem, Product)
        .outerjoin(Product, OrderItem.product_id == Product.id)
        .filter(OrderItem.order_id == db_order.id)
        .order_by(OrderItem.created_at, OrderItem.id)
        .all()
    )

    items = []
    for item, product in rows:
        price = money(item.price)
        items.append(
            {
                "quantity": item.quantity,
                "price": price,
                "item_total": (price * item.quantity).quantize(CENTS),
                "product": product,
            }
        )

    return {
        "id": db_order.id,
        "total_amount": money(db_order.total_amount),
        "status": db_order.status,
        "shipping_address": db_order.shipping_address,
        "created_at": db_order.created_at,
        "updated_at": db_order.updated_at,
        "items": items,
    }


def get_order_stats(db: Session, user_id: int) -> Dict:
    status_counts = [
        func.count(case((Order.status == status, 1))).label(f"{status}_orders")
        for status in ORDER_STATUSES
    ]
    row = db.execute(
        select(
            func.count(Order.id).label("total_orders"),
            func.coalesce(func.sum(Order.total_amount), 0).label("total_spent"),
            *status_counts,
        ).where(Order.user_id == user_id)
    ).one()

    stats = {
        "total_orders": int(row.total_orders),
        "total_spent": money(row.total_spent),
    }
    for status in ORDER_STATUSES:
        stats[f"{status}_orders"] = int(getattr(row, f"{status}_orders"))
    return stats
