from decimal import Decimal

import pytest
from sqlalchemy import delete

from storefront import cart_crud, inventory, order_crud
from storefront.checkout import CheckoutCoordinator
from storefront.errors import NotFound
from storefront.models import Order, Product
from storefront.order_crud import OrderLine

from conftest import ADDRESS


def test_order_total_uses_fixed_point_money():
    lines = [OrderLine(1, 3, Decimal("0.10")), OrderLine(2, 1, Decimal("0.20"))]

    assert order_crud.order_total(lines) == Decimal("0.50")


def test_create_order_requires_lines(db):
    with pytest.raises(ValueError):
        order_crud.create_order(db, user_id=1, lines=[], shipping_address=ADDRESS)


def test_create_order_does_not_commit(shop, db):
    a = shop.add_product("A", "10.00", stock=5)

    db_order = order_crud.create_order(
        db, user_id=1, lines=[OrderLine(a, 2, Decimal("10.00"))], shipping_address=ADDRESS
    )
    assert db_order.id is not None
    assert db_order.total_amount == Decimal("20.00")
    assert db_order.status == "pending"

    db.rollback()
    assert shop.orders() == []


def test_conditional_decrement_applies_only_when_enough_stock(shop, db):
    a = shop.add_product("A", "10.00", stock=3)

    assert inventory.conditional_decrement(db, a, 2) is True
    assert inventory.conditional_decrement(db, a, 2) is False
    assert inventory.conditional_decrement(db, a, 1) is True
    db.commit()

    assert shop.stock_of(a) == 0


def test_conditional_decrement_rejects_non_positive_quantity(db):
    with pytest.raises(ValueError):
        inventory.conditional_decrement(db, 1, 0)


def test_orders_listed_newest_first_with_pagination(shop, session_factory, db):
    a = shop.add_product("A", "1.00", stock=100)
    shop.add_cart(1)
    placed = []
    for quantity in (1, 2, 3):
        with session_factory() as s:
            cart_crud.add_to_cart(s, 1, a, quantity)
        placed.append(CheckoutCoordinator(session_factory).checkout(1, ADDRESS).order_id)

    orders, pagination = order_crud.get_orders_by_user(db, 1, page=1, limit=2)

    assert [o.id for o in orders] == [placed[2], placed[1]]
    assert pagination == {
        "current_page": 1,
        "total_pages": 2,
        "total_orders": 3,
        "has_next_page": True,
        "has_prev_page": False,
    }

    orders, pagination = order_crud.get_orders_by_user(db, 1, page=2, limit=2)
    assert [o.id for o in orders] == [placed[0]]
    assert pagination["has_next_page"] is False
    assert pagination["has_prev_page"] is True


def test_order_detail_keeps_items_of_deleted_products(shop, session_factory, db):
    a = shop.add_product("A", "10.00", stock=5)
    b = shop.add_product("B", "5.00", stock=5)
    shop.add_cart(1, [(a, 2), (b, 1)])
    result = CheckoutCoordinator(session_factory).checkout(1, ADDRESS)

    with session_factory() as s:
        s.execute(delete(Product).where(Product.id == b))
        s.commit()

    detail = order_crud.get_order_detail(db, 1, result.order_id)

    assert detail["total_amount"] == Decimal("25.00")
    assert [(i["quantity"], i["price"], i["item_total"]) for i in detail["items"]] == [
        (2, Decimal("10.00"), Decimal("20.00")),
        (1, Decimal("5.00"), Decimal("5.00")),
    ]
    assert detail["items"][0]["product"].id == a
    assert detail["items"][1]["product"] is None


def test_order_detail_of_someone_else_is_not_found(shop, session_factory, db):
    a = shop.add_product("A", "10.00", stock=5)
    shop.add_cart(1, [(a, 1)])
    result = CheckoutCoordinator(session_factory).checkout(1, ADDRESS)

    with pytest.raises(NotFound):
        order_crud.get_order_detail(db, 2, result.order_id)


def test_order_stats_count_by_status(shop, session_factory, db):
    a = shop.add_product("A", "10.00", stock=10)
    shop.add_cart(1, [(a, 2)])
    first = CheckoutCoordinator(session_factory).checkout(1, ADDRESS)

    with session_factory() as s:
        s.add(Order(user_id=1, total_amount=Decimal("5.50"), status="shipped", shipping_address=ADDRESS))
        s.add(Order(user_id=2, total_amount=Decimal("100.00"), status="pending", shipping_address=ADDRESS))
        s.commit()

    stats = order_crud.get_order_stats(db, 1)

    assert stats == {
        "total_orders": 2,
        "total_spent": first.total_amount + Decimal("5.50"),
        "pending_orders": 1,
        "processing_orders": 0,
        "shipped_orders": 1,
        "delivered_orders": 0,
        "cancelled_orders": 0,
    }


def test_order_stats_for_user_without_orders(db):
    stats = order_crud.get_order_stats(db, 42)

    assert stats["total_orders"] == 0
    assert stats["total_spent"] == Decimal("0.00")
