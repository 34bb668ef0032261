"""Cart-to-order checkout.

The coordinator turns a user's cart into a pending order in one unit of
work: snapshot the cart, pre-check stock, write the order, decrement stock
with a guarded UPDATE per line, clear the cart, commit. Any failure rolls
the whole unit back before the error reaches the caller.
"""
from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List

from sqlalchemy.orm import sessionmaker

from . import cart_crud, inventory, order_crud
from .cart_crud import CartSnapshot
from .errors import CheckoutError, EmptyCart, InsufficientStock, Shortfall, StockConflict, TransactionFailed
from .order_crud import OrderLine
from .unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutResult:
    order_id: int
    user_id: int
    total_amount: Decimal
    status: str
    created_at: dt.datetime
    lines: List[OrderLine] = field(default_factory=list)


def validate_stock(snapshot: CartSnapshot) -> List[Shortfall]:
    """Pre-flight stock check against the snapshot.

    Advisory only: stock may change before the decrement runs. An empty
    list means every line fits the stock that was read.
    """
    if snapshot.is_empty:
        raise EmptyCart()

    return [
        Shortfall(
            product_id=entry.product_id,
            product_name=entry.product_name,
            requested=entry.quantity,
            available=entry.stock_quantity,
        )
        for entry in snapshot.entries
        if entry.quantity > entry.stock_quantity
    ]


class CheckoutCoordinator:
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def checkout(self, user_id: int, shipping_address: str) -> CheckoutResult:
        logger.info("[user=%s] CHECKOUT START", user_id)
        try:
            with UnitOfWork(self.session_factory) as uow:
                result = self._place_order(uow, user_id, shipping_address)
                uow.commit()
        except CheckoutError as e:
            logger.warning("[user=%s] CHECKOUT FAILED (%s): %s", user_id, e.kind, e.message)
            raise
        except Exception as e:
            logger.exception("[user=%s] CHECKOUT FAILED (transaction_failed)", user_id)
            raise TransactionFailed() from e

        logger.info(
            "[user=%s] CHECKOUT OK order=%s total=%s", user_id, result.order_id, result.total_amount
        )
        return result

    def _place_order(self, uow: UnitOfWork, user_id: int, shipping_address: str) -> CheckoutResult:
        db = uow.session
        snapshot = cart_crud.read_cart_snapshot(db, user_id, lock=True)
        if snapshot.is_empty:
            raise EmptyCart()

        shortfalls = validate_stock(snapshot)
        if shortfalls:
            raise InsufficientStock(shortfalls)

        lines = [OrderLine(e.product_id, e.quantity, e.unit_price) for e in snapshot.entries]
        db_order = order_crud.create_order(
            db, user_id=user_id, lines=lines, shipping_address=shipping_address
        )
        logger.info("[user=%s] order %s written, total=%s", user_id, db_order.id, db_order.total_amount)

        for entry in snapshot.entries:
            if not inventory.conditional_decrement(db, entry.product_id, entry.quantity):
                available = inventory.get_stock_quantity(db, entry.product_id)
                logger.info("[user=%s] decrement refused for product %s", user_id, entry.product_id)
                raise StockConflict(entry.product_id, entry.quantity, available)
            uow.record_decrement(entry.product_id, entry.quantity)

        # conditional on the snapshot lines still being there
        cleared = cart_crud.clear_snapshot_items(db, snapshot)
        logger.info("[user=%s] cart %s cleared (%d items)", user_id, snapshot.cart_id, cleared)

        # Read before commit; the instance expires afterwards.
        return CheckoutResult(
            order_id=db_order.id,
            user_id=user_id,
            total_amount=order_crud.money(db_order.total_amount),
            status=db_order.status,
            created_at=db_order.created_at,
            lines=lines,
        )
