from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from .models import Product


def conditional_decrement(db: Session, product_id: int, quantity: int) -> bool:
    """Subtract quantity from the product's stock iff enough is left.

    Runs as a single guarded UPDATE, so the check and the write happen
    atomically in the database. Returns True when the row was updated.
    """
    if quantity <= 0:
        raise ValueError("quantity must be > 0")

    result = db.execute(
        update(Product)
        .where(Product.id == product_id, Product.stock_quantity >= quantity)
        .values(stock_quantity=Product.stock_quantity - quantity)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def get_stock_quantity(db: Session, product_id: int) -> Optional[int]:
    return db.execute(
        select(Product.stock_quantity).where(Product.id == product_id)
    ).scalar_one_or_none()
