from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import and_, delete, select
from sqlalchemy.orm import Session

from .errors import CartNotFound, EmptyCart, InsufficientStock, NotFound, Shortfall
from .models import Cart, CartItem, Product

CENTS = Decimal("0.01")


@dataclass(frozen=True)
class SnapshotEntry:
    cart_item_id: int
    product_id: int
    product_name: str
    quantity: int
    unit_price: Decimal
    stock_quantity: int

    @property
    def line_total(self) -> Decimal:
        return (self.unit_price * self.quantity).quantize(CENTS)


@dataclass(frozen=True)
class CartSnapshot:
    """Cart contents joined with product price/stock as read at one instant."""

    user_id: int
    cart_id: int
    entries: List[SnapshotEntry] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.entries


def get_cart_id(db: Session, user_id: int, *, lock: bool = False) -> int:
    query = select(Cart.id).where(Cart.user_id == user_id)
    if lock:
        query = query.with_for_update()
    cart_id = db.execute(query).scalar_one_or_none()
    if cart_id is None:
        raise CartNotFound(user_id)
    return cart_id


def read_cart_snapshot(db: Session, user_id: int, *, lock: bool = False) -> CartSnapshot:
    """Return the user's cart lines for active products, oldest first.

    Lines whose product is inactive or gone are left out. lock=True takes a
    row lock on the cart so two checkouts of the same cart run one after the
    other.
    """
    cart_id = get_cart_id(db, user_id, lock=lock)

    rows = db.execute(
        select(
            CartItem.id,
            CartItem.quantity,
            Product.id,
            Product.name,
            Product.price,
            Product.stock_quantity,
        )
        .join(Product, and_(CartItem.product_id == Product.id, Product.is_active.is_(True)))
        .where(CartItem.cart_id == cart_id)
        .order_by(CartItem.added_at, CartItem.id)
    ).all()

    entries = [
        SnapshotEntry(
            cart_item_id=cart_item_id,
            product_id=product_id,
            product_name=name,
            quantity=int(quantity),
            unit_price=Decimal(str(price)).quantize(CENTS),
            stock_quantity=int(stock),
        )
        for cart_item_id, quantity, product_id, name, price, stock in rows
    ]
    return CartSnapshot(user_id=user_id, cart_id=cart_id, entries=entries)


def clear_cart_items(db: Session, cart_id: int) -> int:
    """Delete every line of the cart without committing."""
    result = db.execute(delete(CartItem).where(CartItem.cart_id == cart_id))
    return int(result.rowcount or 0)


def clear_snapshot_items(db: Session, snapshot: CartSnapshot) -> int:
    """Delete the snapshot's lines, then whatever else is left in the cart.

    Raises EmptyCart when some snapshot line is already gone: another
    checkout of the same cart took it first.
    """
    ids = [entry.cart_item_id for entry in snapshot.entries]
    result = db.execute(delete(CartItem).where(CartItem.id.in_(ids)))
    removed = int(result.rowcount or 0)
    if removed != len(ids):
        raise EmptyCart("Cart was checked out by another request")

    # lines of inactive products are not in the snapshot
    return removed + clear_cart_items(db, snapshot.cart_id)


# -----------------------------
# Cart management (outside checkout)
# -----------------------------


def create_cart(db: Session, user_id: int) -> Cart:
    existing = db.query(Cart).filter(Cart.user_id == user_id).first()
    if existing is not None:
        return existing

    db_cart = Cart(user_id=user_id)
    db.add(db_cart)
    db.commit()
    db.refresh(db_cart)
    return db_cart


def get_cart_view(db: Session, user_id: int) -> Dict:
    cart_id = get_cart_id(db, user_id)

    rows = (
        db.query(CartItem, Product)
        .join(Product, and_(CartItem.product_id == Product.id, Product.is_active.is_(True)))
        .filter(CartItem.cart_id == cart_id)
        .order_by(CartItem.added_at.desc(), CartItem.id.desc())
        .all()
    )

    items = []
    cart_total = Decimal("0.00")
    for cart_item, product in rows:
        item_total = (Decimal(str(product.price)) * cart_item.quantity).quantize(CENTS)
        cart_total += item_total
        items.append(
            {
                "cart_item_id": cart_item.id,
                "quantity": cart_item.quantity,
                "added_at": cart_item.added_at,
                "product": product,
                "item_total": item_total,
            }
        )

    return {"items": items, "total_items": len(items), "cart_total": cart_total.quantize(CENTS)}


def _get_active_product(db: Session, product_id: int) -> Product:
    product = (
        db.query(Product)
        .filter(Product.id == product_id, Product.is_active.is_(True))
        .first()
    )
    if product is None:
        raise NotFound("Product not found or inactive")
    return product


def _ensure_stock(product: Product, quantity: int, already_in_cart: int = 0) -> None:
    if already_in_cart + quantity > product.stock_quantity:
        raise InsufficientStock(
            [Shortfall(product.id, product.name, already_in_cart + quantity, product.stock_quantity)],
            message=f"Insufficient stock. Only {product.stock_quantity} items available",
        )


def add_to_cart(db: Session, user_id: int, product_id: int, quantity: int) -> CartItem:
    """Add quantity of a product, merging with an existing line for it."""
    try:
        product = _get_active_product(db, product_id)
        cart_id = get_cart_id(db, user_id, lock=True)

        existing: Optional[CartItem] = (
            db.query(CartItem)
            .filter(CartItem.cart_id == cart_id, CartItem.product_id == product_id)
            .first()
        )
        if existing is not None:
            _ensure_stock(product, quantity, already_in_cart=existing.quantity)
            existing.quantity += quantity
            db_item = existing
        else:
            _ensure_stock(product, quantity)
            db_item = CartItem(cart_id=cart_id, product_id=product_id, quantity=quantity)
            db.add(db_item)

        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(db_item)
    return db_item


def _get_owned_item(db: Session, user_id: int, cart_item_id: int) -> CartItem:
    db_item = (
        db.query(CartItem)
        .join(Cart, CartItem.cart_id == Cart.id)
        .filter(CartItem.id == cart_item_id, Cart.user_id == user_id)
        .first()
    )
    if db_item is None:
        raise NotFound("Cart item not found")
    return db_item


def update_cart_item(db: Session, user_id: int, cart_item_id: int, quantity: int) -> CartItem:
    db_item = _get_owned_item(db, user_id, cart_item_id)
    try:
        product = _get_active_product(db, db_item.product_id)
    except NotFound:
        raise NotFound("Cart item not found") from None
    _ensure_stock(product, quantity)

    db_item.quantity = quantity
    db.commit()
    db.refresh(db_item)
    return db_item


def remove_cart_item(db: Session, user_id: int, cart_item_id: int) -> None:
    db_item = _get_owned_item(db, user_id, cart_item_id)
    db.delete(db_item)
    db.commit()


def clear_cart(db: Session, user_id: int) -> int:
    cart_id = get_cart_id(db, user_id)
    removed = clear_cart_items(db, cart_id)
    db.commit()
    return removed
