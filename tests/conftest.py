"""Pytest fixtures: a file-backed SQLite storefront per test."""
import os

# Must be set before storefront.database is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENABLE_EVENT_CONSUMERS", "0")

from decimal import Decimal

import pytest
from jose import jwt
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker

from storefront.auth import JWT_ALGORITHM, JWT_SECRET
from storefront.models import Base, Cart, CartItem, Order, OrderItem, Product

ADDRESS = "12 Bead Street, Beirut, Lebanon"


class Shop:
    """Seed and inspect helpers; each call uses its own committed session."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def add_product(self, name: str, price: str, stock: int, is_active: bool = True) -> int:
        with self.session_factory() as db:
            product = Product(name=name, price=Decimal(price), stock_quantity=stock, is_active=is_active)
            db.add(product)
            db.commit()
            return product.id

    def add_cart(self, user_id: int, items=()) -> int:
        with self.session_factory() as db:
            cart = Cart(user_id=user_id)
            db.add(cart)
            db.flush()
            for product_id, quantity in items:
                db.add(CartItem(cart_id=cart.id, product_id=product_id, quantity=quantity))
                db.flush()
            db.commit()
            return cart.id

    def set_price(self, product_id: int, price: str) -> None:
        with self.session_factory() as db:
            db.get(Product, product_id).price = Decimal(price)
            db.commit()

    def stock_of(self, product_id: int) -> int:
        with self.session_factory() as db:
            return db.execute(select(Product.stock_quantity).where(Product.id == product_id)).scalar_one()

    def cart_lines(self, user_id: int):
        with self.session_factory() as db:
            rows = db.execute(
                select(CartItem.id, CartItem.product_id, CartItem.quantity, CartItem.added_at)
                .join(Cart, CartItem.cart_id == Cart.id)
                .where(Cart.user_id == user_id)
                .order_by(CartItem.id)
            ).all()
            return [tuple(row) for row in rows]

    def orders(self, user_id=None):
        with self.session_factory() as db:
            query = select(Order.id, Order.user_id, Order.total_amount, Order.status).order_by(Order.id)
            if user_id is not None:
                query = query.where(Order.user_id == user_id)
            return [tuple(row) for row in db.execute(query).all()]

    def order_items(self, order_id: int):
        with self.session_factory() as db:
            rows = db.execute(
                select(OrderItem.product_id, OrderItem.quantity, OrderItem.price)
                .where(OrderItem.order_id == order_id)
                .order_by(OrderItem.id)
            ).all()
            return [tuple(row) for row in rows]

    def state(self):
        """Everything a failed checkout must leave untouched."""
        with self.session_factory() as db:
            products = db.execute(select(Product.id, Product.stock_quantity).order_by(Product.id)).all()
            cart_items = db.execute(
                select(CartItem.id, CartItem.cart_id, CartItem.product_id, CartItem.quantity, CartItem.added_at)
                .order_by(CartItem.id)
            ).all()
            orders = db.execute(select(Order.id).order_by(Order.id)).all()
            order_items = db.execute(select(OrderItem.id).order_by(OrderItem.id)).all()
        return (
            [tuple(r) for r in products],
            [tuple(r) for r in cart_items],
            [tuple(r) for r in orders],
            [tuple(r) for r in order_items],
        )


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'storefront.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def shop(session_factory) -> Shop:
    return Shop(session_factory)


def make_token(user_id: int) -> str:
    return jwt.encode({"userId": user_id}, JWT_SECRET, algorithm=JWT_ALGORITHM)


def auth_headers(user_id: int) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id)}"}
