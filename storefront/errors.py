from __future__ import annotations

from typing import Dict, List, NamedTuple, Optional

from fastapi import HTTPException, status


class Shortfall(NamedTuple):
    product_id: int
    product_name: str
    requested: int
    available: int


class CheckoutError(Exception):
    """Base for every failure the storefront reports to its caller."""

    kind = "checkout_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_detail(self) -> Dict:
        return {"error": self.kind, "message": self.message}


class NotFound(CheckoutError):
    kind = "not_found"


class CartNotFound(NotFound):
    def __init__(self, user_id: int):
        super().__init__(f"No cart exists for user {user_id}")
        self.user_id = user_id


class EmptyCart(CheckoutError):
    kind = "empty_cart"

    def __init__(self, message: str = "Cart is empty"):
        super().__init__(message)


class InsufficientStock(CheckoutError):
    kind = "insufficient_stock"

    def __init__(self, shortfalls: List[Shortfall], message: str = "Insufficient stock for some items"):
        super().__init__(message)
        self.shortfalls = list(shortfalls)

    def to_detail(self) -> Dict:
        detail = super().to_detail()
        detail["shortfalls"] = [s._asdict() for s in self.shortfalls]
        return detail


class StockConflict(CheckoutError):
    """Stock was taken by a concurrent checkout after the pre-flight check."""

    kind = "stock_conflict"

    def __init__(self, product_id: int, requested: int, available: Optional[int]):
        super().__init__(
            f"Stock for product {product_id} changed during checkout. "
            f"Requested: {requested}, Available: {available}"
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available

    def to_detail(self) -> Dict:
        detail = super().to_detail()
        detail.update(product_id=self.product_id, requested=self.requested, available=self.available)
        return detail


class TransactionFailed(CheckoutError):
    kind = "transaction_failed"

    def __init__(self, message: str = "Server error creating order"):
        super().__init__(message)


_HTTP_STATUS = (
    (NotFound, status.HTTP_404_NOT_FOUND),
    (EmptyCart, status.HTTP_400_BAD_REQUEST),
    (InsufficientStock, status.HTTP_400_BAD_REQUEST),
    (StockConflict, status.HTTP_409_CONFLICT),
    (TransactionFailed, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def to_http_exception(exc: CheckoutError) -> HTTPException:
    for cls, status_code in _HTTP_STATUS:
        if isinstance(exc, cls):
            return HTTPException(status_code=status_code, detail=exc.to_detail())
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.to_detail())
