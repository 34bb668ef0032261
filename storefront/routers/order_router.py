import logging

from fastapi import APIRouter, Depends, Query, status
from pika.exceptions import AMQPError
from sqlalchemy.orm import Session, sessionmaker
from typing import Dict

from .. import schemas, order_crud
from ..auth import get_current_user
from ..checkout import CheckoutCoordinator, CheckoutResult
from ..database import get_db, get_session_factory
from ..errors import CheckoutError, to_http_exception
from ..messaging import publish_event

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/orders",
    tags=["Orders"]
)


def _publish_order_created(result: CheckoutResult) -> None:
    """Announce a committed order. The order stands even if the broker is down."""
    try:
        publish_event(
            "order.created",
            {
                "order_id": result.order_id,
                "user_id": result.user_id,
                "total_amount": str(result.total_amount),
                "items": [
                    {"product_id": line.product_id, "quantity": line.quantity, "price": str(line.unit_price)}
                    for line in result.lines
                ],
            },
        )
    except (AMQPError, OSError):
        logger.exception("Failed to publish order.created for order %s", result.order_id)


@router.post("/", response_model=schemas.OrderCreatedOut, status_code=status.HTTP_201_CREATED)
def checkout_my_cart(
    body: schemas.CheckoutRequest,
    current_user: Dict = Depends(get_current_user),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    """Turn the current user's cart into a pending order.

    - Stock is decremented and the cart emptied in the same transaction.
    - On any failure nothing changes: the cart, the stock and the order table
      are left exactly as they were.
    """
    coordinator = CheckoutCoordinator(session_factory)
    try:
        result = coordinator.checkout(current_user["id"], body.shipping_address)
    except CheckoutError as e:
        raise to_http_exception(e)

    _publish_order_created(result)

    return {
        "id": result.order_id,
        "total_amount": result.total_amount,
        "status": result.status,
        "created_at": result.created_at,
    }


@router.get("/", response_model=schemas.OrderListResponse)
def get_my_orders(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(10, ge=1, le=100, description="Orders per page"),
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    orders, pagination = order_crud.get_orders_by_user(db, current_user["id"], page=page, limit=limit)
    return {"orders": orders, "pagination": pagination}


@router.get("/stats", response_model=schemas.OrderStatsOut)
def get_my_order_stats(
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return order_crud.get_order_stats(db, current_user["id"])


@router.get("/{order_id:int}", response_model=schemas.OrderDetailOut)
def get_my_order(
    order_id: int,
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Order with its items; items whose product was deleted have product=null."""
    try:
        return order_crud.get_order_detail(db, current_user["id"], order_id)
    except CheckoutError as e:
        raise to_http_exception(e)
