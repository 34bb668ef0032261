from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import Dict

from .. import schemas, cart_crud
from ..auth import get_current_user
from ..database import get_db
from ..errors import CheckoutError, to_http_exception

router = APIRouter(
    prefix="/cart",
    tags=["Cart"]
)


@router.get("/", response_model=schemas.CartOut)
def get_my_cart(
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Return the current user's cart lines for active products, newest first."""
    try:
        return cart_crud.get_cart_view(db, current_user["id"])
    except CheckoutError as e:
        raise to_http_exception(e)


@router.post("/add", status_code=status.HTTP_201_CREATED)
def add_to_my_cart(
    body: schemas.AddToCartRequest,
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Add a product to the cart; an existing line for it gets the extra quantity."""
    try:
        db_item = cart_crud.add_to_cart(db, current_user["id"], body.product_id, body.quantity)
    except CheckoutError as e:
        raise to_http_exception(e)

    return {"cart_item_id": db_item.id, "product_id": db_item.product_id, "quantity": db_item.quantity}


@router.put("/items/{cart_item_id:int}")
def update_my_cart_item(
    cart_item_id: int,
    body: schemas.UpdateCartItemRequest,
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        db_item = cart_crud.update_cart_item(db, current_user["id"], cart_item_id, body.quantity)
    except CheckoutError as e:
        raise to_http_exception(e)

    return {"cart_item_id": db_item.id, "product_id": db_item.product_id, "quantity": db_item.quantity}


@router.delete("/items/{cart_item_id:int}", status_code=status.HTTP_204_NO_CONTENT)
def remove_my_cart_item(
    cart_item_id: int,
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        cart_crud.remove_cart_item(db, current_user["id"], cart_item_id)
    except CheckoutError as e:
        raise to_http_exception(e)
    return None


@router.delete("/clear")
def clear_my_cart(
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        removed = cart_crud.clear_cart(db, current_user["id"])
    except CheckoutError as e:
        raise to_http_exception(e)

    return {"removed": removed}
