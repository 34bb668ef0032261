from __future__ import annotations

import logging
import os
from typing import Any, Dict

from sqlalchemy.orm import sessionmaker

from . import cart_crud
from .database import SessionLocal
from .messaging import start_consumer_in_thread

logger = logging.getLogger(__name__)

USER_REGISTERED_QUEUE = os.getenv("USER_REGISTERED_QUEUE", "storefront.user.registered.q")


def handle_user_registered(payload: Dict[str, Any], session_factory: sessionmaker = SessionLocal) -> None:
    """Give a newly registered user their cart.

    Expected payload (from the auth service):
    {
      "event": "user.registered",
      "user_id": 42
    }
    """
    user_id = payload.get("user_id")
    if not user_id:
        logger.warning("user.registered without user_id, ignoring: %s", payload)
        return

    db = session_factory()
    try:
        db_cart = cart_crud.create_cart(db, int(user_id))
        logger.info("Cart %s ready for user %s", db_cart.id, user_id)
    finally:
        db.close()


def start_user_registered_consumer() -> None:
    start_consumer_in_thread(
        queue_name=USER_REGISTERED_QUEUE,
        binding_keys=["user.registered"],
        handler=handle_user_registered,
    )
