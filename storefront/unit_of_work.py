from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

logger = logging.getLogger(__name__)


class UnitOfWork:
    """One session, one transaction, one commit-or-rollback decision.

    Leaving the ``with`` block without calling ``commit()`` rolls everything
    back, whatever the reason: a raised error, a cancelled request or an
    interrupted worker. Stock decrements recorded with ``record_decrement``
    are logged when the rollback undoes them.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory
        self.session: Optional[Session] = None
        self._committed = False
        self.decrements: List[Tuple[int, int]] = []
        self.undone_decrements: List[Tuple[int, int]] = []

    def __enter__(self) -> "UnitOfWork":
        self.session = self._session_factory()
        self._committed = False
        self.decrements = []
        self.undone_decrements = []
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        try:
            if not self._committed:
                self.rollback()
        finally:
            self.session.close()
            self.session = None
        return False

    def record_decrement(self, product_id: int, quantity: int) -> None:
        self.decrements.append((product_id, quantity))

    def commit(self) -> None:
        self.session.commit()
        self._committed = True
        self.decrements = []

    def rollback(self) -> None:
        try:
            self.session.rollback()
        except SQLAlchemyError:
            # the in-flight exception, if any, still propagates
            logger.exception("Rollback failed")
            return

        if self.decrements:
            logger.info(
                "Rolled back %d stock decrement(s): %s",
                len(self.decrements),
                ", ".join(f"product {p} x{q}" for p, q in self.decrements),
            )
        self.undone_decrements, self.decrements = self.decrements, []
