"""The borrow transaction.

``CirculationService.borrow`` runs the quota check, copy selection and the loan
commit inside one ``session_scope``. Anything that leaves the scope without
reaching the commit rolls the whole unit back, so a failed borrow never leaves
a claimed copy or a stray loan behind.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from library_circulation.core.config import LOAN_LIMIT, LOAN_PERIOD
from library_circulation.core.database import session_scope
from library_circulation.core.errors import (
    CirculationError,
    Conflict,
    InvalidRequest,
    MemberNotFound,
    NoCopyAvailable,
    QuotaExceeded,
    StoreUnavailable,
)
from library_circulation.services.ledger import CirculationLedger

logger = logging.getLogger("elibrary.circulation")


@dataclass(frozen=True)
class BorrowReceipt:
    loan_id: int
    member_id: int
    copy_id: int
    borrowed_at: datetime
    due_at: datetime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require_identifier(name: str, value) -> int:
    # bool is an int subclass; True is not a member id
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidRequest(f"{name} must be a positive integer, got {value!r}")
    return value


class CirculationService:
    def __init__(self, session_factory: sessionmaker, ledger: Optional[CirculationLedger] = None,
                 max_attempts: int = 3, clock: Callable[[], datetime] = _utcnow):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._session_factory = session_factory
        self._ledger = ledger or CirculationLedger()
        self._max_attempts = max_attempts
        self._clock = clock

    def borrow(self, member_id: int, book_id: int) -> BorrowReceipt:
        member_id = _require_identifier("member_id", member_id)
        book_id = _require_identifier("book_id", book_id)
        try:
            with session_scope(self._session_factory) as db:
                receipt = self._borrow(db, member_id, book_id)
        except CirculationError as exc:
            logger.info("Borrow rejected member=%s book=%s: %s", member_id, book_id, exc.kind)
            raise
        except IntegrityError as exc:
            # the active-loan index caught a second loan on the same copy
            logger.warning("Borrow conflict member=%s book=%s: %s", member_id, book_id, exc.orig)
            raise Conflict("copy was lent concurrently, try again") from exc
        except SQLAlchemyError as exc:
            logger.warning("Store failure during borrow member=%s book=%s: %s", member_id, book_id, exc)
            raise StoreUnavailable("circulation store unavailable, nothing was committed") from exc
        logger.info("Member %s borrowed copy %s of book %s (loan %s, due %s)",
                    member_id, receipt.copy_id, book_id, receipt.loan_id, receipt.due_at.isoformat())
        return receipt

    def _borrow(self, db: Session, member_id: int, book_id: int) -> BorrowReceipt:
        ledger = self._ledger
        if ledger.lock_member(db, member_id) is None:
            raise MemberNotFound(f"member {member_id} does not exist")

        active = ledger.count_active_loans(db, member_id)
        if active >= LOAN_LIMIT:
            raise QuotaExceeded(f"member {member_id} already has {active} active loans (limit {LOAN_LIMIT})")

        copy_id = self._claim_copy(db, book_id)

        borrowed_at = self._clock().astimezone(timezone.utc)
        due_at = borrowed_at + LOAN_PERIOD
        loan = ledger.record_loan(db, member_id, copy_id, borrowed_at, due_at)
        return BorrowReceipt(loan_id=loan.id, member_id=member_id, copy_id=copy_id,
                             borrowed_at=borrowed_at, due_at=due_at)

    def _claim_copy(self, db: Session, book_id: int) -> int:
        tried = []
        for attempt in range(1, self._max_attempts + 1):
            copy_id = self._ledger.next_available_copy(db, book_id, skip=tried)
            if copy_id is None:
                raise NoCopyAvailable(f"no available copy of book {book_id}")
            if self._ledger.claim_copy(db, copy_id):
                return copy_id
            logger.debug("Lost claim on copy %s (attempt %s/%s)", copy_id, attempt, self._max_attempts)
            tried.append(copy_id)
        raise Conflict(f"could not claim a copy of book {book_id} after {self._max_attempts} attempts")
