"""Store operations the circulation transaction is composed of.

Every method works inside the caller's session, so the caller decides where the
transaction begins and ends. Queries are built from SQLAlchemy expressions; ids
are always bound parameters.
"""
from datetime import datetime
from typing import Collection, Optional

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from library_circulation.models.models import Copy, CopyStatus, Loan, Member


class CirculationLedger:

    def lock_member(self, db: Session, member_id: int) -> Optional[int]:
        """Lock the member row for the rest of the transaction. Returns None if absent."""
        return (
            db.query(Member.id)
            .filter(Member.id == member_id)
            .with_for_update()
            .scalar()
        )

    def count_active_loans(self, db: Session, member_id: int) -> int:
        return (
            db.query(func.count(Loan.id))
            .filter(Loan.member_id == member_id, Loan.returned_at.is_(None))
            .scalar()
        )

    def next_available_copy(self, db: Session, book_id: int, skip: Collection[int] = ()) -> Optional[int]:
        """Lowest-id available copy of the book, ignoring ids already tried."""
        query = db.query(Copy.id).filter(
            Copy.book_id == book_id, Copy.status == CopyStatus.AVAILABLE
        )
        if skip:
            query = query.filter(Copy.id.not_in(list(skip)))
        return (
            query.order_by(Copy.id.asc())
            .limit(1)
            .with_for_update(skip_locked=True)
            .scalar()
        )

    def claim_copy(self, db: Session, copy_id: int) -> bool:
        """Flip the copy to unavailable only if it is still available."""
        result = db.execute(
            update(Copy)
            .where(Copy.id == copy_id, Copy.status == CopyStatus.AVAILABLE)
            .values(status=CopyStatus.UNAVAILABLE)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def record_loan(self, db: Session, member_id: int, copy_id: int,
                    borrowed_at: datetime, due_at: datetime) -> Loan:
        loan = Loan(member_id=member_id, copy_id=copy_id,
                    borrowed_at=borrowed_at, due_at=due_at, returned_at=None)
        db.add(loan)
        db.flush()
        return loan
