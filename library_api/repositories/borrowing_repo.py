from sqlalchemy import select
from sqlalchemy.orm import selectinload

from library_api.extensions import db
from library_api.models.borrowing import Borrowing, STATUS_APPROVED, STATUS_PENDING

OUTSTANDING_STATUSES = (STATUS_PENDING, STATUS_APPROVED)


class BorrowingRepo:
    @staticmethod
    def get(borrowing_id: str):
        return db.session.execute(
            select(Borrowing)
            .where(Borrowing.id == borrowing_id)
            .options(selectinload(Borrowing.details))
        ).scalar_one_or_none()

    @staticmethod
    def lock(borrowing_id: str):
        # row lock on the header only; lines are immutable
        return db.session.execute(
            select(Borrowing)
            .where(Borrowing.id == borrowing_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    @staticmethod
    def list_for(user_id=None):
        """All borrowings when ``user_id`` is None, otherwise only that user's."""
        stmt = select(Borrowing).options(selectinload(Borrowing.details))
        if user_id is not None:
            stmt = stmt.where(Borrowing.user_id == user_id)
        stmt = stmt.order_by(Borrowing.borrow_date.desc(), Borrowing.created_at.desc())
        return db.session.execute(stmt).scalars().all()

    @staticmethod
    def create(borrowing: Borrowing, lines):
        for position, line in enumerate(lines):
            line.position = position
            borrowing.details.append(line)
        db.session.add(borrowing)
        db.session.flush()
        return borrowing

    @staticmethod
    def update_status(borrowing: Borrowing, **fields):
        for key, value in fields.items():
            setattr(borrowing, key, value)
        db.session.flush()
        return borrowing

    @staticmethod
    def has_outstanding(user_id: str) -> bool:
        return db.session.execute(
            select(Borrowing.id)
            .where(Borrowing.user_id == user_id, Borrowing.status.in_(OUTSTANDING_STATUSES))
            .limit(1)
        ).first() is not None
