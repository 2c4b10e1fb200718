import enum
from datetime import datetime

from sqlalchemy import select, update

from library_api.extensions import db
from library_api.models.book import Book
from library_api.models.borrowing import BorrowingDetail


class AdjustResult(enum.Enum):
    OK = "ok"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"


class BookRepo:
    @staticmethod
    def get(book_id: str):
        return db.session.get(Book, book_id)

    @staticmethod
    def get_quantity(book_id: str):
        return db.session.execute(
            select(Book.quantity).where(Book.id == book_id)
        ).scalar_one_or_none()

    @staticmethod
    def lock_many(book_ids):
        """SELECT ... FOR UPDATE on every listed book, in id order.

        Returns ``{id: Book}`` with fresh values; ids that do not exist are
        simply absent. The locks live until the surrounding transaction ends.
        """
        ids = sorted(set(book_ids))
        if not ids:
            return {}
        rows = db.session.execute(
            select(Book)
            .where(Book.id.in_(ids))
            .order_by(Book.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().all()
        return {b.id: b for b in rows}

    @staticmethod
    def adjust_quantity(book_id: str, delta: int, expected=None) -> AdjustResult:
        # guarded write: never lets quantity drop below zero, optional CAS on the prior value
        stmt = update(Book).where(Book.id == book_id, Book.quantity + delta >= 0)
        if expected is not None:
            stmt = stmt.where(Book.quantity == expected)
        stmt = stmt.values(quantity=Book.quantity + delta, updated_at=datetime.utcnow())

        result = db.session.execute(stmt, execution_options={"synchronize_session": False})
        book = db.session.get(Book, book_id, populate_existing=True)

        if result.rowcount == 1:
            return AdjustResult.OK
        return AdjustResult.CONFLICT if book is not None else AdjustResult.NOT_FOUND

    @staticmethod
    def is_referenced(book_id: str) -> bool:
        return db.session.execute(
            select(BorrowingDetail.id).where(BorrowingDetail.book_id == book_id).limit(1)
        ).first() is not None
