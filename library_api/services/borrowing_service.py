"""Borrow requests and their lifecycle.

Stock is reserved when a request is created, not when it is approved: a
pending borrowing already holds its copies. Rejecting or returning a
borrowing puts exactly those copies back.

Every mutating call runs as one unit of work that first takes row locks on
everything it is about to decide on (the borrowing row, then its book rows in
id order). Two requests for the same book therefore queue on that book's row
instead of both reading the same stock.
"""

from collections import OrderedDict
from datetime import date, datetime, timezone

from flask import current_app

from library_api.errors import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from library_api.models.borrowing import (
    Borrowing,
    BorrowingDetail,
    STATUSES,
    STATUS_APPROVED,
    STATUS_PENDING,
    STATUS_REJECTED,
    STATUS_RETURNED,
)
from library_api.repositories.book_repo import AdjustResult, BookRepo
from library_api.repositories.borrowing_repo import BorrowingRepo
from library_api.repositories.unit_of_work import unit_of_work

# (from, to) -> timestamp column stamped by the move
TRANSITIONS = {
    (STATUS_PENDING, STATUS_APPROVED): "processed_at",
    (STATUS_PENDING, STATUS_REJECTED): "processed_at",
    (STATUS_APPROVED, STATUS_RETURNED): "returned_at",
}

RESTOCKING_STATUSES = {STATUS_REJECTED, STATUS_RETURNED}


class BorrowingService:
    @staticmethod
    def _require_caller(caller):
        if caller is None:
            raise AuthenticationError("Login required")
        return caller

    @staticmethod
    def _parse_items(items):
        if not isinstance(items, list) or not items:
            raise ValidationError("At least one book is required")

        lines = []
        for idx, item in enumerate(items):
            if not isinstance(item, dict):
                raise ValidationError(f"items[{idx}] must be an object")

            book_id = item.get("bookId")
            if not isinstance(book_id, str) or not book_id.strip():
                raise ValidationError(f"items[{idx}].bookId is required")
            book_id = book_id.strip()

            quantity = item.get("quantity")
            # bool is an int subclass
            if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
                raise ValidationError(
                    f"items[{idx}].quantity must be a positive integer", book_id=book_id
                )
            lines.append((book_id, quantity))
        return lines

    @staticmethod
    def _parse_date(value, field: str):
        if value is None or value == "":
            return None
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, date):
            parsed = datetime(value.year, value.month, value.day)
        elif isinstance(value, str):
            try:
                parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
            except ValueError:
                raise ValidationError(f"{field} must be an ISO 8601 date")
        else:
            raise ValidationError(f"{field} must be an ISO 8601 date")

        # stored as naive UTC
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        return parsed

    @staticmethod
    def _parse_notes(notes):
        if notes is not None and not isinstance(notes, str):
            raise ValidationError("notes must be a string")
        return notes

    @staticmethod
    def _totals(lines):
        totals = OrderedDict()
        for book_id, quantity in lines:
            totals[book_id] = totals.get(book_id, 0) + quantity
        return totals

    @staticmethod
    def create_borrowing(caller, items, notes=None, expected_return_date=None):
        """Reserve every requested line or nothing.

        Lines that repeat a book are checked against their combined quantity
        but stored as sent. Raises NotFoundError / ConflictError naming the
        first offending book, in request order.
        """
        caller = BorrowingService._require_caller(caller)
        lines = BorrowingService._parse_items(items)
        notes = BorrowingService._parse_notes(notes)
        expected = BorrowingService._parse_date(expected_return_date, "expectedReturnDate")
        totals = BorrowingService._totals(lines)

        with unit_of_work("create borrowing"):
            books = BookRepo.lock_many(totals.keys())

            for book_id, wanted in totals.items():
                book = books.get(book_id)
                if book is None:
                    raise NotFoundError(f"Book {book_id} not found", book_id=book_id)
                if book.quantity < wanted:
                    current_app.logger.warning(
                        f"[borrowing] insufficient stock for {book_id}: wanted {wanted}, have {book.quantity}"
                    )
                    raise ConflictError(
                        f"Book {book_id} does not have enough copies (requested {wanted}, available {book.quantity})",
                        book_id=book_id,
                    )

            now = datetime.utcnow()
            borrowing = Borrowing(
                user_id=caller.id,
                borrow_date=now,
                expected_return_date=expected,
                status=STATUS_PENDING,
                notes=notes,
                created_at=now,
                updated_at=now,
            )
            BorrowingRepo.create(
                borrowing,
                [BorrowingDetail(book_id=book_id, quantity=qty, created_at=now) for book_id, qty in lines],
            )

            for book_id, wanted in totals.items():
                if BookRepo.adjust_quantity(book_id, -wanted) is not AdjustResult.OK:
                    raise ConflictError(f"Book {book_id} does not have enough copies", book_id=book_id)

        current_app.logger.info(
            f"[borrowing] {borrowing.id} created by {caller.id} ({len(lines)} line(s))"
        )
        return borrowing

    @staticmethod
    def transition_borrowing(caller, borrowing_id: str, status=None, notes=None):
        caller = BorrowingService._require_caller(caller)
        if not caller.is_admin:
            raise PermissionDeniedError("Only admins can update borrowings")

        if status is None and notes is None:
            raise ValidationError("Nothing to update")
        if status is not None and status not in STATUSES:
            raise ValidationError(f"Unknown status '{status}'")
        notes = BorrowingService._parse_notes(notes)

        with unit_of_work("update borrowing"):
            borrowing = BorrowingRepo.lock(borrowing_id)
            if borrowing is None:
                raise NotFoundError(f"Borrowing {borrowing_id} not found")

            previous = borrowing.status
            fields = {}
            if status is not None:
                stamp = TRANSITIONS.get((previous, status))
                if stamp is None:
                    raise ConflictError(f"Cannot move borrowing from '{previous}' to '{status}'")

                now = datetime.utcnow()
                fields["status"] = status
                fields[stamp] = now
                fields["updated_at"] = now

                if status in RESTOCKING_STATUSES:
                    BorrowingService._restock(borrowing)

            if notes is not None:
                fields["notes"] = notes

            BorrowingRepo.update_status(borrowing, **fields)

        if status is not None:
            current_app.logger.info(f"[borrowing] {borrowing_id}: {previous} -> {status} by {caller.id}")
        return borrowing

    @staticmethod
    def _restock(borrowing: Borrowing):
        totals = BorrowingService._totals((d.book_id, d.quantity) for d in borrowing.details)
        BookRepo.lock_many(totals.keys())
        for book_id in sorted(totals):
            result = BookRepo.adjust_quantity(book_id, totals[book_id])
            if result is AdjustResult.NOT_FOUND:
                raise NotFoundError(f"Book {book_id} not found", book_id=book_id)
            if result is not AdjustResult.OK:
                raise ConflictError(f"Could not restock book {book_id}", book_id=book_id)

    @staticmethod
    def list_borrowings(caller):
        caller = BorrowingService._require_caller(caller)
        return BorrowingRepo.list_for(None if caller.is_admin else caller.id)

    @staticmethod
    def get_borrowing(caller, borrowing_id: str):
        caller = BorrowingService._require_caller(caller)
        borrowing = BorrowingRepo.get(borrowing_id)
        if borrowing is None:
            raise NotFoundError(f"Borrowing {borrowing_id} not found")
        if not caller.is_admin and borrowing.user_id != caller.id:
            raise PermissionDeniedError("This borrowing belongs to another user")
        return borrowing
