import random
import threading

import pytest
from sqlalchemy.exc import OperationalError

from library_api.errors import (
    AuthenticationError,
    ConflictError,
    LibraryError,
    NotFoundError,
    PermissionDeniedError,
    StorageError,
    ValidationError,
)
from library_api.extensions import db
from library_api.models.borrowing import Borrowing
from library_api.repositories.book_repo import BookRepo
from library_api.repositories.borrowing_repo import BorrowingRepo
from library_api.services.borrowing_service import BorrowingService


def qty(book_id):
    return BookRepo.get_quantity(book_id)


def borrowing_count():
    return db.session.query(Borrowing).count()


def test_borrow_approve_return_scenario(ctx, make_book, reader, admin):
    book = make_book(quantity=3)

    b = BorrowingService.create_borrowing(reader, [{"bookId": book, "quantity": 2}])
    assert b.status == "pending"
    assert b.processed_at is None and b.returned_at is None
    assert qty(book) == 1

    b = BorrowingService.transition_borrowing(admin, b.id, "approved")
    assert b.status == "approved"
    assert b.processed_at is not None
    assert b.returned_at is None
    assert qty(book) == 1

    b = BorrowingService.transition_borrowing(admin, b.id, "returned")
    assert b.status == "returned"
    assert b.returned_at is not None
    assert qty(book) == 3


def test_insufficient_stock_names_the_book(ctx, make_book, reader):
    book = make_book(quantity=1)

    with pytest.raises(ConflictError) as exc:
        BorrowingService.create_borrowing(reader, [{"bookId": book, "quantity": 2}])

    assert exc.value.book_id == book
    assert book in exc.value.message
    assert qty(book) == 1
    assert borrowing_count() == 0


def test_created_borrowing_keeps_lines_verbatim(ctx, make_book, reader):
    first = make_book(quantity=5)
    second = make_book(quantity=5)

    b = BorrowingService.create_borrowing(
        reader,
        [{"bookId": second, "quantity": 1}, {"bookId": first, "quantity": 2}],
        notes="for the seminar",
        expected_return_date="2030-01-15T00:00:00Z",
    )

    data = b.to_dict()
    assert [(i["bookId"], i["quantity"]) for i in data["items"]] == [(second, 1), (first, 2)]
    assert data["notes"] == "for the seminar"
    assert data["expectedReturnDate"].startswith("2030-01-15")
    assert data["userId"] == reader.id


def test_valid_line_not_applied_when_other_book_missing(ctx, make_book, reader):
    book = make_book(quantity=4)

    with pytest.raises(NotFoundError) as exc:
        BorrowingService.create_borrowing(
            reader,
            [{"bookId": book, "quantity": 1}, {"bookId": "no-such-book", "quantity": 1}],
        )

    assert exc.value.book_id == "no-such-book"
    assert qty(book) == 4
    assert borrowing_count() == 0


def test_valid_line_not_applied_when_other_book_short(ctx, make_book, reader):
    plenty = make_book(quantity=10)
    scarce = make_book(quantity=1)

    with pytest.raises(ConflictError) as exc:
        BorrowingService.create_borrowing(
            reader,
            [{"bookId": plenty, "quantity": 3}, {"bookId": scarce, "quantity": 2}],
        )

    assert exc.value.book_id == scarce
    assert qty(plenty) == 10
    assert qty(scarce) == 1


def test_repeated_book_lines_are_checked_together(ctx, make_book, reader):
    book = make_book(quantity=3)

    with pytest.raises(ConflictError):
        BorrowingService.create_borrowing(
            reader,
            [{"bookId": book, "quantity": 2}, {"bookId": book, "quantity": 2}],
        )
    assert qty(book) == 3

    b = BorrowingService.create_borrowing(
        reader,
        [{"bookId": book, "quantity": 1}, {"bookId": book, "quantity": 2}],
    )
    assert len(b.details) == 2
    assert qty(book) == 0


@pytest.mark.parametrize("items", [
    None,
    [],
    "book",
    [{"quantity": 1}],
    [{"bookId": "", "quantity": 1}],
    [{"bookId": "b1"}],
    [{"bookId": "b1", "quantity": 0}],
    [{"bookId": "b1", "quantity": -2}],
    [{"bookId": "b1", "quantity": 1.5}],
    [{"bookId": "b1", "quantity": True}],
    ["b1"],
])
def test_malformed_items_are_rejected(ctx, reader, items):
    with pytest.raises(ValidationError):
        BorrowingService.create_borrowing(reader, items)
    assert borrowing_count() == 0


def test_bad_expected_return_date(ctx, make_book, reader):
    book = make_book(quantity=2)
    with pytest.raises(ValidationError):
        BorrowingService.create_borrowing(
            reader, [{"bookId": book, "quantity": 1}], expected_return_date="next tuesday"
        )
    assert qty(book) == 2


def test_anonymous_caller_is_rejected(ctx, make_book):
    book = make_book(quantity=2)
    with pytest.raises(AuthenticationError):
        BorrowingService.create_borrowing(None, [{"bookId": book, "quantity": 1}])
    with pytest.raises(AuthenticationError):
        BorrowingService.list_borrowings(None)


def test_only_admins_transition(ctx, make_book, reader):
    book = make_book(quantity=2)
    b = BorrowingService.create_borrowing(reader, [{"bookId": book, "quantity": 1}])

    with pytest.raises(PermissionDeniedError):
        BorrowingService.transition_borrowing(reader, b.id, "approved")
    assert BorrowingRepo.get(b.id).status == "pending"


def test_reject_restocks(ctx, make_book, reader, admin):
    a = make_book(quantity=2)
    c = make_book(quantity=5)
    b = BorrowingService.create_borrowing(
        reader, [{"bookId": a, "quantity": 2}, {"bookId": c, "quantity": 3}]
    )
    assert (qty(a), qty(c)) == (0, 2)

    b = BorrowingService.transition_borrowing(admin, b.id, "rejected", notes="not this term")

    assert b.status == "rejected"
    assert b.processed_at is not None
    assert b.returned_at is None
    assert b.notes == "not this term"
    assert (qty(a), qty(c)) == (2, 5)


@pytest.mark.parametrize("path, target", [
    ([], "returned"),
    ([], "pending"),
    (["approved"], "approved"),
    (["approved"], "rejected"),
    (["approved"], "pending"),
    (["rejected"], "approved"),
    (["rejected"], "returned"),
    (["approved", "returned"], "returned"),
    (["approved", "returned"], "approved"),
    (["approved", "returned"], "rejected"),
    (["approved", "returned"], "pending"),
])
def test_invalid_transitions_leave_record_untouched(ctx, make_book, reader, admin, path, target):
    book = make_book(quantity=3)
    b = BorrowingService.create_borrowing(reader, [{"bookId": book, "quantity": 1}])
    for step in path:
        BorrowingService.transition_borrowing(admin, b.id, step)

    before = BorrowingRepo.get(b.id).to_dict()
    stock = qty(book)

    with pytest.raises(ConflictError):
        BorrowingService.transition_borrowing(admin, b.id, target, notes="should not stick")

    db.session.expire_all()
    assert BorrowingRepo.get(b.id).to_dict() == before
    assert qty(book) == stock


def test_notes_only_update_keeps_status(ctx, make_book, reader, admin):
    book = make_book(quantity=1)
    b = BorrowingService.create_borrowing(reader, [{"bookId": book, "quantity": 1}])

    b = BorrowingService.transition_borrowing(admin, b.id, notes="collect at desk 2")

    assert b.status == "pending"
    assert b.notes == "collect at desk 2"
    assert b.processed_at is None
    assert qty(book) == 0


def test_transition_argument_errors(ctx, make_book, reader, admin):
    book = make_book(quantity=1)
    b = BorrowingService.create_borrowing(reader, [{"bookId": book, "quantity": 1}])

    with pytest.raises(ValidationError):
        BorrowingService.transition_borrowing(admin, b.id)
    with pytest.raises(ValidationError):
        BorrowingService.transition_borrowing(admin, b.id, "lost")
    with pytest.raises(NotFoundError):
        BorrowingService.transition_borrowing(admin, "missing-id", "approved")


def test_storage_failure_during_create_rolls_back(ctx, make_book, reader, monkeypatch):
    first = make_book(quantity=3)
    second = make_book(quantity=3)
    real_adjust = BookRepo.adjust_quantity
    calls = []

    def flaky_adjust(book_id, delta, expected=None):
        calls.append(book_id)
        if len(calls) == 2:
            raise OperationalError("UPDATE books", {}, Exception("disk I/O error"))
        return real_adjust(book_id, delta, expected)

    monkeypatch.setattr(BookRepo, "adjust_quantity", staticmethod(flaky_adjust))

    with pytest.raises(StorageError):
        BorrowingService.create_borrowing(
            reader, [{"bookId": first, "quantity": 1}, {"bookId": second, "quantity": 1}]
        )

    assert len(calls) == 2
    assert qty(first) == 3
    assert qty(second) == 3
    assert borrowing_count() == 0


def test_storage_failure_during_return_rolls_back(ctx, make_book, reader, admin, monkeypatch):
    book = make_book(quantity=2)
    b = BorrowingService.create_borrowing(reader, [{"bookId": book, "quantity": 2}])
    BorrowingService.transition_borrowing(admin, b.id, "approved")

    def broken_update(borrowing, **fields):
        raise OperationalError("UPDATE borrowings", {}, Exception("connection reset"))

    monkeypatch.setattr(BorrowingRepo, "update_status", staticmethod(broken_update))

    with pytest.raises(StorageError):
        BorrowingService.transition_borrowing(admin, b.id, "returned")

    db.session.expire_all()
    assert BorrowingRepo.get(b.id).status == "approved"
    assert BorrowingRepo.get(b.id).returned_at is None
    assert qty(book) == 0


def test_list_scope_and_order(ctx, make_book, make_user, admin):
    book = make_book(quantity=10)
    alice = make_user("alice@library.local")
    bob = make_user("bob@library.local")

    a1 = BorrowingService.create_borrowing(alice, [{"bookId": book, "quantity": 1}])
    b1 = BorrowingService.create_borrowing(bob, [{"bookId": book, "quantity": 1}])
    a2 = BorrowingService.create_borrowing(alice, [{"bookId": book, "quantity": 1}])

    assert [b.id for b in BorrowingService.list_borrowings(alice)] == [a2.id, a1.id]
    assert [b.id for b in BorrowingService.list_borrowings(bob)] == [b1.id]
    assert [b.id for b in BorrowingService.list_borrowings(admin)] == [a2.id, b1.id, a1.id]


def test_get_borrowing_is_owner_or_admin(ctx, make_book, make_user, admin):
    book = make_book(quantity=2)
    alice = make_user("alice@library.local")
    bob = make_user("bob@library.local")
    b = BorrowingService.create_borrowing(alice, [{"bookId": book, "quantity": 1}])

    assert BorrowingService.get_borrowing(alice, b.id).id == b.id
    assert BorrowingService.get_borrowing(admin, b.id).id == b.id
    with pytest.raises(PermissionDeniedError):
        BorrowingService.get_borrowing(bob, b.id)
    with pytest.raises(NotFoundError):
        BorrowingService.get_borrowing(admin, "missing-id")


def test_random_operations_conserve_stock(ctx, make_book, make_user, admin):
    rng = random.Random(1234)
    initial = {}
    for i in range(4):
        stock = rng.randint(0, 4)
        initial[make_book(quantity=stock, title=f"T{i}")] = stock
    users = [make_user(f"u{i}@library.local") for i in range(3)]
    books = list(initial)
    created = []

    for _ in range(120):
        if not created or rng.random() < 0.5:
            items = [{"bookId": rng.choice(books), "quantity": rng.randint(1, 3)} for _ in range(rng.randint(1, 3))]
            try:
                created.append(BorrowingService.create_borrowing(rng.choice(users), items).id)
            except ConflictError:
                pass
        else:
            target = rng.choice(["approved", "rejected", "returned", "pending"])
            try:
                BorrowingService.transition_borrowing(admin, rng.choice(created), target)
            except ConflictError:
                pass

        reserved = {book_id: 0 for book_id in books}
        for b in BorrowingRepo.list_for(None):
            if b.status in ("pending", "approved"):
                for d in b.details:
                    reserved[d.book_id] += d.quantity
        for book_id in books:
            current = qty(book_id)
            assert current >= 0
            assert current == initial[book_id] - reserved[book_id]


def test_concurrent_requests_for_whole_stock(app, make_book, make_user):
    book = make_book(quantity=5)
    callers = [make_user("first@library.local"), make_user("second@library.local")]
    barrier = threading.Barrier(len(callers))
    outcomes = []
    guard = threading.Lock()

    def worker(caller):
        with app.app_context():
            barrier.wait()
            try:
                BorrowingService.create_borrowing(caller, [{"bookId": book, "quantity": 5}])
                outcome = "ok"
            except LibraryError as e:
                outcome = e.kind
            finally:
                db.session.remove()
            with guard:
                outcomes.append(outcome)

    threads = [threading.Thread(target=worker, args=(c,)) for c in callers]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert sorted(outcomes) == ["conflict", "ok"]
    with app.app_context():
        assert qty(book) == 0
        assert borrowing_count() == 1


def _race(app, calls):
    """Run each zero-argument call in its own thread and app context; returns outcomes in call order."""
    barrier = threading.Barrier(len(calls))
    outcomes = [None] * len(calls)

    def worker(i, call):
        with app.app_context():
            barrier.wait()
            try:
                call()
                outcomes[i] = "ok"
            except LibraryError as e:
                outcomes[i] = e.kind
            finally:
                db.session.remove()

    threads = [threading.Thread(target=worker, args=(i, c)) for i, c in enumerate(calls)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return outcomes


def test_concurrent_returns_restock_once(app, make_book, reader, admin):
    book = make_book(quantity=3)
    with app.app_context():
        b = BorrowingService.create_borrowing(reader, [{"bookId": book, "quantity": 2}])
        BorrowingService.transition_borrowing(admin, b.id, "approved")
        borrowing_id = b.id
        db.session.remove()

    outcomes = _race(app, [
        lambda: BorrowingService.transition_borrowing(admin, borrowing_id, "returned")
        for _ in range(4)
    ])

    assert sorted(outcomes) == ["conflict", "conflict", "conflict", "ok"]
    with app.app_context():
        assert qty(book) == 3
        assert BorrowingRepo.get(borrowing_id).status == "returned"


def test_concurrent_reject_and_approve(app, make_book, reader, admin):
    book = make_book(quantity=3)
    with app.app_context():
        borrowing_id = BorrowingService.create_borrowing(reader, [{"bookId": book, "quantity": 2}]).id
        db.session.remove()

    targets = ["rejected", "approved"]
    outcomes = _race(app, [
        lambda target=target: BorrowingService.transition_borrowing(admin, borrowing_id, target)
        for target in targets
    ])

    assert sorted(outcomes) == ["conflict", "ok"]
    winner = targets[outcomes.index("ok")]
    with app.app_context():
        b = BorrowingRepo.get(borrowing_id)
        assert b.status == winner
        assert b.processed_at is not None
        assert qty(book) == (3 if winner == "rejected" else 1)
