from datetime import datetime
from library_api.extensions import db
from library_api.models._common import new_id, iso

STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"
STATUS_RETURNED = "returned"

STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED, STATUS_RETURNED)


class Borrowing(db.Model):
    __tablename__ = "borrowings"

    id = db.Column(db.String(36), primary_key=True, default=new_id)

    user_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    borrow_date = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)
    expected_return_date = db.Column(db.DateTime, nullable=True)

    status = db.Column(db.String(20), nullable=False, default=STATUS_PENDING)  # pending/approved/rejected/returned
    notes = db.Column(db.Text, nullable=True)

    processed_at = db.Column(db.DateTime, nullable=True)
    returned_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = db.relationship("User", backref=db.backref("borrowings", passive_deletes=True))
    details = db.relationship(
        "BorrowingDetail",
        backref="borrowing",
        order_by="BorrowingDetail.position",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "borrowDate": iso(self.borrow_date),
            "expectedReturnDate": iso(self.expected_return_date),
            "status": self.status,
            "notes": self.notes,
            "processedAt": iso(self.processed_at),
            "returnedAt": iso(self.returned_at),
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
            "items": [d.to_dict() for d in self.details],
        }


class BorrowingDetail(db.Model):
    """One book line of a borrowing. Never changed after insert."""

    __tablename__ = "borrowing_details"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_borrowing_details_quantity_positive"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    borrowing_id = db.Column(db.String(36), db.ForeignKey("borrowings.id", ondelete="CASCADE"), nullable=False, index=True)
    book_id = db.Column(db.String(36), db.ForeignKey("books.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)

    # keeps the request's line order
    position = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    book = db.relationship("Book")

    def to_dict(self):
        return {
            "id": self.id,
            "borrowingId": self.borrowing_id,
            "bookId": self.book_id,
            "quantity": self.quantity,
            "createdAt": iso(self.created_at),
        }
