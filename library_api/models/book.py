from datetime import datetime
from library_api.extensions import db
from library_api.models._common import new_id, iso


class Book(db.Model):
    __tablename__ = "books"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_books_quantity_non_negative"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    title = db.Column(db.String(200), nullable=False, index=True)
    author = db.Column(db.String(200), nullable=True, index=True)

    category_id = db.Column(db.String(36), db.ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True)
    publisher_id = db.Column(db.String(36), db.ForeignKey("publishers.id", ondelete="SET NULL"), nullable=True, index=True)

    # copies on hand; pending and approved borrowings are already subtracted
    quantity = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    category = db.relationship("Category", backref="books")
    publisher = db.relationship("Publisher", backref="books")

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "categoryId": self.category_id,
            "publisherId": self.publisher_id,
            "quantity": self.quantity,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }
