from sqlalchemy import func, or_, select

from library_api.extensions import db


class CatalogRepo:
    """Paging and plain CRUD shared by categories, publishers and books."""

    @staticmethod
    def paginate(model, search_columns, search: str, page: int, page_size: int):
        stmt = select(model)
        if search and search_columns:
            like = f"%{search.lower()}%"
            stmt = stmt.where(or_(*[func.lower(getattr(model, c)).like(like) for c in search_columns]))
        stmt = stmt.order_by(model.created_at.asc(), model.id.asc())
        return db.paginate(stmt, page=page, per_page=page_size, error_out=False, count=True)

    @staticmethod
    def get(model, record_id: str):
        return db.session.get(model, record_id)

    @staticmethod
    def add(record):
        db.session.add(record)
        db.session.flush()
        return record

    @staticmethod
    def delete(record):
        db.session.delete(record)
        db.session.flush()
