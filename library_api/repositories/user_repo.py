from sqlalchemy import select

from library_api.models.user import User
from library_api.extensions import db


class UserRepo:
    @staticmethod
    def get_by_email(email: str):
        return db.session.execute(select(User).filter_by(email=email)).scalar_one_or_none()

    @staticmethod
    def get_by_id(user_id: str):
        return db.session.get(User, user_id)

    @staticmethod
    def lock(user_id: str):
        """SELECT ... FOR UPDATE on one user; held until the transaction ends."""
        return db.session.execute(
            select(User)
            .where(User.id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    @staticmethod
    def list_all():
        return db.session.execute(select(User).order_by(User.created_at.asc())).scalars().all()

    @staticmethod
    def create(user: User):
        db.session.add(user)
        db.session.flush()
        return user

    @staticmethod
    def delete(user: User):
        db.session.delete(user)
        db.session.flush()
