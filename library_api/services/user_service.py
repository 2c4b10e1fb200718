from library_api.errors import ConflictError, NotFoundError, PermissionDeniedError
from library_api.repositories.borrowing_repo import BorrowingRepo
from library_api.repositories.unit_of_work import unit_of_work
from library_api.repositories.user_repo import UserRepo


class UserService:
    @staticmethod
    def _require_admin(caller):
        if caller is None or not caller.is_admin:
            raise PermissionDeniedError("Admin role required")

    @staticmethod
    def list_users(caller):
        UserService._require_admin(caller)
        return UserRepo.list_all()

    @staticmethod
    def get_user(user_id: str):
        user = UserRepo.get_by_id(user_id)
        if not user:
            raise NotFoundError(f"User {user_id} not found")
        return user

    @staticmethod
    def delete_user(caller, user_id: str):
        UserService._require_admin(caller)
        with unit_of_work("delete user"):
            # the row lock blocks new borrowings for this user until the delete commits
            user = UserRepo.lock(user_id)
            if not user:
                raise NotFoundError(f"User {user_id} not found")
            # deleting the owner would drop reserved copies without restocking them
            if BorrowingRepo.has_outstanding(user_id):
                raise ConflictError("User still has pending or approved borrowings")
            UserRepo.delete(user)
