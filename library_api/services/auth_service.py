from dataclasses import dataclass

from flask import current_app
from flask_jwt_extended import create_access_token, decode_token, get_jwt_identity, verify_jwt_in_request
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import InvalidTokenError
from werkzeug.security import generate_password_hash, check_password_hash

from library_api.errors import ConflictError, PermissionDeniedError, ValidationError, AuthenticationError
from library_api.models.user import User, ROLE_ADMIN, ROLE_USER
from library_api.repositories.unit_of_work import unit_of_work
from library_api.repositories.user_repo import UserRepo

MIN_PASSWORD_LENGTH = 6


@dataclass(frozen=True)
class Caller:
    id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


class AuthService:
    @staticmethod
    def issue_token(user: User) -> str:
        return create_access_token(identity=user.id, additional_claims={"role": user.role})

    @staticmethod
    def expires_in() -> int:
        return int(current_app.config["JWT_ACCESS_TOKEN_EXPIRES"].total_seconds())

    @staticmethod
    def resolve_caller(token: str):
        """Bearer token -> Caller, or None for anything that is not a live user."""
        if not token:
            return None
        try:
            claims = decode_token(token)
        except (InvalidTokenError, JWTExtendedException):
            return None
        if claims.get("type") != "access":
            return None
        return AuthService._caller_for(claims.get(current_app.config["JWT_IDENTITY_CLAIM"]))

    @staticmethod
    def current_caller():
        """Caller for the active request, or None when it carries no usable token.

        Header name and scheme follow the ``JWT_HEADER_*`` settings.
        """
        try:
            if verify_jwt_in_request(optional=True) is None:
                return None
        except (InvalidTokenError, JWTExtendedException):
            return None
        return AuthService._caller_for(get_jwt_identity())

    @staticmethod
    def _caller_for(user_id):
        user = UserRepo.get_by_id(user_id) if user_id else None
        if not user:
            return None
        # role comes from the database so demoted admins lose access immediately
        return Caller(id=user.id, role=user.role)

    @staticmethod
    def register(name: str, email: str, password: str, role: str = ROLE_USER, requester: Caller = None):
        name = str(name or "").strip()
        email = str(email or "").strip().lower()
        password = str(password or "")

        if not name or not email or not password:
            raise ValidationError("name, email and password are required")
        if "@" not in email:
            raise ValidationError("Invalid email format")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

        assigned_role = ROLE_USER
        if str(role or ROLE_USER).lower() == ROLE_ADMIN:
            if requester is None or not requester.is_admin:
                raise PermissionDeniedError("Only admins can create admin accounts")
            assigned_role = ROLE_ADMIN

        with unit_of_work("register user"):
            if UserRepo.get_by_email(email):
                raise ConflictError("Email already registered")
            user = User(
                name=name,
                email=email,
                password_hash=generate_password_hash(password),
                role=assigned_role,
            )
            UserRepo.create(user)

        current_app.logger.info(f"[auth] registered {user.email} as {user.role}")
        return user

    @staticmethod
    def login(email: str, password: str):
        email = str(email or "").strip().lower()
        password = str(password or "")
        if not email or not password:
            raise ValidationError("email and password are required")

        user = UserRepo.get_by_email(email)
        if not user or not check_password_hash(user.password_hash, password):
            raise AuthenticationError("Invalid email or password")

        return AuthService.issue_token(user), user
