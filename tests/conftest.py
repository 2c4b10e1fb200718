from contextlib import nullcontext

import pytest
from flask import has_app_context
from werkzeug.security import generate_password_hash

from library_api import create_app
from library_api.config import TestConfig
from library_api.db_setup import close_database
from library_api.extensions import db
from library_api.models.book import Book
from library_api.models.user import User
from library_api.repositories.catalog_repo import CatalogRepo
from library_api.repositories.unit_of_work import unit_of_work
from library_api.repositories.user_repo import UserRepo
from library_api.services.auth_service import Caller

ADMIN_EMAIL = "admin@library.local"
ADMIN_PASSWORD = "Admin123!"


def _context(app):
    # reuse the test's context so we never hold two sqlite write transactions at once
    return nullcontext() if has_app_context() else app.app_context()


@pytest.fixture
def app(tmp_path):
    # file database so worker threads in the concurrency tests share it
    class _Config(TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'library.db'}"

    app = create_app(_Config)
    yield app
    close_database(app)


@pytest.fixture
def ctx(app):
    """App context for tests that call services directly."""
    with app.app_context():
        yield app
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_book(app):
    def _make(quantity=3, title="Book", author="Author"):
        with _context(app):
            with unit_of_work():
                book = CatalogRepo.add(Book(title=title, author=author, quantity=quantity))
                book_id = book.id
        return book_id
    return _make


@pytest.fixture
def make_user(app):
    def _make(email="reader@library.local", role="user", password="secret123"):
        with _context(app):
            with unit_of_work():
                user = UserRepo.create(User(
                    name=email.split("@")[0],
                    email=email,
                    role=role,
                    password_hash=generate_password_hash(password),
                ))
                caller = Caller(id=user.id, role=user.role)
        return caller
    return _make


@pytest.fixture
def admin(app):
    with _context(app):
        user = UserRepo.get_by_email(ADMIN_EMAIL)
        caller = Caller(id=user.id, role=user.role)
        db.session.rollback()
    return caller


@pytest.fixture
def reader(make_user):
    return make_user()


@pytest.fixture
def auth_header(client):
    def _login(email=ADMIN_EMAIL, password=ADMIN_PASSWORD):
        resp = client.post("/api/auth/login", json={"email": email, "password": password})
        assert resp.status_code == 200, resp.get_json()
        return {"Authorization": f"Bearer {resp.get_json()['token']}"}
    return _login
