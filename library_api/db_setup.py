from sqlalchemy import event
from werkzeug.security import generate_password_hash

from library_api.errors import StorageError
from library_api.extensions import db


def _configure_sqlite(engine, immediate: bool):
    # pysqlite's own transaction handling would defer BEGIN; let SQLAlchemy emit it
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    # BEGIN IMMEDIATE takes the write lock up front, which is the closest
    # sqlite gets to SELECT ... FOR UPDATE
    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE" if immediate else "BEGIN")


def ensure_default_admin(app):
    from library_api.models.user import User, ROLE_ADMIN
    from library_api.repositories.unit_of_work import unit_of_work
    from library_api.repositories.user_repo import UserRepo

    email = app.config["DEFAULT_ADMIN_EMAIL"].lower()
    try:
        with unit_of_work("ensure default admin"):
            if UserRepo.get_by_email(email):
                return
            UserRepo.create(User(
                name=app.config["DEFAULT_ADMIN_NAME"],
                email=email,
                role=ROLE_ADMIN,
                password_hash=generate_password_hash(app.config["DEFAULT_ADMIN_PASSWORD"]),
            ))
        app.logger.info(f"[db] Created default admin account: {email}")
    except StorageError as e:
        # the API still serves reads without it
        app.logger.error(f"[db] Unable to ensure default admin user: {e}")


def init_database(app):
    """Configure the engine, create missing tables and seed the admin account.

    Must run after ``db.init_app``.
    """
    # imported for their side effect of registering tables on db.metadata
    from library_api.models import book, borrowing, category, publisher, user  # noqa: F401

    with app.app_context():
        engine = db.engine
        if engine.dialect.name == "sqlite":
            _configure_sqlite(engine, app.config.get("SQLITE_IMMEDIATE_TRANSACTIONS", True))
            # connections opened before the listeners exist would skip them
            engine.dispose()

        db.create_all()
        ensure_default_admin(app)


def close_database(app):
    with app.app_context():
        db.session.remove()
        for engine in db.engines.values():
            engine.dispose()
