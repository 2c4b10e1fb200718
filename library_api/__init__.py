import logging

from flask import Flask, jsonify

from library_api.config import Config
from library_api.db_setup import init_database
from library_api.errors import register_error_handlers
from library_api.extensions import db, migrate, jwt


def create_app(config_object=None):
    app = Flask(__name__)
    app.config.from_object(config_object or Config)
    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # 1) db init first (db.engine / db.session need it)
    db.init_app(app)

    # 2) sqlite locking mode, tables, default admin (after db init)
    init_database(app)

    # 3) remaining extensions
    migrate.init_app(app, db)
    jwt.init_app(app)

    register_error_handlers(app)

    # 4) API blueprints (url_prefix lives on each blueprint)
    from library_api.controllers.auth_controller import auth_bp
    from library_api.controllers.user_controller import user_bp
    from library_api.controllers.book_controller import book_bp
    from library_api.controllers.catalog_controller import category_bp, publisher_bp
    from library_api.controllers.borrowing_controller import borrowing_bp
    app.register_blueprint(auth_bp)
    app.register_blueprint(user_bp)
    app.register_blueprint(book_bp)
    app.register_blueprint(category_bp)
    app.register_blueprint(publisher_bp)
    app.register_blueprint(borrowing_bp)

    @app.get("/health")
    def health():
        return jsonify({"ok": True})

    return app
