import os
from datetime import timedelta


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "super-secret-key")

    SQLALCHEMY_DATABASE_URI = os.getenv(
        "SQLALCHEMY_DATABASE_URI",
        os.getenv("DATABASE_URL", "sqlite:///library.db"),
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

    # sqlite has no row locks; open every transaction with BEGIN IMMEDIATE
    SQLITE_IMMEDIATE_TRANSACTIONS = os.getenv("SQLITE_IMMEDIATE_TRANSACTIONS", "1") == "1"

    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "super-secret-library-key")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(seconds=int(os.getenv("JWT_EXPIRES_SECONDS", str(60 * 60 * 8))))

    DEFAULT_ADMIN_EMAIL = os.getenv("DEFAULT_ADMIN_EMAIL", "admin@library.local")
    DEFAULT_ADMIN_PASSWORD = os.getenv("DEFAULT_ADMIN_PASSWORD", "Admin123!")
    DEFAULT_ADMIN_NAME = os.getenv("DEFAULT_ADMIN_NAME", "Library Admin")

    PAGE_SIZE_DEFAULT = int(os.getenv("PAGE_SIZE_DEFAULT", "20"))
    PAGE_SIZE_MAX = int(os.getenv("PAGE_SIZE_MAX", "50"))

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    JWT_SECRET_KEY = "test-jwt-secret-key-with-enough-length"
    DEFAULT_ADMIN_PASSWORD = "Admin123!"
    LOG_LEVEL = "DEBUG"
