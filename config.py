import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent


def _env_flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).lower() in {"1", "true", "yes"}


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key")
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", f"sqlite:///{BASE_DIR / 'seisan.db'}")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    WTF_CSRF_ENABLED = True

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_DIR = os.environ.get("LOG_DIR", str(BASE_DIR / "logs"))

    MAIL_SERVER = os.environ.get("MAIL_SERVER", "localhost")
    MAIL_PORT = int(os.environ.get("MAIL_PORT", 587))
    MAIL_USE_TLS = _env_flag("MAIL_USE_TLS", "true")
    MAIL_USERNAME = os.environ.get("MAIL_USERNAME")
    MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.environ.get("MAIL_DEFAULT_SENDER", "noreply@seisan.local")
    NOTIFY_EMAIL_ON_DECISION = _env_flag("NOTIFY_EMAIL_ON_DECISION", "true")

    STORAGE_ROOT = os.environ.get("STORAGE_ROOT", str(BASE_DIR / "storage"))

    # Seconds; applied to every outbound HTTP call
    EXTERNAL_HTTP_TIMEOUT = float(os.environ.get("EXTERNAL_HTTP_TIMEOUT", 10))

    ACCOUNTING_SYNC_ASYNC = _env_flag("ACCOUNTING_SYNC_ASYNC", "true")
    ACCOUNTING_MAX_RETRIES = int(os.environ.get("ACCOUNTING_MAX_RETRIES", 5))
    FREEE_API_URL = os.environ.get("FREEE_API_URL", "https://api.freee.co.jp/api/1")
    MONEYFORWARD_API_URL = os.environ.get(
        "MONEYFORWARD_API_URL", "https://expense.moneyforward.com/api/external/v1"
    )

    OCR_SERVICE_URL = os.environ.get("OCR_SERVICE_URL")
    OCR_API_KEY = os.environ.get("OCR_API_KEY")
    PUSH_SERVICE_URL = os.environ.get("PUSH_SERVICE_URL")
    PUSH_API_KEY = os.environ.get("PUSH_API_KEY")
    DOCUMENT_SERVICE_URL = os.environ.get("DOCUMENT_SERVICE_URL")


class DevelopmentConfig(Config):
    DEBUG = True


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    WTF_CSRF_ENABLED = False
    MAIL_SUPPRESS_SEND = True
    ACCOUNTING_SYNC_ASYNC = False
    NOTIFY_EMAIL_ON_DECISION = False


class ProductionConfig(Config):
    DEBUG = False
    SESSION_COOKIE_SECURE = True


config_by_name = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
