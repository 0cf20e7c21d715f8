"""Application factory and extension initialization for Seisan."""
from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

from dotenv import load_dotenv
from flask import Flask
from flask_login import LoginManager
from flask_mail import Mail
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from flask_wtf import CSRFProtect

from config import config_by_name

# Global extension instances -------------------------------------------------

db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
csrf = CSRFProtect()
mail = Mail()


def configure_logging(app: Flask) -> None:
    """Console logging for debug/testing, rotating file logs otherwise."""
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")

    if app.debug or app.testing:
        handler: logging.Handler = logging.StreamHandler()
    else:
        log_dir = app.config["LOG_DIR"]
        os.makedirs(log_dir, exist_ok=True)
        handler = RotatingFileHandler(
            os.path.join(log_dir, "seisan.log"), maxBytes=10_240_000, backupCount=10
        )
    handler.setFormatter(formatter)
    handler.setLevel(level)

    package_logger = logging.getLogger("seisan")
    package_logger.setLevel(level)
    if not any(type(h) is type(handler) for h in package_logger.handlers):
        package_logger.addHandler(handler)


def create_app(config_name: Optional[str] = None) -> Flask:
    """Flask application factory."""
    load_dotenv()

    app = Flask(__name__, instance_relative_config=True)

    config_name = config_name or os.getenv("FLASK_CONFIG", "development")
    config_class = config_by_name.get(config_name.lower())
    if config_class is None:
        raise ValueError(f"Unknown Flask configuration '{config_name}'")

    app.config.from_object(config_class)

    configure_logging(app)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)
    mail.init_app(app)

    from seisan.services.email_service import init_email_service
    init_email_service(mail)

    # Register blueprints
    from seisan.main import main_bp
    from seisan.auth import auth_bp
    from seisan.applications import applications_bp
    from seisan.approvals import approvals_bp
    from seisan.notifications import notifications_bp
    from seisan.admin import admin_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(applications_bp)
    app.register_blueprint(approvals_bp)
    app.register_blueprint(notifications_bp)
    app.register_blueprint(admin_bp)

    from seisan.utils.helpers import register_error_handlers
    register_error_handlers(app)

    from seisan.cli import register_commands
    register_commands(app)

    from seisan.models import User

    @login_manager.user_loader
    def load_user(user_id: str) -> Optional[User]:
        return db.session.get(User, user_id)

    @login_manager.unauthorized_handler
    def unauthorized():
        from seisan.utils.helpers import json_response
        return json_response({"error": "Authentication required."}, status=401)

    @app.shell_context_processor
    def shell_context():
        return {"db": db, "User": User}

    return app
