# backend/erp/__init__.py
import logging
import os
from logging.handlers import RotatingFileHandler

from flask import Flask

from .config import Config
from .extensions import db, migrate


def _configure_logging(app: Flask) -> None:
    if not app.config.get("LOG_TO_FILE"):
        return

    log_dir = app.config["LOG_DIR"]
    if not os.path.isabs(log_dir):
        log_dir = os.path.join(app.instance_path, log_dir)
    os.makedirs(log_dir, exist_ok=True)

    file_handler = RotatingFileHandler(
        os.path.join(log_dir, "erp.log"),
        maxBytes=2_000_000,
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    ))

    if not any(isinstance(h, RotatingFileHandler) for h in app.logger.handlers):
        app.logger.addHandler(file_handler)
    app.logger.setLevel(logging.INFO)


def create_app(config_class=Config) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_class)

    _configure_logging(app)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.stock import stock_bp
    from .routes.cash import cash_bp
    from .routes.credits import credits_bp
    from .routes.sales import sales_bp
    from .routes.purchases import purchases_bp
    from .routes.transfers import transfers_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(stock_bp)
    app.register_blueprint(cash_bp)
    app.register_blueprint(credits_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(purchases_bp)
    app.register_blueprint(transfers_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
