# backend/ticketdesk/__init__.py
import logging

from flask import Flask

from .config import Config
from .extensions import db, migrate


def create_app(config_overrides=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes import register_error_handlers
    from .routes.scopes import scopes_bp
    from .routes.staff import staff_bp
    from .routes.rides import rides_bp
    from .routes.stock import stock_bp
    from .routes.distributions import distributions_bp
    from .routes.settlements import settlements_bp
    from .routes.cash_settlements import cash_settlements_bp

    app.register_blueprint(scopes_bp)
    app.register_blueprint(staff_bp)
    app.register_blueprint(rides_bp)
    app.register_blueprint(stock_bp)
    app.register_blueprint(distributions_bp)
    app.register_blueprint(settlements_bp)
    app.register_blueprint(cash_settlements_bp)
    register_error_handlers(app)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
