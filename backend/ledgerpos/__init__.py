# backend/ledgerpos/__init__.py
from flask import Flask

from .config import Config
from .errors import register_error_handlers
from .extensions import db, migrate
from .logging_config import configure_logging


def create_app(overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    register_error_handlers(app)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.products import products_bp
    from .routes.sales import sales_bp
    from .routes.purchases import purchases_bp
    from .routes.returns import returns_bp
    from .routes.suppliers import suppliers_bp
    from .routes.shifts import shifts_bp
    from .routes.treasury import treasury_bp
    from .routes.authz import authz_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(purchases_bp)
    app.register_blueprint(returns_bp)
    app.register_blueprint(suppliers_bp)
    app.register_blueprint(shifts_bp)
    app.register_blueprint(treasury_bp)
    app.register_blueprint(authz_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
