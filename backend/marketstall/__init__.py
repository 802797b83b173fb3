# backend/marketstall/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db, migrate



def create_app(overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    # Applied before extensions bind their engines (tests point at sqlite:///:memory:)
    if overrides:
        app.config.update(overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.users import users_bp
    from .routes.payees import payees_bp  # Payout routing between users
    from .routes.purchases import purchases_bp  # Purchase phase + QR attach
    from .routes.sales import sales_bp  # Checkout, QR lookup, day list, delete
    from .routes.reports import reports_bp  # Owner revenue breakdown
    from .routes.settlements import settlements_bp  # Netting engine
    from .routes.uploads import uploads_bp  # Item photos

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(payees_bp)
    app.register_blueprint(purchases_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(settlements_bp)
    app.register_blueprint(uploads_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = app.config.get("CORS_ALLOWED_ORIGINS", set())
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        # Standalone iOS home-screen apps cache aggressively
        response.headers["Cache-Control"] = "no-store"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
