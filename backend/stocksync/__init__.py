# backend/stocksync/__init__.py
import logging
import os

from flask import Flask, request

from .config import Config
from .extensions import db, migrate

MIGRATIONS_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "migrations")


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    logging.getLogger("stocksync").setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db, directory=MIGRATIONS_DIR)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Sync core components (store, cache, outbox, activity, reconciler, scheduler)
    from .container import EXTENSION_KEY, build_components
    app.extensions[EXTENSION_KEY] = build_components(app, remote=app.config.get("SYNC_REMOTE_BACKEND"))

    # Register blueprints
    from .routes.system import system_bp
    from .routes.items import items_bp
    from .routes.categories import categories_bp
    from .routes.activity import activity_bp
    from .routes.sync import sync_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(items_bp)
    app.register_blueprint(categories_bp)
    app.register_blueprint(activity_bp)
    app.register_blueprint(sync_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = {
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        }
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "X-Actor-Id, X-Actor-Name, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    if app.config.get("SYNC_AUTOSTART") and not app.config.get("TESTING"):
        app.extensions[EXTENSION_KEY].scheduler.start()

    return app
