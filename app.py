import os
from datetime import datetime, timezone

import click
from flask import Flask, jsonify
from config import Config
from extensions import db, login_manager, init_extensions
from logger import configure_logging
from models import User
from ledger.engine import LedgerEngine
from ledger.errors import LedgerError


def create_app(config_class=Config, clock=None):
    app = Flask(__name__)
    app.config.from_object(config_class)

    if not app.debug and not app.testing:
        app.config.update(
            SESSION_COOKIE_SECURE=True,
            SESSION_COOKIE_HTTPONLY=True,
            REMEMBER_COOKIE_SECURE=True,
            REMEMBER_COOKIE_HTTPONLY=True,
        )

    # ------------------------------------------------------------------------------------------
    # LOGGING
    # ------------------------------------------------------------------------------------------
    configure_logging(app)

    # ------------------------------------------------------------------------------------------
    # Extensions and the ledger engine
    # ------------------------------------------------------------------------------------------
    if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite"):
        os.makedirs(os.path.join(app.root_path, "instance"), exist_ok=True)

    init_extensions(app)
    app.extensions["ledger"] = LedgerEngine.from_config(app.config, clock=clock)

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    # ------------------------------------------------------------------------------------------
    # Errors
    # ------------------------------------------------------------------------------------------
    @app.errorhandler(LedgerError)
    def handle_ledger_error(e):
        if e.status_code >= 500:
            app.logger.error(f"Ledger error: {e.message}")
        return jsonify({"error": e.message, "code": e.code}), e.status_code

    register_blueprints(app)
    register_commands(app)

    @app.route("/healthz")
    def healthz():
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}, 200

    return app


def register_blueprints(app):
    """Register all blueprints"""
    from blueprints.transactions import bp as transactions_bp
    from blueprints.admin import admin_bp

    app.register_blueprint(transactions_bp)
    app.register_blueprint(admin_bp)


def register_commands(app):

    @app.cli.command("backfill-investments")
    def backfill_investments():
        """Adopt ledger-only investment entries into the investment registry."""
        adopted = app.extensions["ledger"].backfill_legacy_investments()
        click.echo(f"Adopted {adopted} legacy investment entries")

    @app.cli.command("create-tables")
    def create_tables():
        """Create all tables directly (development databases without migrations)."""
        db.create_all()
        click.echo("Tables created")


# ----------------------
# Local development
# ----------------------
if __name__ == "__main__":
    app = create_app()
    port = int(os.environ.get("PORT", 5000))
    debug_mode = app.config.get("DEBUG", False)
    app.run(debug=debug_mode, host="0.0.0.0", port=port)
