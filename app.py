import logging.config

from flask import Flask
from flask_migrate import Migrate

from config import Config
from routes import health_bp, auth_bp, slots_bp, bookings_bp, payments_bp, admin_bp, audit_bp

import services
from models import db
from utils.seed import seed_roles, seed_slots
from utils.auth_context import load_current_user
from security.csrf import csrf_protect


def create_app(config_object=None, store=None, clock=None):
    app = Flask(__name__)
    app.config.from_object(config_object or Config)

    logging.config.dictConfig(app.config["LOGGING"])
    logging.getLogger().setLevel(app.config["LOG_LEVEL"])

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(slots_bp)
    app.register_blueprint(bookings_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(audit_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    service = services.init_app(app, store=store, clock=clock)

    # Seed roles and the fixed slots at startup (safe & idempotent)
    with app.app_context():
        if app.config.get("AUTO_CREATE_TABLES"):
            db.create_all()
        seed_roles()
        seed_slots(service, app.config["SLOT_COUNT"])

    # Resolve the session cookie first, CSRF check depends on g.user
    app.before_request(load_current_user)
    app.before_request(csrf_protect)

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_cli(app)

    if app.config.get("SWEEPER_ENABLED"):
        # started by the first served request, so CLI commands and migrations never spawn it
        @app.before_request
        def _start_sweeper():
            app.extensions["expiry_sweeper"].start()

    return app

#-------------------------
import click
from models.user import User, Role

def register_cli(app):
    @app.cli.command("make-admin")
    @click.argument("email")
    def make_admin(email):
        """Promote a user to ADMIN by email (bootstrap)."""
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            click.echo("User not found")
            return

        admin_role = Role.query.filter_by(name="ADMIN").first()
        if not admin_role:
            admin_role = Role(name="ADMIN")
            db.session.add(admin_role)
            db.session.commit()

        if admin_role not in user.roles:
            user.roles.append(admin_role)
            db.session.commit()

        click.echo(f"{user.email} promoted to ADMIN")

    @app.cli.command("sweep-expired")
    def sweep_expired():
        """Run one expiry sweep now."""
        expired = services.get_sweeper().run_once()
        click.echo(f"{expired} slot(s) expired")

    @app.cli.command("slots")
    def show_slots():
        """Print slot occupancy."""
        for slot in services.get_booking_service().list_slots():
            if slot.occupied:
                click.echo(f"#{slot.id:<3} occupied  {slot.occupant_vehicle:<12} until {slot.hold_expiry:%Y-%m-%d %H:%M}")
            else:
                click.echo(f"#{slot.id:<3} free")

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5000)
