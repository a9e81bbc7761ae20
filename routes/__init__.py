from .health import health_bp
from .auth import auth_bp
from .slots import slots_bp
from .bookings import bookings_bp
from .payments import payments_bp
from .admin import admin_bp
from .audit_logs import audit_bp
