import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to the app as smartpark.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "smartpark.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Create missing tables at start-up (migrations remain the source of truth)
    AUTO_CREATE_TABLES = _env_bool("AUTO_CREATE_TABLES", "true")

    # Slot/booking storage: "sql" (database) or "memory" (process-local)
    STORE_BACKEND = os.getenv("STORE_BACKEND", "sql")

    # Fixed number of physical slots, ids 1..SLOT_COUNT
    SLOT_COUNT = int(os.getenv("SLOT_COUNT", "10"))

    # Hours -> price, never user supplied
    BOOKING_RATES = {1: 50, 2: 100, 3: 150}
    CURRENCY = "INR"

    # Expiry sweeper
    SWEEPER_ENABLED = _env_bool("SWEEPER_ENABLED", "true")
    SWEEP_INTERVAL_SECONDS = float(os.getenv("SWEEP_INTERVAL_SECONDS", "1"))

    # Session cookie name for our auth token
    AUTH_COOKIE_NAME = "smartpark_session"

    # 7 day session lifetime
    SESSION_LIFETIME_SECONDS = 7 * 24 * 60 * 60

    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = False  # set True when using HTTPS

    BCRYPT_ROUNDS = 12

    # Admin signup (set in environment for production)
    ADMIN_SIGNUP_CODE = os.getenv("ADMIN_SIGNUP_CODE")

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOGGING = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "verbose": {
                "format": "{levelname} {asctime} {name} {thread:d} {message}",
                "style": "{",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "verbose",
            },
        },
        "root": {
            "handlers": ["console"],
            "level": LOG_LEVEL,
        },
    }

    # Basic app settings
    DEBUG = False


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    AUTO_CREATE_TABLES = True
    STORE_BACKEND = "sql"
    SWEEPER_ENABLED = False
    ADMIN_SIGNUP_CODE = "let-me-in"
    BCRYPT_ROUNDS = 4
    LOG_LEVEL = "WARNING"
