import os

db_url = os.environ.get("DB_URL", "sqlite://:memory:")
REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")

ENVIRONMENT = os.environ.get("ENVIRONMENT", "development")
IS_PRODUCTION = ENVIRONMENT == "production"
PORT = int(os.environ.get("PORT", "5000"))
# Peers whose X-Forwarded-For uvicorn trusts (comma separated).
FORWARDED_ALLOW_IPS = os.environ.get("FORWARDED_ALLOW_IPS", "127.0.0.1")
API_PREFIX = os.environ.get("API_PREFIX", "/api")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO" if IS_PRODUCTION else "DEBUG")
GENERATE_SCHEMAS = os.environ.get("GENERATE_SCHEMAS", "true").lower() == "true"

JWT_SECRET = os.environ.get("JWT_SECRET", "dev-only-change-me")
JWT_ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")
JWT_EXPIRE_MINUTES = int(os.environ.get("JWT_EXPIRE_MINUTES", "120"))

# Daily slot catalog; the 12:00-13:00 break is intentional.
TIME_SLOTS: tuple[str, ...] = (
    "08:00-09:00",
    "09:00-10:00",
    "10:00-11:00",
    "11:00-12:00",
    "13:00-14:00",
    "14:00-15:00",
    "15:00-16:00",
    "16:00-17:00",
)

# (window_seconds, max_requests)
GENERAL_RATE_LIMIT = (15 * 60, 100)
AUTH_RATE_LIMIT = (15 * 60, 5)
BOOKING_RATE_LIMIT = (60 * 60, 10)
ADMIN_RATE_LIMIT = (15 * 60, 200)
RATE_LIMIT_SWEEP_SECONDS = 60


def tortoise_config(url: str | None = None) -> dict:
    return {
        "connections": {"default": url or db_url},
        "apps": {
            "models": {
                "models": ["carwash.models"],
                "default_connection": "default",
            }
        },
        "use_tz": True,
        "timezone": "UTC",
    }


TORTOISE_ORM = tortoise_config()
