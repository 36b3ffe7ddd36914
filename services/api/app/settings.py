import os

# Defaults match a local development run; override via environment.
PORT = int(os.getenv("PORT", "3000"))
APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGIN = os.getenv("CORS_ORIGIN", "*")

HEARTBEAT_INTERVAL_SEC = float(os.getenv("HEARTBEAT_INTERVAL_SEC", "30"))
OUTBOX_MAXSIZE = int(os.getenv("OUTBOX_MAXSIZE", "32"))


def is_production() -> bool:
    return APP_ENV.lower() == "production"


def cors_options(raw_origins: str | None = None) -> dict:
    """Build CORSMiddleware kwargs from a comma separated origin list.

    A bare `*` (or nothing) allows any http(s) origin via regex so that
    credentials still work.
    """
    raw = CORS_ORIGIN if raw_origins is None else raw_origins
    tokens = [token.strip() for token in raw.split(",") if token.strip() and token.strip() != "*"]
    options: dict = {
        "allow_methods": ["*"],
        "allow_headers": ["*"],
        "allow_credentials": True,
    }
    if tokens:
        options["allow_origins"] = tokens
    else:
        options["allow_origins"] = []
        options["allow_origin_regex"] = r"https?://.*"
    return options
