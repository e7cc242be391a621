# mailslot/config.py

import os

# =========================
# LOGGING
# =========================

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# =========================
# DATABASE
# =========================

DB_USER = os.getenv("DB_USER", "mailslot")
DB_PASS = os.getenv("DB_PASS", "mailslot")
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = os.getenv("DB_PORT", "5432")
DB_NAME = os.getenv("DB_NAME", "mailslot")

# DATABASE_URL wins when set, e.g. sqlite:///./mailslot.db for local runs
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql://{DB_USER}:{DB_PASS}@{DB_HOST}:{DB_PORT}/{DB_NAME}",
)

# "sql" keeps pending messages in DATABASE_URL, "kv" keeps them in REDIS_URL
STORE_BACKEND = os.getenv("STORE_BACKEND", "sql").lower()

# Empty means an in-process store (single worker, development only)
REDIS_URL = os.getenv("REDIS_URL", "")

TAKE_RANDOM_MAX_ATTEMPTS = int(os.getenv("TAKE_RANDOM_MAX_ATTEMPTS", "3"))
KV_LIST_LIMIT = int(os.getenv("KV_LIST_LIMIT", "1000"))

# =========================
# INGESTION
# =========================

RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "180"))

TURNSTILE_SECRET_KEY = os.getenv("TURNSTILE_SECRET_KEY", "")
TURNSTILE_VERIFY_URL = os.getenv(
    "TURNSTILE_VERIFY_URL",
    "https://challenges.cloudflare.com/turnstile/v0/siteverify",
)

MODERATION_PAGE_URL = os.getenv("MODERATION_PAGE_URL", "")
MODERATION_CHECK_URL = os.getenv("MODERATION_CHECK_URL", "")
MODERATION_CHECK_TYPE = os.getenv("MODERATION_CHECK_TYPE", "text")
MODERATION_SESSION_TTL_SECONDS = int(os.getenv("MODERATION_SESSION_TTL_SECONDS", "1800"))
MODERATION_AUTH_RETRIES = int(os.getenv("MODERATION_AUTH_RETRIES", "1"))

# =========================
# RELAY / DELIVERY
# =========================

RELAY_API_URL = os.getenv("RELAY_API_URL", "")
RELAY_API_KEY = os.getenv("RELAY_API_KEY", "")
RELAY_ON_SUBMIT = os.getenv("RELAY_ON_SUBMIT", "false").lower() == "true"

# Pre-shared key for take-next and trusted submission
ACCESS_KEY = os.getenv("ACCESS_KEY", "")

HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "10"))

# =========================
# HTTP SURFACE
# =========================

SUBMIT_REQUEST_LIMIT = os.getenv("SUBMIT_REQUEST_LIMIT", "20/minute")
TAKE_NEXT_REQUEST_LIMIT = os.getenv("TAKE_NEXT_REQUEST_LIMIT", "60/minute")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
