# backend/config/constants.py

from datetime import timedelta

from config.env import LOCK_DURATION_MINUTES, MAX_LOGIN_ATTEMPTS

# -----------------------------
# ACCOUNT TYPES
# -----------------------------

ACCOUNT_COLLECTIONS = {
    "buyer": "users",
    "seller": "sellers",
    "admin": "admins",
}

# -----------------------------
# LOCKOUT
# -----------------------------

LOCK_DURATION = timedelta(minutes=LOCK_DURATION_MINUTES)   # 2 hours by default

# -----------------------------
# ONE-TIME TOKENS
# -----------------------------

EMAIL_VERIFICATION_TTL = timedelta(hours=24)
PASSWORD_RESET_TTL = timedelta(hours=1)

# -----------------------------
# RATE LIMITS
# -----------------------------

LOGIN_RATE_LIMIT = 10                  # per email per window
LOGIN_RATE_WINDOW_SECONDS = 15 * 60
REGISTER_RATE_LIMIT = 5                # per email per window
REGISTER_RATE_WINDOW_SECONDS = 15 * 60
PASSWORD_RESET_RATE_LIMIT = 3
PASSWORD_RESET_RATE_WINDOW_SECONDS = 60 * 60

# -----------------------------
# SELLERS
# -----------------------------

DEFAULT_SELLER_COMMISSION = 5          # % per order
DEFAULT_SELLER_COUNTRY = "Zambia"
TOP_SELLERS_MAX_LIMIT = 50
