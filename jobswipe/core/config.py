import os
from decimal import Decimal

# ✅ Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./jobswipe.db")
RUN_MIGRATIONS = os.getenv("RUN_MIGRATIONS", "0") == "1"

# ✅ Security
SECRET_KEY = os.getenv("SECRET_KEY", "change-me-in-production")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

# ✅ Stripe
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")
STRIPE_PRICE_ID_STANDARD = os.getenv("STRIPE_PRICE_ID_STANDARD")
STRIPE_PRICE_ID_PREMIUM = os.getenv("STRIPE_PRICE_ID_PREMIUM")
CURRENCY = os.getenv("CURRENCY", "eur")

# ✅ Hosted checkout redirect targets (the client watches for these URLs)
CHECKOUT_SUCCESS_URL = os.getenv("CHECKOUT_SUCCESS_URL", "https://example.com/checkout-success")
CHECKOUT_CANCEL_URL = os.getenv("CHECKOUT_CANCEL_URL", "https://example.com/checkout-cancel")

# ✅ Pricing
# Basic-plan price per unlocked match. Product decision: this is the amount the
# gateway charges (2900 cents), so every call site reads it from here.
BASIC_MATCH_PRICE = Decimal(os.getenv("BASIC_MATCH_PRICE", "29.00"))

# ✅ Logging / HTTP
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if origin.strip()
]
