"""
Runtime settings for the storefront API.

Values are read from the environment (a local .env file is loaded first).
They are looked up through these module attributes at call time, so a
changed variable or a monkeypatched attribute takes effect without a restart.
"""
import os

from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

JWT_SECRET = os.getenv("JWT_SECRET", "change-me")
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL")
ADMIN_PASSWORD_HASH = os.getenv("ADMIN_PASSWORD_HASH")

STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
RAZORPAY_KEY_ID = os.getenv("RAZORPAY_KEY_ID")
RAZORPAY_KEY_SECRET = os.getenv("RAZORPAY_KEY_SECRET")

RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM = os.getenv("EMAIL_FROM", "Ecommerce App <no-reply@example.com>")

FRONTEND_URL = os.getenv("FRONTEND_URL")
ADMIN_URL = os.getenv("ADMIN_URL")

CURRENCY = os.getenv("CURRENCY", "INR")
DELIVERY_CHARGE = float(os.getenv("DELIVERY_CHARGE", "10"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Requests per client IP across all /api routes, per window
RATE_LIMIT_MAX = int(os.getenv("RATE_LIMIT_MAX", 1000))
RATE_LIMIT_WINDOW_MINUTES = int(os.getenv("RATE_LIMIT_WINDOW_MINUTES", 15))

PORT = int(os.getenv("PORT", 4000))

OTP_TTL_MINUTES = 10
MIN_PASSWORD_LENGTH = 8


def api_rate_limit():
    return f"{RATE_LIMIT_MAX}/{RATE_LIMIT_WINDOW_MINUTES} minutes"


def is_placeholder(value):
    """A key that was never filled in from the sample .env."""
    return not value or "Paste" in value
