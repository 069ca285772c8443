# src/config/settings.py

import os

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


# -----------------------------
# Application
# -----------------------------
APP_NAME = os.getenv("APP_NAME", "Estate Back Office")
APP_DEBUG = _env_flag("APP_DEBUG")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


# -----------------------------
# Web sessions / flash data
# -----------------------------
SESSION_SECRET_KEY = os.getenv("SESSION_SECRET_KEY", "change-me-in-production")
SAFE_LANDING_PATH = os.getenv("SAFE_LANDING_PATH", "/dashboard")


# -----------------------------
# Booking rules
# -----------------------------
DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "NGN")
MAX_GUESTS_PER_BOOKING = int(os.getenv("MAX_GUESTS_PER_BOOKING", "20"))


# -----------------------------
# Payment gateway
# -----------------------------
RAZORPAY_KEY_ID = os.getenv("RAZORPAY_KEY_ID")
RAZORPAY_KEY_SECRET = os.getenv("RAZORPAY_KEY_SECRET")


# -----------------------------
# Database
# -----------------------------
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_NAME = os.getenv("DB_NAME", "estate_back_office")
DB_USER = os.getenv("DB_USER", "postgres")
DB_PASSWORD = os.getenv("DB_PASSWORD", "postgres")
DB_CONNECT_MAX_RETRIES = int(os.getenv("DB_CONNECT_MAX_RETRIES", "30"))
DB_CONNECT_RETRY_DELAY = float(os.getenv("DB_CONNECT_RETRY_DELAY", "1.5"))
