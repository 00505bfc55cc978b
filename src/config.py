# src/config.py

import os

from dotenv import load_dotenv

load_dotenv()


# -----------------------------
# Backend actor
# -----------------------------
BACKEND_BASE_URL = os.getenv("BACKEND_BASE_URL", "http://localhost:4943")
BACKEND_TIMEOUT_SECONDS = float(os.getenv("BACKEND_TIMEOUT_SECONDS", "10"))


# -----------------------------
# Payment redirect targets
# -----------------------------
APP_BASE_URL = os.getenv("APP_BASE_URL", "http://localhost:8000").rstrip("/")
SUCCESS_URL = f"{APP_BASE_URL}/payment-success?payment=success&session_id={{CHECKOUT_SESSION_ID}}"
CANCEL_URL = f"{APP_BASE_URL}/payment-failure?payment=cancelled"


# -----------------------------
# Seat lock
# -----------------------------
SEAT_LOCK_TTL_SECONDS = int(os.getenv("SEAT_LOCK_TTL_SECONDS", "120"))
SEAT_LOCK_CRITICAL_SECONDS = int(os.getenv("SEAT_LOCK_CRITICAL_SECONDS", "30"))


# -----------------------------
# Currency
# -----------------------------
BASE_CURRENCY = "INR"
FALLBACK_CURRENCY = os.getenv("FALLBACK_CURRENCY", "USD")


# -----------------------------
# Session status polling (caller-side)
# -----------------------------
SESSION_POLL_ATTEMPTS = int(os.getenv("SESSION_POLL_ATTEMPTS", "3"))
SESSION_POLL_DELAY_SECONDS = float(os.getenv("SESSION_POLL_DELAY_SECONDS", "1.5"))


# -----------------------------
# Preference store
# -----------------------------
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./booknow_client.db")
STORE_CONNECT_MAX_RETRIES = int(os.getenv("STORE_CONNECT_MAX_RETRIES", "5"))
STORE_CONNECT_RETRY_DELAY = float(os.getenv("STORE_CONNECT_RETRY_DELAY", "0.5"))
