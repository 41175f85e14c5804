"""
config.py — Process Configuration for the Order Service

All settings are read from environment variables. A local `.env` file is
loaded first (development convenience); real environment variables win.
"""

import os

from dotenv import load_dotenv

load_dotenv()

# Database (kein Default: fehlt die URL, lehnt POST /orders mit 500 ab)
DATABASE_URL = os.environ.get("DATABASE_URL")
DB_POOL_SIZE = int(os.environ.get("DB_POOL_SIZE", "5"))
DB_ECHO = os.environ.get("DB_ECHO", "false").lower() in ("1", "true", "yes")
# Seconds a SQLite writer waits for the database lock
DB_BUSY_TIMEOUT = float(os.environ.get("DB_BUSY_TIMEOUT", "30"))

# Templated notification provider (EmailJS-compatible REST API)
NOTIFY_API_URL = os.environ.get("NOTIFY_API_URL", "https://api.emailjs.com/api/v1.0/email/send")
NOTIFY_SERVICE_ID = os.environ.get("NOTIFY_SERVICE_ID")
NOTIFY_TEMPLATE_ID = os.environ.get("NOTIFY_TEMPLATE_ID")
NOTIFY_PUBLIC_KEY = os.environ.get("NOTIFY_PUBLIC_KEY")
NOTIFY_PRIVATE_KEY = os.environ.get("NOTIFY_PRIVATE_KEY")
NOTIFY_TIMEOUT = float(os.environ.get("NOTIFY_TIMEOUT", "8.0"))

CURRENCY_SYMBOL = os.environ.get("CURRENCY_SYMBOL", "€")

LOG_FILE = os.environ.get("LOG_FILE")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
PORT = int(os.environ.get("PORT", "3000"))
