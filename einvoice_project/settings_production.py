"""
Production environment settings.
Use: DJANGO_SETTINGS_MODULE=einvoice_project.settings_production

- Production DB (PostgreSQL via DATABASE_URL; SQLite supported)
- Authority production services, real certificate and login ticket flow
- Log rotation and retention
- DEBUG=False, SECRET_KEY from env
"""

import os
from pathlib import Path

import dj_database_url

from .settings import *  # noqa: F401, F403

BASE_DIR = Path(__file__).resolve().parent.parent

# Production: never debug
DEBUG = False
SECRET_KEY = os.environ.get("SECRET_KEY")
if not SECRET_KEY:
    raise ValueError("SECRET_KEY environment variable must be set in production")
ALLOWED_HOSTS = os.environ.get("ALLOWED_HOSTS", "").split(",")

if os.environ.get("DATABASE_URL"):
    DATABASES = {"default": dj_database_url.config(conn_max_age=600)}
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": os.environ.get("DB_PATH", str(BASE_DIR / "db_production.sqlite3")),
        }
    }

# Authority production services (never simulated)
EINVOICE_ENVIRONMENT = "production"
EINVOICE_SIMULATE_AUTHORITY = False
EINVOICE_TAX_ID = os.environ.get("EINVOICE_TAX_ID", "")
if not EINVOICE_TAX_ID:
    raise ValueError("EINVOICE_TAX_ID environment variable must be set in production")
EINVOICE_CERT_PATH = os.environ.get("EINVOICE_CERT_PATH", "")
if not EINVOICE_CERT_PATH:
    raise ValueError("EINVOICE_CERT_PATH environment variable must be set in production")

# Log retention
LOGS_DIR = Path(os.environ.get("LOGS_DIR", str(BASE_DIR / "logs")))
LOGS_DIR.mkdir(parents=True, exist_ok=True)

LOGGING["handlers"]["einvoice_file"] = {
    "level": "INFO",
    "class": "logging.handlers.RotatingFileHandler",
    "filename": LOGS_DIR / "einvoice.log",
    "maxBytes": 10 * 1024 * 1024,  # 10 MB
    "backupCount": 30,
    "formatter": "simple",
}
LOGGING["handlers"]["einvoice_json_file"] = {
    "level": "INFO",
    "class": "logging.handlers.RotatingFileHandler",
    "filename": LOGS_DIR / "einvoice_json.log",
    "maxBytes": 10 * 1024 * 1024,
    "backupCount": 30,
    "formatter": "json",
}
LOGGING["handlers"]["einvoice_error_file"] = {
    "level": "ERROR",
    "class": "logging.handlers.RotatingFileHandler",
    "filename": LOGS_DIR / "einvoice_error.log",
    "maxBytes": 5 * 1024 * 1024,
    "backupCount": 90,
    "formatter": "json",
}
LOGGING["loggers"]["einvoice"]["handlers"] = [
    "console",
    "einvoice_file",
    "einvoice_json_file",
    "einvoice_error_file",
]
