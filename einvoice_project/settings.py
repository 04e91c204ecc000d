"""
Base settings for the e-invoice authorization project.
Use: DJANGO_SETTINGS_MODULE=einvoice_project.settings (development / testing)

Authority credentials are read from the environment once at startup.
Defaults target the homologation (testing) services with a simulated Authority.
EINVOICE_CERT_PATH is required even when simulating: the Signer loads and
checks the issuer certificate (PKCS#12 or PEM certificate plus key) before
every submission, and an unset path raises SigningError.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get("SECRET_KEY", "dev-only-insecure-key")
DEBUG = os.environ.get("DEBUG", "true").lower() in ("1", "true", "yes")
ALLOWED_HOSTS = os.environ.get("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",")

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "einvoice",
]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.environ.get("DB_PATH", str(BASE_DIR / "db.sqlite3")),
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "es-ar"
TIME_ZONE = "America/Argentina/Buenos_Aires"
USE_I18N = True
USE_TZ = True

# Authority (electronic invoicing web service)
EINVOICE_ENVIRONMENT = os.environ.get("EINVOICE_ENVIRONMENT", "testing")
EINVOICE_TAX_ID = os.environ.get("EINVOICE_TAX_ID", "20111111112")
EINVOICE_SALES_POINT = int(os.environ.get("EINVOICE_SALES_POINT", "1") or "1")
# PKCS#12 (.p12/.pfx) or PEM bundle; see module docstring
EINVOICE_CERT_PATH = os.environ.get("EINVOICE_CERT_PATH", "")
EINVOICE_CERT_PASSWORD = os.environ.get("EINVOICE_CERT_PASSWORD", "")
EINVOICE_ENDPOINT = os.environ.get("EINVOICE_ENDPOINT", "")
EINVOICE_AUTH_ENDPOINT = os.environ.get("EINVOICE_AUTH_ENDPOINT", "")
EINVOICE_SERVICE_NAME = os.environ.get("EINVOICE_SERVICE_NAME", "wsfe")
EINVOICE_SIMULATE_AUTHORITY = os.environ.get("EINVOICE_SIMULATE_AUTHORITY", "true").lower() in ("1", "true", "yes")
EINVOICE_REQUEST_TIMEOUT = int(os.environ.get("EINVOICE_REQUEST_TIMEOUT", "30") or "30")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {
            "format": "{asctime} {levelname} {name} {message}",
            "style": "{",
        },
        "json": {
            "()": "einvoice.logging_formatter.JSONFormatter",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "simple",
        },
    },
    "loggers": {
        "einvoice": {
            "handlers": ["console"],
            "level": os.environ.get("EINVOICE_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
    },
}
