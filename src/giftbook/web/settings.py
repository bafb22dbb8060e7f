"""
Django settings for the giftbook JSON API.

The API keeps no Django models: all state lives in the giftbook state
store, so no Django database is configured.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent

# Security settings
SECRET_KEY = os.environ.get(
    "DJANGO_SECRET_KEY",
    os.environ.get("GIFTBOOK_SECRET_KEY", "dev-secret-key-change-in-production"),
)
DEBUG = os.environ.get("DJANGO_DEBUG", "False").lower() == "true"
ALLOWED_HOSTS = os.environ.get("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1,testserver,*").split(",")

# Reverse proxy support (HTTPS terminated upstream)
SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
USE_X_FORWARDED_HOST = True

INSTALLED_APPS: list[str] = []

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

ROOT_URLCONF = "giftbook.web.urls"

DATABASES: dict = {}

USE_TZ = True
TIME_ZONE = "UTC"

# Logging
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        },
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": "WARNING",
        },
        "giftbook": {
            "handlers": ["console"],
            "level": "INFO",
        },
    },
}

# giftbook settings, set at runtime from config (see app.py)
GIFTBOOK_CONFIG_PATH = os.environ.get("GIFTBOOK_CONFIG", "config/config.yaml")
STATE_DB_PATH = os.environ.get("STATE_DB_PATH", "")
