import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")


def _env_bool(name, default):
    return os.getenv(name, str(default)).lower() in ("1", "true", "yes")


def _env_list(name, fallback):
    raw = os.getenv(name, "")
    if raw.strip():
        return [v.strip() for v in raw.split(",") if v.strip()]
    return fallback


# --- Core ---
SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "django-insecure-farmhouse-dev-key")
DEBUG = _env_bool("DEBUG", False)
ALLOWED_HOSTS = _env_list("ALLOWED_HOSTS", ["127.0.0.1", "localhost"])

INSTALLED_APPS = [
    "orders.apps.OrdersConfig",
    "accounts.apps.AccountsConfig",
    "menu.apps.MenuConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

ROOT_URLCONF = "farmhouse_backend.urls"
WSGI_APPLICATION = "farmhouse_backend.wsgi.application"

# Orders live in the document store; Django's own database is unused.
DATABASES = {}

LANGUAGE_CODE = "en-us"
TIME_ZONE = os.getenv("TIME_ZONE", "Asia/Kolkata")
USE_I18N = False
USE_TZ = True

# --- Order lifecycle ---
ORDER_STORE_BACKEND = os.getenv("ORDER_STORE_BACKEND", "firestore")
ORDER_AUTO_DELETE_DELAY_SECONDS = float(os.getenv("ORDER_AUTO_DELETE_DELAY_SECONDS", "30"))
ORDER_PURGE_TIME = os.getenv("ORDER_PURGE_TIME", "00:00")
ORDER_JOBS_POLL_SECONDS = float(os.getenv("ORDER_JOBS_POLL_SECONDS", "1.0"))

# --- Identity provider ---
ADMIN_AUTH_REQUIRED = _env_bool("ADMIN_AUTH_REQUIRED", True)

# --- SMS / OTP gateway ---
MSG91_AUTHKEY = os.getenv("MSG91_AUTHKEY")
MSG91_TEMPLATE_ID = os.getenv("MSG91_TEMPLATE_ID")
MSG91_API_BASE = os.getenv("MSG91_API_BASE", "https://api.msg91.com/api/v5")
OTP_SESSION_TTL_SECONDS = float(os.getenv("OTP_SESSION_TTL_SECONDS", "600"))

# --- Blob store ---
CLOUDINARY_CLOUD_NAME = os.getenv("CLOUDINARY_CLOUD_NAME")
CLOUDINARY_API_KEY = os.getenv("CLOUDINARY_API_KEY")
CLOUDINARY_API_SECRET = os.getenv("CLOUDINARY_API_SECRET")
CLOUDINARY_UPLOAD_PRESET = os.getenv("CLOUDINARY_UPLOAD_PRESET", "pizza_farmhouse")
CLOUDINARY_API_BASE = os.getenv("CLOUDINARY_API_BASE", "https://api.cloudinary.com/v1_1")

# Uploaded images arrive as base64 data URIs.
DATA_UPLOAD_MAX_MEMORY_SIZE = 10 * 1024 * 1024

# --- Logging ---
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": os.getenv("LOG_LEVEL", "INFO"),
    },
}
