import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str) -> list[str]:
    return [item.strip() for item in os.environ.get(name, "").split(",") if item.strip()]


SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "dev-insecure-site-attendance-key")
DEBUG = _env_bool("DJANGO_DEBUG", True)
ALLOWED_HOSTS = _env_list("DJANGO_ALLOWED_HOSTS") or ["*"]

INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "rest_framework",
    "tenants",
    "workforce",
    "site_attendance",
    "geofence_sync",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
]

ROOT_URLCONF = "config.urls"
WSGI_APPLICATION = "config.wsgi.application"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

if os.environ.get("DB_ENGINE", "sqlite") == "postgres":
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.environ.get("DB_NAME", "site_attendance"),
            "USER": os.environ.get("DB_USER", "postgres"),
            "PASSWORD": os.environ.get("DB_PASSWORD", ""),
            "HOST": os.environ.get("DB_HOST", "localhost"),
            "PORT": os.environ.get("DB_PORT", "5432"),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": os.environ.get("DB_NAME", str(BASE_DIR / "db.sqlite3")),
        }
    }

# External mobile geofence datastore, read-only.
if os.environ.get("GEOFENCE_MOBILE_DB_NAME"):
    DATABASES["geofence_mobile"] = {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": os.environ["GEOFENCE_MOBILE_DB_NAME"],
        "USER": os.environ.get("GEOFENCE_MOBILE_DB_USER", ""),
        "PASSWORD": os.environ.get("GEOFENCE_MOBILE_DB_PASSWORD", ""),
        "HOST": os.environ.get("GEOFENCE_MOBILE_DB_HOST", "localhost"),
        "PORT": os.environ.get("GEOFENCE_MOBILE_DB_PORT", "5432"),
        "OPTIONS": {"options": "-c default_transaction_read_only=on"},
    }

DATABASE_ROUTERS = ["geofence_sync.routers.GeofenceMobileRouter"]

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "en-gb"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework_simplejwt.authentication.JWTAuthentication",
        "rest_framework.authentication.SessionAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
}

EMAIL_BACKEND = os.environ.get("EMAIL_BACKEND", "django.core.mail.backends.console.EmailBackend")
DEFAULT_FROM_EMAIL = os.environ.get("DEFAULT_FROM_EMAIL", "attendance@localhost")

GEOFENCE_SYNC = {
    "ENABLED": _env_bool("GEOFENCE_SYNC_ENABLED", False),
    "INTERVAL_MINUTES": int(os.environ.get("GEOFENCE_SYNC_INTERVAL_MINUTES", 15)),
    "STARTUP_DELAY_SECONDS": int(os.environ.get("GEOFENCE_SYNC_STARTUP_DELAY_SECONDS", 30)),
    "BATCH_SIZE": int(os.environ.get("GEOFENCE_SYNC_BATCH_SIZE", 1000)),
    "INITIAL_SYNC_DAYS": int(os.environ.get("GEOFENCE_SYNC_INITIAL_SYNC_DAYS", 30)),
    "PROCESS_SUMMARIES_AFTER_SYNC": _env_bool("GEOFENCE_SYNC_PROCESS_SUMMARIES", True),
    "TENANT_CODES": _env_list("GEOFENCE_SYNC_TENANT_CODES"),
    "DATABASE_ALIAS": os.environ.get("GEOFENCE_SYNC_DATABASE_ALIAS", "geofence_mobile"),
    "ONLINE_THRESHOLD_MINUTES": int(os.environ.get("GEOFENCE_SYNC_ONLINE_THRESHOLD_MINUTES", 90)),
    "HEALTHY_WITHIN_HOURS": int(os.environ.get("GEOFENCE_SYNC_HEALTHY_WITHIN_HOURS", 2)),
}

ATTENDANCE_NOTIFICATIONS = {
    "PUSH_WEBHOOK_URL": os.environ.get("ATTENDANCE_PUSH_WEBHOOK_URL", ""),
    "SMS_WEBHOOK_URL": os.environ.get("ATTENDANCE_SMS_WEBHOOK_URL", ""),
    "WEBHOOK_TOKEN": os.environ.get("ATTENDANCE_WEBHOOK_TOKEN", ""),
    "TIMEOUT": int(os.environ.get("ATTENDANCE_WEBHOOK_TIMEOUT", 10)),
    "SPA_DEEP_LINK": "/attendance/spa/new?siteId={site_id}",
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "standard"},
    },
    "root": {"handlers": ["console"], "level": os.environ.get("LOG_LEVEL", "INFO")},
    "loggers": {
        "django": {"handlers": ["console"], "level": "WARNING", "propagate": False},
    },
}
