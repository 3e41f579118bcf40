# config/settings/base.py
from pathlib import Path
import os
from dotenv import load_dotenv
from datetime import timedelta


BASE_DIR = Path(__file__).resolve().parent.parent.parent
load_dotenv(BASE_DIR / ".env")

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "unsafe-dev-key")
DEBUG = os.getenv("DJANGO_DEBUG", "0") == "1"
ALLOWED_HOSTS = ["*"]

INSTALLED_APPS = [
    # Django
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",

    # Third-party
    "corsheaders",
    "rest_framework",
    "rest_framework_simplejwt",
    "drf_spectacular",
    "django_filters",

    # Domain apps (modular monolith)
    "ctam_core.common.apps.CommonConfig",
    "ctam_core.organizations.apps.OrganizationsConfig",
    "ctam_core.iam.apps.IamConfig",
    "ctam_core.assessments.apps.AssessmentsConfig",
    "ctam_core.evidence.apps.EvidenceConfig",
    "ctam_core.budgets.apps.BudgetsConfig",
    "ctam_core.reports.apps.ReportsConfig",
]

MIDDLEWARE = [
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "ctam_core.common.middleware.RequestIdMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]


ROOT_URLCONF = "config.urls"

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
    }
]

WSGI_APPLICATION = "config.wsgi.application"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": os.getenv("DB_NAME", "ctam"),
        "USER": os.getenv("DB_USER", "ctam"),
        "PASSWORD": os.getenv("DB_PASSWORD", "ctam"),
        "HOST": os.getenv("DB_HOST", "127.0.0.1"),
        "PORT": os.getenv("DB_PORT", "5432"),
    }
}

AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"},
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]

LANGUAGE_CODE = "en-us"
TIME_ZONE = "Asia/Bangkok"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# Evidence blobs live in their own storage alias so tests and deployments
# can swap the backend without touching the default media storage.
STORAGES = {
    "default": {
        "BACKEND": "django.core.files.storage.FileSystemStorage",
    },
    "staticfiles": {
        "BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage",
    },
    "evidence": {
        "BACKEND": "django.core.files.storage.FileSystemStorage",
        "OPTIONS": {
            "location": os.getenv("CTAM_EVIDENCE_ROOT", str(BASE_DIR / "var" / "evidence")),
        },
    },
}

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "ctam_core.iam.auth.CookieOrHeaderJWTAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": (
        "rest_framework.permissions.IsAuthenticated",
    ),
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",

    # Standard error envelope
    "EXCEPTION_HANDLER": "ctam_core.common.api.exceptions.api_exception_handler",

    "DEFAULT_FILTER_BACKENDS": [
        "django_filters.rest_framework.DjangoFilterBackend",
        "rest_framework.filters.OrderingFilter",
        "rest_framework.filters.SearchFilter",
    ],

    "DEFAULT_PAGINATION_CLASS": "ctam_core.common.api.pagination.DefaultPagination",
}

SPECTACULAR_SETTINGS = {
    "TITLE": "CTAM+ Assessment API",
    "DESCRIPTION": "Cybersecurity self-assessment, approval workflow and hierarchy reports",
    "VERSION": "0.1.0",

    "COMPONENT_SPLIT_REQUEST": True,
    "SORT_OPERATIONS": True,
    "SORT_OPERATION_PARAMETERS": True,

    # Declared by CookieOrHeaderJWTAuthenticationScheme (ctam_core/iam/openapi.py)
    "SECURITY": [
        {"BearerOrCookieJWT": []}
    ],

    "ENUM_NAME_OVERRIDES": {
        "AssessmentStatusEnum": "ctam_core.assessments.models.AssessmentStatus",
        "RoleEnum": "ctam_core.iam.models.Role",
    },
}

SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(minutes=10),
    "REFRESH_TOKEN_LIFETIME": timedelta(days=14),
    "ROTATE_REFRESH_TOKENS": True,
    "BLACKLIST_AFTER_ROTATION": False,
    "UPDATE_LAST_LOGIN": True,

    # Cookie settings
    "AUTH_COOKIE": "ctam_access",
    "AUTH_COOKIE_REFRESH": "ctam_refresh",
    "AUTH_COOKIE_SECURE": False,   # set True in production (HTTPS)
    "AUTH_COOKIE_HTTP_ONLY": True,
    "AUTH_COOKIE_SAMESITE": "Lax",
}

# CORS settings
# Development
CORS_ALLOW_ALL_ORIGINS = True  # Only for development!
CORS_ALLOW_CREDENTIALS = True

# -------------------------------------------------------------------
# Logging
# -------------------------------------------------------------------
CTAM_LOG_LEVEL = os.getenv("CTAM_LOG_LEVEL", "INFO").upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "loggers": {
        "ctam_core": {
            "handlers": ["console"],
            "level": CTAM_LOG_LEVEL,
            "propagate": False,
        },
        "django.request": {
            "handlers": ["console"],
            "level": "WARNING",
            "propagate": False,
        },
    },
}

# -------------------------------------------------------------------
# Domain settings
# -------------------------------------------------------------------
CTAM_EVIDENCE_MAX_FILE_SIZE_BYTES = int(os.getenv("CTAM_EVIDENCE_MAX_FILE_SIZE_BYTES", str(20 * 1024 * 1024)))
CTAM_EVIDENCE_MAX_FILES_PER_OWNER = int(os.getenv("CTAM_EVIDENCE_MAX_FILES_PER_OWNER", "2"))

# Backoff for transient backend failures (seconds)
CTAM_RETRY_BASE_DELAY = float(os.getenv("CTAM_RETRY_BASE_DELAY", "0.8"))
CTAM_RETRY_MAX_DELAY = float(os.getenv("CTAM_RETRY_MAX_DELAY", "6.0"))
CTAM_RETRY_JITTER = float(os.getenv("CTAM_RETRY_JITTER", "0.25"))
CTAM_RETRY_MAX_ATTEMPTS = int(os.getenv("CTAM_RETRY_MAX_ATTEMPTS", "6"))

CTAM_SESSION_REFRESH_LEEWAY_SECONDS = int(os.getenv("CTAM_SESSION_REFRESH_LEEWAY_SECONDS", "60"))

CTAM_FISCAL_YEAR_START_MONTH = int(os.getenv("CTAM_FISCAL_YEAR_START_MONTH", "10"))
CTAM_FISCAL_YEAR_DISPLAY_OFFSET = int(os.getenv("CTAM_FISCAL_YEAR_DISPLAY_OFFSET", "543"))

# When enabled, regional approval closes the cycle (no central review tier)
CTAM_REGIONAL_APPROVAL_COMPLETES = os.getenv("CTAM_REGIONAL_APPROVAL_COMPLETES", "0") == "1"
