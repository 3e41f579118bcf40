# config/settings/test.py
from .base import *  # noqa

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

STORAGES["evidence"] = {  # noqa: F405
    "BACKEND": "django.core.files.storage.InMemoryStorage",
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

# Tests drive the backoff with an injected sleep; keep real waits negligible.
CTAM_RETRY_BASE_DELAY = 0.0
CTAM_RETRY_MAX_DELAY = 0.0
CTAM_RETRY_JITTER = 0.0
