"""
Test settings – SQLite and in-memory caches, no external services.
"""
from .base import *  # noqa: F401, F403

DEBUG = False

SECRET_KEY = "test-secret-key"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "test-default",
    },
    "autosave": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "test-autosave",
    },
}

# Timers are driven by injected fakes in tests.
AUTOSAVE_DEBOUNCE_SECONDS = 30
AUTOSAVE_STORAGE_KEY_PREFIX = "picasso-config-autosave"

LOGGING["root"]["level"] = "WARNING"  # noqa: F405
