"""
Root pytest configuration for the Django project.

Provides environment defaults so the suite runs without a .env file:
an in-memory SQLite database, a local-memory cache and test Stripe keys.
Shared fixtures live in app/conftest.py and payments/conftest.py.
"""

import os

import django

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite://:memory:")
os.environ.setdefault("SECURE_SSL_REDIRECT", "False")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_duespool")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_duespool")
os.environ.setdefault("FRONTEND_URL", "https://app.example.com")


def pytest_configure():
    """Configure Django settings before tests run."""
    from django.conf import settings

    # Throttle counters must not need a Redis server
    settings.CACHES = {
        "default": {"BACKEND": "django.core.cache.backends.locmem.LocMemCache"}
    }

    # Use fast password hasher for tests
    settings.PASSWORD_HASHERS = [
        "django.contrib.auth.hashers.MD5PasswordHasher",
    ]

    django.setup()
