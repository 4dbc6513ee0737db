"""
Circles application configuration.
"""

from django.apps import AppConfig


class CirclesConfig(AppConfig):
    """Configuration for the circles application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "circles"
    verbose_name = "Circles"
