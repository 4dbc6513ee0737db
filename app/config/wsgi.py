"""
WSGI config for the duespool service.

Provided for traditional deployments; the primary entry point is ASGI.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_wsgi_application()
