"""
Project-wide pytest fixtures and test markers.

Tests are auto-marked unit / integration / e2e from their file names so
a fast subset can be selected with ``pytest -m unit``.
"""

import pytest
from django.core.cache import cache
from rest_framework.test import APIClient


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_scenarios.py → e2e (full pool lifecycles)
    - test_views.py, test_*_service.py, test_tasks.py, etc. → integration
    - test_models.py, test_stripe_adapter.py, test_exceptions.py, etc. → unit
    - Unmatched files → integration

    Explicit markers on test functions/classes take precedence.
    """
    e2e_patterns = ["test_scenarios.py"]

    integration_patterns = [
        "test_views.py",
        "_service.py",
        "test_services.py",
        "test_tasks.py",
        "test_webhooks.py",
        "test_handlers.py",
        "test_admin.py",
    ]

    unit_patterns = [
        "test_models.py",
        "test_stripe_adapter.py",
        "test_exceptions.py",
        "test_state_transitions.py",
    ]

    for item in items:
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration", "e2e"}:
            continue

        filename = str(item.fspath).split("/")[-1]

        if any(pattern in filename for pattern in e2e_patterns):
            item.add_marker(pytest.mark.e2e)
        elif any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern in filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            item.add_marker(pytest.mark.integration)


@pytest.fixture(autouse=True)
def _clear_cache():
    """Reset throttle counters between tests."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def api_client():
    return APIClient()
