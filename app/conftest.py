"""
Project-wide pytest configuration.

This module tunes settings for speed, auto-assigns the unit/integration/e2e
markers and provides fixtures shared by every app.
App-specific fixtures are defined in each app's tests/conftest.py.
"""

import pytest


def pytest_configure():
    """Adjust Django settings before tests run."""
    from django.conf import settings

    # Use fast password hasher for tests (PBKDF2 is too slow with 870K iterations)
    settings.PASSWORD_HASHERS = [
        "django.contrib.auth.hashers.MD5PasswordHasher",
    ]


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_integration.py → e2e (full subscription and webhook journeys)
    - test_views.py, test_services.py, test_handlers.py, etc. → integration
    - test_models.py, test_*_gateway.py, test_workflow.py, etc. → unit
    - Unmatched files → integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    e2e_patterns = ["test_integration.py"]

    integration_patterns = [
        "test_views.py",
        "test_services.py",
        "test_handlers.py",
        "test_access.py",
        "test_commands.py",
    ]

    unit_patterns = [
        "test_models.py",
        "test_serializers.py",
        "test_managers.py",
        "test_signals.py",
        "test_exceptions.py",
        "test_state_transitions.py",
        "test_stripe_gateway.py",
        "test_paystack_gateway.py",
        "test_factory.py",
        "test_workflow.py",
        "test_types.py",
        "test_config.py",
    ]

    for item in items:
        # Skip if test already has unit/integration/e2e marker
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration", "e2e"}:
            continue

        filename = str(item.fspath).split("/")[-1]

        # Check patterns in priority order
        if any(pattern in filename for pattern in e2e_patterns):
            item.add_marker(pytest.mark.e2e)
        elif any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern in filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            # Default: integration (safe for Django where most tests hit DB)
            item.add_marker(pytest.mark.integration)


@pytest.fixture
def api_client():
    """Unauthenticated DRF test client."""
    from rest_framework.test import APIClient

    return APIClient()
