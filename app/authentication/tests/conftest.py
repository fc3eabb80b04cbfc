"""
Test configuration and fixtures for authentication tests.

Usage:
    def test_example(user):
        assert user.profile is not None
"""

import pytest

from authentication.tests.factories import UserFactory


@pytest.fixture
def user(db):
    """Active user with an empty profile."""
    return UserFactory()


@pytest.fixture
def user_with_address(db):
    """User whose profile carries a billing name and address."""
    return UserFactory(
        profile__first_name="Ada",
        profile__last_name="Obi",
        profile__phone="+2348000000000",
        profile__country="NG",
        profile__state="Lagos",
        profile__city="Ikeja",
        profile__postal_code="100001",
        profile__address_line1="1 Allen Avenue",
    )
