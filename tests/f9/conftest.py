"""Fixtures for web API tests (F9)."""

import pytest
from fastapi.testclient import TestClient

from readspeed.core import auth
from readspeed.web.api import create_app


@pytest.fixture
def client(db):
    """Test client on an initialized database."""
    return TestClient(create_app())


@pytest.fixture
def login(make_user):
    """Create a user and return (profile, Authorization headers)."""

    def _login(**kwargs):
        profile = make_user(**kwargs)
        session = auth.sign_in(profile.email, kwargs.get("password", "secret123"))
        return profile, {"Authorization": f"Bearer {session.token}"}

    return _login
