"""
Central pytest configuration for the clinic backend tests.

Environment variables are set before any application module is imported so
the lazy engine and JWT helpers pick up test values.
"""

import os

# Test database configuration (set early so import-time engines use it)
os.environ["DATABASE_URL"] = "sqlite:///:memory:"  # In-memory SQLite for fast tests
os.environ["TESTING"] = "true"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret-key-for-clinic-tests"
os.environ.setdefault("TZ", "UTC")

# Markers and shared fixtures
from tests.config.markers import (  # noqa: E402,F401
    pytest_collection_modifyitems,
    pytest_configure,
)
from tests.fixtures.database_fixtures import *  # noqa: E402,F401,F403
from tests.fixtures.domain_fixtures import *  # noqa: E402,F401,F403
