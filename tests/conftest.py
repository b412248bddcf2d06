# tests/conftest.py
"""
Shared fixtures for the pytest test suite.
Fixtures defined here are automatically available to all tests.

Every test gets its own application instance backed by a fresh in-memory
SQLite database, so tests never see each other's listings.
"""
import os

import pytest
from unittest.mock import MagicMock

from app import create_app
from extensions import db
from repositories import FloorPlanRepository, PropertyRepository, UnitRepository


@pytest.fixture
def app():
    """
    A new Flask application with the testing configuration and an empty
    schema. Tables are dropped again after the test.
    """
    os.environ['FLASK_ENV'] = 'testing'

    app = create_app(config_name='testing')

    with app.app_context():
        db.create_all()

        yield app

        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Test client for the application's endpoints"""
    return app.test_client()


@pytest.fixture
def db_session(app):
    """The application's scoped session, inside the app context"""
    return db.session


@pytest.fixture
def property_repository(db_session):
    return PropertyRepository(session=db_session)


@pytest.fixture
def floor_plan_repository(db_session):
    return FloorPlanRepository(session=db_session)


@pytest.fixture
def unit_repository(db_session):
    return UnitRepository(session=db_session)


@pytest.fixture
def mock_repositories():
    """MagicMock property/floor plan/unit repositories with empty storage"""
    property_repository = MagicMock()
    floor_plan_repository = MagicMock()
    unit_repository = MagicMock()

    property_repository.get_all.return_value = []
    floor_plan_repository.get_all.return_value = []
    unit_repository.get_unit_keys.return_value = set()

    return property_repository, floor_plan_repository, unit_repository
