from unittest.mock import AsyncMock, Mock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from cicero_wa.database import Base
from cicero_wa.services.session_store import Session, SessionStore
from cicero_wa.services.user_model import merge_static_divisions


@pytest.fixture
def db_session():
    """Mock database session."""
    return Mock()


@pytest.fixture
def wa_client():
    client = Mock()
    client.send_message = AsyncMock()
    return client


@pytest.fixture
def user_model():
    model = Mock()
    model.find_user_by_whatsapp = AsyncMock(return_value=None)
    model.find_user_registration_profile_by_id = AsyncMock(return_value=None)
    model.find_user_by_id = AsyncMock(return_value=None)
    model.update_user_field = AsyncMock()
    model.find_user_by_social_handle = AsyncMock(return_value=None)
    model.get_available_titles = AsyncMock(return_value=[])
    model.get_available_satfung = AsyncMock(return_value=[])
    model.merge_static_divisions = Mock(side_effect=merge_static_divisions)
    return model


@pytest.fixture
def session():
    return Session()


@pytest.fixture
def store():
    return SessionStore()


@pytest.fixture
def sqlite_session_factory():
    """In-memory SQLite shared across sessions of one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    yield factory
    engine.dispose()
