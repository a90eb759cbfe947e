"""Pytest configuration and shared fixtures."""

import pytest
from unittest.mock import AsyncMock

from gatepass.schemas.profile import Profile
from gatepass.schemas.view import SessionContext, ViewRole
from tests.factories import make_profile


@pytest.fixture
def requester_profile() -> Profile:
    return make_profile("EMP100", "A. Silva")


@pytest.fixture
def verifier_session() -> SessionContext:
    """Verifier authorised for the Colombo HQ branch."""
    return SessionContext(
        profile=make_profile("EMP500", "K. Fernando"),
        role=ViewRole.VERIFIER,
        branches=frozenset({"Colombo HQ"}),
    )


@pytest.fixture
def loader_session() -> SessionContext:
    """Loader dispatching into the Kandy branch."""
    return SessionContext(
        profile=make_profile("EMP600", "S. Wijesinghe"),
        role=ViewRole.LOADER,
        branches=frozenset({"Kandy"}),
    )


@pytest.fixture
def receiver_session() -> SessionContext:
    return SessionContext(
        profile=make_profile("EMP700", "R. Jayasuriya"),
        role=ViewRole.RECEIVER,
        branches=frozenset({"Kandy"}),
    )


@pytest.fixture
def mock_backend() -> AsyncMock:
    """Create mock workflow backend.

    Returns:
        AsyncMock: Backend whose coroutine methods can be configured per test
    """
    backend = AsyncMock()
    backend.list_by_stage.return_value = []
    return backend

