"""Pytest fixtures for the risk service tests"""

import pytest

from factories import FakeClients, RiskEnv, make_facts


@pytest.fixture
def env() -> RiskEnv:
    """A service wired to in-memory fakes holding one healthy client."""
    return RiskEnv(clients=FakeClients(make_facts()))
