"""
pytest configuration and shared fixtures
"""
import pytest
from fastapi.testclient import TestClient

from tms_engine.api.app import create_app
from tms_engine.engine import build_engine
from tms_engine.models import Actor, InitialType, Role, User
from tms_engine.repositories import InMemoryStores, UserRepository
from tms_engine.services.workflow import TicketCreate


@pytest.fixture
def alice():
    return User(name="Alice", email="alice@example.com", role=Role.USER)


@pytest.fixture
def bob():
    return User(name="Bob", email="bob@example.com", role=Role.USER)


@pytest.fixture
def sam():
    return User(name="Sam", email="sam@example.com", role=Role.SUPERVISOR)


@pytest.fixture
def engine(alice, bob, sam):
    """Engine over fresh in-memory stores with three known users"""
    stores = InMemoryStores(users=UserRepository([alice, bob, sam]))
    return build_engine(stores)


@pytest.fixture
def anonymous():
    return Actor()


@pytest.fixture
def alice_actor(alice):
    return Actor(id=alice.id, role=Role.USER)


@pytest.fixture
def bob_actor(bob):
    return Actor(id=bob.id, role=Role.USER)


@pytest.fixture
def supervisor(sam):
    return Actor(id=sam.id, role=Role.SUPERVISOR)


@pytest.fixture
def client(engine):
    return TestClient(create_app(engine))


def headers_for(actor: Actor) -> dict:
    """Session headers the HTTP layer reads the caller from"""
    headers = {"X-Actor-Role": actor.role.value}
    if actor.id:
        headers["X-Actor-Id"] = str(actor.id)
    return headers


def new_ticket(**overrides) -> TicketCreate:
    data = {
        "title": "Printer on 3rd floor jams",
        "description": "Jams on every double-sided job",
        "initial_type": InitialType.ISSUE_REPORT,
    }
    data.update(overrides)
    return TicketCreate(**data)
