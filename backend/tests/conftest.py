"""
Pytest configuration and fixtures for backend tests.
"""

from typing import Any

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ordering_core.models import (
    Base,
    Branch,
    Dish,
    DishIngredient,
    Ingredient,
    Menu,
)
from ordering_core.services import ServiceContext
from ordering_core.services.events import RealtimePropagator
from ordering_core.services.permissions import Principal
from shared.infrastructure.db import enable_sqlite_savepoints


# SQLite in-memory database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = enable_sqlite_savepoints(
    create_engine(
        SQLALCHEMY_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class RecordingTransport:
    """Transport that keeps every published event in memory."""

    def __init__(self):
        self.events: list[tuple[str, str, dict[str, Any]]] = []

    def publish(self, topic: str, event_name: str, payload: dict[str, Any]) -> int:
        self.events.append((topic, event_name, payload))
        return 1

    def named(self, event_name: str) -> list[tuple[str, dict[str, Any]]]:
        return [(topic, payload) for topic, name, payload in self.events if name == event_name]


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    Uses SQLite in-memory for isolation.
    """
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def propagator(transport):
    """Inline propagator (no executor) so events are recorded synchronously."""
    return RealtimePropagator(transport)


@pytest.fixture
def ctx(db_session, propagator):
    return ServiceContext(db=db_session, propagator=propagator)


# =============================================================================
# Principals
# =============================================================================


@pytest.fixture
def admin():
    return Principal(role="ADMIN", user_id=1)


@pytest.fixture
def branch_user(seed_branch):
    return Principal(role="BRANCH_USER", branch_id=seed_branch.id, user_id=2)


@pytest.fixture
def other_branch_user(other_branch):
    return Principal(role="BRANCH_USER", branch_id=other_branch.id, user_id=3)


# =============================================================================
# Catalog
# =============================================================================


@pytest.fixture
def seed_branch(db_session):
    """Create a test branch with one menu."""
    branch = Branch(name="Centro", address="123 Test St", lat=-34.60, lng=-58.38)
    branch.menus = [Menu(name="Main")]
    db_session.add(branch)
    db_session.commit()
    db_session.refresh(branch)
    return branch


@pytest.fixture
def other_branch(db_session):
    """Create a second branch with its own menu."""
    branch = Branch(name="Norte", address="456 North Ave")
    branch.menus = [Menu(name="Norte Main")]
    db_session.add(branch)
    db_session.commit()
    db_session.refresh(branch)
    return branch


@pytest.fixture
def ingredients(db_session):
    """Dough, tomato, cheese and basil."""
    items = {
        name: Ingredient(name=name)
        for name in ("dough", "tomato", "cheese", "basil")
    }
    db_session.add_all(items.values())
    db_session.commit()
    return items


@pytest.fixture
def pizza(db_session, seed_branch, ingredients):
    """Pizza: dough/tomato/cheese required, basil optional. 1200 cents."""
    dish = Dish(menu_id=seed_branch.menus[0].id, name="Pizza", price_cents=1200)
    dish.ingredient_links = [
        DishIngredient(ingredient_id=ingredients["dough"].id, required=True),
        DishIngredient(ingredient_id=ingredients["tomato"].id, required=True),
        DishIngredient(ingredient_id=ingredients["cheese"].id, required=True),
        DishIngredient(ingredient_id=ingredients["basil"].id, required=False),
    ]
    db_session.add(dish)
    db_session.commit()
    db_session.refresh(dish)
    return dish


@pytest.fixture
def soda(db_session, seed_branch):
    """Soda: no ingredients. 300 cents."""
    dish = Dish(menu_id=seed_branch.menus[0].id, name="Soda", price_cents=300)
    db_session.add(dish)
    db_session.commit()
    db_session.refresh(dish)
    return dish


@pytest.fixture
def foreign_dish(db_session, other_branch):
    """Dish on the other branch's menu."""
    dish = Dish(menu_id=other_branch.menus[0].id, name="Empanada", price_cents=500)
    db_session.add(dish)
    db_session.commit()
    db_session.refresh(dish)
    return dish
