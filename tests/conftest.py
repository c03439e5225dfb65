"""Shared pytest fixtures and configuration."""

from datetime import datetime, timedelta

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from learnledger.api.app import create_app
from learnledger.api.dependencies import Services, get_services
from learnledger.cascade import CourseDeletionOrchestrator
from learnledger.config import Settings
from learnledger.enrollment import EnrollmentLedger
from learnledger.notifications import NotificationDispatcher
from learnledger.payments import PaymentProcessor
from learnledger.quizzes import CourseworkService
from learnledger.store import (
    ActorContext,
    CatalogStore,
    Course,
    Database,
    Role,
    User,
    utc_now,
)

# Fixed reference time for time-dependent tests (naive UTC)
T0 = datetime(2026, 3, 2, 9, 0, 0)


# Register custom markers
def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test categorization."""
    config.addinivalue_line("markers", "unit: fast tests with no external dependencies")
    config.addinivalue_line("markers", "integration: component interaction tests")


# Shared fixtures


@pytest.fixture
def db() -> Database:
    """Create an in-memory database with all tables."""
    database = Database(":memory:")
    database.create_tables()
    yield database
    database.close()


@pytest.fixture
def catalog(db: Database) -> CatalogStore:
    return CatalogStore(db)


@pytest.fixture
def learner(catalog: CatalogStore) -> User:
    return catalog.create_user("Asha", "Rao", "asha@example.com", Role.LEARNER)


@pytest.fixture
def other_learner(catalog: CatalogStore) -> User:
    return catalog.create_user("Ben", "Ito", "ben@example.com", Role.LEARNER)


@pytest.fixture
def educator(catalog: CatalogStore) -> User:
    return catalog.create_user("Chen", "Li", "chen@example.com", Role.EDUCATOR)


@pytest.fixture
def learner_actor(learner: User) -> ActorContext:
    return ActorContext(id=learner.id, role=Role.LEARNER)


@pytest.fixture
def other_learner_actor(other_learner: User) -> ActorContext:
    return ActorContext(id=other_learner.id, role=Role.LEARNER)


@pytest.fixture
def educator_actor(educator: User) -> ActorContext:
    return ActorContext(id=educator.id, role=Role.EDUCATOR)


@pytest.fixture
def coordinator_actor() -> ActorContext:
    return ActorContext(id="coordinator-1", role=Role.COORDINATOR)


@pytest.fixture
def course(catalog: CatalogStore, educator: User) -> Course:
    """Algebra101: fee 500, started at T0, runs for 90 days."""
    return catalog.create_course(
        title="Algebra101",
        educator_id=educator.id,
        start_date=T0,
        end_date=T0 + timedelta(days=90),
        fee=500.0,
        category="Mathematics",
    )


@pytest.fixture
def t0() -> datetime:
    """Reference time: the course start and the default enrollment time."""
    return T0


# API fixtures: an app wired to the shared in-memory database


@pytest.fixture
def services(db: Database, catalog: CatalogStore) -> Services:
    """Services over the test database with notifications disabled."""
    notifier = NotificationDispatcher(url=None)
    return Services(
        settings=Settings(db_path=":memory:", analytics_default_days=14),
        db=db,
        catalog=catalog,
        ledger=EnrollmentLedger(db),
        payments=PaymentProcessor(db, notifier=notifier),
        coursework=CourseworkService(db, notifier=notifier),
        cascade=CourseDeletionOrchestrator(db),
        notifier=notifier,
    )


@pytest.fixture
def app(services: Services) -> FastAPI:
    """Create a test FastAPI app with the services dependency overridden."""
    app = create_app(Settings(db_path=":memory:"))

    def override_get_services():
        yield services

    app.dependency_overrides[get_services] = override_get_services
    return app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Create a test client; the lifespan is not run."""
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def live_course(catalog: CatalogStore, educator: User) -> Course:
    """A course that started yesterday, so wall-clock routes see it as running."""
    start = utc_now() - timedelta(days=1)
    return catalog.create_course(
        title="Statistics",
        educator_id=educator.id,
        start_date=start,
        end_date=start + timedelta(days=60),
        fee=250.0,
        category="Mathematics",
    )
