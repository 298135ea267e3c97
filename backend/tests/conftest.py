import pytest

from field_scheduler.config import Settings
from field_scheduler.services.assignment_repository import AssignmentRepository
from field_scheduler.services.persistence import InMemoryAssignmentStore
from field_scheduler.services.planning import PlanningService
from field_scheduler.services.providers import StaticRosterProvider, StaticJobProvider


@pytest.fixture
def settings() -> Settings:
    return Settings(persistence_backend="memory")


@pytest.fixture
def store() -> InMemoryAssignmentStore:
    return InMemoryAssignmentStore()


@pytest.fixture
def repository(store, settings) -> AssignmentRepository:
    return AssignmentRepository(store, settings)


@pytest.fixture
def roster() -> StaticRosterProvider:
    return StaticRosterProvider()


@pytest.fixture
def jobs() -> StaticJobProvider:
    return StaticJobProvider()


@pytest.fixture
def service(repository, roster, jobs, settings) -> PlanningService:
    return PlanningService(repository, roster, jobs, settings)
