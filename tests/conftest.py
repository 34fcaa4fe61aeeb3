import pytest

from dynobj.assignment import AssignmentRegistry
from dynobj.lifecycle import LifecycleOrchestrator
from dynobj.memory import MemoryCollection, MemoryConnection


@pytest.fixture
def connection():
    return MemoryConnection(default_area="kb.default")


@pytest.fixture
def sensor_type(connection):
    return connection.add_type("typ.sensorDyn")


@pytest.fixture
def fallback_type(connection):
    return connection.get_object("typ.dynamischesObjekt")


@pytest.fixture
def registry(connection):
    registry = AssignmentRegistry(connection)
    yield registry
    registry.close()


@pytest.fixture
def orchestrator(connection, registry):
    return LifecycleOrchestrator(connection, registry)


@pytest.fixture
def collection():
    return MemoryCollection("menge.sensoren")
