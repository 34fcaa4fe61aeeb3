"""Tests for RegistryDirectory."""

import copy
import threading

import pytest

from dynobj.config import DynObjConfig
from dynobj.directory import DynamicObjects, RegistryDirectory
from dynobj.errors import ConfigurationError, ConnectionClosedError
from dynobj.memory import MemoryConnection


@pytest.fixture
def directory():
    directory = RegistryDirectory()
    yield directory
    directory.close()


class TestRegistryDirectory:
    """Tests for per-connection entries and their teardown."""

    def test_one_entry_per_connection(self, directory, connection):
        first = directory.get(connection)
        second = directory.get(connection)

        assert isinstance(first, DynamicObjects)
        assert first is second
        assert connection in directory
        assert len(directory) == 1

    def test_separate_connections(self, directory):
        a, b = MemoryConnection(), MemoryConnection()
        assert directory.get(a) is not directory.get(b)
        assert len(directory) == 2

    def test_config_passed_to_registry(self, connection):
        directory = RegistryDirectory(DynObjConfig(fallback_type_pid="typ.anyDyn"))
        any_type = connection.add_type("typ.anyDyn")
        assert directory.get(connection).registry.fallback_type is any_type

    def test_passthrough_to_orchestrator(self, directory, connection, sensor_type):
        dyn = directory.get(connection)
        obj = dyn.create_object(sensor_type, "Sensor 1", "sensor.1")
        assert dyn.get_area(sensor_type) is dyn.registry.default_area
        assert connection.get_object("sensor.1") is obj

    def test_connection_closed_removes_entry(self, directory, connection):
        directory.get(connection)

        connection.close()

        assert connection not in directory
        assert connection.receivers == []
        assert connection.close_listeners == []

    def test_new_entry_after_close(self, directory, connection):
        first = directory.get(connection)
        connection.close()
        assert directory.get(connection) is not first

    def test_discard_unknown(self, directory, connection):
        assert directory.discard(connection) is False

    def test_close_all(self, connection):
        directory = RegistryDirectory()
        other = MemoryConnection()
        directory.get(connection)
        directory.get(other)

        directory.close()

        assert len(directory) == 0
        assert connection.receivers == [] and other.receivers == []

    def test_construction_failure_not_cached(self, directory):
        connection = MemoryConnection(default_area=None)
        with pytest.raises(ConfigurationError):
            directory.get(connection)
        assert connection not in directory
        assert connection.close_listeners == []


class ClosingConnection(MemoryConnection):
    """Connection that closes right after the registry subscribes."""

    def subscribe(self, receiver, obj, description):
        super().subscribe(receiver, obj, description)
        self.close()


class GatedConnection(MemoryConnection):
    """Connection whose subscribe blocks until the gate opens."""

    def __init__(self):
        super().__init__()
        self.entered = threading.Event()
        self.gate = threading.Event()
        self.subscribe_calls = 0

    def subscribe(self, receiver, obj, description):
        self.subscribe_calls += 1
        self.entered.set()
        assert self.gate.wait(timeout=5)
        super().subscribe(receiver, obj, description)


class TestDirectoryConstruction:
    """Tests for get() while a registry is being built."""

    def test_close_during_construction(self, directory):
        connection = ClosingConnection()

        with pytest.raises(ConnectionClosedError):
            directory.get(connection)

        assert connection not in directory
        assert len(directory) == 0
        assert connection.receivers == []
        assert connection.close_listeners == []

    def test_slow_connection_does_not_block_others(self, directory):
        slow = GatedConnection()
        fast = MemoryConnection()
        results = {}

        builder = threading.Thread(target=lambda: results.update(slow=directory.get(slow)))
        builder.start()
        assert slow.entered.wait(timeout=5)

        other = threading.Thread(target=lambda: results.update(fast=directory.get(fast)))
        other.start()
        other.join(timeout=5)
        fast_done = not other.is_alive()

        slow.gate.set()
        builder.join(timeout=5)

        assert fast_done
        assert results["fast"] is directory.get(fast)
        assert results["slow"] is directory.get(slow)

    def test_concurrent_get_builds_once(self, directory):
        connection = GatedConnection()
        results = []

        def get():
            results.append(directory.get(connection))

        first = threading.Thread(target=get)
        first.start()
        assert connection.entered.wait(timeout=5)
        second = threading.Thread(target=get)
        second.start()

        connection.gate.set()
        first.join(timeout=5)
        second.join(timeout=5)

        assert len(results) == 2
        assert results[0] is results[1]
        assert connection.subscribe_calls == 1
        assert len(connection.receivers) == 1
        assert len(connection.close_listeners) == 1


class TestDynamicObjects:
    """Tests for the DynamicObjects pair."""

    def test_copy(self, directory, connection):
        dyn = directory.get(connection)

        copied = copy.copy(dyn)

        assert copied.orchestrator is dyn.orchestrator
        assert copied.registry is dyn.registry

    def test_unknown_attribute(self, directory, connection):
        dyn = directory.get(connection)
        with pytest.raises(AttributeError):
            dyn.no_such_operation
