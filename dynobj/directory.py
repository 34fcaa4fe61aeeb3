"""
RegistryDirectory - one AssignmentRegistry + LifecycleOrchestrator per connection.

The directory is an explicit object owned by whoever owns the connections;
there is no module-level instance. An entry is torn down when its connection
reports closure (or when the owner calls discard()/close()), which also
unsubscribes the registry from the assignment feed.

Registries are built outside the directory lock: building one reads from the
store and subscribes, and a slow connection must not hold up get() for the
others. Concurrent get() calls for the same connection wait for the one build
in progress.

Usage:
    directory = RegistryDirectory(config)
    dyn = directory.get(connection)
    obj = dyn.create_object(sensor_type, "Sensor 1", "sensor.1")

    # Owner shutdown
    directory.close()
"""

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from dynobj.assignment import AssignmentRegistry
from dynobj.config import DynObjConfig
from dynobj.errors import ConnectionClosedError
from dynobj.lifecycle import LifecycleOrchestrator
from dynobj.store import Connection

logger = logging.getLogger(__name__)

_FIELDS = ("connection", "registry", "orchestrator")


@dataclass(frozen=True)
class DynamicObjects:
    """
    Registry and orchestrator pair of one connection.

    Attribute access not defined here falls through to the orchestrator,
    so dyn.create_object(...) and dyn.orchestrator.create_object(...) are
    the same call.
    """
    connection: Connection
    registry: AssignmentRegistry
    orchestrator: LifecycleOrchestrator

    def __getattr__(self, name: str):
        # Fields and dunders are not forwarded: they are looked up on a
        # half-built instance by copy and pickle.
        if name.startswith("__") or name in _FIELDS:
            raise AttributeError(name)
        return getattr(self.orchestrator, name)


class _Build:
    """A registry build in progress for one connection."""

    def __init__(self, connection: Connection) -> None:
        self.connection = connection
        self.lock = threading.Lock()
        self.closed = False


class RegistryDirectory:
    """
    Connection-keyed cache of DynamicObjects.

    Entries are created on first get() and removed when the connection is
    closed. The directory lock only guards the bookkeeping dictionaries; no
    store call is made while it is held.
    """

    def __init__(self, config: Optional[DynObjConfig] = None) -> None:
        self._config = config or DynObjConfig()
        self._entries: dict[int, DynamicObjects] = {}
        self._builds: dict[int, _Build] = {}
        self._lock = threading.Lock()

    def _lookup(self, connection: Connection) -> Optional[DynamicObjects]:
        entry = self._entries.get(id(connection))
        if entry is not None and entry.connection is connection:
            return entry
        return None

    def get(self, connection: Connection) -> DynamicObjects:
        """
        Get the DynamicObjects of a connection, creating them once.

        Args:
            connection: Live connection

        Returns:
            The connection's DynamicObjects

        Raises:
            ConfigurationError: If the registry cannot be built
            ConnectionClosedError: If the connection closed while the
                registry was being built
        """
        key = id(connection)
        while True:
            with self._lock:
                entry = self._lookup(connection)
                if entry is not None:
                    return entry
                build = self._builds.get(key)
                owner = build is None
                if owner:
                    build = _Build(connection)
                    build.lock.acquire()
                    self._builds[key] = build

            if owner:
                try:
                    return self._build(connection, build)
                finally:
                    with self._lock:
                        if self._builds.get(key) is build:
                            del self._builds[key]
                    build.lock.release()

            # Another thread is building; wait for it and look again.
            with build.lock:
                pass

    def _build(self, connection: Connection, build: _Build) -> DynamicObjects:
        key = id(connection)
        # Listen first so a closure during construction is seen.
        connection.add_close_listener(self.connection_closed)
        try:
            registry = AssignmentRegistry(connection, self._config)
        except Exception:
            connection.remove_close_listener(self.connection_closed)
            raise

        entry = DynamicObjects(
            connection=connection,
            registry=registry,
            orchestrator=LifecycleOrchestrator(connection, registry),
        )
        with self._lock:
            if not build.closed:
                self._entries[key] = entry
                logger.info(f"Registered dynamic object management for connection {key:#x}")
                return entry

        registry.close()
        connection.remove_close_listener(self.connection_closed)
        logger.warning(f"Connection {key:#x} closed while its registry was being built")
        raise ConnectionClosedError(
            f"Connection {key:#x} closed before dynamic object management was ready"
        )

    def connection_closed(self, connection: Connection) -> None:
        """Close listener: drop the connection's entry or abort its build."""
        with self._lock:
            build = self._builds.get(id(connection))
            if build is not None and build.connection is connection:
                build.closed = True
        self.discard(connection)

    def discard(self, connection: Connection) -> bool:
        """
        Remove and close the entry of a connection.

        Returns:
            True if an entry existed
        """
        with self._lock:
            entry = self._lookup(connection)
            if entry is None:
                return False
            del self._entries[id(connection)]

        entry.registry.close()
        connection.remove_close_listener(self.connection_closed)
        logger.info(f"Released dynamic object management for connection {id(connection):#x}")
        return True

    def close(self) -> None:
        """Tear down every entry."""
        with self._lock:
            connections = [entry.connection for entry in self._entries.values()]
        for connection in connections:
            self.discard(connection)

    def __contains__(self, connection: Connection) -> bool:
        with self._lock:
            return self._lookup(connection) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
