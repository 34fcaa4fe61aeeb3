"""
AssignmentRegistry - live resolution of dynamic object types to areas.

The registry provides:
- The default configuration area of the connection (read once, fatal if missing)
- A versioned, immutable AssignmentTable built from the assignment feed
- Atomic replacement of that table on every feed update
- get_area(): exact type -> fallback type -> default area, never raises

Feed handling:
- DATA with entries: validated as a whole; one bad pair installs an empty table
- DATA without payload, NO_DATA: empty table
- anything else: unevaluable; previous table retained or cleared per config
"""

import logging
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Sequence

from dynobj.config import DynObjConfig
from dynobj.errors import ConfigurationError, MalformedUpdateError
from dynobj.store import (
    AssignmentEntry,
    ConfigurationArea,
    Connection,
    DataState,
    DynamicObjectType,
    FeedDescription,
    FeedUpdate,
    ObjectKind,
    StoreError,
    SystemObject,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssignmentTable:
    """
    One version of the type -> area mapping.

    Tables are never edited. Each feed update produces a new table that
    replaces the old one wholesale.

    Attributes:
        version: Monotonic counter, incremented by the registry per swap
        entries: Read-only mapping of type pid -> ConfigurationArea
    """
    version: int = 0
    entries: Mapping[str, ConfigurationArea] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @classmethod
    def empty(cls, version: int = 0) -> "AssignmentTable":
        return cls(version=version)

    @classmethod
    def from_entries(
        cls, entries: Iterable[AssignmentEntry], version: int = 0
    ) -> "AssignmentTable":
        """
        Build a table from feed entries.

        The table is assembled completely before it is returned, so a bad
        entry leaves no partially built table behind.

        Args:
            entries: Feed rows of (type_ref, area_ref)
            version: Version stamped on the new table

        Returns:
            The new AssignmentTable

        Raises:
            MalformedUpdateError: If any type_ref is not a dynamic object type
                or any area_ref is not a configuration area
        """
        mapping: dict[str, ConfigurationArea] = {}
        for idx, entry in enumerate(entries):
            type_ref = entry.type_ref
            area_ref = entry.area_ref
            if getattr(type_ref, "kind", None) != ObjectKind.DYNAMIC_OBJECT_TYPE:
                raise MalformedUpdateError(
                    f"Assignment entry {idx}: {type_ref!r} is not a dynamic object type",
                    idx,
                )
            if getattr(area_ref, "kind", None) != ObjectKind.CONFIGURATION_AREA:
                raise MalformedUpdateError(
                    f"Assignment entry {idx}: {area_ref!r} is not a configuration area",
                    idx,
                )
            mapping[type_ref.pid] = area_ref
        return cls(version=version, entries=MappingProxyType(mapping))

    def get(self, object_type: SystemObject) -> Optional[ConfigurationArea]:
        return self.entries.get(object_type.pid)

    def __contains__(self, object_type: SystemObject) -> bool:
        return object_type.pid in self.entries

    def __len__(self) -> int:
        return len(self.entries)


class AssignmentRegistry:
    """
    Owns the current AssignmentTable of one connection.

    The table reference is the only state shared with the transport thread.
    A single lock covers the swap in apply() and the reads in get_area(), so
    a lookup sees one table version or the other, never a mix.

    Usage:
        registry = AssignmentRegistry(connection)
        area = registry.get_area(sensor_type)

        # On shutdown
        registry.close()
    """

    def __init__(self, connection: Connection, config: Optional[DynObjConfig] = None):
        """
        Initialize the registry.

        Reads the default area, looks up the fallback type and, when the
        assignment feed exists in the data model, reads it once and
        subscribes for later changes.

        Args:
            connection: Live connection to the store
            config: Optional settings, defaults to DynObjConfig()

        Raises:
            ConfigurationError: If the default area cannot be determined
        """
        self._connection = connection
        self._config = config or DynObjConfig()
        self._lock = threading.Lock()
        self._table = AssignmentTable.empty()
        self._closed = False

        self._authority = connection.local_authority()
        self._default_area = self._read_default_area()
        self._fallback_type = connection.get_object(self._config.fallback_type_pid)
        if self._fallback_type is None:
            logger.warning(
                f"Fallback type {self._config.fallback_type_pid} not found, "
                "only exact assignments apply"
            )

        atg = connection.get_attribute_group(self._config.assignment_attribute_group)
        aspect = connection.get_aspect(self._config.assignment_aspect)
        if atg is None or aspect is None:
            logger.error(
                "Assignment data set "
                f"{self._config.assignment_attribute_group}/{self._config.assignment_aspect} "
                "is not available, all objects go to the default area"
            )
            self._description: Optional[FeedDescription] = None
        else:
            self._description = FeedDescription(attribute_group=atg, aspect=aspect)
            try:
                self.apply([connection.get_data(self._authority, self._description)])
            except StoreError as e:
                logger.error(f"Initial read of the assignment data set failed: {e}")
            try:
                connection.subscribe(self.apply, self._authority, self._description)
            except StoreError as e:
                logger.error(f"Subscription to the assignment data set failed: {e}")

    def _read_default_area(self) -> ConfigurationArea:
        atg = self._connection.get_attribute_group(self._config.authority_attribute_group)
        data = None
        if atg is not None:
            try:
                data = self._connection.get_configuration_data(self._authority, atg)
            except StoreError as e:
                logger.error(f"Reading configuring data of {self._authority.pid} failed: {e}")
                raise ConfigurationError(
                    f"Default area of {self._authority.pid} could not be read: {e}"
                ) from e

        pids = (data or {}).get(self._config.default_area_attribute) or []
        if isinstance(pids, str):
            pids = [pids]
        if not pids:
            raise ConfigurationError(
                "Default area of the local configuration authority "
                f"{self._authority.pid} could not be determined"
            )

        area = self._connection.get_object(pids[0])
        if getattr(area, "kind", None) != ObjectKind.CONFIGURATION_AREA:
            raise ConfigurationError(
                f"Default area {pids[0]} of {self._authority.pid} is not a configuration area"
            )
        return area

    @property
    def default_area(self) -> ConfigurationArea:
        """Get the connection's default configuration area."""
        return self._default_area

    @property
    def fallback_type(self) -> Optional[DynamicObjectType]:
        return self._fallback_type

    @property
    def description(self) -> Optional[FeedDescription]:
        """Feed description, None in static mode."""
        return self._description

    @property
    def subscribed(self) -> bool:
        return self._description is not None

    @property
    def table(self) -> AssignmentTable:
        """Get the current table. Safe to keep: tables are never edited."""
        with self._lock:
            return self._table

    def get_area(self, object_type: SystemObject) -> ConfigurationArea:
        """
        Resolve the area new objects of object_type are created in.

        Resolution order:
        1. Entry for object_type in the current table
        2. Entry for the fallback type
        3. The connection's default area

        In static mode (no assignment data set) the default area is the
        only answer.

        Args:
            object_type: Type of the object about to be created

        Returns:
            The target area. Resolution degrades, it never fails.
        """
        if not self.subscribed:
            return self._default_area

        with self._lock:
            table = self._table

        area = table.get(object_type)
        if area is not None:
            return area

        if self._fallback_type is not None:
            area = table.get(self._fallback_type)
            if area is not None:
                return area

        return self._default_area

    def apply(self, updates: Sequence[FeedUpdate]) -> None:
        """
        Install the table described by a batch of feed updates.

        Called on the transport thread. Candidate tables are built without
        holding the lock; only the final reference swap is locked. The last
        update of the batch that yields a table wins. Never raises.

        Args:
            updates: Delivered data sets, oldest first
        """
        candidate: Optional[AssignmentTable] = None
        for update in updates:
            table = self._build(update)
            if table is not None:
                candidate = table

        if candidate is None:
            return

        with self._lock:
            version = self._table.version + 1
            self._table = AssignmentTable(version=version, entries=candidate.entries)
        logger.debug(f"Assignment table v{version} installed ({len(candidate)} entries)")

    def _build(self, update: FeedUpdate) -> Optional[AssignmentTable]:
        """Return the table for one update, or None to keep the current one."""
        if update.state == DataState.DATA:
            if update.entries is None:
                logger.warning(f"Assignment data set carries no data: {update}")
                return AssignmentTable.empty()
            try:
                return AssignmentTable.from_entries(update.entries)
            except MalformedUpdateError as e:
                logger.error(f"Assignment data set rejected, using empty table: {e}")
                return AssignmentTable.empty()

        if update.state == DataState.NO_DATA:
            return AssignmentTable.empty()

        if self._config.retain_on_unevaluable:
            logger.warning(f"Assignment data set cannot be evaluated, keeping table: {update}")
            return None

        logger.warning(f"Assignment data set cannot be evaluated, clearing table: {update}")
        return AssignmentTable.empty()

    def close(self) -> None:
        """Stop receiving feed updates. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        if self._description is not None:
            try:
                self._connection.unsubscribe(self.apply, self._authority, self._description)
            except StoreError as e:
                logger.error(f"Unsubscribing from the assignment data set failed: {e}")
