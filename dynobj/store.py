"""
Collaborator protocols for the object store and the assignment feed.

dynobj never talks to a concrete datenverteiler client. It needs:
- SystemObject / DynamicObjectType / ConfigurationArea: objects of the store
- MutableCollection: a named, externally managed set of object references
- Connection: data model lookups, configuring data, one-shot reads and
  subscriptions on a data description, close notification

Collaborators signal failure with StoreError and nothing else. StoreError
does not cross the dynobj boundary: the core logs it and wraps it in one of
the dynobj.errors types.

Usage:
    from dynobj.store import Connection
    from dynobj.memory import MemoryConnection

    connection: Connection = MemoryConnection(default_area="kb.default")
"""

from dataclasses import dataclass
from enum import Enum
from typing import (
    Any,
    Callable,
    Collection,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    runtime_checkable,
)


class StoreError(Exception):
    """Raised by store and transport collaborators when a request fails."""
    pass


class ObjectKind(str, Enum):
    """Category of a store object, used to validate feed references."""
    DYNAMIC_OBJECT = "dynamic_object"
    DYNAMIC_OBJECT_TYPE = "dynamic_object_type"
    CONFIGURATION_AREA = "configuration_area"
    OTHER = "other"


class DataState(str, Enum):
    """
    State attached to every delivered data set.

    DATA carries a payload (which may still be absent), NO_DATA is an
    explicit "nothing published". The rest describe a data set that cannot
    be evaluated right now.
    """
    DATA = "data"
    NO_DATA = "no_data"
    NO_SOURCE = "no_source"
    NO_RIGHTS = "no_rights"
    POSSIBLE_GAP = "possible_gap"


@runtime_checkable
class SystemObject(Protocol):
    """Any object held by the store."""

    pid: str
    name: str
    kind: ObjectKind

    @property
    def is_valid(self) -> bool:
        ...

    def invalidate(self) -> None:
        """Mark the object invalid. Raises StoreError."""
        ...


@runtime_checkable
class DynamicObjectType(SystemObject, Protocol):
    """Type of runtime-created objects."""

    def elements(self) -> Collection[SystemObject]:
        """Return every existing instance of this type."""
        ...


@runtime_checkable
class ConfigurationArea(SystemObject, Protocol):
    """Partition into which objects are placed at creation."""

    def create_dynamic_object(
        self,
        object_type: DynamicObjectType,
        pid: str,
        name: str,
        data: Optional[Sequence[Any]] = None,
    ) -> SystemObject:
        """
        Create a dynamic object in this area.

        Args:
            object_type: Type of the new object
            pid: Requested external id
            name: Display name
            data: Optional configuring data sets, passed through untouched

        Returns:
            The created object

        Raises:
            StoreError: The store rejected the request
        """
        ...


@runtime_checkable
class MutableCollection(Protocol):
    """Externally managed set of object references."""

    pid: str

    def members(self) -> set:
        ...

    def add(self, *objects: SystemObject) -> None:
        """Raises StoreError."""
        ...

    def remove(self, *objects: SystemObject) -> None:
        """Raises StoreError."""
        ...


@dataclass(frozen=True)
class FeedDescription:
    """Attribute group / aspect pair naming a published data set."""
    attribute_group: Any
    aspect: Any


@dataclass(frozen=True)
class AssignmentEntry:
    """
    One row of the assignment feed.

    Both references are already resolved by the transport; an unresolvable
    reference arrives as None.
    """
    type_ref: Optional[SystemObject]
    area_ref: Optional[SystemObject]


@dataclass(frozen=True)
class FeedUpdate:
    """A delivered data set of the assignment feed."""
    state: DataState
    entries: Optional[Sequence[AssignmentEntry]] = None


FeedReceiver = Callable[[Sequence[FeedUpdate]], None]
CloseListener = Callable[["Connection"], None]


@runtime_checkable
class Connection(Protocol):
    """
    Connection to the store and its publish/subscribe transport.

    The connection is shared. dynobj subscribes to it and listens for its
    closure but never controls its lifetime.
    """

    def get_object(self, pid: str) -> Optional[SystemObject]:
        ...

    def get_attribute_group(self, pid: str) -> Optional[Any]:
        ...

    def get_aspect(self, pid: str) -> Optional[Any]:
        ...

    def local_authority(self) -> SystemObject:
        """Return the configuration authority of this connection."""
        ...

    def get_configuration_data(
        self, obj: SystemObject, attribute_group: Any
    ) -> Optional[Mapping[str, Any]]:
        """Return the configuring data set of obj, or None."""
        ...

    def get_data(self, obj: SystemObject, description: FeedDescription) -> FeedUpdate:
        """Synchronous one-shot read of the current value."""
        ...

    def subscribe(
        self, receiver: FeedReceiver, obj: SystemObject, description: FeedDescription
    ) -> None:
        """
        Register receiver for every later change of the data set.

        Updates are delivered on a transport-owned thread.
        """
        ...

    def unsubscribe(
        self, receiver: FeedReceiver, obj: SystemObject, description: FeedDescription
    ) -> None:
        ...

    def add_close_listener(self, listener: CloseListener) -> None:
        ...

    def remove_close_listener(self, listener: CloseListener) -> None:
        ...
