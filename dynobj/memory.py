"""
In-memory store and feed for local runs and tests.

Implements the dynobj.store protocols without a datenverteiler:
- MemoryObject / MemoryType / MemoryArea: store objects
- MemoryCollection: mutable set of object references
- MemoryConnection: data model, authority configuring data, assignment feed

Failures are injected per object or collection by setting the fail_* flags;
the next matching call raises StoreError.

Usage:
    connection = MemoryConnection(default_area="kb.default")
    sensor = connection.add_type("typ.sensorDyn")
    connection.publish_assignments([(sensor, connection.add_area("kb.sensors"))])
"""

import threading
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Sequence

from dynobj.store import (
    AssignmentEntry,
    CloseListener,
    DataState,
    FeedDescription,
    FeedReceiver,
    FeedUpdate,
    ObjectKind,
    StoreError,
)

DEFAULT_FALLBACK_TYPE = "typ.dynamischesObjekt"
DEFAULT_AUTHORITY_ATG = "atg.konfigurationsVerantwortlicherEigenschaften"
DEFAULT_ASSIGNMENT_ATG = "atg.verwaltungDynamischerObjekte"
DEFAULT_ASSIGNMENT_ASPECT = "asp.parameterSoll"


@dataclass(eq=False)
class MemoryObject:
    """A store object. Equality is identity."""
    pid: str
    name: str = ""
    kind: ObjectKind = ObjectKind.OTHER
    object_type: Optional["MemoryType"] = None
    data: Optional[Sequence[Any]] = None
    fail_invalidate: bool = False
    _valid: bool = field(default=True, repr=False)

    @property
    def is_valid(self) -> bool:
        return self._valid

    def invalidate(self) -> None:
        if self.fail_invalidate:
            raise StoreError(f"invalidate rejected for {self.pid}")
        self._valid = False


@dataclass(eq=False)
class MemoryType(MemoryObject):
    """Dynamic object type tracking its instances."""
    kind: ObjectKind = ObjectKind.DYNAMIC_OBJECT_TYPE
    instances: list = field(default_factory=list, repr=False)

    def elements(self) -> list:
        return [obj for obj in self.instances if obj.is_valid]


@dataclass(eq=False)
class MemoryArea(MemoryObject):
    """Configuration area creating MemoryObjects."""
    kind: ObjectKind = ObjectKind.CONFIGURATION_AREA
    fail_create: bool = False
    store: Optional["MemoryConnection"] = field(default=None, repr=False)
    created: list = field(default_factory=list, repr=False)

    def create_dynamic_object(
        self,
        object_type: MemoryType,
        pid: str,
        name: str,
        data: Optional[Sequence[Any]] = None,
    ) -> MemoryObject:
        if self.fail_create:
            raise StoreError(f"create rejected in {self.pid}")
        if self.store is not None and self.store.get_object(pid) is not None:
            raise StoreError(f"pid already in use: {pid}")

        obj = MemoryObject(
            pid=pid,
            name=name,
            kind=ObjectKind.DYNAMIC_OBJECT,
            object_type=object_type,
            data=data,
        )
        object_type.instances.append(obj)
        self.created.append(obj)
        if self.store is not None:
            self.store.objects[pid] = obj
        return obj


class MemoryCollection:
    """Mutable set of object references."""

    def __init__(self, pid: str, members: Iterable[Any] = ()):
        self.pid = pid
        self._members = set(members)
        self.fail_add = False
        self.fail_remove = False
        self.remove_calls: list[tuple] = []

    def members(self) -> set:
        return set(self._members)

    def add(self, *objects: Any) -> None:
        if self.fail_add:
            raise StoreError(f"add rejected for {self.pid}")
        self._members.update(objects)

    def remove(self, *objects: Any) -> None:
        self.remove_calls.append(objects)
        if self.fail_remove:
            raise StoreError(f"remove rejected for {self.pid}")
        self._members.difference_update(objects)

    def __repr__(self) -> str:
        return f"MemoryCollection(pid={self.pid}, members={len(self._members)})"


class MemoryConnection:
    """
    Connection backed by dictionaries.

    By default the data model contains the fallback type, the authority
    attribute group and the assignment attribute group/aspect. Pass
    with_feed=False to build a data model without the assignment feed.
    """

    def __init__(
        self,
        default_area: Optional[str] = "kb.default",
        with_feed: bool = True,
        fallback_type: Optional[str] = DEFAULT_FALLBACK_TYPE,
    ):
        self.objects: dict[str, MemoryObject] = {}
        self.attribute_groups: dict[str, str] = {DEFAULT_AUTHORITY_ATG: DEFAULT_AUTHORITY_ATG}
        self.aspects: dict[str, str] = {}
        self.configuration_data: dict[tuple[str, str], Mapping[str, Any]] = {}
        self.authority = MemoryObject(pid="kv.local", name="authority")
        self.objects[self.authority.pid] = self.authority

        self.current: dict[tuple[str, FeedDescription], FeedUpdate] = {}
        self.receivers: list[tuple[FeedReceiver, str, FeedDescription]] = []
        self.close_listeners: list[CloseListener] = []
        self.fail_get_data = False
        self._lock = threading.Lock()

        if default_area is not None:
            self.add_area(default_area)
            self.configuration_data[(self.authority.pid, DEFAULT_AUTHORITY_ATG)] = {
                "defaultBereich": [default_area]
            }
        if fallback_type is not None:
            self.add_type(fallback_type)
        if with_feed:
            self.attribute_groups[DEFAULT_ASSIGNMENT_ATG] = DEFAULT_ASSIGNMENT_ATG
            self.aspects[DEFAULT_ASSIGNMENT_ASPECT] = DEFAULT_ASSIGNMENT_ASPECT

    # data model -------------------------------------------------------------

    def add_type(self, pid: str) -> MemoryType:
        obj = MemoryType(pid=pid, name=pid)
        self.objects[pid] = obj
        return obj

    def add_area(self, pid: str) -> MemoryArea:
        obj = MemoryArea(pid=pid, name=pid, store=self)
        self.objects[pid] = obj
        return obj

    def get_object(self, pid: str) -> Optional[MemoryObject]:
        return self.objects.get(pid)

    def get_attribute_group(self, pid: str) -> Optional[str]:
        return self.attribute_groups.get(pid)

    def get_aspect(self, pid: str) -> Optional[str]:
        return self.aspects.get(pid)

    def local_authority(self) -> MemoryObject:
        return self.authority

    def get_configuration_data(self, obj: MemoryObject, attribute_group: str):
        return self.configuration_data.get((obj.pid, attribute_group))

    # feed -------------------------------------------------------------------

    @property
    def assignment_description(self) -> FeedDescription:
        return FeedDescription(
            attribute_group=DEFAULT_ASSIGNMENT_ATG, aspect=DEFAULT_ASSIGNMENT_ASPECT
        )

    def get_data(self, obj: MemoryObject, description: FeedDescription) -> FeedUpdate:
        if self.fail_get_data:
            raise StoreError("get_data rejected")
        return self.current.get((obj.pid, description), FeedUpdate(DataState.NO_DATA))

    def subscribe(
        self, receiver: FeedReceiver, obj: MemoryObject, description: FeedDescription
    ) -> None:
        with self._lock:
            self.receivers.append((receiver, obj.pid, description))

    def unsubscribe(
        self, receiver: FeedReceiver, obj: MemoryObject, description: FeedDescription
    ) -> None:
        with self._lock:
            self.receivers = [
                r for r in self.receivers if r != (receiver, obj.pid, description)
            ]

    def publish(self, *updates: FeedUpdate) -> None:
        """Set the feed's current value and deliver updates to subscribers."""
        description = self.assignment_description
        key = (self.authority.pid, description)
        if updates:
            self.current[key] = updates[-1]
        with self._lock:
            receivers = [r for r, pid, desc in self.receivers if (pid, desc) == key]
        for receiver in receivers:
            receiver(list(updates))

    def publish_assignments(self, pairs: Iterable[tuple[Any, Any]]) -> None:
        """Publish a DATA update built from (type, area) pairs."""
        entries = [AssignmentEntry(type_ref=t, area_ref=a) for t, a in pairs]
        self.publish(FeedUpdate(DataState.DATA, entries))

    # lifecycle --------------------------------------------------------------

    def add_close_listener(self, listener: CloseListener) -> None:
        self.close_listeners.append(listener)

    def remove_close_listener(self, listener: CloseListener) -> None:
        if listener in self.close_listeners:
            self.close_listeners.remove(listener)

    def close(self) -> None:
        for listener in list(self.close_listeners):
            listener(self)
