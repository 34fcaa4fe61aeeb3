"""
LifecycleOrchestrator - create, attach, detach and delete dynamic objects.

Each call is one full traversal of its sequence; nothing is kept between
calls. The store is not transactional and the orchestrator does not pretend
it is:

- create_object_in_collection: a created object that cannot be attached is
  left in place and reported through AttachError.obj
- remove_from_collection: an object whose removal failed is never deleted;
  an object removed but not deleted is reported with DeleteError.detached
- batch operations return a BatchResult naming only the failed subset

Membership is read fresh from the collection whenever a branch depends on
it. Store change notifications are not consulted.
"""

import logging
from typing import Any, Iterable, Optional, Sequence

from dynobj.assignment import AssignmentRegistry
from dynobj.errors import AttachError, CreationError, DeleteError, DetachError
from dynobj.result import BatchResult, PartialFailureReport
from dynobj.store import (
    ConfigurationArea,
    Connection,
    DynamicObjectType,
    MutableCollection,
    StoreError,
    SystemObject,
)

logger = logging.getLogger(__name__)


class LifecycleOrchestrator:
    """
    Drives the store through dynamic object lifecycles.

    The orchestrator reads area resolutions from the registry and never
    changes registry state.

    Usage:
        orchestrator = LifecycleOrchestrator(connection, registry)
        obj = orchestrator.create_object_in_collection(
            sensor_type, "Sensor 1", "sensor.1", collection
        )
        orchestrator.clear_collection(collection, delete=True).raise_for_failure()
    """

    def __init__(self, connection: Connection, registry: AssignmentRegistry):
        """
        Initialize the orchestrator.

        Args:
            connection: Connection the registry was built for
            registry: Source of area resolutions
        """
        self._connection = connection
        self._registry = registry

    @property
    def registry(self) -> AssignmentRegistry:
        return self._registry

    def get_area(self, object_type: DynamicObjectType) -> ConfigurationArea:
        """Get the area new objects of object_type are created in."""
        return self._registry.get_area(object_type)

    # -------------------------------------------------------------------------
    # Single object operations
    # -------------------------------------------------------------------------

    def create_object(
        self,
        object_type: DynamicObjectType,
        name: str,
        pid: str,
        data: Optional[Sequence[Any]] = None,
    ) -> SystemObject:
        """
        Create a dynamic object in the area assigned to its type.

        Args:
            object_type: Type of the new object
            name: Display name
            pid: Requested external id
            data: Optional configuring data sets for the new object

        Returns:
            The created object

        Raises:
            CreationError: The store rejected the creation
        """
        area = self._registry.get_area(object_type)
        try:
            obj = area.create_dynamic_object(object_type, pid, name, data)
        except StoreError as e:
            logger.error(f"Creating {pid} of type {object_type.pid} in {area.pid} failed: {e}")
            raise CreationError(
                f"Dynamic object {pid} of type {object_type.pid} could not be created: {e}",
                object_type=object_type,
            ) from e

        logger.info(f"Created {obj.pid} (type={object_type.pid}, area={area.pid})")
        return obj

    def create_object_in_collection(
        self,
        object_type: DynamicObjectType,
        name: str,
        pid: str,
        collection: MutableCollection,
        data: Optional[Sequence[Any]] = None,
    ) -> SystemObject:
        """
        Create a dynamic object and add it to a collection.

        Not a transaction: if the add fails, the object stays in the store.
        AttachError.obj holds it so the caller can delete it if needed.

        Args:
            object_type: Type of the new object
            name: Display name
            pid: Requested external id
            collection: Collection the object is added to
            data: Optional configuring data sets for the new object

        Returns:
            The created and attached object

        Raises:
            CreationError: The object could not be created
            AttachError: The object was created but not added
        """
        obj = self.create_object(object_type, name, pid, data)
        try:
            collection.add(obj)
        except StoreError as e:
            logger.error(f"Adding {obj.pid} to {collection.pid} failed: {e}")
            raise AttachError(
                f"Object {obj.pid} was created but could not be added to {collection.pid}: {e}",
                obj,
            ) from e
        return obj

    def add_to_collection(self, obj: SystemObject, collection: MutableCollection) -> bool:
        """
        Add an existing object to a collection.

        Returns:
            True if the object was added, False if it already was a member

        Raises:
            AttachError: The object could not be added
        """
        if obj in collection.members():
            return False
        try:
            collection.add(obj)
        except StoreError as e:
            logger.error(f"Adding {obj.pid} to {collection.pid} failed: {e}")
            raise AttachError(
                f"Object {obj.pid} could not be added to {collection.pid}: {e}", obj
            ) from e
        return True

    def remove_from_collection(
        self, obj: SystemObject, collection: MutableCollection, delete: bool = False
    ) -> bool:
        """
        Remove an object from a collection, optionally deleting it.

        Args:
            obj: Object to remove
            collection: Collection to remove it from
            delete: Invalidate the object after removing it

        Returns:
            True if the object was removed, False if it was not a member

        Raises:
            DetachError: Removal failed; the object was not deleted
            DeleteError: Removal succeeded but invalidation failed
                (DeleteError.detached is True)
        """
        if obj not in collection.members():
            return False

        try:
            collection.remove(obj)
        except StoreError as e:
            logger.error(f"Removing {obj.pid} from {collection.pid} failed: {e}")
            raise DetachError(
                f"Object {obj.pid} could not be removed from {collection.pid}: {e}", obj
            ) from e

        if delete:
            try:
                obj.invalidate()
            except StoreError as e:
                logger.error(f"Deleting {obj.pid} failed: {e}")
                raise DeleteError(
                    f"Object {obj.pid} was removed from {collection.pid} "
                    f"but could not be deleted: {e}",
                    obj,
                    detached=True,
                ) from e
        return True

    def delete_object(self, obj: SystemObject) -> None:
        """
        Invalidate a single object.

        Raises:
            DeleteError: The object could not be deleted
        """
        try:
            obj.invalidate()
        except StoreError as e:
            logger.error(f"Deleting {obj.pid} failed: {e}")
            raise DeleteError(f"Object {obj.pid} could not be deleted: {e}", obj) from e

    # -------------------------------------------------------------------------
    # Batch operations
    # -------------------------------------------------------------------------

    def clear_collection(
        self, collection: MutableCollection, delete: bool = False
    ) -> BatchResult:
        """
        Remove every member of a collection, optionally deleting them.

        Membership is snapshotted once and removed as one batch. If the
        batch removal fails the whole snapshot is reported and nothing is
        deleted. Otherwise each removed object is invalidated on its own and
        only the ones that failed are reported.

        Args:
            collection: Collection to empty
            delete: Invalidate the removed objects

        Returns:
            BatchResult; processed holds removed (or deleted) objects
        """
        operation = "clear_collection"
        members = frozenset(collection.members())
        if not members:
            return BatchResult(operation)

        report = self._remove_batch(
            collection, members, f"Not all members could be removed from {collection.pid}"
        )
        if report is not None:
            return BatchResult(operation, report=report)

        if not delete:
            logger.info(f"Cleared {collection.pid} ({len(members)} objects)")
            return BatchResult(operation, processed=members)

        return self._invalidate_each(
            operation, members, f"Not all members removed from {collection.pid} could be deleted"
        )

    def delete_unassigned(
        self, object_type: DynamicObjectType, *collections: MutableCollection
    ) -> BatchResult:
        """
        Delete every instance of object_type not held by any given collection.

        Args:
            object_type: Type whose instances are pruned
            collections: Collections whose members are kept

        Returns:
            BatchResult; report lists only the objects that failed to delete
        """
        keep: set = set()
        for collection in collections:
            keep.update(collection.members())

        candidates = frozenset(obj for obj in object_type.elements() if obj not in keep)
        return self._invalidate_each(
            "delete_unassigned",
            candidates,
            f"Not all unassigned objects of type {object_type.pid} could be deleted",
        )

    def delete_all(self, object_type: DynamicObjectType) -> BatchResult:
        """Delete every instance of object_type."""
        return self.delete_unassigned(object_type)

    def remove_invalid_members(self, collection: MutableCollection) -> BatchResult:
        """
        Remove members already invalidated elsewhere from a collection.

        Returns:
            BatchResult; fails only if the batch removal itself fails
        """
        operation = "remove_invalid_members"
        invalid = frozenset(obj for obj in collection.members() if not obj.is_valid)
        if not invalid:
            return BatchResult(operation)

        report = self._remove_batch(
            collection, invalid, f"Not all invalid members could be removed from {collection.pid}"
        )
        if report is not None:
            return BatchResult(operation, report=report)

        logger.info(f"Removed {len(invalid)} invalid members from {collection.pid}")
        return BatchResult(operation, processed=invalid)

    def _remove_batch(
        self, collection: MutableCollection, objects: frozenset, message: str
    ) -> Optional[PartialFailureReport]:
        try:
            collection.remove(*objects)
        except StoreError as e:
            logger.error(f"Removing {len(objects)} objects from {collection.pid} failed: {e}")
            return PartialFailureReport(message=message, affected=objects, stage="remove")
        return None

    def _invalidate_each(
        self, operation: str, objects: Iterable[SystemObject], message: str
    ) -> BatchResult:
        deleted = set()
        failed = set()
        for obj in objects:
            try:
                obj.invalidate()
            except StoreError as e:
                logger.error(f"Deleting {obj.pid} failed: {e}")
                failed.add(obj)
            else:
                deleted.add(obj)

        logger.info(f"{operation}: deleted {len(deleted)}, failed {len(failed)}")
        if failed:
            report = PartialFailureReport(
                message=message, affected=frozenset(failed), stage="delete"
            )
            return BatchResult(operation, processed=frozenset(deleted), report=report)
        return BatchResult(operation, processed=frozenset(deleted))
