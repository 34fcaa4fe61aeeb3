"""
Error classes for dynobj.

These error types describe what went wrong at the core boundary:
- ConfigurationError: The connection cannot supply a default area (fatal)
- MalformedUpdateError: An assignment feed update failed validation
- CreationError: The store rejected object creation
- ConnectionClosedError: The connection closed while its registry was being set up
- ObjectElementError: One or more objects could not be attached, detached
  or deleted; carries the affected objects

Collaborator failures (StoreError) are logged where they happen and wrapped
in one of these before they leave the package. Raw store errors are only
reachable through __cause__.
"""

from typing import Any, Iterable


class DynObjError(Exception):
    """Base exception for dynobj."""
    pass


class ConfigurationError(DynObjError):
    """
    Fatal configuration error.

    Raised at registry construction when the connection's default
    configuration area cannot be determined. There is no floor value
    to degrade to, so the registry cannot be built.
    """
    pass


class ConfigError(DynObjError):
    """Invalid dynobj configuration file."""
    pass


class MalformedUpdateError(DynObjError):
    """
    An assignment update contains a reference of the wrong category.

    Only raised while building a candidate table. The registry logs it
    and installs an empty table; callers of get_area never see it.
    """

    def __init__(self, message: str, index: int):
        super().__init__(message)
        self.index = index


class CreationError(DynObjError):
    """The store rejected creation of a dynamic object of `object_type`."""

    def __init__(self, message: str, object_type: Any = None):
        super().__init__(message)
        self.object_type = object_type


class ConnectionClosedError(DynObjError):
    """Connection reported closure before its registry was ready."""
    pass


class ObjectElementError(DynObjError):
    """
    Error that names the objects it affects.

    `affected` is exactly the subset of the requested objects that could
    not be processed, never the full request.
    """

    def __init__(self, message: str, affected: Iterable[Any] = ()):
        super().__init__(message)
        self.affected = frozenset(affected)


class AttachError(ObjectElementError):
    """
    Object could not be added to a collection.

    When raised from create_object_in_collection the object was created
    and is still valid: the caller decides on compensating deletion.
    """

    def __init__(self, message: str, obj: Any):
        super().__init__(message, (obj,))
        self.obj = obj


class DetachError(ObjectElementError):
    """Object could not be removed from a collection; it was not deleted."""

    def __init__(self, message: str, obj: Any):
        super().__init__(message, (obj,))
        self.obj = obj


class DeleteError(ObjectElementError):
    """
    Object could not be invalidated.

    `detached` is True when the object had already been removed from its
    collection before the invalidation failed.
    """

    def __init__(self, message: str, obj: Any, detached: bool = False):
        super().__init__(message, (obj,))
        self.obj = obj
        self.detached = detached


class PartialFailureError(ObjectElementError):
    """Raised by BatchResult.raise_for_failure() for a failed batch."""

    def __init__(self, report: Any):
        super().__init__(report.message, report.affected)
        self.report = report
