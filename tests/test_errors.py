"""Tests for dynobj error classes.

Tests cover:
- Error hierarchy
- Affected-object bookkeeping on element errors
- PartialFailureError built from a report
"""

import pytest

from dynobj.errors import (
    AttachError,
    ConfigurationError,
    ConnectionClosedError,
    CreationError,
    DeleteError,
    DetachError,
    DynObjError,
    MalformedUpdateError,
    ObjectElementError,
    PartialFailureError,
)
from dynobj.result import PartialFailureReport


class TestDynObjError:
    """Tests for base DynObjError."""

    def test_is_exception(self):
        """DynObjError should be an Exception."""
        assert issubclass(DynObjError, Exception)

    def test_has_message(self):
        """DynObjError should have a message."""
        assert str(DynObjError("my message")) == "my message"

    @pytest.mark.parametrize("error_cls", [
        ConfigurationError,
        MalformedUpdateError,
        CreationError,
        ConnectionClosedError,
        ObjectElementError,
        AttachError,
        DetachError,
        DeleteError,
        PartialFailureError,
    ])
    def test_all_errors_are_dynobj_errors(self, error_cls):
        assert issubclass(error_cls, DynObjError)


class TestElementErrors:
    """Tests for errors that carry affected objects."""

    def test_affected_is_frozenset(self):
        error = ObjectElementError("failed", ["a", "b", "a"])
        assert error.affected == frozenset({"a", "b"})

    def test_affected_defaults_to_empty(self):
        assert ObjectElementError("failed").affected == frozenset()

    def test_attach_error_names_object(self):
        error = AttachError("not attached", "obj")
        assert error.obj == "obj"
        assert error.affected == frozenset({"obj"})

    def test_detach_error_is_element_error(self):
        with pytest.raises(ObjectElementError):
            raise DetachError("not removed", "obj")

    def test_delete_error_detached_flag(self):
        assert DeleteError("x", "obj").detached is False
        assert DeleteError("x", "obj", detached=True).detached is True

    def test_creation_error_carries_type(self):
        error = CreationError("rejected", object_type="typ.sensorDyn")
        assert error.object_type == "typ.sensorDyn"

    def test_malformed_update_error_index(self):
        assert MalformedUpdateError("bad", 3).index == 3


class TestPartialFailureError:
    """Tests for PartialFailureError."""

    def test_built_from_report(self):
        report = PartialFailureReport(
            message="Not all objects could be deleted",
            affected=frozenset({"c"}),
            stage="delete",
        )
        error = PartialFailureError(report)
        assert str(error) == "Not all objects could be deleted"
        assert error.affected == frozenset({"c"})
        assert error.report is report
