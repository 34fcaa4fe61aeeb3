"""
dynobj - dynamic object management on a datenverteiler connection

Resolves the configuration area a new dynamic object is created in from the
live assignment data set of the configuration authority, and runs the
create/attach/detach/delete sequences of such objects.
"""

__version__ = "0.1.0"

from .assignment import AssignmentRegistry, AssignmentTable
from .config import DynObjConfig, configure_logging, get_dynobj_home, load_config
from .directory import DynamicObjects, RegistryDirectory
from .errors import (
    AttachError,
    ConfigError,
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
from .lifecycle import LifecycleOrchestrator
from .result import BatchResult, PartialFailureReport

__all__ = [
    "AssignmentRegistry",
    "AssignmentTable",
    "AttachError",
    "BatchResult",
    "ConfigError",
    "ConfigurationError",
    "ConnectionClosedError",
    "CreationError",
    "DeleteError",
    "DetachError",
    "DynObjConfig",
    "DynObjError",
    "DynamicObjects",
    "LifecycleOrchestrator",
    "MalformedUpdateError",
    "ObjectElementError",
    "PartialFailureError",
    "PartialFailureReport",
    "RegistryDirectory",
    "configure_logging",
    "get_dynobj_home",
    "load_config",
]
