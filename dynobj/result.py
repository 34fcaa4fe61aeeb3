"""
BatchResult - outcome of a multi-object lifecycle operation.

Batch operations (clear, prune, invalid-member cleanup) do not raise on
partial failure. They return a BatchResult; when anything failed it carries
a PartialFailureReport naming exactly the objects that could not be
processed. Callers that prefer an exception call raise_for_failure().

Report stages:
- "remove": the batch removal from the collection failed, nothing was deleted
- "delete": removal (if any) succeeded, some invalidations failed
"""

from dataclasses import dataclass, field
from typing import Any, Literal, Optional

from dynobj.errors import PartialFailureError


@dataclass(frozen=True)
class PartialFailureReport:
    """
    The failed subset of a batch.

    Attributes:
        message: Human readable summary
        affected: Objects that could not be processed
        stage: Step of the operation that failed
    """
    message: str
    affected: frozenset
    stage: Literal["remove", "delete"]

    def __post_init__(self):
        if not self.affected:
            raise ValueError("PartialFailureReport requires at least one affected object")


@dataclass(frozen=True)
class BatchResult:
    """
    Outcome of a batch operation.

    Attributes:
        operation: Name of the orchestrator operation
        processed: Objects fully handled by the operation
        report: Failure report, None when every object was handled
    """
    operation: str
    processed: frozenset = field(default_factory=frozenset)
    report: Optional[PartialFailureReport] = None

    @property
    def ok(self) -> bool:
        return self.report is None

    @property
    def failed(self) -> frozenset:
        """Objects that could not be processed (empty on success)."""
        if self.report is None:
            return frozenset()
        return self.report.affected

    def raise_for_failure(self) -> "BatchResult":
        """
        Raise PartialFailureError if the batch did not fully succeed.

        Returns:
            self, so calls can be chained

        Raises:
            PartialFailureError: Carrying the report and its affected objects
        """
        if self.report is not None:
            raise PartialFailureError(self.report)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Summary with pids, suitable for logging or run records."""
        result: dict[str, Any] = {
            "operation": self.operation,
            "processed": sorted(_pid(obj) for obj in self.processed),
        }
        if self.report is not None:
            result["failure"] = {
                "message": self.report.message,
                "stage": self.report.stage,
                "affected": sorted(_pid(obj) for obj in self.report.affected),
            }
        return result


def _pid(obj: Any) -> str:
    return getattr(obj, "pid", None) or repr(obj)
