# flowdiff/diff/result.py

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from flowdiff.errors import OperationError
from flowdiff.model.document import WorkflowDocument


@dataclass
class AppliedOperation:
    index: int
    operation: Dict[str, Any]
    details: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        out = {"index": self.index, "operation": copy.deepcopy(self.operation)}
        if self.details:
            out["details"] = copy.deepcopy(self.details)
        return out


@dataclass
class FailedOperation:
    index: int
    operation: Dict[str, Any]
    reason: str
    error: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "operation": copy.deepcopy(self.operation),
            "reason": self.reason,
            "error": self.error,
        }


@dataclass
class DiffResult:
    success: bool
    operations_applied: int
    message: str
    workflow: Optional[Dict[str, Any]] = None
    applied: List[AppliedOperation] = field(default_factory=list)
    failed: List[FailedOperation] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Wire form (camelCase keys); 'workflow' is left out when absent."""
        out: Dict[str, Any] = {
            "success": self.success,
            "operationsApplied": self.operations_applied,
            "applied": [a.to_dict() for a in self.applied],
            "failed": [f.to_dict() for f in self.failed],
            "errors": list(self.errors),
            "message": self.message,
        }
        if self.workflow is not None:
            out["workflow"] = copy.deepcopy(self.workflow)
        return out


class Ledger:
    """Collects per-operation outcomes while the engine runs a batch."""

    def __init__(self, total: int) -> None:
        self.total = total
        self.applied: List[AppliedOperation] = []
        self.failed: List[FailedOperation] = []
        self.errors: List[str] = []
        self.halted_at: Optional[int] = None

    def record_applied(self, index: int, operation: Dict[str, Any], details=None) -> None:
        self.applied.append(AppliedOperation(index, operation, details))

    def record_failed(self, index: int, operation: Dict[str, Any], err: OperationError) -> None:
        self.failed.append(FailedOperation(index, operation, err.code, err.message))
        self.errors.append(f"Operation {index} ({operation.get('type')}) failed: {err.message}")

    def halt(self, index: int) -> None:
        self.halted_at = index

    def message(self, validate_only: bool) -> str:
        verb = "Validated" if validate_only else "Applied"
        msg = f"{verb} {len(self.applied)} of {self.total} operations"
        if self.failed:
            msg += f" ({len(self.failed)} failed)"
        if self.halted_at is not None and self.halted_at < self.total - 1:
            msg += f"; halted at operation {self.halted_at}"
        return msg

    def build(self, document: WorkflowDocument, validate_only: bool = False) -> DiffResult:
        """
        Package the final state. The workflow is omitted only when operations
        were attempted, none applied, and the call was not validate-only.
        """
        nothing_applied = self.total > 0 and not self.applied
        workflow = None if nothing_applied and not validate_only else document.to_dict()
        return DiffResult(
            success=not self.failed,
            operations_applied=len(self.applied),
            message=self.message(validate_only),
            workflow=workflow,
            applied=list(self.applied),
            failed=list(self.failed),
            errors=list(self.errors),
        )
