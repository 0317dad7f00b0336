# flowdiff/errors.py

from __future__ import annotations

from typing import Any, Dict, List, Optional


class FlowDiffError(Exception):
    """
    Base class for every error raised by flowdiff.

    Each subclass carries a stable ``code`` that is echoed to callers
    (e.g. as the ``reason`` of a failed operation).
    """

    code: str = "FlowDiffError"

    def __init__(self, message: str, *, detail: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail or {}


# ---------- Request-level ----------

class RequestValidationError(FlowDiffError):
    """The batch itself is malformed; nothing was attempted."""

    code = "RequestValidationError"

    def __init__(self, errors: List[str]) -> None:
        super().__init__(
            f"Invalid diff request ({len(errors)} problem(s))",
            detail={"errors": list(errors)},
        )
        self.errors = list(errors)


# ---------- Operation-level ----------

class OperationError(FlowDiffError):
    """A single operation could not be applied to the working copy."""

    code = "OperationError"


class NodeNotFound(OperationError):
    code = "NodeNotFound"


class DuplicateNodeName(OperationError):
    code = "DuplicateNodeName"


class DuplicateNodeId(OperationError):
    code = "DuplicateNodeId"


class ImmutableField(OperationError):
    code = "ImmutableField"


class ConnectionEndpointMissing(OperationError):
    code = "ConnectionEndpointMissing"

    def __init__(self, side: str, ref: str) -> None:
        super().__init__(
            f"{side.capitalize()} node not found: {ref}",
            detail={"side": side, "ref": ref},
        )
        self.side = side
        self.ref = ref


class ConnectionNotFound(OperationError):
    code = "ConnectionNotFound"


class InvalidSettingsShape(OperationError):
    code = "InvalidSettingsShape"


class EmptyName(OperationError):
    code = "EmptyName"
