# flowdiff/diff/request.py

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from jsonschema import Draft7Validator

from flowdiff.diff.operations import OPERATIONS, Operation, canonical_type, operation_from_dict
from flowdiff.diff.schema import OPERATION_SCHEMAS, REQUEST_SCHEMA, WORKFLOW_SCHEMA
from flowdiff.errors import RequestValidationError


@dataclass
class DiffRequest:
    operations: List[Operation] = field(default_factory=list)
    # Caller payloads, echoed back verbatim in the applied/failed ledger
    raw_operations: List[Dict[str, Any]] = field(default_factory=list)
    document_id: Optional[str] = None
    validate_only: bool = False
    continue_on_error: bool = False


def _format_path(prefix: str, path: Iterable[Any]) -> str:
    out = prefix
    for p in path:
        out += f"[{p}]" if isinstance(p, int) else f".{p}"
    return out


def _schema_errors(validator: Draft7Validator, instance: Any, prefix: str) -> List[str]:
    problems: List[str] = []
    errors = sorted(validator.iter_errors(instance), key=lambda e: [str(p) for p in e.absolute_path])
    for err in errors:
        where = _format_path(prefix, err.absolute_path)
        # anyOf over "required" sets is how alternative reference fields are expressed
        if err.validator == "anyOf" and all(
            isinstance(s, dict) and "required" in s for s in err.validator_value
        ):
            keys = ", ".join(k for s in err.validator_value for k in s["required"])
            problems.append(f"{where}: one of {keys} is required")
        else:
            problems.append(f"{where}: {err.message}")
    return problems


_REQUEST_VALIDATOR = Draft7Validator(REQUEST_SCHEMA)
_WORKFLOW_VALIDATOR = Draft7Validator(WORKFLOW_SCHEMA)
_OPERATION_VALIDATORS = {k: Draft7Validator(v) for k, v in OPERATION_SCHEMAS.items()}


def parse_request(payload: Dict[str, Any]) -> DiffRequest:
    """
    Validate the whole batch and build typed operations.

    Raises RequestValidationError listing every offending field; in that case
    no operation is attempted.
    """
    if not isinstance(payload, dict):
        raise RequestValidationError([f"request: expected an object, got {type(payload).__name__}"])

    problems = _schema_errors(_REQUEST_VALIDATOR, payload, "request")
    if problems:
        raise RequestValidationError(problems)

    raw_ops = payload["operations"]
    for i, raw in enumerate(raw_ops):
        prefix = f"operations[{i}]"
        op_type = canonical_type(raw["type"])
        if op_type not in OPERATIONS:
            problems.append(f"{prefix}.type: unknown operation type '{raw['type']}'")
            continue
        problems.extend(_schema_errors(_OPERATION_VALIDATORS[op_type], raw, prefix))
    if problems:
        raise RequestValidationError(problems)

    raw_ops = copy.deepcopy(raw_ops)
    return DiffRequest(
        operations=[operation_from_dict(raw) for raw in raw_ops],
        raw_operations=raw_ops,
        document_id=payload.get("id"),
        validate_only=bool(payload.get("validateOnly", False)),
        continue_on_error=bool(payload.get("continueOnError", False)),
    )


def check_workflow(workflow: Any) -> None:
    """
    Reject a snapshot that is not a usable workflow document: wrong shape,
    or duplicate node names / ids.
    """
    if not isinstance(workflow, dict):
        raise RequestValidationError([f"workflow: expected an object, got {type(workflow).__name__}"])

    problems = _schema_errors(_WORKFLOW_VALIDATOR, workflow, "workflow")
    if problems:
        raise RequestValidationError(problems)

    seen_names: Dict[str, int] = {}
    seen_ids: Dict[str, int] = {}
    for i, node in enumerate(workflow["nodes"]):
        name = node["name"]
        if name in seen_names:
            problems.append(f"workflow.nodes[{i}].name: duplicate node name '{name}' (first at nodes[{seen_names[name]}])")
        else:
            seen_names[name] = i
        node_id = node.get("id")
        if node_id is None:
            continue
        if str(node_id) in seen_ids:
            problems.append(f"workflow.nodes[{i}].id: duplicate node id '{node_id}' (first at nodes[{seen_ids[str(node_id)]}])")
        else:
            seen_ids[str(node_id)] = i
    if problems:
        raise RequestValidationError(problems)
