# flowdiff/diff/engine.py
"""
Sequential executor for workflow edit batches.

apply_diff(workflow, request) is a pure function of its inputs: the snapshot
is cloned into a private working copy, operations run strictly in input order,
and the caller's objects are never mutated. There is no version check against
concurrent writers; callers that race on the same stored workflow must
serialise themselves.
"""
from __future__ import annotations

from typing import Any, Dict, Union

from flowdiff.diff.request import DiffRequest, check_workflow, parse_request
from flowdiff.diff.result import DiffResult, Ledger
from flowdiff.errors import OperationError
from flowdiff.model.document import WorkflowDocument
from flowdiff.model.graph import WorkflowGraph
from flowdiff.utils.logger import get_logger

logger = get_logger("engine")


class WorkflowDiffEngine:
    """Applies a DiffRequest to a workflow snapshot."""

    def apply(
        self,
        workflow: Dict[str, Any],
        request: Union[DiffRequest, Dict[str, Any]],
    ) -> DiffResult:
        """
        Run every operation of the batch against a clone of workflow.

        Request-level problems raise RequestValidationError before anything
        runs. Operation-level failures are recorded in the result; with
        continue_on_error unset the batch halts at the first one.
        """
        if not isinstance(request, DiffRequest):
            request = parse_request(request)
        check_workflow(workflow)

        document = WorkflowDocument.from_dict(workflow)
        if (
            request.document_id is not None
            and document.id is not None
            and str(document.id) != request.document_id
        ):
            logger.warning(
                "Request id %s does not match workflow id %s; applying anyway",
                request.document_id, document.id,
            )

        graph = WorkflowGraph(document)
        total = len(request.operations)
        ledger = Ledger(total)

        for index, (op, raw) in enumerate(zip(request.operations, request.raw_operations)):
            try:
                details = op.apply(graph)
            except OperationError as e:
                logger.warning("Operation %d (%s %s) failed: %s", index, op.kind, op.target_label(), e.message)
                ledger.record_failed(index, raw, e)
                if not request.continue_on_error:
                    ledger.halt(index)
                    break
                continue
            logger.debug("Operation %d (%s %s) applied", index, op.kind, op.target_label())
            ledger.record_applied(index, raw, details)

        result = ledger.build(graph.document, validate_only=request.validate_only)
        logger.info(
            "%s [workflow=%s, validateOnly=%s, continueOnError=%s]",
            result.message, document.id, request.validate_only, request.continue_on_error,
        )
        return result


def apply_diff(workflow: Dict[str, Any], request: Union[DiffRequest, Dict[str, Any]]) -> DiffResult:
    """Convenience wrapper around WorkflowDiffEngine().apply."""
    return WorkflowDiffEngine().apply(workflow, request)
