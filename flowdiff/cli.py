#!/usr/bin/env python3
# flowdiff/cli.py

import json
from pathlib import Path
from typing import Optional

import typer

from flowdiff.diff.engine import apply_diff
from flowdiff.diff.schema import OPERATION_ALIASES, OPERATION_SCHEMAS
from flowdiff.errors import RequestValidationError
from flowdiff.model.document import WorkflowDocument
from flowdiff.utils.graph import graph_summary
from flowdiff.utils.io import load_operations, read_json, write_json
from flowdiff.utils.logger import set_level

app = typer.Typer(help="flowdiff CLI - apply batched edit operations to n8n-style workflows")


def _fail_request(err: RequestValidationError) -> None:
    print(f"[error] {err.message}:")
    for problem in err.errors:
        print(f"- {problem}")
    raise typer.Exit(code=2)


def _print_summary(label: str, summary: dict) -> None:
    print(
        f"[debug] {label}: nodes={summary['n_nodes']} edges={summary['n_edges']} "
        f"dangling={summary['dangling_edges']} cycle={summary['has_cycle']} "
        f"isolated={summary['isolated_nodes']}"
    )


@app.command()
def apply(
    input: Path = typer.Option(..., "--input", "-i", exists=True, readable=True, help="Path to workflow JSON"),
    ops: Path = typer.Option(..., "--ops", "-o", exists=True, readable=True, help="Operations file (JSON or YAML): a list of operations or a full request object"),
    validate_only: bool = typer.Option(False, "--validate-only", help="Preview only; never write --out"),
    continue_on_error: bool = typer.Option(False, "--continue-on-error", help="Keep going after a failed operation"),
    out: Optional[Path] = typer.Option(None, "--out", help="Write the resulting workflow JSON to this path"),
    report: Optional[Path] = typer.Option(None, "--report", help="Write the full diff result as JSON to this path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show per-operation detail and graph summaries"),
):
    """
    Apply a batch of operations to a workflow file.

    Exit code is 0 when every operation applied, 1 when any failed and 2 when
    the request or the workflow is malformed.
    """
    wf = read_json(input)
    request = load_operations(ops)
    if not isinstance(request, dict):
        _fail_request(RequestValidationError(["request: expected an object or a list of operations"]))
    if validate_only:
        request["validateOnly"] = True
    if continue_on_error:
        request["continueOnError"] = True
    if verbose:
        set_level("DEBUG")

    try:
        result = apply_diff(wf, request)
    except RequestValidationError as e:
        _fail_request(e)

    print(result.message)
    for err in result.errors:
        print(f"- {err}")

    if verbose:
        for a in result.applied:
            print(f"[debug] applied #{a.index} {a.operation.get('type')}: {a.details or {}}")
        _print_summary("before", graph_summary(WorkflowDocument.from_dict(wf)))
        if result.workflow is not None:
            _print_summary("after", graph_summary(WorkflowDocument.from_dict(result.workflow)))

    if report is not None:
        write_json(report, result.to_dict())
        print(f"[ok] wrote report to {report}")

    # Same rule a persisting caller applies: full success, or partial success
    # under continue-on-error.
    persist = result.success or (request.get("continueOnError") and result.operations_applied > 0)
    if out is not None and result.workflow is not None and persist and not request.get("validateOnly"):
        write_json(out, result.workflow)
        print(f"[ok] wrote workflow to {out}")

    if not result.success:
        raise typer.Exit(code=1)


@app.command()
def check(
    input: Path = typer.Option(..., "--input", "-i", exists=True, readable=True, help="Path to workflow JSON"),
    fix: bool = typer.Option(False, "--fix", help="Remove dangling connections"),
    out: Optional[Path] = typer.Option(None, "--out", help="Where to write the fixed workflow (defaults to --input)"),
):
    """
    Report dangling connections and a structural summary; optionally remove
    the dangling connections.
    """
    wf = read_json(input)
    request = {"operations": [{"type": "cleanStaleConnections", "dryRun": not fix}]}
    try:
        result = apply_diff(wf, request)
    except RequestValidationError as e:
        _fail_request(e)

    details = result.applied[0].details or {}
    stale = details.get("removed", details.get("wouldRemove", []))
    summary = graph_summary(WorkflowDocument.from_dict(wf))

    print(json.dumps(summary, ensure_ascii=False, indent=2))
    if stale:
        verb = "Removed" if fix else "Found"
        print(f"{verb} {len(stale)} dangling connection(s):")
        for e in stale:
            print(
                f"- {e['source']}.{e['sourceOutput']}[{e['sourceIndex']}] -> "
                f"{e['target']}.{e['targetInput']}[{e['targetIndex']}]"
            )
    else:
        print("No dangling connections.")

    if fix and stale:
        target = out or input
        write_json(target, result.workflow)
        print(f"[ok] wrote workflow to {target}")


@app.command("ops")
def list_ops():
    """List supported operation types and their required fields."""
    aliases = {}
    for alias, canonical in OPERATION_ALIASES.items():
        aliases.setdefault(canonical, []).append(alias)

    for op_type, schema in OPERATION_SCHEMAS.items():
        required = list(schema.get("required", []))
        if "anyOf" in schema:
            required.append(" | ".join(k for s in schema["anyOf"] for k in s["required"]))
        line = f"{op_type:<22} {', '.join(required) or '-'}"
        if op_type in aliases:
            line += f"  (alias: {', '.join(aliases[op_type])})"
        print(line)


if __name__ == "__main__":
    app()
