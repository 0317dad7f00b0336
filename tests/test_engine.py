# tests/test_engine.py

import copy

import pytest

from flowdiff.diff.engine import WorkflowDiffEngine, apply_diff
from flowdiff.diff.request import parse_request
from flowdiff.errors import RequestValidationError

FAIL_FAST_OPS = [
    {"type": "moveNode", "nodeName": "Start", "position": [50, 50]},
    {"type": "updateNode", "nodeName": "Missing", "updates": {"parameters": {"x": 1}}},
]


def _node(result, name):
    return next(n for n in result.workflow["nodes"] if n["name"] == name)


def test_empty_batch_is_identity(workflow):
    result = apply_diff(workflow, {"id": "wf-1", "operations": []})
    assert result.success is True
    assert result.operations_applied == 0
    assert result.workflow == workflow
    assert result.message == "Applied 0 of 0 operations"


def test_empty_batch_is_identity_for_sparse_input():
    wf = {
        "nodes": [
            {"name": "A", "type": "t"},
            {"id": "b", "name": "B", "type": "t", "position": [0, 0]},
        ],
        "connections": {"A": {"main": [[{"node": "B"}], None]}},
    }
    result = apply_diff(wf, {"operations": []})
    assert result.success is True
    assert result.workflow == wf


def test_node_name_never_matches_an_id(workflow):
    workflow["nodes"][0]["id"] = "HTTP"
    result = apply_diff(workflow, {"operations": [{"type": "removeNode", "nodeName": "HTTP"}]})
    assert result.success is True
    assert [(n["id"], n["name"]) for n in result.workflow["nodes"]] == [("HTTP", "Start")]

    result = apply_diff(workflow, {"operations": [{"type": "disableNode", "nodeId": "HTTP"}]})
    assert _node(result, "Start")["disabled"] is True
    assert "disabled" not in _node(result, "HTTP")

    result = apply_diff(workflow, {"operations": [{"type": "removeNode", "nodeId": "Start"}]})
    assert [(f.index, f.reason) for f in result.failed] == [(0, "NodeNotFound")]


@pytest.mark.parametrize("continue_on_error", [False, True])
def test_input_never_mutated(workflow, continue_on_error):
    pristine = copy.deepcopy(workflow)
    ops = FAIL_FAST_OPS + [
        {"type": "removeNode", "nodeName": "HTTP"},
        {"type": "addNode", "node": {"name": "Set", "type": "n8n-nodes-base.set"}},
        {"type": "updateSettings", "settings": {"timezone": "UTC"}},
        {"type": "addTag", "tag": "new"},
    ]
    request = {"operations": ops, "continueOnError": continue_on_error}
    request_copy = copy.deepcopy(request)
    apply_diff(workflow, request)
    assert workflow == pristine
    assert request == request_copy


def test_fail_fast_halts(workflow):
    result = apply_diff(workflow, {"operations": FAIL_FAST_OPS + [{"type": "addTag", "tag": "late"}]})
    assert [a.index for a in result.applied] == [0]
    assert [(f.index, f.reason) for f in result.failed] == [(1, "NodeNotFound")]
    assert result.operations_applied == 1
    assert result.success is False
    assert _node(result, "Start")["position"] == [50, 50]
    # operation 2 was neither applied nor failed
    assert result.workflow["tags"] == ["users"]
    assert result.message == "Applied 1 of 3 operations (1 failed); halted at operation 1"
    assert result.errors == ["Operation 1 (updateNode) failed: Node not found: Missing"]


def test_continue_on_error_keeps_going(workflow):
    ops = FAIL_FAST_OPS + [{"type": "addTag", "tag": "late"}]
    result = apply_diff(workflow, {"operations": ops, "continueOnError": True})
    assert [a.index for a in result.applied] == [0, 2]
    assert [(f.index, f.reason) for f in result.failed] == [(1, "NodeNotFound")]
    assert result.success is False
    assert result.workflow["tags"] == ["users", "late"]
    assert result.message == "Applied 2 of 3 operations (1 failed)"


def test_failed_entry_echoes_operation(workflow):
    result = apply_diff(workflow, {"operations": FAIL_FAST_OPS})
    failed = result.to_dict()["failed"][0]
    assert failed["index"] == 1
    assert failed["operation"] == FAIL_FAST_OPS[1]
    assert failed["reason"] == "NodeNotFound"
    assert failed["error"] == "Node not found: Missing"


def test_cascade_on_remove(workflow):
    result = apply_diff(workflow, {"operations": [{"type": "removeNode", "nodeName": "HTTP"}]})
    assert [n["name"] for n in result.workflow["nodes"]] == ["Start"]
    assert result.workflow["connections"]["Start"]["main"][0] == []
    assert result.operations_applied == 1
    assert len(result.applied) == 1


def test_forward_reference_resolution(workflow):
    ops = [
        {"type": "addNode", "node": {"name": "Set1", "type": "n8n-nodes-base.set"}},
        {"type": "addConnection", "source": "Start", "target": "Set1"},
    ]
    result = apply_diff(workflow, {"operations": ops})
    assert result.success is True
    assert result.workflow["connections"]["Start"]["main"][0] == [
        {"node": "HTTP", "type": "main", "index": 0},
        {"node": "Set1", "type": "main", "index": 0},
    ]


def test_generated_id_visible_to_later_operations(workflow):
    ops = [{"type": "addNode", "node": {"name": "Set1", "type": "n8n-nodes-base.set"}}]
    first = apply_diff(workflow, {"operations": ops})
    new_id = first.applied[0].details["nodeId"]
    assert _node(first, "Set1")["id"] == new_id

    # a later batch can address the node by its generated id
    second = apply_diff(first.workflow, {"operations": [{"type": "moveNode", "nodeId": new_id, "position": [1, 2]}]})
    assert _node(second, "Set1")["position"] == [1, 2]


def test_duplicate_connection_is_idempotent(workflow):
    op = {"type": "addConnection", "source": "HTTP", "target": "Start"}
    result = apply_diff(workflow, {"operations": [op, dict(op)]})
    assert [a.index for a in result.applied] == [0, 1]
    assert result.applied[1].details == {"alreadyPresent": True}
    assert result.workflow["connections"]["HTTP"]["main"] == [[{"node": "Start", "type": "main", "index": 0}]]


def test_uniqueness_enforced(workflow):
    result = apply_diff(workflow, {"operations": [{"type": "addNode", "node": {"name": "Start", "type": "x.y"}}]})
    assert [(f.index, f.reason) for f in result.failed] == [(0, "DuplicateNodeName")]
    # nothing applied and not validate-only: no workflow handed back
    assert result.workflow is None
    assert "workflow" not in result.to_dict()


def test_validate_only_still_returns_preview(workflow):
    result = apply_diff(
        workflow,
        {"operations": [{"type": "addNode", "node": {"name": "Start", "type": "x.y"}}], "validateOnly": True},
    )
    assert result.success is False
    assert result.workflow == workflow
    assert result.message.startswith("Validated 0 of 1 operations")


def test_ignore_errors_turns_failure_into_noop(workflow):
    ops = [
        {"type": "addConnection", "source": "Start", "target": "Ghost", "ignoreErrors": True},
        {"type": "removeConnection", "source": "HTTP", "target": "Start", "ignoreErrors": True},
    ]
    result = apply_diff(workflow, {"operations": ops})
    assert result.success is True
    assert result.applied[0].details["ignored"] == "ConnectionEndpointMissing"
    assert result.applied[1].details["ignored"] == "ConnectionNotFound"
    assert result.workflow["connections"] == workflow["connections"]


@pytest.mark.parametrize(
    "op, reason",
    [
        ({"type": "addConnection", "source": "Start", "target": "Ghost"}, "ConnectionEndpointMissing"),
        ({"type": "removeConnection", "source": "HTTP", "target": "Start"}, "ConnectionNotFound"),
        ({"type": "updateSettings", "settings": [1, 2]}, "InvalidSettingsShape"),
        ({"type": "updateName", "name": "   "}, "EmptyName"),
        ({"type": "removeNode", "nodeId": "nope"}, "NodeNotFound"),
        ({"type": "enableNode", "nodeName": "nope"}, "NodeNotFound"),
        ({"type": "updateNode", "nodeName": "HTTP", "updates": {"id": "x"}}, "ImmutableField"),
        ({"type": "addNode", "node": {"id": "n1", "name": "New", "type": "x.y"}}, "DuplicateNodeId"),
    ],
)
def test_operation_failure_reasons(workflow, op, reason):
    result = apply_diff(workflow, {"operations": [op]})
    assert [f.reason for f in result.failed] == [reason]


def test_metadata_operations(workflow):
    ops = [
        {"type": "renameWorkflow", "name": "Renamed"},
        {"type": "updateSettings", "settings": {"timezone": "UTC"}},
        {"type": "removeTag", "tag": "users"},
        {"type": "addTag", "tag": "ops"},
        {"type": "disableNode", "nodeId": "n2"},
        {"type": "enableNode", "nodeId": "n2"},
    ]
    result = apply_diff(workflow, {"operations": ops})
    wf = result.workflow
    assert wf["name"] == "Renamed"
    # settings are replaced, not merged
    assert wf["settings"] == {"timezone": "UTC"}
    assert wf["tags"] == ["ops"]
    assert _node(result, "HTTP")["disabled"] is False


def test_tag_objects_compared_by_name(workflow):
    workflow["tags"] = [{"id": "1", "name": "users"}]
    result = apply_diff(workflow, {"operations": [{"type": "addTag", "tag": "users"}, {"type": "removeTag", "tag": "users"}]})
    assert result.applied[0].details == {"alreadyPresent": True}
    assert result.workflow["tags"] == []


def test_replace_connections(workflow):
    new_conns = {"HTTP": {"main": [[{"node": "Start", "type": "main", "index": 0}]]}}
    result = apply_diff(workflow, {"operations": [{"type": "replaceConnections", "connections": new_conns}]})
    assert result.workflow["connections"] == new_conns


def test_cleanup_dry_run_reports_without_removing(workflow):
    workflow["connections"]["Start"]["main"][0].append({"node": "Ghost", "type": "main", "index": 0})
    result = apply_diff(workflow, {"operations": [{"type": "cleanupConnections", "dryRun": True}]})
    assert len(result.applied[0].details["wouldRemove"]) == 1
    assert result.workflow["connections"] == workflow["connections"]


def test_malformed_batch_rejected_before_anything_runs(workflow):
    ops = [
        {"type": "moveNode", "nodeName": "Start", "position": [1, 1]},
        {"type": "addConnection", "source": "Start"},
        {"type": "frobnicate"},
    ]
    with pytest.raises(RequestValidationError) as exc:
        apply_diff(workflow, {"operations": ops})
    assert exc.value.errors == [
        "operations[1]: 'target' is a required property",
        "operations[2].type: unknown operation type 'frobnicate'",
    ]


def test_malformed_workflow_rejected(workflow):
    workflow["nodes"].append(dict(workflow["nodes"][0], id="n9"))
    with pytest.raises(RequestValidationError) as exc:
        apply_diff(workflow, {"operations": []})
    assert "duplicate node name 'Start'" in exc.value.errors[0]


def test_engine_accepts_parsed_request(workflow):
    request = parse_request({"operations": [{"type": "addTag", "tag": "x"}]})
    result = WorkflowDiffEngine().apply(workflow, request)
    assert result.workflow["tags"] == ["users", "x"]
