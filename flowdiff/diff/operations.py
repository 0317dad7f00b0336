# flowdiff/diff/operations.py
"""
Closed vocabulary of workflow edit operations.

Each class maps one wire ``type`` to an effect on a WorkflowGraph. ``apply``
raises an OperationError subclass on failure and otherwise returns an optional
detail dict that is echoed in the ``applied`` ledger entry.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Type

from flowdiff.diff.schema import OPERATION_ALIASES
from flowdiff.errors import (
    ConnectionEndpointMissing,
    ConnectionNotFound,
    EmptyName,
    InvalidSettingsShape,
    OperationError,
)
from flowdiff.model.document import DEFAULT_PORT, tag_label
from flowdiff.model.graph import WorkflowGraph

Detail = Optional[Dict[str, Any]]


class Operation:
    kind: ClassVar[str] = ""

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Operation":
        raise NotImplementedError

    def apply(self, graph: WorkflowGraph) -> Detail:
        raise NotImplementedError

    def target_label(self) -> str:
        """Short human label of what the operation addresses, for messages."""
        return ""


def _ignored(err: OperationError) -> Dict[str, Any]:
    return {"ignored": err.code, "reason": err.message}


def _opt_int(value: Any) -> Optional[int]:
    return None if value is None else int(value)


# ---------- Node operations ----------

@dataclass
class AddNode(Operation):
    kind: ClassVar[str] = "addNode"
    node: Dict[str, Any] = field(default_factory=dict)
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, raw):
        return cls(node=raw["node"], description=raw.get("description"))

    def apply(self, graph):
        node = graph.insert_node(self.node)
        return {"nodeId": node.id, "nodeName": node.name}

    def target_label(self):
        return str(self.node.get("name", ""))


@dataclass
class _NodeRefOperation(Operation):
    node_id: Optional[str] = None
    node_name: Optional[str] = None

    @property
    def ref(self) -> Optional[str]:
        return self.node_id if self.node_id is not None else self.node_name

    @property
    def by(self) -> str:
        """nodeId only matches ids and nodeName only matches names."""
        return "id" if self.node_id is not None else "name"

    def target_label(self):
        return str(self.ref)


@dataclass
class RemoveNode(_NodeRefOperation):
    kind: ClassVar[str] = "removeNode"
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, raw):
        return cls(
            node_id=raw.get("nodeId"),
            node_name=raw.get("nodeName"),
            description=raw.get("description"),
        )

    def apply(self, graph):
        node, removed = graph.remove_node(self.ref, self.by)
        return {"nodeId": node.id, "removedConnections": removed} if removed else None


@dataclass
class UpdateNode(_NodeRefOperation):
    kind: ClassVar[str] = "updateNode"
    updates: Dict[str, Any] = field(default_factory=dict)
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, raw):
        return cls(
            node_id=raw.get("nodeId"),
            node_name=raw.get("nodeName"),
            updates=raw["updates"],
            description=raw.get("description"),
        )

    def apply(self, graph):
        old_name = graph.resolve_node(self.ref, self.by).name
        node = graph.update_node(self.ref, self.updates, self.by)
        if node.name != old_name:
            return {"renamed": {"from": old_name, "to": node.name}}
        return None


@dataclass
class MoveNode(_NodeRefOperation):
    kind: ClassVar[str] = "moveNode"
    position: List[float] = field(default_factory=lambda: [0, 0])
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, raw):
        return cls(
            node_id=raw.get("nodeId"),
            node_name=raw.get("nodeName"),
            position=list(raw["position"]),
            description=raw.get("description"),
        )

    def apply(self, graph):
        graph.move_node(self.ref, self.position, self.by)
        return None


@dataclass
class EnableNode(_NodeRefOperation):
    kind: ClassVar[str] = "enableNode"
    description: Optional[str] = None
    disabled: ClassVar[bool] = False

    @classmethod
    def from_dict(cls, raw):
        return cls(
            node_id=raw.get("nodeId"),
            node_name=raw.get("nodeName"),
            description=raw.get("description"),
        )

    def apply(self, graph):
        graph.set_disabled(self.ref, self.disabled, self.by)
        return None


@dataclass
class DisableNode(EnableNode):
    kind: ClassVar[str] = "disableNode"
    disabled: ClassVar[bool] = True


# ---------- Connection operations ----------

@dataclass
class AddConnection(Operation):
    kind: ClassVar[str] = "addConnection"
    source: str = ""
    target: str = ""
    source_output: str = DEFAULT_PORT
    target_input: str = DEFAULT_PORT
    source_index: int = 0
    target_index: int = 0
    ignore_errors: bool = False
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, raw):
        return cls(
            source=raw["source"],
            target=raw["target"],
            source_output=raw.get("sourceOutput", DEFAULT_PORT),
            target_input=raw.get("targetInput", DEFAULT_PORT),
            source_index=int(raw.get("sourceIndex", 0)),
            target_index=int(raw.get("targetIndex", 0)),
            ignore_errors=raw.get("ignoreErrors", False),
            description=raw.get("description"),
        )

    def apply(self, graph):
        try:
            added = graph.add_edge(
                self.source,
                self.target,
                source_output=self.source_output,
                source_index=self.source_index,
                target_input=self.target_input,
                target_index=self.target_index,
            )
        except ConnectionEndpointMissing as e:
            if self.ignore_errors:
                return _ignored(e)
            raise
        return None if added else {"alreadyPresent": True}

    def target_label(self):
        return f"{self.source} -> {self.target}"


@dataclass
class RemoveConnection(Operation):
    """Omitted port/index qualifiers match any value."""

    kind: ClassVar[str] = "removeConnection"
    source: str = ""
    target: str = ""
    source_output: Optional[str] = None
    target_input: Optional[str] = None
    source_index: Optional[int] = None
    target_index: Optional[int] = None
    ignore_errors: bool = False
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, raw):
        return cls(
            source=raw["source"],
            target=raw["target"],
            source_output=raw.get("sourceOutput"),
            target_input=raw.get("targetInput"),
            source_index=_opt_int(raw.get("sourceIndex")),
            target_index=_opt_int(raw.get("targetIndex")),
            ignore_errors=raw.get("ignoreErrors", False),
            description=raw.get("description"),
        )

    def apply(self, graph):
        try:
            removed = graph.remove_edge(
                self.source,
                self.target,
                source_output=self.source_output,
                source_index=self.source_index,
                target_input=self.target_input,
                target_index=self.target_index,
            )
        except ConnectionNotFound as e:
            if self.ignore_errors:
                return _ignored(e)
            raise
        return {"removed": removed}

    def target_label(self):
        return f"{self.source} -> {self.target}"


@dataclass
class ReplaceConnections(Operation):
    kind: ClassVar[str] = "replaceConnections"
    connections: Dict[str, Any] = field(default_factory=dict)
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, raw):
        return cls(connections=raw["connections"], description=raw.get("description"))

    def apply(self, graph):
        graph.replace_connections(self.connections)
        return None


@dataclass
class CleanupConnections(Operation):
    kind: ClassVar[str] = "cleanStaleConnections"
    dry_run: bool = False
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, raw):
        return cls(dry_run=raw.get("dryRun", False), description=raw.get("description"))

    def apply(self, graph):
        stale = graph.sweep_dangling_edges(dry_run=self.dry_run)
        key = "wouldRemove" if self.dry_run else "removed"
        return {key: stale}


# ---------- Workflow metadata ----------

@dataclass
class UpdateSettings(Operation):
    kind: ClassVar[str] = "updateSettings"
    settings: Any = None
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, raw):
        return cls(settings=raw["settings"], description=raw.get("description"))

    def apply(self, graph):
        if not isinstance(self.settings, dict):
            raise InvalidSettingsShape(
                f"settings must be an object, got {type(self.settings).__name__}"
            )
        graph.document.settings = copy.deepcopy(self.settings)
        return None


@dataclass
class RenameWorkflow(Operation):
    kind: ClassVar[str] = "updateName"
    name: str = ""
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, raw):
        return cls(name=raw["name"], description=raw.get("description"))

    def apply(self, graph):
        if not self.name.strip():
            raise EmptyName("Workflow name cannot be empty")
        graph.document.name = self.name
        return None

    def target_label(self):
        return self.name


@dataclass
class AddTag(Operation):
    kind: ClassVar[str] = "addTag"
    tag: str = ""
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, raw):
        return cls(tag=raw["tag"], description=raw.get("description"))

    def apply(self, graph):
        tags = graph.document.tags if graph.document.tags is not None else []
        if any(tag_label(t) == self.tag for t in tags):
            return {"alreadyPresent": True}
        tags.append(self.tag)
        graph.document.tags = tags
        return None

    def target_label(self):
        return self.tag


@dataclass
class RemoveTag(Operation):
    kind: ClassVar[str] = "removeTag"
    tag: str = ""
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, raw):
        return cls(tag=raw["tag"], description=raw.get("description"))

    def apply(self, graph):
        tags = graph.document.tags or []
        kept = [t for t in tags if tag_label(t) != self.tag]
        if len(kept) == len(tags):
            return {"notPresent": True}
        graph.document.tags = kept
        return None

    def target_label(self):
        return self.tag


OPERATIONS: Dict[str, Type[Operation]] = {
    cls.kind: cls
    for cls in (
        AddNode,
        RemoveNode,
        UpdateNode,
        MoveNode,
        EnableNode,
        DisableNode,
        AddConnection,
        RemoveConnection,
        ReplaceConnections,
        CleanupConnections,
        UpdateSettings,
        RenameWorkflow,
        AddTag,
        RemoveTag,
    )
}


def canonical_type(op_type: str) -> str:
    return OPERATION_ALIASES.get(op_type, op_type)


def operation_from_dict(raw: Dict[str, Any]) -> Operation:
    """Build the typed operation; raw must already have passed request validation."""
    return OPERATIONS[canonical_type(raw["type"])].from_dict(raw)
