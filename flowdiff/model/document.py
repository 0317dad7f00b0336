# flowdiff/model/document.py
"""
In-memory form of an n8n-style workflow document.

Connections follow the n8n export shape:

    connections[<source name>][<output port>] = [
        [ {"node": "B", "type": "main", "index": 0}, ... ],   # output slot 0
        [ {"node": "C", "type": "main", "index": 0} ],        # output slot 1
    ]

Optional keys that are absent from the input stay absent when the document is
serialised again, and unknown keys are carried through untouched. An output
slot that was null in the input reads as an empty slot and is written back as
null while it stays empty.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional

DEFAULT_PORT = "main"

ConnectionMap = Dict[str, Dict[str, List[List["Edge"]]]]

_NODE_KEYS = ("id", "name", "type", "typeVersion", "position", "parameters", "disabled")
_DOC_KEYS = ("id", "name", "active", "nodes", "connections", "settings", "tags")
_EDGE_OPTIONAL = ("type", "index")


@dataclass(frozen=True)
class Edge:
    """Target half of a connection: which node, which input port, which input slot."""
    node: str
    type: str = DEFAULT_PORT
    index: int = 0
    # keys the input left out; they are defaulted above but not written back
    omitted: FrozenSet[str] = field(default=frozenset(), compare=False)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Edge":
        return cls(
            node=raw["node"],
            type=raw.get("type") or DEFAULT_PORT,
            index=int(raw.get("index") or 0),
            omitted=frozenset(k for k in _EDGE_OPTIONAL if k not in raw),
        )

    def to_dict(self) -> Dict[str, Any]:
        out = {"node": self.node, "type": self.type, "index": self.index}
        for key in self.omitted:
            out.pop(key, None)
        return out


class NullSlot(list):
    """Output slot that was null in the input."""


@dataclass
class Node:
    id: Any
    name: str
    type: str
    type_version: Any = None
    position: Optional[List[float]] = None
    parameters: Optional[Dict[str, Any]] = None
    disabled: Optional[bool] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Node":
        raw = copy.deepcopy(raw)
        return cls(
            id=raw.get("id"),
            name=raw["name"],
            type=raw["type"],
            type_version=raw.get("typeVersion"),
            position=raw.get("position"),
            parameters=raw.get("parameters"),
            disabled=raw.get("disabled"),
            extra={k: v for k, v in raw.items() if k not in _NODE_KEYS},
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.id is not None:
            out["id"] = self.id
        out["name"] = self.name
        out["type"] = self.type
        if self.type_version is not None:
            out["typeVersion"] = self.type_version
        if self.position is not None:
            out["position"] = list(self.position)
        if self.parameters is not None:
            out["parameters"] = copy.deepcopy(self.parameters)
        if self.disabled is not None:
            out["disabled"] = self.disabled
        out.update(copy.deepcopy(self.extra))
        return out


def parse_connections(raw: Optional[Dict[str, Any]]) -> ConnectionMap:
    conns: ConnectionMap = {}
    for src_name, ports in (raw or {}).items():
        conns[src_name] = {}
        for port, slots in (ports or {}).items():
            conns[src_name][port] = [
                NullSlot() if slot is None else [Edge.from_dict(e) for e in slot]
                for slot in (slots or [])
            ]
    return conns


def _dump_slot(slot: List[Edge]) -> Optional[List[Dict[str, Any]]]:
    if isinstance(slot, NullSlot) and not slot:
        return None
    return [e.to_dict() for e in slot]


def dump_connections(conns: ConnectionMap) -> Dict[str, Any]:
    return {
        src_name: {
            port: [_dump_slot(slot) for slot in slots]
            for port, slots in ports.items()
        }
        for src_name, ports in conns.items()
    }


def tag_label(tag: Any) -> str:
    """n8n stores tags either as plain strings or as {id, name} objects."""
    if isinstance(tag, dict):
        return str(tag.get("name", ""))
    return str(tag)


@dataclass
class WorkflowDocument:
    id: Any = None
    name: Optional[str] = None
    active: Optional[bool] = None
    nodes: List[Node] = field(default_factory=list)
    connections: ConnectionMap = field(default_factory=dict)
    settings: Optional[Dict[str, Any]] = None
    tags: Optional[List[Any]] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "WorkflowDocument":
        """Build a private structural copy; nothing in the result aliases raw."""
        raw = copy.deepcopy(raw)
        return cls(
            id=raw.get("id"),
            name=raw.get("name"),
            active=raw.get("active"),
            nodes=[Node.from_dict(n) for n in raw.get("nodes") or []],
            connections=parse_connections(raw.get("connections")),
            settings=raw.get("settings"),
            tags=raw.get("tags"),
            extra={k: v for k, v in raw.items() if k not in _DOC_KEYS},
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.id is not None:
            out["id"] = self.id
        if self.name is not None:
            out["name"] = self.name
        if self.active is not None:
            out["active"] = self.active
        out["nodes"] = [n.to_dict() for n in self.nodes]
        out["connections"] = dump_connections(self.connections)
        if self.settings is not None:
            out["settings"] = copy.deepcopy(self.settings)
        if self.tags is not None:
            out["tags"] = copy.deepcopy(self.tags)
        out.update(copy.deepcopy(self.extra))
        return out
