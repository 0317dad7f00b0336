# flowdiff/model/graph.py
"""
Mutable working copy of a workflow plus its name/id resolution index.

Every mutator either completes or raises an OperationError before touching the
document, so a failed operation leaves the working copy as it was.
"""
from __future__ import annotations

import copy
import dataclasses
import uuid
from typing import Any, Dict, Iterator, List, Optional, Tuple

from flowdiff.errors import (
    ConnectionEndpointMissing,
    ConnectionNotFound,
    DuplicateNodeId,
    DuplicateNodeName,
    EmptyName,
    ImmutableField,
    NodeNotFound,
)
from flowdiff.model.document import (
    DEFAULT_PORT,
    Edge,
    Node,
    WorkflowDocument,
    parse_connections,
)

NODE_DEFAULTS: Dict[str, Any] = {
    "typeVersion": 1,
    "position": [0, 0],
    "parameters": {},
}


def _edge_record(src: str, port: str, slot_idx: int, edge: Edge) -> Dict[str, Any]:
    return {
        "source": src,
        "sourceOutput": port,
        "sourceIndex": slot_idx,
        "target": edge.node,
        "targetInput": edge.type,
        "targetIndex": edge.index,
    }


def _set_path(data: Dict[str, Any], path: List[str], value: Any) -> None:
    """Set data[a][b][c] = value for path [a, b, c], creating objects on the way."""
    cur = data
    for part in path[:-1]:
        nxt = cur.get(part)
        if not isinstance(nxt, dict):
            nxt = {}
            cur[part] = nxt
        cur = nxt
    cur[path[-1]] = copy.deepcopy(value)


class WorkflowGraph:
    """Working copy of one document, indexed by node id and node name."""

    def __init__(self, document: WorkflowDocument) -> None:
        self.document = document
        self._by_id: Dict[str, Node] = {}
        self._by_name: Dict[str, Node] = {}
        self._reindex()

    # ---------- Index ----------

    def _reindex(self) -> None:
        self._by_id = {str(n.id): n for n in self.document.nodes if n.id is not None}
        self._by_name = {n.name: n for n in self.document.nodes}

    def _index(self, node: Node) -> None:
        if node.id is not None:
            self._by_id[str(node.id)] = node
        self._by_name[node.name] = node

    def _unindex(self, node: Node) -> None:
        if node.id is not None:
            self._by_id.pop(str(node.id), None)
        self._by_name.pop(node.name, None)

    @property
    def nodes(self) -> List[Node]:
        return self.document.nodes

    @property
    def connections(self):
        return self.document.connections

    def find_node(self, ref: Any, by: Optional[str] = None) -> Optional[Node]:
        """
        Look a node up. by="id" or by="name" restricts the lookup to that key;
        by=None tries the id first, then the name.
        """
        if ref is None:
            return None
        if by == "id":
            return self._by_id.get(str(ref))
        if by == "name":
            return self._by_name.get(str(ref))
        return self._by_id.get(str(ref)) or self._by_name.get(str(ref))

    def resolve_node(self, ref: Any, by: Optional[str] = None) -> Node:
        node = self.find_node(ref, by)
        if node is None:
            raise NodeNotFound(f"Node not found: {ref}", detail={"ref": ref})
        return node

    def iter_edges(self) -> Iterator[Tuple[str, str, int, Edge]]:
        for src, ports in self.connections.items():
            for port, slots in ports.items():
                for slot_idx, slot in enumerate(slots):
                    for edge in slot:
                        yield src, port, slot_idx, edge

    # ---------- Nodes ----------

    def insert_node(self, fields: Dict[str, Any]) -> Node:
        """
        Append a node built from the given fields. A missing id is generated; missing
        typeVersion/position/parameters get NODE_DEFAULTS.
        """
        name = fields.get("name")
        if name in self._by_name:
            raise DuplicateNodeName(
                f"Node with name '{name}' already exists", detail={"name": name}
            )
        node_id = fields.get("id")
        if node_id is None or node_id == "":
            node_id = str(uuid.uuid4())
        elif str(node_id) in self._by_id:
            raise DuplicateNodeId(
                f"Node with id '{node_id}' already exists", detail={"id": node_id}
            )

        data = copy.deepcopy(fields)
        data["id"] = node_id
        for key, default in NODE_DEFAULTS.items():
            data.setdefault(key, copy.deepcopy(default))

        node = Node.from_dict(data)
        self.document.nodes.append(node)
        self._index(node)
        return node

    def remove_node(self, ref: Any, by: Optional[str] = None) -> Tuple[Node, List[Dict[str, Any]]]:
        """
        Remove a node and every edge that starts or ends at it.
        Emptied output slots stay in place so other slot indexes do not shift.
        Returns the removed node and the removed edges.
        """
        node = self.resolve_node(ref, by)
        removed: List[Dict[str, Any]] = []

        for port, slots in (self.connections.pop(node.name, None) or {}).items():
            for slot_idx, slot in enumerate(slots):
                removed.extend(_edge_record(node.name, port, slot_idx, e) for e in slot)

        for src, ports in self.connections.items():
            for port, slots in ports.items():
                for slot_idx, slot in enumerate(slots):
                    kept = []
                    for e in slot:
                        if e.node == node.name:
                            removed.append(_edge_record(src, port, slot_idx, e))
                        else:
                            kept.append(e)
                    slot[:] = kept

        self.document.nodes.remove(node)
        self._unindex(node)
        return node, removed

    def update_node(self, ref: Any, updates: Dict[str, Any], by: Optional[str] = None) -> Node:
        """
        Apply updates to a node.

        Plain keys replace the field ("parameters" is replaced wholesale).
        Dotted keys such as "parameters.options.timeout" set one nested value.
        A changed "name" renames the node and rewrites the connection map.
        """
        node = self.resolve_node(ref, by)
        data = node.to_dict()

        for key, value in updates.items():
            path = key.split(".")
            if path[0] == "id":
                if len(path) > 1 or value != node.id:
                    raise ImmutableField(
                        f"Node id cannot be changed ('{node.name}')", detail={"field": key}
                    )
                continue
            if len(path) == 1:
                data[key] = copy.deepcopy(value)
            else:
                _set_path(data, path, value)

        new_name = data.get("name")
        if not isinstance(new_name, str) or not new_name.strip():
            raise EmptyName(f"Node name cannot be empty ('{node.name}')")
        if new_name != node.name and new_name in self._by_name:
            raise DuplicateNodeName(
                f"Node with name '{new_name}' already exists", detail={"name": new_name}
            )

        updated = Node.from_dict(data)
        pos = self.document.nodes.index(node)
        self.document.nodes[pos] = updated
        self._unindex(node)
        self._index(updated)
        if updated.name != node.name:
            self._rename_in_connections(node.name, updated.name)
        return updated

    def _rename_in_connections(self, old: str, new: str) -> None:
        """
        Move old's outputs under new and repoint edges that target old.
        A dangling source key already named new is merged, not overwritten:
        its edges now start at the renamed node.
        """
        conns = self.connections
        if old in conns and new in conns:
            stale = conns.pop(new)
            for port, slots in stale.items():
                merged = conns[old].setdefault(port, [])
                while len(merged) < len(slots):
                    merged.append([])
                for slot_idx, slot in enumerate(slots):
                    merged[slot_idx].extend(e for e in slot if e not in merged[slot_idx])
        self.document.connections = {
            (new if src == old else src): ports for src, ports in conns.items()
        }
        for ports in self.connections.values():
            for slots in ports.values():
                for slot in slots:
                    slot[:] = [dataclasses.replace(e, node=new) if e.node == old else e for e in slot]

    def move_node(self, ref: Any, position: List[float], by: Optional[str] = None) -> Node:
        node = self.resolve_node(ref, by)
        node.position = [position[0], position[1]]
        return node

    def set_disabled(self, ref: Any, disabled: bool, by: Optional[str] = None) -> Node:
        node = self.resolve_node(ref, by)
        node.disabled = disabled
        return node

    # ---------- Connections ----------

    def _endpoint(self, ref: Any, side: str) -> Node:
        node = self.find_node(ref)
        if node is None:
            raise ConnectionEndpointMissing(side, str(ref))
        return node

    def add_edge(
        self,
        source: Any,
        target: Any,
        source_output: str = DEFAULT_PORT,
        source_index: int = 0,
        target_input: str = DEFAULT_PORT,
        target_index: int = 0,
    ) -> bool:
        """
        Append source[source_output][source_index] -> target[target_input][target_index].
        Returns False when the identical edge already exists (nothing changes).
        """
        src = self._endpoint(source, "source")
        tgt = self._endpoint(target, "target")

        slots = self.connections.setdefault(src.name, {}).setdefault(source_output, [])
        while len(slots) <= source_index:
            slots.append([])
        edge = Edge(tgt.name, target_input, target_index)
        if edge in slots[source_index]:
            return False
        slots[source_index].append(edge)
        return True

    def remove_edge(
        self,
        source: Any,
        target: Any,
        source_output: Optional[str] = None,
        source_index: Optional[int] = None,
        target_input: Optional[str] = None,
        target_index: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Remove the first edge from source to target. Qualifiers left as None
        match anything. References that no longer resolve are matched literally
        as node names so stale edges can still be addressed.
        """
        src_node = self.find_node(source)
        tgt_node = self.find_node(target)
        src = src_node.name if src_node else str(source)
        tgt = tgt_node.name if tgt_node else str(target)

        for port, slots in self.connections.get(src, {}).items():
            if source_output is not None and port != source_output:
                continue
            for slot_idx, slot in enumerate(slots):
                if source_index is not None and slot_idx != source_index:
                    continue
                for i, e in enumerate(slot):
                    if e.node != tgt:
                        continue
                    if target_input is not None and e.type != target_input:
                        continue
                    if target_index is not None and e.index != target_index:
                        continue
                    del slot[i]
                    return _edge_record(src, port, slot_idx, e)

        raise ConnectionNotFound(
            f"No connection from '{src}' to '{tgt}'",
            detail={
                "source": src,
                "target": tgt,
                "sourceOutput": source_output,
                "sourceIndex": source_index,
                "targetInput": target_input,
                "targetIndex": target_index,
            },
        )

    def replace_connections(self, raw: Dict[str, Any]) -> None:
        """Swap in a whole new connection map; every endpoint must name a node."""
        conns = parse_connections(raw)
        for src, ports in conns.items():
            if src not in self._by_name:
                raise ConnectionEndpointMissing("source", src)
            for slots in ports.values():
                for slot in slots:
                    for e in slot:
                        if e.node not in self._by_name:
                            raise ConnectionEndpointMissing("target", e.node)
        self.document.connections = conns

    def dangling_edges(self) -> List[Dict[str, Any]]:
        return [
            _edge_record(src, port, slot_idx, e)
            for src, port, slot_idx, e in self.iter_edges()
            if src not in self._by_name or e.node not in self._by_name
        ]

    def sweep_dangling_edges(self, dry_run: bool = False) -> List[Dict[str, Any]]:
        """
        Collect edges whose source or target node no longer exists and, unless
        dry_run, remove them. Returns the removed (or would-be-removed) edges.
        """
        stale = self.dangling_edges()
        if dry_run or not stale:
            return stale

        for src in [s for s in self.connections if s not in self._by_name]:
            del self.connections[src]
        for ports in self.connections.values():
            for slots in ports.values():
                for slot in slots:
                    slot[:] = [e for e in slot if e.node in self._by_name]
        return stale
