# flowdiff/diff/schema.py
# JSON Schemas for request-level validation. Anything that fails here is
# rejected before a single operation runs.

_EDGE = {
    "type": "object",
    "required": ["node"],
    "properties": {
        "node": {"type": "string", "minLength": 1},
        # Target input port, usually "main"
        "type": {"type": "string"},
        "index": {"type": "integer", "minimum": 0},
    },
    "additionalProperties": True,
}

CONNECTIONS_SCHEMA = {
    "type": "object",
    # source node name -> output port -> output slots -> edges
    "additionalProperties": {
        "type": "object",
        "additionalProperties": {
            "type": "array",
            "items": {
                "anyOf": [
                    {"type": "array", "items": _EDGE},
                    {"type": "null"},
                ]
            },
        },
    },
}

_POSITION = {
    "type": "array",
    "items": {"type": "number"},
    "minItems": 2,
    "maxItems": 2,
}

NEW_NODE_SCHEMA = {
    "type": "object",
    "required": ["name", "type"],
    "properties": {
        "id": {"type": "string"},
        "name": {"type": "string", "minLength": 1},
        "type": {"type": "string", "minLength": 1},
        "typeVersion": {"type": "number"},
        "position": _POSITION,
        "parameters": {"type": "object"},
        "disabled": {"type": "boolean"},
    },
    "additionalProperties": True,
}

WORKFLOW_SCHEMA = {
    "type": "object",
    "required": ["nodes", "connections"],
    "properties": {
        "nodes": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["name", "type"],
                "properties": {
                    "id": {"type": ["string", "number"]},
                    "name": {"type": "string", "minLength": 1},
                    "type": {"type": "string"},
                    "parameters": {"type": "object"},
                    "position": _POSITION,
                    "disabled": {"type": "boolean"},
                },
                "additionalProperties": True,
            },
        },
        "connections": CONNECTIONS_SCHEMA,
        "tags": {"type": "array"},
    },
    "additionalProperties": True,
}

# ---------- Operations ----------

_NODE_REF = {"anyOf": [{"required": ["nodeId"]}, {"required": ["nodeName"]}]}

_COMMON = {
    "type": {"type": "string"},
    "description": {"type": "string"},
    "nodeId": {"type": "string"},
    "nodeName": {"type": "string"},
}

_CONNECTION_FIELDS = {
    "source": {"type": "string", "minLength": 1},
    "target": {"type": "string", "minLength": 1},
    "sourceOutput": {"type": "string", "minLength": 1},
    "targetInput": {"type": "string", "minLength": 1},
    "sourceIndex": {"type": "integer", "minimum": 0},
    "targetIndex": {"type": "integer", "minimum": 0},
    "ignoreErrors": {"type": "boolean"},
}


def _op(required=(), properties=None, node_ref=False):
    schema = {
        "type": "object",
        "required": list(required),
        "properties": {**_COMMON, **(properties or {})},
        "additionalProperties": True,
    }
    if node_ref:
        schema.update(_NODE_REF)
    return schema


OPERATION_SCHEMAS = {
    "addNode": _op(["node"], {"node": NEW_NODE_SCHEMA}),
    "removeNode": _op(node_ref=True),
    "updateNode": _op(["updates"], {"updates": {"type": "object"}}, node_ref=True),
    "moveNode": _op(["position"], {"position": _POSITION}, node_ref=True),
    "enableNode": _op(node_ref=True),
    "disableNode": _op(node_ref=True),
    "addConnection": _op(["source", "target"], _CONNECTION_FIELDS),
    "removeConnection": _op(["source", "target"], _CONNECTION_FIELDS),
    "replaceConnections": _op(["connections"], {"connections": CONNECTIONS_SCHEMA}),
    "cleanStaleConnections": _op(properties={"dryRun": {"type": "boolean"}}),
    # settings is opaque here; a non-object is an operation-level failure
    "updateSettings": _op(["settings"]),
    "updateName": _op(["name"], {"name": {"type": "string"}}),
    "addTag": _op(["tag"], {"tag": {"type": "string", "minLength": 1}}),
    "removeTag": _op(["tag"], {"tag": {"type": "string", "minLength": 1}}),
}

# Older / alternative spellings accepted on the wire
OPERATION_ALIASES = {
    "cleanupConnections": "cleanStaleConnections",
    "renameWorkflow": "updateName",
}

REQUEST_SCHEMA = {
    "type": "object",
    "required": ["operations"],
    "properties": {
        "id": {"type": "string"},
        "operations": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["type"],
                "properties": {"type": {"type": "string"}},
            },
        },
        "validateOnly": {"type": "boolean"},
        "continueOnError": {"type": "boolean"},
    },
    "additionalProperties": True,
}
