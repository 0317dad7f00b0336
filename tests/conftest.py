# tests/conftest.py

import pytest


@pytest.fixture
def workflow():
    """Two-node workflow: Start.main[0] -> HTTP.main[0]."""
    return {
        "id": "wf-1",
        "name": "Fetch Users",
        "active": False,
        "nodes": [
            {
                "id": "n1",
                "name": "Start",
                "type": "n8n-nodes-base.manualTrigger",
                "typeVersion": 1,
                "position": [250, 300],
                "parameters": {},
            },
            {
                "id": "n2",
                "name": "HTTP",
                "type": "n8n-nodes-base.httpRequest",
                "typeVersion": 4,
                "position": [450, 300],
                "parameters": {"url": "https://example.com/api/users", "method": "GET"},
                "credentials": {"httpBasicAuth": {"id": "7", "name": "api"}},
            },
        ],
        "connections": {
            "Start": {"main": [[{"node": "HTTP", "type": "main", "index": 0}]]},
        },
        "settings": {"executionOrder": "v1"},
        "tags": ["users"],
        "versionId": "v-1",
    }
