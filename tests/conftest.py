"""
Shared pytest configuration for response_contract tests.

Provides:
- A small pet-store contract document and operations built from it
- Helpers to build observed responses
"""

import sys
from pathlib import Path

# Add repo root to Python path so `import response_contract` works without install
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

import pytest

from response_contract import ObservedResponse, build_operation


PET_DOCUMENT = {
    "openapi": "3.0.3",
    "info": {"title": "Pets", "version": "1.0.0"},
    "paths": {},
    "components": {
        "schemas": {
            "Pet": {
                "title": "Pet",
                "type": "object",
                "properties": {
                    "id": {"type": "integer"},
                    "name": {"type": "string"},
                    "tag": {"type": "string", "nullable": True},
                },
                "required": ["id"],
            },
            "Error": {
                "type": "object",
                "properties": {"message": {"type": "string"}},
                "required": ["message"],
            },
        },
        "headers": {
            "RateLimit": {"required": True, "schema": {"type": "integer"}},
        },
        "responses": {
            "Error": {
                "description": "Unexpected error",
                "content": {
                    "application/json": {"schema": {"$ref": "#/components/schemas/Error"}},
                },
            },
        },
    },
}


GET_PET = {
    "operationId": "getPet",
    "responses": {
        "200": {
            "description": "A pet",
            "headers": {
                "X-Rate-Limit": {"$ref": "#/components/headers/RateLimit"},
                "X-Request-ID": {"schema": {"type": "string"}},
                "Content-Type": {"required": True, "schema": {"type": "string"}},
            },
            "content": {
                "application/json": {"schema": {"$ref": "#/components/schemas/Pet"}},
            },
        },
        "default": {"$ref": "#/components/responses/Error"},
    },
}


@pytest.fixture
def pet_document():
    return PET_DOCUMENT


@pytest.fixture
def get_pet_operation():
    """getPet: 200 with a rate-limit header and a Pet body, default error."""
    return build_operation(GET_PET, PET_DOCUMENT)


@pytest.fixture
def make_response():
    """Factory for ObservedResponse with JSON defaults."""
    def _make(status=200, body=b"", headers=None, method="GET"):
        if headers is None:
            headers = {"Content-Type": "application/json", "X-Rate-Limit": "100"}
        return ObservedResponse(status=status, headers=headers, body=body, method=method)
    return _make
