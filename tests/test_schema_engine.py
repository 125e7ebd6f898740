"""
Schema engine tests - OpenAPI 3.0 keywords on top of Draft 4.
"""

import pytest

from response_contract import SchemaRef, SchemaViolation
from response_contract.schema_engine import collect_violations, default_formatter, visit_value
from response_contract.errors import SchemaViolationDetail


ACCOUNT_SCHEMA = {
    "type": "object",
    "properties": {
        "id": {"type": "integer", "readOnly": True},
        "password": {"type": "string", "writeOnly": True},
        "email": {"type": "string"},
    },
    "required": ["id", "password", "email"],
}

TREE_DOCUMENT = {
    "components": {
        "schemas": {
            "Node": {
                "type": "object",
                "properties": {
                    "value": {"type": "integer"},
                    "children": {"type": "array", "items": {"$ref": "#/components/schemas/Node"}},
                },
                "required": ["value"],
            },
            "Secret": {"type": "string", "writeOnly": True},
        }
    }
}


class TestNullable:

    def test_nullable_admits_none(self):
        assert collect_violations(None, {"type": "string", "nullable": True}) == []

    def test_none_rejected_without_nullable(self):
        violations = collect_violations(None, {"type": "string"})

        assert len(violations) == 1
        assert violations[0].keyword == "type"

    def test_nullable_property(self):
        schema = {"type": "object", "properties": {"tag": {"type": "string", "nullable": True}}}

        assert collect_violations({"tag": None}, schema) == []


class TestDirection:
    """readOnly/writeOnly depend on whether a response or request is checked."""

    def test_write_only_not_required_in_response(self):
        assert collect_violations({"id": 1, "email": "a@b.c"}, ACCOUNT_SCHEMA, as_response=True) == []

    def test_write_only_present_in_response(self):
        violations = collect_violations(
            {"id": 1, "email": "a@b.c", "password": "hunter2"},
            ACCOUNT_SCHEMA,
            as_response=True,
        )

        assert len(violations) == 1
        assert violations[0].path == ["password"]
        assert "writeOnly" in violations[0].reason

    def test_read_only_not_required_in_request(self):
        assert collect_violations({"password": "x", "email": "a@b.c"}, ACCOUNT_SCHEMA, as_response=False) == []

    def test_read_only_present_in_request(self):
        violations = collect_violations(
            {"id": 1, "password": "x", "email": "a@b.c"},
            ACCOUNT_SCHEMA,
            as_response=False,
        )

        assert [v.path for v in violations] == [["id"]]

    def test_other_required_fields_still_enforced(self):
        violations = collect_violations({"id": 1}, ACCOUNT_SCHEMA, as_response=True)

        assert [v.reason for v in violations] == ["'email' is a required property"]

    def test_write_only_declared_by_reference(self):
        schema = {
            "type": "object",
            "properties": {"token": {"$ref": "#/components/schemas/Secret"}},
            "required": ["token"],
        }

        assert collect_violations({}, schema, as_response=True, document=TREE_DOCUMENT) == []
        assert len(collect_violations({"token": "t"}, schema, as_response=True, document=TREE_DOCUMENT)) == 1


class TestReferences:

    def test_recursive_schema(self):
        schema = TREE_DOCUMENT["components"]["schemas"]["Node"]
        tree = {"value": 1, "children": [{"value": 2, "children": [{"value": 3}]}]}

        assert collect_violations(tree, schema, document=TREE_DOCUMENT) == []

    def test_recursive_schema_reports_deep_path(self):
        schema = TREE_DOCUMENT["components"]["schemas"]["Node"]
        tree = {"value": 1, "children": [{"value": "two"}]}

        violations = collect_violations(tree, schema, document=TREE_DOCUMENT)

        assert len(violations) == 1
        assert violations[0].pointer == "/children/0/value"

    def test_unresolvable_reference_is_a_violation(self):
        schema = {"type": "object", "properties": {"a": {"$ref": "#/components/schemas/Nope"}}}

        violations = collect_violations({"a": 1}, schema, document=TREE_DOCUMENT)

        assert len(violations) == 1
        assert "does not resolve" in violations[0].reason


class TestVisitValue:

    def test_missing_schema_matches_anything(self):
        visit_value({"anything": True}, None)
        visit_value({"anything": True}, SchemaRef())

    def test_first_violation_only_by_default(self):
        schema = SchemaRef(value={"type": "array", "items": {"type": "integer"}})

        with pytest.raises(SchemaViolation) as exc_info:
            visit_value(["a", "b", "c"], schema)

        assert len(exc_info.value.violations) == 1

    def test_multi_error_collects_all(self):
        schema = SchemaRef(value={"type": "array", "items": {"type": "integer"}})

        with pytest.raises(SchemaViolation) as exc_info:
            visit_value(["a", "b", "c"], schema, multi_error=True)

        assert [v.pointer for v in exc_info.value.violations] == ["/0", "/1", "/2"]
        assert len(exc_info.value.messages) == 3

    def test_custom_formatter(self):
        schema = SchemaRef(value={"type": "integer"})

        with pytest.raises(SchemaViolation) as exc_info:
            visit_value("x", schema, formatter=lambda v: f"[{v.keyword}] {v.reason}")

        assert str(exc_info.value) == "[type] 'x' is not of type 'integer'"


class TestDefaultFormatter:

    def test_root_violation_has_no_location(self):
        detail = SchemaViolationDetail(path=[], reason="bad", keyword="type")

        assert default_formatter(detail) == "bad"

    def test_nested_violation_has_pointer(self):
        detail = SchemaViolationDetail(path=["a/b", 0], reason="bad")

        assert default_formatter(detail) == 'Error at "/a~1b/0": bad'
