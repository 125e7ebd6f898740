"""
Flask integration tests - decorator and after_request hook, WARN vs STRICT.
"""

import io
import logging

from flask import Flask, jsonify, send_file

from response_contract import (
    SchemaMode,
    ValidationOptions,
    build_operation,
    init_response_validation,
    response_contract,
)


ITEM_OPERATION = build_operation({
    "operationId": "getItem",
    "responses": {
        "200": {
            "description": "An item",
            "content": {
                "application/json": {
                    "schema": {
                        "title": "Item",
                        "type": "object",
                        "properties": {"id": {"type": "integer"}},
                        "required": ["id"],
                    },
                },
            },
        },
    },
})


def _build_decorated_app(mode):
    app = Flask(__name__)

    @app.route("/api/items/good", methods=["GET", "HEAD"])
    @response_contract(ITEM_OPERATION, mode=mode)
    def good_item():
        return jsonify({"id": 1})

    @app.route("/api/items/bad", methods=["GET", "HEAD"])
    @response_contract(ITEM_OPERATION, mode=mode)
    def bad_item():
        return jsonify({"id": "one"})

    app.config["TESTING"] = True
    return app


def _build_hooked_app(mode=None, options=None):
    app = Flask(__name__)

    @app.route("/api/items/<item_id>", methods=["GET"])
    def get_item(item_id):
        if item_id == "bad":
            return jsonify({"name": "no id"})
        return jsonify({"id": 1})

    @app.route("/api/health", methods=["GET"])
    def health():
        return jsonify({"status": "ok"})

    @app.route("/api/items/export", methods=["GET"])
    def export_items():
        return send_file(io.BytesIO(b"not json"), mimetype="application/json")

    def operation_for(request):
        return ITEM_OPERATION if request.endpoint in ("get_item", "export_items") else None

    init_response_validation(app, operation_for, options=options, mode=mode)
    app.config["TESTING"] = True
    return app


class TestDecorator:

    def test_valid_response_passes_through(self):
        client = _build_decorated_app(SchemaMode.STRICT).test_client()

        response = client.get("/api/items/good")

        assert response.status_code == 200
        assert response.get_json() == {"id": 1}

    def test_strict_mode_replaces_invalid_response(self):
        client = _build_decorated_app(SchemaMode.STRICT).test_client()

        response = client.get("/api/items/bad")

        assert response.status_code == 500
        error = response.get_json()["error"]
        assert error["code"] == "RESPONSE_SCHEMA_MISMATCH"
        assert error["details"]["message"] == "response body doesn't match schema Item"
        assert error["details"]["details"]["kind"] == "body_schema_mismatch"

    def test_warn_mode_logs_and_keeps_response(self, caplog):
        client = _build_decorated_app(SchemaMode.WARN).test_client()

        with caplog.at_level(logging.WARNING, logger="response_contract.flask"):
            response = client.get("/api/items/bad")

        assert response.status_code == 200
        assert response.get_json() == {"id": "one"}
        assert any(
            "Contract violation: endpoint=bad_item kind=body_schema_mismatch" in record.getMessage()
            for record in caplog.records
        )

    def test_head_requests_not_validated(self):
        client = _build_decorated_app(SchemaMode.STRICT).test_client()

        response = client.head("/api/items/bad")

        assert response.status_code == 200

    def test_mode_from_environment(self, monkeypatch):
        monkeypatch.setenv("CONTRACT_MODE", "strict")
        client = _build_decorated_app(None).test_client()

        assert client.get("/api/items/bad").status_code == 500


class TestAfterRequestHook:

    def test_strict_hook(self):
        client = _build_hooked_app(SchemaMode.STRICT).test_client()

        assert client.get("/api/items/1").status_code == 200
        response = client.get("/api/items/bad")
        assert response.status_code == 500
        assert response.get_json()["error"]["code"] == "RESPONSE_SCHEMA_MISMATCH"

    def test_endpoints_without_contract_pass_through(self):
        client = _build_hooked_app(SchemaMode.STRICT).test_client()

        response = client.get("/api/health")

        assert response.status_code == 200
        assert response.get_json() == {"status": "ok"}

    def test_default_mode_is_warn(self, monkeypatch, caplog):
        monkeypatch.delenv("CONTRACT_MODE", raising=False)
        client = _build_hooked_app().test_client()

        with caplog.at_level(logging.WARNING, logger="response_contract.flask"):
            response = client.get("/api/items/bad")

        assert response.status_code == 200
        assert any("kind=body_schema_mismatch" in r.getMessage() for r in caplog.records)

    def test_options_passed_through(self):
        client = _build_hooked_app(
            SchemaMode.STRICT,
            options=ValidationOptions(exclude_body_validation=True),
        ).test_client()

        assert client.get("/api/items/bad").status_code == 200

    def test_response_body_still_readable_after_validation(self):
        client = _build_hooked_app(SchemaMode.WARN).test_client()

        response = client.get("/api/items/1")

        assert response.get_json() == {"id": 1}

    def test_file_responses_pass_through_unvalidated(self):
        client = _build_hooked_app(SchemaMode.STRICT).test_client()

        response = client.get("/api/items/export")

        assert response.status_code == 200
        assert response.data == b"not json"
