"""Tests for AWS Lambda handler."""

import base64
import json

import pytest

import lambda_handler as lambda_module
from lambda_handler import lambda_handler
from settlement import SettlementService


@pytest.fixture(autouse=True)
def service(monkeypatch):
    """Fresh demo-seeded service for every test."""
    fresh = SettlementService(seed_demo=True)
    monkeypatch.setattr(lambda_module, "service", fresh)
    return fresh


def _post(path, payload):
    return {"httpMethod": "POST", "path": path, "body": json.dumps(payload)}


def _body(response):
    return json.loads(response["body"])


TRADE = {
    "seller": "Pacific Rim Traders",
    "buyer": "Quantum Capital",
    "amount": 15000000,
    "loan_id": "LN-2024-8392",
    "percentage": 20,
}


class TestLambdaHandler:
    """Test the Lambda handler routes and responses."""

    def test_health_check(self):
        """GET /health returns healthy status."""
        event = {"httpMethod": "GET", "path": "/health"}
        response = lambda_handler(event, None)

        assert response["statusCode"] == 200
        assert _body(response)["status"] == "healthy"

    def test_api_info(self):
        """GET /api returns API information."""
        event = {"httpMethod": "GET", "path": "/api"}
        response = lambda_handler(event, None)

        assert response["statusCode"] == 200
        body = _body(response)
        assert body["status"] == "ok"
        assert "/waterfall [POST]" in body["endpoints"]

    def test_cors_preflight(self):
        """OPTIONS requests return CORS headers."""
        event = {"httpMethod": "OPTIONS", "path": "/waterfall"}
        response = lambda_handler(event, None)

        assert response["statusCode"] == 200
        assert "Access-Control-Allow-Origin" in response["headers"]
        assert "DELETE" in response["headers"]["Access-Control-Allow-Methods"]

    def test_not_found(self):
        """Unknown paths return 404."""
        event = {"httpMethod": "GET", "path": "/unknown"}
        response = lambda_handler(event, None)

        assert response["statusCode"] == 404

    def test_wrong_method_not_found(self):
        event = {"httpMethod": "GET", "path": "/waterfall"}
        assert lambda_handler(event, None)["statusCode"] == 404

    def test_http_api_v2_event(self):
        """HTTP API (v2) events carry method and path elsewhere."""
        event = {"rawPath": "/health", "requestContext": {"http": {"method": "GET"}}}
        response = lambda_handler(event, None)

        assert response["statusCode"] == 200


class TestWaterfallRoute:

    PAYLOAD = {
        "loanId": "loan-001",
        "total": 10000000,
        "owners": [
            {"name": "Bank A", "bic": "AAAAUS33", "account": "111", "share": 0.4},
            {"name": "Bank B", "bic": "BBBBUS33", "account": "222", "share": 0.6},
        ],
    }

    def test_waterfall_success(self):
        response = lambda_handler(_post("/waterfall", self.PAYLOAD), None)

        assert response["statusCode"] == 200
        body = _body(response)
        assert [d["amount"] for d in body["distribution"]] == [4000000.0, 6000000.0]
        assert body["csv"].startswith("Bank Name,BIC Code,Currency,Account Number,Amount")

    def test_base64_encoded_body(self):
        event = {
            "httpMethod": "POST",
            "path": "/waterfall",
            "isBase64Encoded": True,
            "body": base64.b64encode(json.dumps(self.PAYLOAD).encode()).decode(),
        }
        assert lambda_handler(event, None)["statusCode"] == 200

    def test_empty_body(self):
        """POST with empty body returns 400."""
        event = {"httpMethod": "POST", "path": "/waterfall", "body": ""}
        response = lambda_handler(event, None)

        assert response["statusCode"] == 400
        assert "error" in _body(response)

    def test_invalid_json(self):
        """POST with invalid JSON returns 400."""
        event = {"httpMethod": "POST", "path": "/waterfall", "body": "not valid json"}
        response = lambda_handler(event, None)

        assert response["statusCode"] == 400
        assert "Invalid JSON" in _body(response)["error"]

    def test_malformed_base64_body(self):
        """A body that isn't valid base64 is a 400, not an unhandled error."""
        event = {"httpMethod": "POST", "path": "/waterfall", "body": "abc", "isBase64Encoded": True}
        response = lambda_handler(event, None)

        assert response["statusCode"] == 400
        assert "Invalid JSON" in _body(response)["error"]

    def test_non_utf8_body(self):
        event = {"httpMethod": "POST", "path": "/trade/confirm", "body": "//79", "isBase64Encoded": True}
        response = lambda_handler(event, None)

        assert response["statusCode"] == 400
        assert "Invalid JSON" in _body(response)["error"]

    def test_non_object_body(self):
        response = lambda_handler(_post("/waterfall", [1, 2]), None)
        assert response["statusCode"] == 400

    def test_share_mismatch_is_400(self):
        payload = {**self.PAYLOAD, "owners": [{**self.PAYLOAD["owners"][0]}]}
        response = lambda_handler(_post("/waterfall", payload), None)

        assert response["statusCode"] == 400
        assert _body(response)["status"] == "validation_failed"

    def test_missing_total_lists_field(self):
        payload = {k: v for k, v in self.PAYLOAD.items() if k != "total"}
        response = lambda_handler(_post("/waterfall", payload), None)

        assert response["statusCode"] == 400
        assert _body(response)["missing"] == ["total or base64Pdf"]

    def test_document_without_extractor_is_503(self):
        payload = {k: v for k, v in self.PAYLOAD.items() if k != "total"}
        payload["base64Pdf"] = "JVBERi0xLjQK"

        assert lambda_handler(_post("/waterfall", payload), None)["statusCode"] == 503


class TestTradeRoutes:

    def test_owners_for_facility(self):
        event = {
            "httpMethod": "GET",
            "path": "/trade/owners",
            "queryStringParameters": {"loan_id": "LN-2024-8392"},
        }
        body = _body(lambda_handler(event, None))

        assert body["total_ownership"] == 100.0
        assert len(body["owners"]) == 3

    def test_owners_unknown_facility(self):
        event = {
            "httpMethod": "GET",
            "path": "/trade/owners",
            "queryStringParameters": {"loan_id": "LN-404"},
        }
        response = lambda_handler(event, None)

        assert response["statusCode"] == 404
        assert _body(response)["status"] == "not_found"

    def test_seed_and_reset(self):
        seeded = lambda_handler(
            _post("/trade/seed", {"loan_id": "LN-9", "owners": [{"name": "Z", "share": 100}]}), None
        )
        assert seeded["statusCode"] == 200

        view = _body(lambda_handler({"httpMethod": "GET", "path": "/trade/seed"}, None))
        assert "LN-9" in [loan["loan_id"] for loan in view["loans"]]

        reset = lambda_handler({"httpMethod": "DELETE", "path": "/trade/seed"}, None)
        assert reset["statusCode"] == 200

        view = _body(lambda_handler({"httpMethod": "GET", "path": "/trade/seed"}, None))
        assert view["loans"] == []

    def test_validate(self):
        body = _body(lambda_handler(_post("/trade/validate", TRADE), None))
        assert body == {"valid": True, "errors": []}

    def test_confirm_approve_flow(self):
        confirmed = _body(lambda_handler(_post("/trade/confirm", TRADE), None))
        trade_id = confirmed["trade"]["id"]
        assert confirmed["trade"]["status"] == "pending"

        approved = lambda_handler(_post("/trade/approve", {"trade_id": trade_id}), None)
        assert approved["statusCode"] == 200
        assert _body(approved)["trade"]["status"] == "approved"

        again = lambda_handler(_post("/trade/approve", {"trade_id": trade_id}), None)
        assert again["statusCode"] == 409
        assert _body(again)["status"] == "rejected"

    def test_confirm_missing_fields(self):
        response = lambda_handler(_post("/trade/confirm", {"seller": "X"}), None)

        assert response["statusCode"] == 400
        assert _body(response)["missing"] == ["buyer", "amount", "loan_id", "percentage"]

    def test_approve_unknown_trade(self):
        response = lambda_handler(_post("/trade/approve", {"trade_id": "TRD-404"}), None)
        assert response["statusCode"] == 404

    def test_reject(self):
        trade_id = _body(lambda_handler(_post("/trade/confirm", TRADE), None))["trade"]["id"]
        response = lambda_handler(_post("/trade/reject", {"trade_id": trade_id}), None)

        assert _body(response)["trade"]["status"] == "rejected"

    def test_events_filtered(self):
        lambda_handler(_post("/trade/confirm", TRADE), None)
        event = {
            "httpMethod": "GET",
            "path": "/trade/events",
            "queryStringParameters": {"loan_id": "LN-2024-8392", "status": "pending"},
        }
        body = _body(lambda_handler(event, None))

        assert body["count"] == 1

    def test_events_bad_status(self):
        event = {
            "httpMethod": "GET",
            "path": "/trade/events",
            "queryStringParameters": {"status": "cancelled"},
        }
        assert lambda_handler(event, None)["statusCode"] == 400

    def test_parse_low_confidence_is_422(self):
        extraction = {**TRADE, "confidence": 0.3}
        response = lambda_handler(_post("/trade/parse", {"extraction": extraction}), None)

        assert response["statusCode"] == 422
        body = _body(response)
        assert body["confidence"] == 0.3
        assert body["data"]["seller"] == "Pacific Rim Traders"

    def test_unexpected_error_is_generic_500(self, service, monkeypatch):
        def explode(data):
            raise RuntimeError("secret internals")

        monkeypatch.setattr(service, "validate_from_dict", explode)
        response = lambda_handler(_post("/trade/validate", TRADE), None)

        assert response["statusCode"] == 500
        assert "secret" not in response["body"]
