"""
AWS Lambda handler for the Loan Settlement API.

This is the production entry point for AWS Lambda deployments.
For local development, use main.py (Flask app) instead.
"""

import base64
import json
import logging

from settlement import SettlementService, config
from settlement.errors import IntegrityViolation, SettlementError

# Configure logging
logger = logging.getLogger()
logger.setLevel(config.LOG_LEVEL)

# Initialize service (reused across warm invocations)
service = SettlementService(seed_demo=config.SEED_DEMO_OWNERSHIP)

# CORS headers for API Gateway
CORS_HEADERS = {
    "Content-Type": "application/json",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type,Authorization",
    "Access-Control-Allow-Methods": "GET,POST,DELETE,OPTIONS",
}


def lambda_handler(event, context):
    """
    Main Lambda entry point.

    Handles API Gateway events (REST API and HTTP API v2 formats).
    """
    # Handle CORS preflight
    http_method = event.get("httpMethod") or event.get("requestContext", {}).get("http", {}).get("method", "")
    if http_method == "OPTIONS":
        return {"statusCode": 200, "headers": CORS_HEADERS, "body": ""}

    # Get path (supports both REST API and HTTP API formats)
    path = event.get("path") or event.get("rawPath", "")

    if path == "/health" and http_method == "GET":
        return handle_health()
    if path == "/api" and http_method == "GET":
        return handle_api_info()

    route = ROUTES.get((http_method, path))
    if route is None:
        return _response(404, {"error": "Not found", "path": path})
    return route(event)


def handle_health():
    """Health check endpoint."""
    return _response(200, {"status": "healthy", "environment": config.ENVIRONMENT})


def handle_api_info():
    """API information endpoint."""
    return _response(
        200,
        {
            "status": "ok",
            "message": "Loan Settlement API",
            "version": "1.0",
            "environment": config.ENVIRONMENT,
            "runtime": "AWS Lambda",
            "endpoints": [f"{path} [{method}]" for method, path in ROUTES],
        },
    )


def handle_waterfall(event):
    return _call_with_body(event, service.distribute_from_dict)


def handle_owners(event):
    params = _query_params(event)
    return _call(service.get_ownership, params.get("loan_id"))


def handle_seed_view(event):
    return _call(service.get_ownership)


def handle_seed(event):
    return _call_with_body(event, service.seed_from_dict)


def handle_reset(event):
    return _call(service.reset_ownership)


def handle_validate(event):
    return _call_with_body(event, service.validate_from_dict)


def handle_confirm(event):
    return _call_with_body(event, service.propose_from_dict)


def handle_approve(event):
    return _call_with_body(event, service.approve_from_dict)


def handle_reject(event):
    return _call_with_body(event, service.reject_from_dict)


def handle_events(event):
    params = _query_params(event)
    return _call(service.list_events, facility_id=params.get("loan_id"), status=params.get("status"))


def handle_parse(event):
    return _call_with_body(event, service.parse_trade_from_dict)


ROUTES = {
    ("POST", "/waterfall"): handle_waterfall,
    ("GET", "/trade/owners"): handle_owners,
    ("GET", "/trade/seed"): handle_seed_view,
    ("POST", "/trade/seed"): handle_seed,
    ("DELETE", "/trade/seed"): handle_reset,
    ("POST", "/trade/validate"): handle_validate,
    ("POST", "/trade/confirm"): handle_confirm,
    ("POST", "/trade/approve"): handle_approve,
    ("POST", "/trade/reject"): handle_reject,
    ("GET", "/trade/events"): handle_events,
    ("POST", "/trade/parse"): handle_parse,
}


def _call_with_body(event, operation):
    """Parse the JSON body and run `operation` on it."""
    try:
        body = event.get("body", "")
        if isinstance(body, str):
            if not body:
                return _response(400, {"error": "No input data provided", "status": "failed"})
            # Handle base64 encoded body (API Gateway)
            if event.get("isBase64Encoded"):
                body = base64.b64decode(body).decode("utf-8")
            input_data = json.loads(body)
        else:
            input_data = body
    except ValueError as e:
        # JSONDecodeError, binascii.Error and UnicodeDecodeError
        logger.error(f"JSON parse error: {str(e)}")
        return _response(400, {"error": f"Invalid JSON: {str(e)}", "status": "failed"})

    if not input_data or not isinstance(input_data, dict):
        return _response(400, {"error": "No input data provided", "status": "failed"})

    return _call(operation, input_data)


def _call(operation, *args, **kwargs):
    """Run a service operation and map engine errors to status codes."""
    try:
        return _response(200, operation(*args, **kwargs))

    except IntegrityViolation as e:
        logger.critical(f"Integrity violation: {str(e)}")
        return _response(e.http_status, service.output_builder.build_error(e))

    except SettlementError as e:
        logger.warning(f"{type(e).__name__}: {str(e)}")
        return _response(e.http_status, service.output_builder.build_error(e))

    except Exception as e:
        # Unexpected errors - log details but return generic message to avoid information disclosure
        logger.error(f"Unexpected processing error: {str(e)}", exc_info=True)
        return _response(500, {"error": "An unexpected error occurred during processing", "status": "failed"})


def _query_params(event):
    return event.get("queryStringParameters") or {}


def _response(status_code, body):
    return {"statusCode": status_code, "headers": CORS_HEADERS, "body": json.dumps(body)}
