from flask import Flask, request, jsonify
from flask_cors import CORS
from settlement import SettlementService
from settlement import config
from settlement.errors import IntegrityViolation, SettlementError
import logging

# Configure logging
logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = Flask(__name__)

# Enable CORS for all routes
CORS(app)

# Initialize the settlement service
service = SettlementService(seed_demo=config.SEED_DEMO_OWNERSHIP)


def _respond(operation, *args, **kwargs):
    """Run a service operation and translate engine errors into JSON responses."""
    try:
        return jsonify(operation(*args, **kwargs)), 200

    except IntegrityViolation as e:
        # Engine defect, not a caller problem
        logger.critical(f"Integrity violation: {str(e)}")
        return jsonify(service.output_builder.build_error(e)), e.http_status

    except SettlementError as e:
        logger.warning(f"{type(e).__name__}: {str(e)}")
        return jsonify(service.output_builder.build_error(e)), e.http_status

    except Exception as e:
        # Unexpected errors
        logger.error(f"Processing error: {str(e)}", exc_info=True)
        return jsonify({
            "error": "An unexpected error occurred during processing",
            "status": "failed"
        }), 500


def _json_body():
    """Request body as a dict, or None if it is missing or not a JSON object."""
    data = request.get_json(force=True, silent=True)
    return data if isinstance(data, dict) else None


def _no_input():
    return jsonify({
        "error": "No input data provided",
        "status": "failed"
    }), 400


@app.route("/api", methods=["GET"])
def api_info():
    """API information endpoint"""
    return jsonify({
        "status": "ok",
        "message": "Loan Settlement API",
        "version": "1.0",
        "endpoints": {
            "waterfall": "/waterfall [POST]",
            "owners": "/trade/owners [GET]",
            "seed": "/trade/seed [POST, DELETE]",
            "validate": "/trade/validate [POST]",
            "confirm": "/trade/confirm [POST]",
            "approve": "/trade/approve [POST]",
            "reject": "/trade/reject [POST]",
            "events": "/trade/events [GET]",
            "parse": "/trade/parse [POST]",
            "health": "/health [GET]"
        }
    }), 200


@app.route("/health", methods=["GET"])
def health():
    """Health check for monitoring"""
    return jsonify({"status": "healthy"}), 200


@app.route("/waterfall", methods=["POST"])
def waterfall():
    """
    Distribute a payment across facility owners and build the payment CSV
    """
    input_data = _json_body()
    if not input_data:
        return _no_input()

    logger.info(f"Waterfall request for loan: {input_data.get('loanId', 'N/A')}")
    return _respond(service.distribute_from_dict, input_data)


@app.route("/trade/owners", methods=["GET"])
def trade_owners():
    """Ownership for one loan (loan_id query param) or for all loans"""
    return _respond(service.get_ownership, request.args.get("loan_id"))


@app.route("/trade/seed", methods=["GET"])
def trade_seed_view():
    """View all current ownership"""
    return _respond(service.get_ownership)


@app.route("/trade/seed", methods=["POST"])
def trade_seed():
    """Add or overwrite loan ownership"""
    input_data = _json_body()
    if not input_data:
        return _no_input()
    return _respond(service.seed_from_dict, input_data)


@app.route("/trade/seed", methods=["DELETE"])
def trade_reset():
    """Reset all ownership data"""
    return _respond(service.reset_ownership)


@app.route("/trade/validate", methods=["POST"])
def trade_validate():
    input_data = _json_body()
    if not input_data:
        return _no_input()
    return _respond(service.validate_from_dict, input_data)


@app.route("/trade/confirm", methods=["POST"])
def trade_confirm():
    """Record a trade in pending state (does NOT update ownership yet)"""
    input_data = _json_body()
    if not input_data:
        return _no_input()
    return _respond(service.propose_from_dict, input_data)


@app.route("/trade/approve", methods=["POST"])
def trade_approve():
    """Execute ownership transfer and mark the trade approved"""
    input_data = _json_body()
    if not input_data:
        return _no_input()
    return _respond(service.approve_from_dict, input_data)


@app.route("/trade/reject", methods=["POST"])
def trade_reject():
    input_data = _json_body()
    if not input_data:
        return _no_input()
    return _respond(service.reject_from_dict, input_data)


@app.route("/trade/events", methods=["GET"])
def trade_events():
    """Trade events, newest first, filtered by loan_id and/or status"""
    return _respond(
        service.list_events,
        facility_id=request.args.get("loan_id"),
        status=request.args.get("status")
    )


@app.route("/trade/parse", methods=["POST"])
def trade_parse():
    """Turn a document extraction into trade fields"""
    input_data = _json_body()
    if not input_data:
        return _no_input()
    return _respond(service.parse_trade_from_dict, input_data)


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=config.PORT, debug=False)
