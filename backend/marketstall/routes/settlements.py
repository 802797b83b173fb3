# Overview: Flask API routes for settlement runs; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..services import settlement_service
from ..services.settlement_service import SettlementError
from ..validation import PermissionDeniedError
from ..decorators import require_auth, require_admin


settlements_bp = Blueprint("settlements", __name__, url_prefix="/api/settlements")


@settlements_bp.post("")
@require_auth
def process_settlement_route():
    """
    Net the unprocessed sale backlog into cashier -> owner debts.

    Administrator only. Returns the entries written by this run; an empty
    list when there was nothing to settle.
    """
    actor_id = g.current_user.id
    is_admin = g.session_context.is_admin
    try:
        rows = settlement_service.process_settlement(actor_user_id=actor_id, is_admin=is_admin)
        return jsonify({"settlements": [r.to_dict() for r in rows]}), 200

    except PermissionDeniedError as e:
        return jsonify({"error": "Permission denied", "message": str(e)}), 403
    except SettlementError:
        return jsonify({"error": "Settlement failed; nothing was processed"}), 500
    except Exception:
        current_app.logger.exception("Failed to process settlement")
        return jsonify({"error": "Internal server error"}), 500


@settlements_bp.get("")
@require_auth
@require_admin
def list_settlements_route():
    limit = request.args.get("limit", default=100, type=int)
    rows = settlement_service.list_settlements(limit=limit)
    return jsonify({"settlements": [r.to_dict() for r in rows]}), 200
