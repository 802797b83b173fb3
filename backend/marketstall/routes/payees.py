# Overview: Flask API routes for payee mappings; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request, g, current_app

from ..services import payout_service
from ..validation import PermissionDeniedError, ValidationError
from ..decorators import require_auth


payees_bp = Blueprint("payees", __name__, url_prefix="/api/payees")


@payees_bp.get("")
@require_auth
def list_mappings_route():
    mappings = payout_service.list_mappings()
    return jsonify({"mappings": [m.to_dict() for m in mappings]}), 200


@payees_bp.put("/<int:owner_id>")
@require_auth
def update_mapping_route(owner_id: int):
    """Route the payouts of `owner_id` to the payment QR of `qr_user_id`. Administrator only."""
    actor_id = g.current_user.id
    is_admin = g.session_context.is_admin
    try:
        data = request.get_json(silent=True) or {}
        mapping = payout_service.update_mapping(
            owner_id, data.get("qr_user_id"), actor_user_id=actor_id, is_admin=is_admin,
        )
        return jsonify({"success": True, "mapping": mapping.to_dict()}), 200

    except PermissionDeniedError as e:
        return jsonify({"error": "Permission denied", "message": str(e)}), 403
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update payee mapping")
        return jsonify({"error": "Internal server error"}), 500


@payees_bp.delete("/<int:owner_id>")
@require_auth
def delete_mapping_route(owner_id: int):
    is_admin = g.session_context.is_admin
    try:
        deleted = payout_service.delete_mapping(owner_id, is_admin=is_admin)
        return jsonify({"success": True, "deleted": deleted}), 200

    except PermissionDeniedError as e:
        return jsonify({"error": "Permission denied", "message": str(e)}), 403
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to delete payee mapping")
        return jsonify({"error": "Internal server error"}), 500
