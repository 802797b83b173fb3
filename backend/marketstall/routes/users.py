# Overview: Flask API routes for users and their payment details; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request, g, current_app

from ..services import auth_service, payout_service
from ..services.storage_service import StorageError
from ..validation import NotFoundError, PermissionDeniedError, ValidationError
from ..decorators import require_auth


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


def _public(user) -> dict:
    return {"id": user.id, "name": user.name, "iban": user.iban, "qr_url": user.qr_url}


@users_bp.get("")
@require_auth
def list_users_route():
    """Active owners (non-admin users) for the owner picker."""
    users = auth_service.list_owners()
    return jsonify({"users": [_public(u) for u in users]}), 200


@users_bp.patch("/<int:user_id>")
@require_auth
def update_user_route(user_id: int):
    """
    Update payment details (iban, qr_url).

    Only the keys present in the body are changed; users edit themselves,
    administrators anyone.
    """
    actor_id = g.current_user.id
    is_admin = g.session_context.is_admin
    try:
        data = request.get_json(silent=True) or {}
        user = payout_service.update_profile(user_id, data, actor_user_id=actor_id, is_admin=is_admin)
        return jsonify({"success": True, "user": _public(user)}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except PermissionDeniedError as e:
        return jsonify({"error": "Permission denied", "message": str(e)}), 403
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update user")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.post("/<int:user_id>/qr")
@require_auth
def upload_payment_qr_route(user_id: int):
    """Upload a payment QR image (multipart `qr_image`) and make it the user's qr_url."""
    actor_id = g.current_user.id
    is_admin = g.session_context.is_admin
    image = request.files.get("qr_image")
    if image is None or not image.filename:
        return jsonify({"error": "No file received"}), 400

    try:
        user = payout_service.set_payment_qr(
            user_id, image.read(), image.filename, actor_user_id=actor_id, is_admin=is_admin,
        )
        return jsonify({"success": True, "filename": user.qr_url, "user": _public(user)}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except PermissionDeniedError as e:
        return jsonify({"error": "Permission denied", "message": str(e)}), 403
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except StorageError:
        current_app.logger.exception("Failed to store payment QR")
        return jsonify({"error": "Could not store file"}), 500
    except Exception:
        current_app.logger.exception("Failed to update payment QR")
        return jsonify({"error": "Internal server error"}), 500
