# Overview: Flask API routes for the purchase phase; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..services import lifecycle_service
from ..validation import ConflictError, NotFoundError, ValidationError
from ..decorators import require_auth


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.post("")
@require_auth
def add_purchase_route():
    """
    Register a purchased item (cost known, price unknown).

    owner_user_id defaults to the current user, as on the purchase screen.
    Accepts purchase_is_pin / purchase_remarks as aliases of is_pin / remarks.
    """
    try:
        data = request.get_json(silent=True) or {}
        purchase = lifecycle_service.create_purchase(
            data.get("description"),
            data.get("cost"),
            data.get("owner_user_id") or g.current_user.id,
            target_price=data.get("target_price"),
            remarks=data.get("remarks", data.get("purchase_remarks")),
            is_pin=data.get("is_pin", data.get("purchase_is_pin")),
            qr_id=data.get("qr_id"),
            image_url=data.get("image_url"),
            purchased_at=data.get("purchased_at"),
        )
        return jsonify({"id": purchase.id, "purchase": purchase.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to add purchase")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.get("")
@require_auth
def list_purchases_route():
    """Pending purchases, newest first. ?untagged=true hides items that already have a QR."""
    purchases = lifecycle_service.list_pending_purchases()
    if request.args.get("untagged", "false").lower() == "true":
        purchases = [p for p in purchases if not p.qr_id]
    return jsonify({"purchases": [p.to_dict() for p in purchases]}), 200


@purchases_bp.post("/<int:sale_id>/qr")
@require_auth
def attach_qr_route(sale_id: int):
    try:
        data = request.get_json(silent=True) or {}
        sale = lifecycle_service.attach_qr(sale_id, data.get("qr_id"))
        return jsonify({"id": sale.id, "qr_id": sale.qr_id}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to attach QR")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.patch("/<int:sale_id>/image")
@require_auth
def update_purchase_image_route(sale_id: int):
    try:
        data = request.get_json(silent=True) or {}
        sale = lifecycle_service.set_purchase_image(sale_id, data.get("image_url"))
        return jsonify({"purchase": sale.to_dict()}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update purchase image")
        return jsonify({"error": "Internal server error"}), 500
