# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

"""Sales API routes: checkout (insert or QR update), QR lookup, day list, soft delete"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import lifecycle_service, sales_service, storage_service
from ..services.storage_service import StorageError
from ..time_utils import parse_iso_date, today
from ..validation import ConflictError, NotFoundError, ValidationError
from ..decorators import require_auth


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _sale_payload() -> tuple[dict, str | None, str | None]:
    """
    Sale fields from a JSON body or a multipart form.

    Returns (fields, warning, stored_ref). A multipart `image` file is stored
    first; when storage fails the sale is still recorded, without image, and
    a warning is returned.
    """
    if request.mimetype != "multipart/form-data" and not request.form:
        return request.get_json(silent=True) or {}, None, None

    data = request.form.to_dict()
    image = request.files.get("image")
    if image is None or not image.filename:
        return data, None, None

    ext = storage_service.normalize_extension(image.filename)
    try:
        data["image_url"] = storage_service.store(image.read(), ext)
    except StorageError:
        current_app.logger.warning("Image upload failed; recording sale without image")
        return data, "Image could not be stored; sale saved without image", None
    return data, None, data["image_url"]


def _discard_upload(ref: str | None) -> None:
    """Remove an image stored for a sale that was then rejected."""
    if not ref:
        return
    try:
        storage_service.delete(ref)
    except StorageError:
        current_app.logger.warning("Could not remove image %s of rejected sale", ref)


@sales_bp.post("")
@require_auth
def add_sale_route():
    """
    Record a sale for the current cashier.

    With a qr_id that belongs to a pending purchase the purchase row is
    completed in place (updated=true); otherwise a new sale row is inserted.
    """
    cashier_id = g.current_user.id
    try:
        data, image_warning, stored_ref = _sale_payload()
        try:
            sale, updated = lifecycle_service.record_sale(
                cashier_user_id=cashier_id,
                price=data.get("price"),
                owner_user_id=data.get("owner_user_id"),
                description=data.get("description"),
                cost=data.get("cost"),
                image_url=data.get("image_url"),
                is_pin=data.get("is_pin"),
                qr_id=data.get("qr_id"),
                sold_at=data.get("sold_at"),
            )
        except Exception:
            _discard_upload(stored_ref)
            raise

        body = {"id": sale.id, "updated": updated, "sale": sale.to_dict()}
        if image_warning:
            body["warning"] = image_warning
        return jsonify(body), 200 if updated else 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to record sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@require_auth
def list_sales_route():
    """Sales of one day (?date=YYYY-MM-DD, default today), newest first."""
    try:
        day = parse_iso_date(request.args.get("date")) or today()
    except ValueError:
        return jsonify({"error": "date must be YYYY-MM-DD"}), 400

    sales = sales_service.list_sales(day)
    return jsonify({"date": day.isoformat(), "sales": [s.to_dict() for s in sales]}), 200


@sales_bp.get("/qr/<path:qr_id>")
@require_auth
def get_sale_by_qr_route(qr_id: str):
    """Checkout prefill for a scanned label."""
    try:
        sale = lifecycle_service.resolve_by_qr(qr_id)
        return jsonify({"sale": sale.to_dict()}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@sales_bp.delete("/<int:sale_id>")
@require_auth
def delete_sale_route(sale_id: int):
    try:
        sale, image_removed = sales_service.delete_sale(sale_id)
        return jsonify({"ok": True, "id": sale.id, "image_removed": image_removed}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to delete sale")
        return jsonify({"error": "Internal server error"}), 500
