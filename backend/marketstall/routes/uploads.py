# Overview: Flask API routes for item photos; parses input and returns JSON responses.

import os

from flask import Blueprint, request, jsonify, current_app, send_from_directory, url_for

from ..services import storage_service
from ..services.storage_service import StorageError
from ..validation import ValidationError
from ..decorators import require_auth


uploads_bp = Blueprint("uploads", __name__, url_prefix="/api/uploads")


@uploads_bp.post("")
@require_auth
def upload_image_route():
    """Store a multipart `image` file; returns the ref to put in image_url."""
    image = request.files.get("image")
    if image is None or not image.filename:
        return jsonify({"error": "No file received"}), 400

    try:
        filename = storage_service.store(image.read(), image.filename)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except StorageError:
        current_app.logger.exception("Failed to store uploaded image")
        return jsonify({"error": "Could not store file"}), 500

    return jsonify({
        "success": True,
        "filename": filename,
        "url": url_for("uploads.get_image_route", filename=filename, _external=True),
    }), 201


@uploads_bp.get("/<path:filename>")
def get_image_route(filename: str):
    folder, name = storage_service.resolve(filename)
    if not name or not os.path.isfile(os.path.join(folder, name)):
        return jsonify({"error": "Image not found"}), 404
    return send_from_directory(folder, name)
