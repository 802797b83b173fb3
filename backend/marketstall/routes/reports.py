from flask import Blueprint, jsonify, request

from marketstall.decorators import require_auth
from marketstall.services import reporting_service
from marketstall.time_utils import parse_iso_date
from marketstall.validation import ValidationError


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/breakdown")
@require_auth
def breakdown_report():
    try:
        ref_date = parse_iso_date(request.args.get("date"))
    except ValueError:
        return jsonify({"error": "date must be YYYY-MM-DD"}), 400

    period = request.args.get("range", "day").lower()

    try:
        report = reporting_service.breakdown(ref_date, period)
        return jsonify(report), 200
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400
