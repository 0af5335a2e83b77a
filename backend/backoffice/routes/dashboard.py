# Overview: Flask API routes for the dashboard; read-only aggregates.

from flask import Blueprint, request, jsonify, current_app

from ..services import reporting_service
from ..services.reporting_service import ReportError
from ..responses import server_error

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("/summary")
def dashboard_summary_route():
    """
    Dashboard cards, weekly income chart and top orders.

    Query params:
    - start, end: ISO-8601 range, end exclusive (both or neither;
      default is the current calendar month)
    """
    try:
        start, end = reporting_service.resolve_range(request.args.get("start"), request.args.get("end"))
    except ReportError as e:
        return jsonify({"errors": [{"field": "start", "message": str(e)}]}), 400

    try:
        summary = reporting_service.dashboard_summary(
            start=start,
            end=end,
            low_stock_threshold=current_app.config["LOW_STOCK_THRESHOLD"],
            low_stock_limit=current_app.config["LOW_STOCK_LIMIT"],
        )
        return jsonify(summary), 200
    except Exception:
        return server_error("Failed to build dashboard summary")
