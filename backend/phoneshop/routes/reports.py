# Overview: Flask API routes for reports operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..services import reporting_service
from ..services.reporting_service import ReportError


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _run(report, name: str, **kwargs):
    try:
        return jsonify(report(start=request.args.get("start"), end=request.args.get("end"), **kwargs)), 200
    except ReportError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to generate %s report", name)
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/sales")
def sales_report_route():
    """
    Sales totals over ?start=&end= (ISO-8601), optionally for one customer_id.
    """
    return _run(reporting_service.sales_report, "sales", customer_id=request.args.get("customer_id", type=int))


@reports_bp.get("/purchases")
def purchase_report_route():
    return _run(reporting_service.purchase_report, "purchase", supplier_id=request.args.get("supplier_id", type=int))


@reports_bp.get("/repairs")
def repair_report_route():
    return _run(reporting_service.repair_report, "repair")


@reports_bp.get("/financial-summary")
def financial_summary_route():
    """Revenue, expenses, profit, receivables and payables. OWNER only."""
    return _run(reporting_service.financial_summary, "financial summary")


@reports_bp.get("/dashboard")
def dashboard_route():
    try:
        return jsonify(reporting_service.dashboard()), 200
    except Exception:
        current_app.logger.exception("Failed to build dashboard")
        return jsonify({"error": "Internal server error"}), 500
