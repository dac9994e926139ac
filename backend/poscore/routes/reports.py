# Overview: Flask API routes for reports operations; parses input and returns JSON responses.

from flask import Blueprint, Response, request, jsonify, current_app

from ..decorators import require_auth, require_role, error_response
from ..services import report_export, reporting_service
from ..services.auth_service import ROLE_OWNER
from ..services.errors import PosError


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/summary")
@require_auth
@require_role(ROLE_OWNER)
def summary_report():
    """Query params: start_date, end_date (YYYY-MM-DD, inclusive)."""
    try:
        report = reporting_service.summarize(
            request.args.get("start_date"),
            request.args.get("end_date"),
        )
        return jsonify(report), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build sales summary")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/summary/export")
@require_auth
@require_role(ROLE_OWNER)
def export_summary_report():
    """Query params: start_date, end_date, format (csv | xlsx, default csv)."""
    try:
        report = reporting_service.summarize(
            request.args.get("start_date"),
            request.args.get("end_date"),
        )
        content, mimetype, filename = report_export.export_summary(report, request.args.get("format"))
        return Response(
            content,
            mimetype=mimetype,
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to export sales summary")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/rollups")
@require_auth
@require_role(ROLE_OWNER)
def rollups_report():
    try:
        return jsonify(reporting_service.sales_rollups()), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build sales rollups")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/rollups/<string:period>")
@require_auth
@require_role(ROLE_OWNER)
def rollup_report(period: str):
    try:
        return jsonify(reporting_service.rollup(period)), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build sales rollup")
        return jsonify({"error": "Internal server error"}), 500
