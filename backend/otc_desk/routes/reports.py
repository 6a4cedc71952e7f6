from flask import Blueprint, Response, current_app, jsonify, request

from ..decorators import require_admin
from ..services import export_service, reporting_service


reports_bp = Blueprint("reports", __name__, url_prefix="/api/export")


@reports_bp.get("/profits")
@require_admin
def export_profits():
    """
    Profit report as .xlsx for [from, to] (inclusive days).

    status=completed (default) filters by completion time; any other status,
    or "all", filters by creation time. An empty range returns JSON with
    reason=no_data instead of an empty workbook.
    """
    start = request.args.get("from")
    end = request.args.get("to")
    status = request.args.get("status", "completed")

    try:
        report = reporting_service.profit_report(start=start, end=end, status=status)
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400

    if not report.orders:
        return jsonify({
            "reason": "no_data",
            "error": "No orders in the selected date range and status.",
            "from": report.start.isoformat(),
            "to": report.end.isoformat(),
            "status": report.status,
        }), 200

    data = export_service.build_profit_workbook(report)
    filename = export_service.report_filename(report)
    current_app.logger.info(
        "profit export from=%s to=%s status=%s orders=%d",
        report.start, report.end, report.status, len(report.orders),
    )
    return Response(
        data,
        status=200,
        mimetype=export_service.XLSX_CONTENT_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
