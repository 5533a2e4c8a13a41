from __future__ import annotations

from flask import Flask, request

from ..common.datetime_utils import parse_iso_date
from ..common.http import current_identity, identity_required, ok
from ..core.enums import StatsPeriod
from ..core.exceptions import ValidationError
from ..container import Container


def register(app: Flask, container: Container) -> None:
    statistics = container.statistics_service
    exporter = container.payroll_export_service

    @app.route("/api/statistiche", methods=["GET"], endpoint="statistics")
    @identity_required
    def statistics_view():
        try:
            period = StatsPeriod(request.args.get("periodo") or StatsPeriod.MESE.value)
        except ValueError:
            raise ValidationError("periodo must be settimana or mese")

        ref_s = request.args.get("riferimento")
        user_s = request.args.get("user_id")
        try:
            user_id = int(user_s) if user_s else None
        except ValueError:
            raise ValidationError("user_id must be an integer")

        stats = statistics.get_statistics(
            current_identity(),
            user_id=user_id,
            period=period,
            reference=parse_iso_date(ref_s) if ref_s else None,
        )
        return ok(stats.to_dict())

    @app.route("/api/export", methods=["GET"], endpoint="export_period")
    @identity_required
    def export_period():
        start_s = request.args.get("start")
        end_s = request.args.get("end")
        if not start_s or not end_s:
            raise ValidationError("start and end are required")

        result = exporter.export_period(
            current_identity(),
            parse_iso_date(start_s),
            parse_iso_date(end_s),
            request.args.get("formato") or "csv",
        )
        return app.response_class(
            result.content.encode("utf-8"),
            mimetype=result.mimetype,
            headers={"Content-Disposition": f"attachment; filename={result.filename}"},
        )
