from __future__ import annotations

from flask import Flask, request

from ..common.datetime_utils import parse_iso_date
from ..common.http import current_identity, identity_required, ok, request_json
from ..core.enums import RequestKind
from ..core.exceptions import ValidationError
from ..container import Container


def register(app: Flask, container: Container) -> None:
    approvals = container.approval_service

    def _required_date(data: dict, field: str):
        value = data.get(field)
        if not value:
            raise ValidationError(f"{field} is required")
        return parse_iso_date(value)

    @app.route("/api/ferie", methods=["POST"], endpoint="submit_leave_request")
    @identity_required
    def submit_leave_request():
        data = request_json()
        req = approvals.submit_leave_request(
            current_identity(),
            tipo=data.get("tipo") or "ferie",
            data_inizio=_required_date(data, "data_inizio"),
            data_fine=_required_date(data, "data_fine"),
            motivo=data.get("motivo", ""),
        )
        return ok(req.to_dict(), message="leave request submitted", status=201)

    @app.route("/api/giustificazioni", methods=["POST"], endpoint="submit_justification")
    @identity_required
    def submit_justification():
        data = request_json()
        req = approvals.submit_justification(
            current_identity(),
            data=_required_date(data, "data"),
            categoria=data.get("categoria", ""),
            spiegazione=data.get("spiegazione", ""),
            entrata_corretta=data.get("entrata_corretta"),
            uscita_corretta=data.get("uscita_corretta"),
        )
        return ok(req.to_dict(), message="justification submitted", status=201)

    @app.route("/api/richieste", methods=["GET"], endpoint="my_requests")
    @identity_required
    def my_requests():
        return ok([r.to_dict() for r in approvals.list_my_requests(current_identity())])

    @app.route("/api/richieste/in-attesa", methods=["GET"], endpoint="pending_requests")
    @identity_required
    def pending_requests():
        kind_s = request.args.get("tipo")
        try:
            kind = RequestKind(kind_s) if kind_s else None
        except ValueError:
            raise ValidationError("tipo must be ferie or giustificazione")
        return ok([r.to_dict() for r in approvals.list_pending(current_identity(), kind=kind)])

    @app.route("/api/richieste/<int:request_id>/decisione", methods=["POST"], endpoint="decide_request")
    @identity_required
    def decide_request(request_id: int):
        data = request_json()
        giorni = data.get("giorni")
        if giorni is not None:
            try:
                giorni = int(giorni)
            except (TypeError, ValueError):
                raise ValidationError("giorni must be an integer")
        req = approvals.decide_request(
            current_identity(),
            request_id,
            data.get("esito", ""),
            admin_note=data.get("nota"),
            giorni=giorni,
        )
        return ok(req.to_dict(), message=f"request {req.status.value}")
