from __future__ import annotations

import io

from flask import Flask, request, send_file

from ..common.datetime_utils import parse_iso_date
from ..common.http import current_identity, identity_required, ok, request_json
from ..core.enums import Direction, PunchMethod
from ..core.exceptions import NotFoundError, ValidationError
from ..core.policy import Action, require
from ..container import Container


def register(app: Flask, container: Container) -> None:
    clock_service = container.clock_service
    token_issuer = container.token_issuer

    def _parse_method(value) -> PunchMethod:
        try:
            return PunchMethod(value or PunchMethod.MANUAL.value)
        except ValueError:
            raise ValidationError("metodo must be qr or manual")

    @app.route("/api/timbrature/oggi", methods=["GET"], endpoint="timbratura_oggi")
    @identity_required
    def timbratura_oggi():
        me = current_identity()
        record = clock_service.current(me.user_id)
        return ok(
            {
                "stato": clock_service.state_of(me.user_id).value,
                "timbratura": record.to_dict() if record else None,
            }
        )

    @app.route("/api/timbrature/mie", methods=["GET"], endpoint="my_timbrature")
    @identity_required
    def my_timbrature():
        records = clock_service.my_history(current_identity())
        return ok([r.to_dict() for r in records])

    @app.route("/api/timbrature/giorno", methods=["GET"], endpoint="today_timbrature")
    @identity_required
    def today_timbrature():
        return ok([r.to_dict() for r in clock_service.today_entries(current_identity())])

    @app.route("/api/timbrature", methods=["GET"], endpoint="list_timbrature")
    @identity_required
    def list_timbrature():
        start_s = request.args.get("start")
        end_s = request.args.get("end")
        user_s = request.args.get("user_id")
        try:
            user_id = int(user_s) if user_s else None
        except ValueError:
            raise ValidationError("user_id must be an integer")

        records = clock_service.list_timbrature(
            current_identity(),
            start=parse_iso_date(start_s) if start_s else None,
            end=parse_iso_date(end_s) if end_s else None,
            user_id=user_id,
        )
        return ok([r.to_dict() for r in records])

    @app.route("/api/timbrature/entrata", methods=["POST"], endpoint="punch_in")
    @identity_required
    def punch_in():
        me = current_identity()
        require(Action.PUNCH_SELF, me.role)
        data = request_json()
        record = clock_service.punch_in(
            me.user_id,
            method=_parse_method(data.get("metodo")),
            token_id=data.get("token"),
            commessa=data.get("commessa"),
            note=data.get("note"),
        )
        return ok(record.to_dict(), message="entrata recorded", status=201)

    @app.route("/api/timbrature/pausa/inizio", methods=["POST"], endpoint="punch_break_start")
    @identity_required
    def punch_break_start():
        me = current_identity()
        require(Action.PUNCH_SELF, me.role)
        return ok(clock_service.punch_break_start(me.user_id).to_dict(), message="break started")

    @app.route("/api/timbrature/pausa/fine", methods=["POST"], endpoint="punch_break_end")
    @identity_required
    def punch_break_end():
        me = current_identity()
        require(Action.PUNCH_SELF, me.role)
        return ok(clock_service.punch_break_end(me.user_id).to_dict(), message="break ended")

    @app.route("/api/timbrature/uscita", methods=["POST"], endpoint="punch_out")
    @identity_required
    def punch_out():
        me = current_identity()
        require(Action.PUNCH_SELF, me.role)
        return ok(clock_service.punch_out(me.user_id).to_dict(), message="uscita recorded")

    @app.route("/api/timbrature/<int:timbratura_id>/approva", methods=["POST"], endpoint="approve_timbratura")
    @identity_required
    def approve_timbratura(timbratura_id: int):
        record = clock_service.approve_timbratura(current_identity(), timbratura_id)
        return ok(record.to_dict(), message="attendance record approved")

    @app.route("/api/timbrature/badge", methods=["POST"], endpoint="punch_by_badge")
    @identity_required
    def punch_by_badge():
        """Front-desk punch for an employee without a personal terminal."""

        data = request_json()
        try:
            direction = Direction(data.get("tipo") or "")
        except ValueError:
            raise ValidationError("tipo must be entrata or uscita")
        employee, record = clock_service.punch_by_badge(current_identity(), data.get("badge", ""), direction)
        return ok(
            {"user": {"nome": employee.nome, "cognome": employee.cognome}, "timbratura": record.to_dict()},
            message=f"{direction.value} recorded for {employee.full_name}",
        )

    # ===== QR KIOSK =====

    @app.route("/api/qr/token", methods=["POST"], endpoint="issue_token")
    @identity_required
    def issue_token():
        token = token_issuer.issue_for(current_identity())
        return ok(
            {
                "token": token.token_id,
                "issued_at": token.issued_at.isoformat(timespec="seconds"),
                "expires_at": token.expires_at.isoformat(timespec="seconds"),
                "payload": token_issuer.qr_payload(token),
            },
            status=201,
        )

    @app.route("/api/qr/token/<token_id>.png", methods=["GET"], endpoint="token_qr_image")
    @identity_required
    def token_qr_image(token_id: str):
        require(Action.ISSUE_TOKEN, current_identity().role)
        token = container.tokens_repo.get(token_id)
        if token is None:
            raise NotFoundError("punch token not found")
        png = token_issuer.render_qr_png(token)
        return send_file(io.BytesIO(png), mimetype="image/png")

    @app.route("/api/qr/timbra", methods=["POST"], endpoint="punch_via_token")
    @identity_required
    def punch_via_token():
        """Scanner client: clock in or out with a kiosk token."""

        me = current_identity()
        require(Action.PUNCH_SELF, me.role)
        data = request_json()
        direction, record = clock_service.punch_via_token(me.user_id, data.get("qr") or data.get("token") or "")
        return ok({"azione": direction.value, "timbratura": record.to_dict()}, message=f"{direction.value} recorded")
