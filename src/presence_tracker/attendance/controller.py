from __future__ import annotations

from typing import Optional

from flask import Flask, request

from ..common.http import current_scope, login_required, ok, page_request, paginated, payload
from ..common.validators import FieldErrors
from ..core.constants import MAX_ADDRESS_LENGTH, MAX_NOTES_LENGTH
from ..core.enums import EventKind, EventSource
from ..policies.controller import policy_to_dict
from .model import AttendanceEvent, EventFilters, Location
from .service import AttendanceLedger


def event_to_dict(event: Optional[AttendanceEvent], work_duration: Optional[int] = None) -> Optional[dict]:
    if event is None:
        return None
    return {
        "id": event.event_id,
        "user_id": event.user_id,
        "type": event.kind.value,
        "source": event.source.value,
        "status": event.status.value,
        "presence_time": event.timestamp.isoformat(),
        "presence_date": event.event_date.isoformat(),
        "latitude": event.location.latitude,
        "longitude": event.location.longitude,
        "address": event.location.address,
        "data": event.data,
        "is_valid": event.is_valid,
        "notes": event.notes,
        "work_duration": work_duration,
    }


def events_to_dicts(events, ledger: AttendanceLedger) -> list:
    durations = ledger.work_durations(events)
    return [event_to_dict(e, durations.get(e.event_id)) for e in events]


def _location(data: dict, errors: FieldErrors) -> Location:
    return Location(
        latitude=errors.number(data, "latitude", low=-90, high=90),
        longitude=errors.number(data, "longitude", low=-180, high=180),
        address=errors.string(data, "address", max_len=MAX_ADDRESS_LENGTH),
    )


def _filters(args) -> EventFilters:
    errors = FieldErrors()
    user_id = errors.integer(args, "user_id")
    on_date = errors.date(args, "date")
    date_from = errors.date(args, "date_from")
    date_to = errors.date(args, "date_to")
    kind = errors.choice(args, "kind", list(EventKind))
    source = errors.choice(args, "source", list(EventSource))

    if (date_from is None) != (date_to is None) and not errors.has("date_from") and not errors.has("date_to"):
        missing = "date_to" if date_to is None else "date_from"
        errors.add(missing, "Required when date_from or date_to is present.")
    if date_from and date_to and date_to < date_from:
        errors.add("date_to", "Must be a date after or equal to date_from.")
    errors.raise_if_any()

    return EventFilters(
        user_id=user_id,
        on_date=on_date,
        date_from=date_from,
        date_to=date_to,
        kind=kind,
        source=source,
    )


def register(app: Flask, container) -> None:
    ledger: AttendanceLedger = container.attendance_ledger

    def _one(event: Optional[AttendanceEvent]) -> Optional[dict]:
        if event is None:
            return None
        return event_to_dict(event, ledger.work_duration(event))

    def _write_inputs():
        data = payload()
        errors = FieldErrors()
        location = _location(data, errors)
        notes = errors.string(data, "notes", max_len=MAX_NOTES_LENGTH)
        raw = errors.string(data, "data")
        errors.raise_if_any()
        return {
            "location": location,
            "notes": notes,
            "data": {"raw": raw} if raw else None,
            "photo": request.files.get("photo"),
        }

    @app.route("/presence/checkin", methods=["POST"], endpoint="presence_checkin")
    @login_required
    def presence_checkin():
        event = ledger.check_in(current_scope(), **_write_inputs())
        return ok(_one(event), "Check-in successful", 201)

    @app.route("/presence/checkout", methods=["POST"], endpoint="presence_checkout")
    @login_required
    def presence_checkout():
        event = ledger.check_out(current_scope(), **_write_inputs())
        return ok(_one(event), "Check-out successful", 201)

    @app.route("/presence/status", methods=["GET"], endpoint="presence_status")
    @login_required
    def presence_status():
        status = ledger.status(current_scope())
        return ok(
            {
                "has_checked_in": status.has_checked_in,
                "has_checked_out": status.has_checked_out,
                "can_check_in": status.can_check_in,
                "can_check_out": status.can_check_out,
                "is_checked_in": status.is_checked_in,
                "is_completed": status.is_completed,
                "checkin": _one(status.checkin),
                "checkout": _one(status.checkout),
                "config": policy_to_dict(status.policy) if status.policy else None,
            }
        )

    @app.route("/presence/today", methods=["GET"], endpoint="presence_today")
    @login_required
    def presence_today():
        today = ledger.today(current_scope())
        return ok({"presence": _one(today.presence), "status": today.status.value})

    @app.route("/presence/history", methods=["GET"], endpoint="presence_history")
    @login_required
    def presence_history():
        page = ledger.history(current_scope(), _filters(request.args), page_request())
        return ok(paginated(page, events_to_dicts(page.items, ledger)))

    @app.route("/presence/company-history", methods=["GET"], endpoint="presence_company_history")
    @login_required
    def presence_company_history():
        errors = FieldErrors()
        company_id = errors.integer(request.args, "company_id")
        errors.raise_if_any()

        page = ledger.company_history(
            current_scope(),
            _filters(request.args),
            page_request(),
            tenant_id=company_id,
        )
        return ok(paginated(page, events_to_dicts(page.items, ledger)))

    @app.route("/presence", methods=["GET"], endpoint="presence_index")
    @login_required
    def presence_index():
        page = ledger.query(current_scope(), _filters(request.args), page_request())
        return ok(paginated(page, events_to_dicts(page.items, ledger)))

    @app.route("/presence/<int:event_id>", methods=["GET"], endpoint="presence_show")
    @login_required
    def presence_show(event_id: int):
        return ok(_one(ledger.get(current_scope(), event_id)))

    @app.route("/presence/<int:event_id>", methods=["DELETE"], endpoint="presence_destroy")
    @login_required
    def presence_destroy(event_id: int):
        ledger.delete(current_scope(), event_id)
        return ok(message="Presence deleted successfully")

    @app.route("/public/presence", methods=["POST"], endpoint="public_presence")
    def public_presence():
        data = payload()
        errors = FieldErrors()
        kind_hint = data.get("type")
        if kind_hint in (None, ""):
            errors.add("type", "This field is required.")
        raw = errors.string(data, "data", required=True)
        location = _location(data, errors)
        token = errors.string(data, "token")
        errors.raise_if_any()

        principal = container.auth_service.try_resolve_token(token)
        event, action = ledger.device_ingest(kind_hint, raw, principal=principal, location=location)
        message = "Check-in successful" if action == EventKind.CHECKIN else "Check-out successful"
        return ok({"presence": _one(event), "action": action.value}, message, 201)
