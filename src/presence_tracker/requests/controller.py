from __future__ import annotations

from flask import Flask, request

from ..common.http import current_scope, login_required, ok, page_request, paginated, payload
from ..common.validators import FieldErrors
from ..core.constants import MAX_ATTACHMENT_PATH_LENGTH, MAX_NOTES_LENGTH, MAX_REASON_LENGTH
from ..core.enums import RequestStatus, RequestType
from .model import ExceptionRequest, RequestDraft, RequestFilters


def request_to_dict(req: ExceptionRequest) -> dict:
    return {
        "id": req.request_id,
        "user_id": req.user_id,
        "user_name": req.requester_name,
        "request_type": req.request_type.value,
        "start_date": req.start_date.isoformat(),
        "end_date": req.end_date.isoformat(),
        "reason": req.reason,
        "attachment_path": req.attachment_path,
        "status": req.status.value,
        "approved_by": req.approved_by,
        "approved_at": req.approved_at.isoformat() if req.approved_at else None,
        "approval_notes": req.approval_notes,
        "created_at": req.created_at.isoformat() if req.created_at else None,
    }


def _draft_from(data: dict) -> RequestDraft:
    errors = FieldErrors()
    request_type = errors.choice(data, "request_type", list(RequestType), required=True)
    start_date = errors.date(data, "start_date", required=True)
    end_date = errors.date(data, "end_date")
    reason = errors.string(data, "reason", required=True, max_len=MAX_REASON_LENGTH)
    attachment_path = errors.string(data, "attachment_path", max_len=MAX_ATTACHMENT_PATH_LENGTH)
    errors.raise_if_any()

    return RequestDraft(
        request_type=request_type,
        start_date=start_date,
        end_date=end_date or start_date,
        reason=reason,
        attachment_path=attachment_path,
    )


def _filters(args) -> RequestFilters:
    errors = FieldErrors()
    status = errors.choice(args, "status", list(RequestStatus))
    user_id = errors.integer(args, "user_id")
    date_from = errors.date(args, "date_from")
    date_to = errors.date(args, "date_to")
    errors.raise_if_any()

    # A date range only applies when both ends are given.
    if date_from is None or date_to is None:
        date_from = date_to = None
    return RequestFilters(
        status=status,
        user_id=user_id,
        date_from=date_from,
        date_to=date_to,
    )


def register(app: Flask, container) -> None:
    workflow = container.request_workflow

    @app.route("/manual-presence-requests", methods=["GET"], endpoint="requests_index")
    @login_required
    def requests_index():
        page = workflow.list(current_scope(), _filters(request.args), page_request())
        return ok(paginated(page, [request_to_dict(r) for r in page.items]))

    @app.route("/manual-presence-requests/my-requests", methods=["GET"], endpoint="requests_mine")
    @login_required
    def requests_mine():
        page = workflow.my_requests(current_scope(), _filters(request.args), page_request())
        return ok(paginated(page, [request_to_dict(r) for r in page.items]))

    @app.route("/manual-presence-requests", methods=["POST"], endpoint="requests_store")
    @login_required
    def requests_store():
        req = workflow.submit(current_scope(), _draft_from(payload()))
        return ok(request_to_dict(req), "Manual presence request submitted successfully", 201)

    @app.route("/manual-presence-requests/<int:request_id>", methods=["GET"], endpoint="requests_show")
    @login_required
    def requests_show(request_id: int):
        return ok(request_to_dict(workflow.get(current_scope(), request_id)))

    @app.route("/manual-presence-requests/<int:request_id>", methods=["PUT"], endpoint="requests_update")
    @login_required
    def requests_update(request_id: int):
        req = workflow.update(current_scope(), request_id, _draft_from(payload()))
        return ok(request_to_dict(req), "Manual presence request updated successfully")

    @app.route("/manual-presence-requests/<int:request_id>", methods=["DELETE"], endpoint="requests_destroy")
    @login_required
    def requests_destroy(request_id: int):
        workflow.withdraw(current_scope(), request_id)
        return ok(message="Manual presence request deleted successfully")

    @app.route("/manual-presence-requests/<int:request_id>/approve", methods=["PATCH"], endpoint="requests_approve")
    @login_required
    def requests_approve(request_id: int):
        errors = FieldErrors()
        notes = errors.string(payload(), "approval_notes", max_len=MAX_NOTES_LENGTH)
        errors.raise_if_any()

        req = workflow.approve(current_scope(), request_id, notes=notes)
        return ok(request_to_dict(req), "Manual presence request approved successfully")

    @app.route("/manual-presence-requests/<int:request_id>/reject", methods=["PATCH"], endpoint="requests_reject")
    @login_required
    def requests_reject(request_id: int):
        errors = FieldErrors()
        reason = errors.string(payload(), "rejection_reason", required=True, max_len=MAX_REASON_LENGTH)
        errors.raise_if_any()

        req = workflow.reject(current_scope(), request_id, reason=reason)
        return ok(request_to_dict(req), "Manual presence request rejected successfully")
