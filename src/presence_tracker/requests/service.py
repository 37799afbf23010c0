from __future__ import annotations

import logging
from contextlib import AbstractContextManager
from datetime import date, datetime
from typing import Callable, Optional

from ..access.model import Action
from ..access.scope import AccessScope
from ..attendance.service import AttendanceLedger
from ..common.datetime_utils import now_local
from ..common.pagination import Page, PageRequest
from ..core.constants import (
    DEFAULT_MANUAL_CHECKIN_TIME,
    MAX_ATTACHMENT_PATH_LENGTH,
    MAX_NOTES_LENGTH,
    MAX_REASON_LENGTH,
)
from ..core.enums import RequestStatus
from ..core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..users.repository import UserRepository
from .model import ExceptionRequest, RequestDraft, RequestFilters
from .repository import ExceptionRequestRepository

logger = logging.getLogger(__name__)

NOT_FOUND = "Manual presence request not found"
ALREADY_PROCESSED = "Request not found or already processed"
OVERLAPPING = "Manual presence request for this date already exists"


class ExceptionRequestWorkflow:
    """pending -> approved | rejected, each terminal and reachable exactly once.

    Approval flips the request and writes the synthetic checkin in one
    transaction. Overlap checks for a user's pending requests run under a lock
    on that user's row.
    """

    def __init__(
        self,
        requests: ExceptionRequestRepository,
        users: UserRepository,
        ledger: AttendanceLedger,
        *,
        transaction: Callable[[], AbstractContextManager],
    ):
        self._requests = requests
        self._users = users
        self._ledger = ledger
        self._transaction = transaction

    @staticmethod
    def _validate(draft: RequestDraft, today: date) -> None:
        # Future dates are refused for every request type, including leave filed in advance.
        errors: dict[str, list[str]] = {}
        if draft.start_date > today:
            errors.setdefault("start_date", []).append("May not be in the future.")
        if draft.end_date > today:
            errors.setdefault("end_date", []).append("May not be in the future.")
        if draft.end_date < draft.start_date:
            errors.setdefault("end_date", []).append("Must be a date after or equal to start_date.")
        if not (draft.reason or "").strip():
            errors.setdefault("reason", []).append("This field is required.")
        elif len(draft.reason) > MAX_REASON_LENGTH:
            errors.setdefault("reason", []).append(f"May not be greater than {MAX_REASON_LENGTH} characters.")
        if draft.attachment_path and len(draft.attachment_path) > MAX_ATTACHMENT_PATH_LENGTH:
            errors.setdefault("attachment_path", []).append(
                f"May not be greater than {MAX_ATTACHMENT_PATH_LENGTH} characters."
            )
        if errors:
            raise ValidationError("Validation failed", errors)

    def _load(self, scope: AccessScope, request_id: int) -> ExceptionRequest:
        req = self._requests.get_by_id(int(request_id))
        if not req:
            raise NotFoundError(NOT_FOUND)
        scope.ensure_visible(owner_id=req.user_id, owner_tenant_id=req.owner_tenant_id, message=NOT_FOUND)
        return req

    def _ensure_no_overlap(self, user_id: int, draft: RequestDraft, *, exclude_id: Optional[int] = None) -> None:
        clash = self._requests.find_pending_overlapping(
            user_id=user_id,
            start_date=draft.start_date,
            end_date=draft.end_date,
            exclude_id=exclude_id,
        )
        if clash:
            raise ConflictError(OVERLAPPING)

    def submit(self, scope: AccessScope, draft: RequestDraft, *, today: Optional[date] = None) -> ExceptionRequest:
        scope.require(Action.SUBMIT_REQUEST)
        self._validate(draft, today or now_local().date())
        user_id = scope.principal.user_id

        with self._transaction():
            self._users.lock(user_id)
            self._ensure_no_overlap(user_id, draft)
            request_id = self._requests.insert(user_id=user_id, draft=draft)

        logger.info("Request %s submitted by user %s (%s)", request_id, user_id, draft.request_type.value)
        return self._requests.get_by_id(request_id)

    def update(
        self,
        scope: AccessScope,
        request_id: int,
        draft: RequestDraft,
        *,
        today: Optional[date] = None,
    ) -> ExceptionRequest:
        scope.require(Action.SUBMIT_REQUEST)
        self._validate(draft, today or now_local().date())

        with self._transaction():
            req = self._load(scope, request_id)
            if req.user_id != scope.principal.user_id:
                raise AuthorizationError("You can only update your own requests")
            self._users.lock(req.user_id)
            if not req.is_pending:
                raise ConflictError("Only pending requests can be updated")
            self._ensure_no_overlap(req.user_id, draft, exclude_id=req.request_id)
            if not self._requests.update_if_pending(request_id=req.request_id, draft=draft):
                raise ConflictError("Only pending requests can be updated")

        logger.info("Request %s updated", req.request_id)
        return self._requests.get_by_id(req.request_id)

    def withdraw(self, scope: AccessScope, request_id: int) -> None:
        scope.require(Action.WITHDRAW_REQUEST)

        with self._transaction():
            req = self._load(scope, request_id)
            if not req.is_pending or not self._requests.delete_if_pending(request_id=req.request_id):
                raise ConflictError("Only pending requests can be deleted")

        logger.info("Request %s withdrawn", req.request_id)

    def approve(
        self,
        scope: AccessScope,
        request_id: int,
        *,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ExceptionRequest:
        scope.require(Action.DECIDE_REQUEST)
        if notes and len(notes) > MAX_NOTES_LENGTH:
            raise ValidationError(
                "Validation failed", {"approval_notes": [f"May not be greater than {MAX_NOTES_LENGTH} characters."]}
            )
        now = now or now_local()
        approver = scope.principal

        with self._transaction():
            req = self._load(scope, request_id)
            if not req.is_pending:
                raise NotFoundError(ALREADY_PROCESSED)
            decided = self._requests.decide_if_pending(
                request_id=req.request_id,
                status=RequestStatus.APPROVED,
                decided_by=approver.user_id,
                decided_at=now,
                notes=notes,
            )
            if not decided:
                raise NotFoundError(ALREADY_PROCESSED)
            self._ledger.record_approved_checkin(
                user_id=req.user_id,
                at=datetime.combine(req.start_date, DEFAULT_MANUAL_CHECKIN_TIME),
                notes=f"Manual entry approved by {approver.name}. Reason: {req.reason}",
                data={
                    "manual_request_id": req.request_id,
                    "request_type": req.request_type.value,
                    "approved_by": approver.user_id,
                },
            )

        logger.info("Request %s approved by user %s", req.request_id, approver.user_id)
        return self._requests.get_by_id(req.request_id)

    def reject(
        self,
        scope: AccessScope,
        request_id: int,
        *,
        reason: str,
        now: Optional[datetime] = None,
    ) -> ExceptionRequest:
        scope.require(Action.DECIDE_REQUEST)
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("Validation failed", {"rejection_reason": ["This field is required."]})
        if len(reason) > MAX_REASON_LENGTH:
            raise ValidationError(
                "Validation failed", {"rejection_reason": [f"May not be greater than {MAX_REASON_LENGTH} characters."]}
            )
        now = now or now_local()

        with self._transaction():
            req = self._load(scope, request_id)
            decided = req.is_pending and self._requests.decide_if_pending(
                request_id=req.request_id,
                status=RequestStatus.REJECTED,
                decided_by=scope.principal.user_id,
                decided_at=now,
                notes=reason,
            )
            if not decided:
                raise NotFoundError(ALREADY_PROCESSED)

        logger.info("Request %s rejected by user %s", req.request_id, scope.principal.user_id)
        return self._requests.get_by_id(req.request_id)

    def get(self, scope: AccessScope, request_id: int) -> ExceptionRequest:
        scope.require(Action.VIEW_OWN_REQUESTS)
        return self._load(scope, request_id)

    def list(
        self,
        scope: AccessScope,
        filters: RequestFilters = RequestFilters(),
        page: PageRequest = PageRequest(),
    ) -> Page[ExceptionRequest]:
        scope.require(Action.VIEW_REQUESTS)
        return self._requests.list(scope=scope.filter(), filters=filters, page=page)

    def my_requests(
        self,
        scope: AccessScope,
        filters: RequestFilters = RequestFilters(),
        page: PageRequest = PageRequest(),
    ) -> Page[ExceptionRequest]:
        scope.require(Action.VIEW_OWN_REQUESTS)
        return self._requests.list(scope=scope.own_filter(), filters=filters, page=page)
