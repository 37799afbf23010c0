from datetime import date, datetime

import pytest

from presence_tracker.core.enums import AttendanceStatus, EventKind, EventSource, RequestStatus, RequestType
from presence_tracker.core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from presence_tracker.requests.model import RequestDraft, RequestFilters

TODAY = date(2025, 1, 15)
JAN_10 = date(2025, 1, 10)


def draft(start=JAN_10, end=None, reason="Fever", request_type=RequestType.SICK):
    return RequestDraft(request_type=request_type, start_date=start, end_date=end or start, reason=reason)


def test_submit_creates_pending_request_under_user_lock(workflow, scope_of, store):
    req = workflow.submit(scope_of(3), draft(), today=TODAY)

    assert req.status == RequestStatus.PENDING
    assert req.user_id == 3
    assert req.requester_name == "Alice"
    assert store.locked_users == [3]


def test_second_pending_request_for_same_date_conflicts(workflow, scope_of, store):
    workflow.submit(scope_of(3), draft(), today=TODAY)

    with pytest.raises(ConflictError, match="already exists"):
        workflow.submit(scope_of(3), draft(reason="Still sick"), today=TODAY)

    assert len(store.requests) == 1


def test_overlapping_ranges_conflict_but_adjacent_ones_do_not(workflow, scope_of):
    workflow.submit(scope_of(3), draft(date(2025, 1, 8), date(2025, 1, 12)), today=TODAY)

    with pytest.raises(ConflictError):
        workflow.submit(scope_of(3), draft(date(2025, 1, 12), date(2025, 1, 13)), today=TODAY)
    workflow.submit(scope_of(3), draft(date(2025, 1, 13), date(2025, 1, 14)), today=TODAY)


def test_other_users_do_not_block_each_other(workflow, scope_of):
    workflow.submit(scope_of(3), draft(), today=TODAY)
    workflow.submit(scope_of(4), draft(), today=TODAY)


def test_decided_requests_do_not_block_resubmission(workflow, scope_of):
    first = workflow.submit(scope_of(3), draft(), today=TODAY)
    workflow.reject(scope_of(2), first.request_id, reason="No note")

    again = workflow.submit(scope_of(3), draft(reason="Doctor's note attached"), today=TODAY)

    assert again.is_pending


def test_future_dates_are_refused(workflow, scope_of):
    with pytest.raises(ValidationError) as exc:
        workflow.submit(
            scope_of(3),
            draft(date(2025, 1, 16), date(2025, 1, 20), request_type=RequestType.VACATION),
            today=TODAY,
        )

    assert set(exc.value.errors) == {"start_date", "end_date"}


def test_draft_field_validation(workflow, scope_of):
    with pytest.raises(ValidationError) as exc:
        workflow.submit(scope_of(3), draft(date(2025, 1, 12), date(2025, 1, 11), reason="  "), today=TODAY)

    assert set(exc.value.errors) == {"end_date", "reason"}

    with pytest.raises(ValidationError) as exc:
        workflow.submit(scope_of(3), draft(reason="x" * 501), today=TODAY)
    assert "reason" in exc.value.errors


def test_approval_writes_synthetic_checkin(workflow, scope_of, store):
    req = workflow.submit(scope_of(3), draft(date(2025, 1, 9), date(2025, 1, 10)), today=TODAY)

    approved = workflow.approve(scope_of(2), req.request_id, notes="OK", now=datetime(2025, 1, 15, 10, 0))

    assert approved.status == RequestStatus.APPROVED
    assert approved.approved_by == 2
    assert approved.approved_at == datetime(2025, 1, 15, 10, 0)
    assert approved.approval_notes == "OK"

    [event] = store.events.values()
    assert event.user_id == 3
    assert event.kind == EventKind.CHECKIN
    assert event.source == EventSource.MANUAL
    assert event.status == AttendanceStatus.ON_TIME
    assert event.timestamp == datetime(2025, 1, 9, 8, 0)
    assert event.notes == "Manual entry approved by Acme Admin. Reason: Fever"
    assert event.data == {"manual_request_id": req.request_id, "request_type": "sick", "approved_by": 2}


def test_approval_conflicting_with_existing_checkin_leaves_request_pending(workflow, ledger, scope_of, store):
    ledger.check_in(scope_of(3), now=datetime(2025, 1, 10, 8, 30))
    req = workflow.submit(scope_of(3), draft(), today=TODAY)

    with pytest.raises(ConflictError, match="already has presence record"):
        workflow.approve(scope_of(2), req.request_id)

    assert workflow.get(scope_of(3), req.request_id).status == RequestStatus.PENDING
    assert len(store.events) == 1
    assert store.rollbacks == 1


def test_approval_conflicts_with_checkout_only_day(workflow, ledger, scope_of, store, events_repo):
    ledger.check_in(scope_of(3), now=datetime(2025, 1, 10, 8, 30))
    ledger.check_out(scope_of(3), now=datetime(2025, 1, 10, 17, 0))
    checkin = events_repo.get_for_user_and_date(3, JAN_10, EventKind.CHECKIN)
    ledger.delete(scope_of(2), checkin.event_id)
    req = workflow.submit(scope_of(3), draft(), today=TODAY)

    with pytest.raises(ConflictError):
        workflow.approve(scope_of(2), req.request_id)


def test_request_can_be_decided_only_once(workflow, scope_of):
    req = workflow.submit(scope_of(3), draft(), today=TODAY)
    workflow.approve(scope_of(2), req.request_id)

    with pytest.raises(NotFoundError, match="already processed"):
        workflow.approve(scope_of(2), req.request_id)
    with pytest.raises(NotFoundError, match="already processed"):
        workflow.reject(scope_of(2), req.request_id, reason="Too late")


def test_rejection_records_decider_without_ledger_entry(workflow, scope_of, store):
    req = workflow.submit(scope_of(3), draft(), today=TODAY)

    rejected = workflow.reject(scope_of(2), req.request_id, reason="insufficient evidence")

    assert rejected.status == RequestStatus.REJECTED
    assert rejected.approved_by == 2
    assert rejected.approval_notes == "insufficient evidence"
    assert store.events == {}


def test_rejection_requires_reason(workflow, scope_of):
    req = workflow.submit(scope_of(3), draft(), today=TODAY)

    with pytest.raises(ValidationError) as exc:
        workflow.reject(scope_of(2), req.request_id, reason="  ")

    assert "rejection_reason" in exc.value.errors


def test_approval_notes_length_is_checked(workflow, scope_of):
    req = workflow.submit(scope_of(3), draft(), today=TODAY)

    with pytest.raises(ValidationError) as exc:
        workflow.approve(scope_of(2), req.request_id, notes="n" * 501)

    assert "approval_notes" in exc.value.errors


def test_only_admins_decide(workflow, scope_of):
    req = workflow.submit(scope_of(3), draft(), today=TODAY)

    with pytest.raises(AuthorizationError):
        workflow.approve(scope_of(4), req.request_id)
    with pytest.raises(AuthorizationError):
        workflow.reject(scope_of(3), req.request_id, reason="self")


def test_foreign_tenant_admin_sees_nothing(workflow, scope_of):
    req = workflow.submit(scope_of(3), draft(), today=TODAY)

    with pytest.raises(NotFoundError):
        workflow.approve(scope_of(5), req.request_id)
    with pytest.raises(NotFoundError):
        workflow.get(scope_of(5), req.request_id)


def test_super_admin_decides_for_any_tenant(workflow, scope_of, store):
    req = workflow.submit(scope_of(6), draft(), today=TODAY)

    workflow.approve(scope_of(1), req.request_id)

    [event] = store.events.values()
    assert event.notes.startswith("Manual entry approved by Root.")


def test_owner_updates_pending_request(workflow, scope_of):
    req = workflow.submit(scope_of(3), draft(), today=TODAY)

    updated = workflow.update(
        scope_of(3),
        req.request_id,
        draft(JAN_10, date(2025, 1, 11), reason="Flu", request_type=RequestType.LEAVE),
        today=TODAY,
    )

    assert updated.end_date == date(2025, 1, 11)
    assert updated.reason == "Flu"
    assert updated.request_type == RequestType.LEAVE


def test_update_overlap_check_ignores_the_request_itself(workflow, scope_of):
    first = workflow.submit(scope_of(3), draft(), today=TODAY)
    workflow.submit(scope_of(3), draft(date(2025, 1, 12)), today=TODAY)

    workflow.update(scope_of(3), first.request_id, draft(reason="Same day, new reason"), today=TODAY)
    with pytest.raises(ConflictError):
        workflow.update(scope_of(3), first.request_id, draft(date(2025, 1, 11), date(2025, 1, 12)), today=TODAY)


def test_update_is_owner_only_and_pending_only(workflow, scope_of):
    req = workflow.submit(scope_of(3), draft(), today=TODAY)

    with pytest.raises(NotFoundError):
        workflow.update(scope_of(4), req.request_id, draft(), today=TODAY)
    with pytest.raises(AuthorizationError):
        workflow.update(scope_of(2), req.request_id, draft(), today=TODAY)

    workflow.approve(scope_of(2), req.request_id)
    with pytest.raises(ConflictError, match="Only pending"):
        workflow.update(scope_of(3), req.request_id, draft(), today=TODAY)


def test_withdraw_pending_request(workflow, scope_of, store):
    mine = workflow.submit(scope_of(3), draft(), today=TODAY)
    bobs = workflow.submit(scope_of(4), draft(), today=TODAY)

    workflow.withdraw(scope_of(3), mine.request_id)
    workflow.withdraw(scope_of(2), bobs.request_id)

    assert store.requests == {}


def test_withdraw_refuses_decided_and_foreign_requests(workflow, scope_of):
    req = workflow.submit(scope_of(3), draft(), today=TODAY)

    with pytest.raises(NotFoundError):
        workflow.withdraw(scope_of(4), req.request_id)

    workflow.reject(scope_of(2), req.request_id, reason="No")
    with pytest.raises(ConflictError, match="Only pending"):
        workflow.withdraw(scope_of(3), req.request_id)


def test_listing_is_scoped(workflow, scope_of):
    workflow.submit(scope_of(3), draft(), today=TODAY)
    bobs = workflow.submit(scope_of(4), draft(), today=TODAY)
    workflow.submit(scope_of(6), draft(), today=TODAY)
    workflow.reject(scope_of(2), bobs.request_id, reason="No")

    assert {r.user_id for r in workflow.list(scope_of(1)).items} == {3, 4, 6}
    assert {r.user_id for r in workflow.list(scope_of(2)).items} == {3, 4}
    assert {r.user_id for r in workflow.list(scope_of(2), RequestFilters(status=RequestStatus.PENDING)).items} == {3}
    assert {r.user_id for r in workflow.my_requests(scope_of(4)).items} == {4}
    with pytest.raises(AuthorizationError):
        workflow.list(scope_of(3))


def test_get_unknown_request_is_not_found(workflow, scope_of):
    with pytest.raises(NotFoundError):
        workflow.get(scope_of(1), 999)


def test_admin_without_company_cannot_list_or_decide(workflow, scope_of):
    req = workflow.submit(scope_of(3), draft(), today=TODAY)

    with pytest.raises(AuthorizationError):
        workflow.list(scope_of(9))
    with pytest.raises(NotFoundError):
        workflow.approve(scope_of(9), req.request_id)
