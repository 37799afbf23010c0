from datetime import time

import pytest

from conftest import STANDARD_BOUNDS
from presence_tracker.common.pagination import PageRequest
from presence_tracker.core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from presence_tracker.policies.model import WindowBounds

LATE_BOUNDS = WindowBounds(time(8, 0), time(10, 0), time(17, 0), time(19, 0))


def test_create_rejects_unordered_bounds(policy_service, scope_of):
    with pytest.raises(ValidationError) as exc:
        policy_service.create(
            scope_of(2), tenant_id=1, bounds=WindowBounds(time(9, 0), time(8, 0), time(16, 0), time(18, 0))
        )
    assert "checkin_end" in exc.value.errors


def test_create_second_active_policy_conflicts(policy_service, scope_of, acme_policy):
    with pytest.raises(ConflictError):
        policy_service.create(scope_of(2), tenant_id=1, bounds=LATE_BOUNDS)


def test_create_inactive_policy_alongside_active_one(policy_service, scope_of, acme_policy):
    policy = policy_service.create(scope_of(2), tenant_id=1, bounds=LATE_BOUNDS, is_active=False)
    assert policy.is_active is False
    assert policy_service.active_policy_for_tenant(1).policy_id == acme_policy.policy_id


def test_create_for_unknown_or_inactive_tenant(policy_service, scope_of):
    with pytest.raises(NotFoundError):
        policy_service.create(scope_of(1), tenant_id=99, bounds=STANDARD_BOUNDS)
    with pytest.raises(NotFoundError):
        policy_service.create(scope_of(1), tenant_id=3, bounds=STANDARD_BOUNDS)


def test_company_admin_cannot_create_for_another_company(policy_service, scope_of):
    with pytest.raises(AuthorizationError):
        policy_service.create(scope_of(2), tenant_id=2, bounds=STANDARD_BOUNDS)


def test_employee_cannot_manage_policies(policy_service, scope_of):
    with pytest.raises(AuthorizationError):
        policy_service.create(scope_of(3), tenant_id=1, bounds=STANDARD_BOUNDS)


def test_super_admin_can_create_for_any_company(policy_service, scope_of):
    policy = policy_service.create(scope_of(1), tenant_id=2, bounds=STANDARD_BOUNDS)
    assert policy.tenant_id == 2 and policy.is_active


def test_activate_fails_while_another_is_active(policy_service, scope_of, acme_policy):
    spare = policy_service.create(scope_of(2), tenant_id=1, bounds=LATE_BOUNDS, is_active=False)
    with pytest.raises(ConflictError):
        policy_service.activate(scope_of(2), spare.policy_id)


def test_deactivate_then_activate_another(policy_service, scope_of, acme_policy):
    spare = policy_service.create(scope_of(2), tenant_id=1, bounds=LATE_BOUNDS, is_active=False)

    policy_service.deactivate(scope_of(2), acme_policy.policy_id)
    assert policy_service.active_policy_for_tenant(1) is None

    activated = policy_service.activate(scope_of(2), spare.policy_id)
    assert activated.is_active
    assert policy_service.active_policy_for_tenant(1).policy_id == spare.policy_id


def test_toggle_flips_state(policy_service, scope_of, acme_policy):
    assert policy_service.toggle(scope_of(2), acme_policy.policy_id).is_active is False
    assert policy_service.toggle(scope_of(2), acme_policy.policy_id).is_active is True


def test_update_validates_and_applies(policy_service, scope_of, acme_policy):
    updated = policy_service.update(scope_of(2), acme_policy.policy_id, bounds=LATE_BOUNDS)
    assert updated.checkin_end == time(10, 0)
    assert updated.is_active

    with pytest.raises(ValidationError):
        policy_service.update(
            scope_of(2),
            acme_policy.policy_id,
            bounds=WindowBounds(time(8, 0), time(10, 0), time(9, 0), time(19, 0)),
        )


def test_update_cannot_activate_second_policy(policy_service, scope_of, acme_policy):
    spare = policy_service.create(scope_of(2), tenant_id=1, bounds=LATE_BOUNDS, is_active=False)
    with pytest.raises(ConflictError):
        policy_service.update(scope_of(2), spare.policy_id, bounds=LATE_BOUNDS, is_active=True)


def test_delete_active_policy_conflicts(policy_service, scope_of, acme_policy):
    with pytest.raises(ConflictError):
        policy_service.delete(scope_of(2), acme_policy.policy_id)


def test_delete_inactive_policy(policy_service, scope_of, acme_policy):
    policy_service.deactivate(scope_of(2), acme_policy.policy_id)
    policy_service.delete(scope_of(2), acme_policy.policy_id)
    with pytest.raises(NotFoundError):
        policy_service.get(scope_of(2), acme_policy.policy_id)


def test_policy_of_other_company_is_not_found(policy_service, scope_of, acme_policy):
    with pytest.raises(NotFoundError):
        policy_service.get(scope_of(5), acme_policy.policy_id)
    with pytest.raises(NotFoundError):
        policy_service.deactivate(scope_of(5), acme_policy.policy_id)


def test_list_is_scoped_to_company(policy_service, scope_of, acme_policy):
    policy_service.create(scope_of(1), tenant_id=2, bounds=STANDARD_BOUNDS)

    assert [p.tenant_id for p in policy_service.list(scope_of(2)).items] == [1]
    assert len(policy_service.list(scope_of(1)).items) == 2
    assert [p.tenant_id for p in policy_service.list(scope_of(1), tenant_id=2).items] == [2]
    # company_id from a company admin is ignored
    assert [p.tenant_id for p in policy_service.list(scope_of(2), tenant_id=2).items] == [1]


def test_list_filters_by_active_and_paginates(policy_service, scope_of, acme_policy):
    policy_service.create(scope_of(2), tenant_id=1, bounds=LATE_BOUNDS, is_active=False)

    inactive = policy_service.list(scope_of(2), is_active=False)
    assert [p.is_active for p in inactive.items] == [False]

    page = policy_service.list(scope_of(2), page=PageRequest(page=2, per_page=1))
    assert page.total == 2 and len(page.items) == 1 and page.last_page == 2


def test_active_for(policy_service, scope_of, acme_policy):
    assert policy_service.active_for(scope_of(2)).policy_id == acme_policy.policy_id
    assert policy_service.active_for(scope_of(1), 1).policy_id == acme_policy.policy_id

    with pytest.raises(ValidationError):
        policy_service.active_for(scope_of(1))
    with pytest.raises(AuthorizationError):
        policy_service.active_for(scope_of(5), 1)
    with pytest.raises(NotFoundError):
        policy_service.active_for(scope_of(5))


def test_admin_without_company_cannot_list_policies(policy_service, scope_of, acme_policy):
    with pytest.raises(AuthorizationError):
        policy_service.list(scope_of(9))
    with pytest.raises(AuthorizationError):
        policy_service.list(scope_of(9), tenant_id=1)
