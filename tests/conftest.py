from __future__ import annotations

import itertools
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, time

import pytest
from werkzeug.security import generate_password_hash

from presence_tracker.access.scope import AccessScope
from presence_tracker.attendance.model import AttendanceEvent, DeviceBinding
from presence_tracker.attendance.service import AttendanceLedger
from presence_tracker.common.media import MediaStorageError
from presence_tracker.common.pagination import Page
from presence_tracker.container import Container
from presence_tracker.core.enums import EventKind, RequestStatus, Role
from presence_tracker.core.exceptions import ConflictError, ValidationError
from presence_tracker.main import create_app
from presence_tracker.policies.model import WindowBounds, WindowPolicy
from presence_tracker.policies.service import WindowPolicyService
from presence_tracker.requests.model import ExceptionRequest
from presence_tracker.requests.service import ExceptionRequestWorkflow
from presence_tracker.users.model import Tenant, User
from presence_tracker.users.service import AuthService

PASSWORD = "secret123"
SECRET_KEY = "test-secret"


class MemoryStore:
    """In-memory tables with a transaction that restores every table on error."""

    TABLES = ("tenants", "users", "policies", "events", "deleted_events", "requests", "bindings")

    def __init__(self):
        self.tenants: dict[int, Tenant] = {}
        self.users: dict[int, User] = {}
        self.policies: dict[int, WindowPolicy] = {}
        self.events: dict[int, AttendanceEvent] = {}
        self.deleted_events: dict[int, datetime] = {}
        self.requests: dict[int, ExceptionRequest] = {}
        self.bindings: dict[int, DeviceBinding] = {}
        self.locked_users: list[int] = []
        self.in_transaction = False
        self.commits = 0
        self.rollbacks = 0
        self._ids = {name: itertools.count(1) for name in self.TABLES}

    def next_id(self, table: str) -> int:
        return next(self._ids[table])

    @contextmanager
    def transaction(self):
        if self.in_transaction:
            yield self
            return
        snapshot = {name: dict(getattr(self, name)) for name in self.TABLES}
        self.in_transaction = True
        try:
            yield self
            self.commits += 1
        except BaseException:
            for name, rows in snapshot.items():
                setattr(self, name, rows)
            self.rollbacks += 1
            raise
        finally:
            self.in_transaction = False


def _page(items, page):
    items = list(items)
    chunk = items[page.offset : page.offset + page.per_page]
    return Page(items=chunk, total=len(items), page=page.page, per_page=page.per_page)


def _in_scope(scope, user_id, tenant_id) -> bool:
    if scope.tenant_id is not None and tenant_id != scope.tenant_id:
        return False
    if scope.user_id is not None and user_id != scope.user_id:
        return False
    return True


class FakeUserRepository:
    def __init__(self, store: MemoryStore):
        self._store = store

    def get_by_id(self, user_id):
        return self._store.users.get(int(user_id))

    def get_by_email(self, email):
        return next((u for u in self._store.users.values() if u.email == email), None)

    def lock(self, user_id):
        self._store.locked_users.append(int(user_id))


class FakeTenantRepository:
    def __init__(self, store: MemoryStore):
        self._store = store

    def get_by_id(self, tenant_id):
        return self._store.tenants.get(int(tenant_id))


class FakePolicyRepository:
    def __init__(self, store: MemoryStore):
        self._store = store

    def _check_single_active(self, tenant_id, policy_id=None):
        for p in self._store.policies.values():
            if p.tenant_id == tenant_id and p.is_active and p.policy_id != policy_id:
                raise ConflictError("Duplicate record")

    def get_by_id(self, policy_id):
        return self._store.policies.get(int(policy_id))

    def get_active_for_tenant(self, tenant_id):
        return next(
            (p for p in self._store.policies.values() if p.tenant_id == int(tenant_id) and p.is_active),
            None,
        )

    def list(self, *, tenant_id=None, is_active=None, page):
        rows = [
            p
            for p in self._store.policies.values()
            if (tenant_id is None or p.tenant_id == tenant_id) and (is_active is None or p.is_active == is_active)
        ]
        rows.sort(key=lambda p: p.policy_id, reverse=True)
        return _page(rows, page)

    def insert(self, *, tenant_id, bounds, is_active):
        if is_active:
            self._check_single_active(tenant_id)
        policy_id = self._store.next_id("policies")
        self._store.policies[policy_id] = WindowPolicy(
            policy_id=policy_id,
            tenant_id=tenant_id,
            checkin_start=bounds.checkin_start,
            checkin_end=bounds.checkin_end,
            checkout_start=bounds.checkout_start,
            checkout_end=bounds.checkout_end,
            is_active=is_active,
        )
        return policy_id

    def update(self, *, policy_id, bounds, is_active):
        policy = self._store.policies.get(int(policy_id))
        if not policy:
            return False
        if is_active:
            self._check_single_active(policy.tenant_id, policy.policy_id)
        self._store.policies[policy.policy_id] = replace(
            policy,
            checkin_start=bounds.checkin_start,
            checkin_end=bounds.checkin_end,
            checkout_start=bounds.checkout_start,
            checkout_end=bounds.checkout_end,
            is_active=is_active,
        )
        return True

    def set_active(self, *, policy_id, is_active):
        policy = self._store.policies.get(int(policy_id))
        if not policy:
            return False
        if is_active:
            self._check_single_active(policy.tenant_id, policy.policy_id)
        self._store.policies[policy.policy_id] = replace(policy, is_active=is_active)
        return True

    def delete(self, *, policy_id):
        policy = self._store.policies.get(int(policy_id))
        if not policy or policy.is_active:
            return False
        del self._store.policies[policy.policy_id]
        return True


class FakeAttendanceRepository:
    """Mirrors the unique (user, date, kind) index over live rows."""

    def __init__(self, store: MemoryStore):
        self._store = store

    def _live(self):
        return [e for e in self._store.events.values() if e.event_id not in self._store.deleted_events]

    def get_by_id(self, event_id):
        event = self._store.events.get(int(event_id))
        if event is None or event.event_id in self._store.deleted_events:
            return None
        return event

    def get_for_user_and_date(self, user_id, event_date, kind):
        return next(
            (e for e in self._live() if e.user_id == user_id and e.event_date == event_date and e.kind == kind),
            None,
        )

    def checkouts_for(self, keys):
        wanted = set(keys)
        return [e for e in self._live() if e.kind == EventKind.CHECKOUT and (e.user_id, e.event_date) in wanted]

    def insert(self, event):
        if self.get_for_user_and_date(event.user_id, event.event_date, event.kind):
            raise ConflictError("Duplicate record")
        event_id = self._store.next_id("events")
        owner = self._store.users.get(event.user_id)
        self._store.events[event_id] = AttendanceEvent(
            event_id=event_id,
            user_id=event.user_id,
            kind=event.kind,
            source=event.source,
            status=event.status,
            timestamp=event.timestamp,
            event_date=event.event_date,
            location=event.location,
            data=event.data,
            is_valid=event.is_valid,
            notes=event.notes,
            owner_tenant_id=owner.tenant_id if owner else None,
        )
        return event_id

    def query(self, *, scope, filters, page):
        rows = []
        for e in self._live():
            if not _in_scope(scope, e.user_id, e.owner_tenant_id):
                continue
            if filters.user_id is not None and e.user_id != filters.user_id:
                continue
            if filters.on_date is not None and e.event_date != filters.on_date:
                continue
            if filters.date_from is not None and e.event_date < filters.date_from:
                continue
            if filters.date_to is not None and e.event_date > filters.date_to:
                continue
            if filters.kind is not None and e.kind != filters.kind:
                continue
            if filters.source is not None and e.source != filters.source:
                continue
            rows.append(e)
        rows.sort(key=lambda e: (e.timestamp, e.event_id), reverse=True)
        return _page(rows, page)

    def soft_delete(self, event_id, *, at):
        if self.get_by_id(event_id) is None:
            return False
        self._store.deleted_events[int(event_id)] = at
        return True


class FakeDeviceRegistry:
    def __init__(self, store: MemoryStore):
        self._store = store

    def bind(self, source, identifier, user_id, is_active=True):
        binding_id = self._store.next_id("bindings")
        self._store.bindings[binding_id] = DeviceBinding(
            binding_id=binding_id, source=source, identifier=identifier, user_id=user_id, is_active=is_active
        )

    def find(self, source, identifier):
        return next(
            (
                b
                for b in self._store.bindings.values()
                if b.source == source and b.identifier == identifier and b.is_active
            ),
            None,
        )


class FakeRequestRepository:
    def __init__(self, store: MemoryStore):
        self._store = store

    def get_by_id(self, request_id):
        req = self._store.requests.get(int(request_id))
        if req is None:
            return None
        owner = self._store.users[req.user_id]
        return replace(req, owner_tenant_id=owner.tenant_id, requester_name=owner.name)

    def find_pending_overlapping(self, *, user_id, start_date, end_date, exclude_id=None):
        return [
            r
            for r in self._store.requests.values()
            if r.user_id == user_id
            and r.status == RequestStatus.PENDING
            and r.request_id != exclude_id
            and r.overlaps(start_date, end_date)
        ]

    def insert(self, *, user_id, draft):
        request_id = self._store.next_id("requests")
        self._store.requests[request_id] = ExceptionRequest(
            request_id=request_id,
            user_id=user_id,
            request_type=draft.request_type,
            start_date=draft.start_date,
            end_date=draft.end_date,
            reason=draft.reason,
            attachment_path=draft.attachment_path,
            status=RequestStatus.PENDING,
            created_at=datetime(2025, 1, 10, 9, request_id % 60),
        )
        return request_id

    def update_if_pending(self, *, request_id, draft):
        req = self._store.requests.get(int(request_id))
        if not req or req.status != RequestStatus.PENDING:
            return False
        self._store.requests[req.request_id] = replace(
            req,
            request_type=draft.request_type,
            start_date=draft.start_date,
            end_date=draft.end_date,
            reason=draft.reason,
            attachment_path=draft.attachment_path,
        )
        return True

    def decide_if_pending(self, *, request_id, status, decided_by, decided_at, notes=None):
        req = self._store.requests.get(int(request_id))
        if not req or req.status != RequestStatus.PENDING:
            return False
        self._store.requests[req.request_id] = replace(
            req, status=status, approved_by=decided_by, approved_at=decided_at, approval_notes=notes
        )
        return True

    def delete_if_pending(self, *, request_id):
        req = self._store.requests.get(int(request_id))
        if not req or req.status != RequestStatus.PENDING:
            return False
        del self._store.requests[req.request_id]
        return True

    def list(self, *, scope, filters, page):
        rows = []
        for rid in sorted(self._store.requests, reverse=True):
            r = self.get_by_id(rid)
            if not _in_scope(scope, r.user_id, r.owner_tenant_id):
                continue
            if filters.status is not None and r.status != filters.status:
                continue
            if filters.user_id is not None and r.user_id != filters.user_id:
                continue
            if filters.date_from is not None and r.end_date < filters.date_from:
                continue
            if filters.date_to is not None and r.start_date > filters.date_to:
                continue
            rows.append(r)
        return _page(rows, page)


class FakeMediaStorage:
    def __init__(self):
        self.saved: list[str] = []
        self.deleted: list[str] = []
        self.fail_save = False
        self.fail_delete = False

    def validate(self, upload):
        if not (upload.filename or "").lower().endswith((".png", ".jpg", ".jpeg")):
            raise ValidationError("Validation failed", {"photo": ["The photo must be a file of type: jpeg, png."]})

    def save(self, upload, *, subdir=""):
        if self.fail_save:
            raise MediaStorageError("disk full")
        path = f"{subdir}/photo-{len(self.saved) + 1}.png"
        self.saved.append(path)
        return path

    def delete(self, path):
        if self.fail_delete:
            raise MediaStorageError("permission denied")
        self.deleted.append(path)


def seed(store: MemoryStore) -> None:
    password_hash = generate_password_hash(PASSWORD, method="pbkdf2:sha256:1000")

    for tenant in (
        Tenant(tenant_id=1, name="Acme", is_active=True),
        Tenant(tenant_id=2, name="Globex", is_active=True),
        Tenant(tenant_id=3, name="Closed Co", is_active=False),
    ):
        store.tenants[tenant.tenant_id] = tenant

    for user_id, name, role, tenant_id, is_active in (
        (1, "Root", Role.SUPER_ADMIN, None, True),
        (2, "Acme Admin", Role.COMPANY_ADMIN, 1, True),
        (3, "Alice", Role.EMPLOYEE, 1, True),
        (4, "Bob", Role.EMPLOYEE, 1, True),
        (5, "Globex Admin", Role.COMPANY_ADMIN, 2, True),
        (6, "Gina", Role.EMPLOYEE, 2, True),
        (7, "Idle", Role.EMPLOYEE, 1, False),
        (8, "Closed Emp", Role.EMPLOYEE, 3, True),
        (9, "Orphan Admin", Role.COMPANY_ADMIN, None, True),
    ):
        store.users[user_id] = User(
            user_id=user_id,
            name=name,
            email=f"{name.lower().replace(' ', '.')}@example.com",
            password_hash=password_hash,
            role=role,
            tenant_id=tenant_id,
            is_active=is_active,
        )


STANDARD_BOUNDS = WindowBounds(time(7, 0), time(9, 0), time(16, 0), time(18, 0))


@pytest.fixture
def store():
    s = MemoryStore()
    seed(s)
    return s


@pytest.fixture
def scope_of(store):
    def _scope(user_id: int) -> AccessScope:
        return AccessScope(store.users[user_id].to_principal())

    return _scope


@pytest.fixture
def policies_repo(store):
    return FakePolicyRepository(store)


@pytest.fixture
def events_repo(store):
    return FakeAttendanceRepository(store)


@pytest.fixture
def devices(store):
    return FakeDeviceRegistry(store)


@pytest.fixture
def media():
    return FakeMediaStorage()


@pytest.fixture
def policy_service(store, policies_repo):
    return WindowPolicyService(policies_repo, FakeTenantRepository(store), transaction=store.transaction)


@pytest.fixture
def acme_policy(policy_service, scope_of):
    """Active 07:00-09:00 / 16:00-18:00 policy for Acme."""

    return policy_service.create(scope_of(2), tenant_id=1, bounds=STANDARD_BOUNDS)


@pytest.fixture
def ledger(store, events_repo, policy_service, devices, media):
    return AttendanceLedger(
        events_repo,
        FakeUserRepository(store),
        policy_service,
        devices,
        transaction=store.transaction,
        media=media,
    )


@pytest.fixture
def workflow(store, ledger):
    return ExceptionRequestWorkflow(
        FakeRequestRepository(store),
        FakeUserRepository(store),
        ledger,
        transaction=store.transaction,
    )


@pytest.fixture
def auth_service(store):
    return AuthService(FakeUserRepository(store), FakeTenantRepository(store), secret_key=SECRET_KEY)


@pytest.fixture
def app(auth_service, policy_service, ledger, workflow):
    container = Container(
        auth_service=auth_service,
        policy_service=policy_service,
        attendance_ledger=ledger,
        request_workflow=workflow,
    )
    return create_app(container=container, settings_module="presence_tracker.config.testing")


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def token_for(auth_service, store):
    def _token(user_id: int) -> dict:
        token = auth_service.issue_token(store.users[user_id].to_principal())
        return {"Authorization": f"Bearer {token}"}

    return _token
