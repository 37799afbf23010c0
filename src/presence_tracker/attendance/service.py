from __future__ import annotations

import logging
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Any, Callable, Iterable, Optional, Union

from werkzeug.datastructures import FileStorage

from ..access.model import Action, Principal, ScopeFilter
from ..access.scope import AccessScope
from ..common.datetime_utils import minutes_between, now_local
from ..common.media import MediaStorage, MediaStorageError, photo_path
from ..common.pagination import Page, PageRequest
from ..core.enums import AttendanceStatus, EventKind, EventSource, TodayStatus
from ..core.exceptions import ConflictError, NotFoundError, UnresolvedIdentity, ValidationError
from ..policies.service import WindowPolicyService
from ..users.repository import UserRepository
from .factory import AttendanceStrategyFactory
from .model import AttendanceEvent, EventFilters, Location, NewEvent, PresenceStatus, TodayPresence
from .repository import AttendanceRepository, DeviceRegistry

logger = logging.getLogger(__name__)

ALREADY_CHECKED_IN = "You have already checked in today"
ALREADY_CHECKED_OUT = "You have already checked out today"
NO_CHECKIN = "No check-in record found for today"
NOT_FOUND = "Presence not found"

# Numeric device codes accepted by the public ingestion endpoint.
DEVICE_SOURCES = {
    1: EventSource.RFID,
    2: EventSource.FACE,
    3: EventSource.FINGERPRINT,
}


def device_source(kind_hint: Union[int, str, None]) -> EventSource:
    """Map a device ``type`` (1/2/3 or a source name) to an event source."""

    if isinstance(kind_hint, EventSource) and kind_hint != EventSource.MANUAL:
        return kind_hint
    if isinstance(kind_hint, str) and kind_hint.strip().isdigit():
        kind_hint = int(kind_hint.strip())
    if isinstance(kind_hint, int) and not isinstance(kind_hint, bool):
        if kind_hint in DEVICE_SOURCES:
            return DEVICE_SOURCES[kind_hint]
    elif isinstance(kind_hint, str):
        for source in DEVICE_SOURCES.values():
            if kind_hint.strip().lower() == source.value:
                return source
    raise ValidationError("Validation failed", {"type": ["The selected type is invalid."]})


class AttendanceLedger:
    """Use cases over the per-user daily check-in/check-out ledger.

    A user holds at most one live checkin and one live checkout per calendar
    date. The check-then-insert below is backed by a unique index, so a
    concurrent duplicate surfaces as the same ConflictError.
    """

    def __init__(
        self,
        events: AttendanceRepository,
        users: UserRepository,
        policies: WindowPolicyService,
        devices: DeviceRegistry,
        *,
        transaction: Callable[[], AbstractContextManager],
        media: Optional[MediaStorage] = None,
        strategy_factory: Optional[AttendanceStrategyFactory] = None,
    ):
        self._events = events
        self._users = users
        self._policies = policies
        self._devices = devices
        self._transaction = transaction
        self._media = media
        self._factory = strategy_factory or AttendanceStrategyFactory()

    # ----- writes -----

    def check_in(
        self,
        scope: AccessScope,
        *,
        now: Optional[datetime] = None,
        location: Location = Location(),
        source: EventSource = EventSource.MANUAL,
        notes: Optional[str] = None,
        data: Optional[dict[str, Any]] = None,
        photo: Optional[FileStorage] = None,
    ) -> AttendanceEvent:
        scope.require(Action.CHECK_IN)
        return self._check_in(
            scope.principal,
            now=now or now_local(),
            location=location,
            source=source,
            notes=notes,
            data=data,
            photo=photo,
        )

    def check_out(
        self,
        scope: AccessScope,
        *,
        now: Optional[datetime] = None,
        location: Location = Location(),
        source: EventSource = EventSource.MANUAL,
        notes: Optional[str] = None,
        data: Optional[dict[str, Any]] = None,
        photo: Optional[FileStorage] = None,
    ) -> AttendanceEvent:
        scope.require(Action.CHECK_OUT)
        return self._check_out(
            scope.principal,
            now=now or now_local(),
            location=location,
            source=source,
            notes=notes,
            data=data,
            photo=photo,
        )

    def device_ingest(
        self,
        kind_hint: Union[int, str, EventSource, None],
        raw_identifier: str,
        *,
        principal: Optional[Principal] = None,
        location: Location = Location(),
        now: Optional[datetime] = None,
    ) -> tuple[AttendanceEvent, EventKind]:
        """Record a device reading as a checkin, or as a checkout once today's checkin exists.

        ``principal`` is the holder of a pre-authenticated token, if the device
        sent one; otherwise the raw identifier is looked up in the device
        registry.
        """

        source = device_source(kind_hint)
        identifier = (raw_identifier or "").strip()
        if not identifier:
            raise ValidationError("Validation failed", {"data": ["This field is required."]})

        if principal is None:
            principal = self._resolve_device_user(source, identifier)
        scope = AccessScope(principal)
        now = now or now_local()
        data = {"device_data": identifier}

        if self._events.get_for_user_and_date(principal.user_id, now.date(), EventKind.CHECKIN) is None:
            scope.require(Action.CHECK_IN)
            event = self._check_in(principal, now=now, location=location, source=source, data=data)
        else:
            scope.require(Action.CHECK_OUT)
            event = self._check_out(principal, now=now, location=location, source=source, data=data)

        logger.info("Device %s reading recorded as %s for user %s", source.value, event.kind.value, principal.user_id)
        return event, event.kind

    def record_approved_checkin(
        self,
        *,
        user_id: int,
        at: datetime,
        notes: str,
        data: dict[str, Any],
    ) -> AttendanceEvent:
        """Synthetic checkin written by request approval.

        Must run inside the caller's transaction; fails with ConflictError when
        the user already has any event that day.
        """

        day = at.date()
        for kind in (EventKind.CHECKIN, EventKind.CHECKOUT):
            if self._events.get_for_user_and_date(int(user_id), day, kind) is not None:
                raise ConflictError("User already has presence record for this date")

        event = NewEvent(
            user_id=int(user_id),
            kind=EventKind.CHECKIN,
            source=EventSource.MANUAL,
            status=AttendanceStatus.ON_TIME,
            timestamp=at,
            data=data,
            notes=notes,
        )
        try:
            event_id = self._events.insert(event)
        except ConflictError as exc:
            raise ConflictError("User already has presence record for this date") from exc
        return self._events.get_by_id(event_id)

    def delete(self, scope: AccessScope, event_id: int, *, now: Optional[datetime] = None) -> None:
        scope.require(Action.DELETE_ATTENDANCE)

        with self._transaction():
            event = self._load(scope, event_id)
            if not self._events.soft_delete(event.event_id, at=now or now_local()):
                raise NotFoundError(NOT_FOUND)

        self._discard_media(photo_path(event.data))
        logger.info("Presence %s deleted by user %s", event.event_id, scope.principal.user_id)

    # ----- reads -----

    def get(self, scope: AccessScope, event_id: int) -> AttendanceEvent:
        scope.require(Action.VIEW_ATTENDANCE)
        return self._load(scope, event_id)

    def work_duration(self, event: AttendanceEvent) -> Optional[int]:
        """Minutes from a checkin to the same day's checkout; None until checked out."""

        return self.work_durations([event]).get(event.event_id)

    def work_durations(self, events: Iterable[AttendanceEvent]) -> dict[int, Optional[int]]:
        """``work_duration`` for a whole page of events with a single checkout lookup."""

        events = list(events)
        checkins = [e for e in events if e.kind == EventKind.CHECKIN]
        checkouts = {
            (c.user_id, c.event_date): c
            for c in self._events.checkouts_for([(e.user_id, e.event_date) for e in checkins])
        }

        durations: dict[int, Optional[int]] = {e.event_id: None for e in events}
        for e in checkins:
            checkout = checkouts.get((e.user_id, e.event_date))
            if checkout is not None:
                durations[e.event_id] = minutes_between(e.timestamp, checkout.timestamp)
        return durations

    def query(
        self,
        scope: AccessScope,
        filters: EventFilters = EventFilters(),
        page: PageRequest = PageRequest(),
    ) -> Page[AttendanceEvent]:
        """Admin listing, restricted to what the principal may see."""

        scope.require(Action.VIEW_ATTENDANCE)
        return self._events.query(scope=scope.filter(), filters=filters, page=page)

    def history(
        self,
        scope: AccessScope,
        filters: EventFilters = EventFilters(),
        page: PageRequest = PageRequest(),
    ) -> Page[AttendanceEvent]:
        scope.require(Action.VIEW_OWN_ATTENDANCE)
        return self._events.query(scope=scope.own_filter(), filters=filters, page=page)

    def company_history(
        self,
        scope: AccessScope,
        filters: EventFilters = EventFilters(),
        page: PageRequest = PageRequest(),
        *,
        tenant_id: Optional[int] = None,
    ) -> Page[AttendanceEvent]:
        scope.require(Action.VIEW_COMPANY_HISTORY)
        scope_filter = ScopeFilter(tenant_id=scope.resolve_tenant(tenant_id))
        return self._events.query(scope=scope_filter, filters=filters, page=page)

    def status(self, scope: AccessScope, *, now: Optional[datetime] = None) -> PresenceStatus:
        """Today's snapshot for the principal.

        Windows only gate the ``can_*`` flags; without an active policy both are False.
        """

        scope.require(Action.VIEW_OWN_ATTENDANCE)
        now = now or now_local()
        user_id = scope.principal.user_id

        checkin = self._events.get_for_user_and_date(user_id, now.date(), EventKind.CHECKIN)
        checkout = self._events.get_for_user_and_date(user_id, now.date(), EventKind.CHECKOUT)
        policy = self._policies.active_policy_for_tenant(scope.principal.tenant_id)

        can_check_in = bool(policy) and checkin is None and policy.is_within_checkin_window(now)
        can_check_out = (
            bool(policy) and checkin is not None and checkout is None and policy.is_within_checkout_window(now)
        )
        return PresenceStatus(
            checkin=checkin,
            checkout=checkout,
            policy=policy,
            can_check_in=can_check_in,
            can_check_out=can_check_out,
        )

    def today(self, scope: AccessScope, *, now: Optional[datetime] = None) -> TodayPresence:
        scope.require(Action.VIEW_OWN_ATTENDANCE)
        now = now or now_local()
        user_id = scope.principal.user_id

        checkin = self._events.get_for_user_and_date(user_id, now.date(), EventKind.CHECKIN)
        if checkin is None:
            return TodayPresence(presence=None, status=TodayStatus.NOT_CHECKED_IN)
        checkout = self._events.get_for_user_and_date(user_id, now.date(), EventKind.CHECKOUT)
        if checkout is None:
            return TodayPresence(presence=checkin, status=TodayStatus.CHECKED_IN)
        return TodayPresence(presence=checkin, status=TodayStatus.CHECKED_OUT)

    # ----- internals -----

    def _load(self, scope: AccessScope, event_id: int) -> AttendanceEvent:
        event = self._events.get_by_id(int(event_id))
        if not event:
            raise NotFoundError(NOT_FOUND)
        scope.ensure_visible(owner_id=event.user_id, owner_tenant_id=event.owner_tenant_id, message=NOT_FOUND)
        return event

    def _resolve_device_user(self, source: EventSource, identifier: str) -> Principal:
        binding = self._devices.find(source, identifier)
        user = self._users.get_by_id(binding.user_id) if binding else None
        if user is None:
            logger.info("Unresolved %s device reading", source.value)
            raise UnresolvedIdentity()
        return user.to_principal()

    def _check_in(
        self,
        principal: Principal,
        *,
        now: datetime,
        location: Location,
        source: EventSource,
        notes: Optional[str] = None,
        data: Optional[dict[str, Any]] = None,
        photo: Optional[FileStorage] = None,
    ) -> AttendanceEvent:
        if self._events.get_for_user_and_date(principal.user_id, now.date(), EventKind.CHECKIN):
            raise ConflictError(ALREADY_CHECKED_IN)

        policy = self._policies.active_policy_for_tenant(principal.tenant_id)
        strategy = self._factory.for_checkin(now=now, policy=policy)
        decision = strategy.decide_checkin(now=now, policy=policy)

        payload = self._payload(data, decision.details)
        stored = self._store_photo(photo, payload, subdir="presences")
        event = NewEvent(
            user_id=principal.user_id,
            kind=EventKind.CHECKIN,
            source=source,
            status=decision.status,
            timestamp=now,
            location=location,
            data=payload or None,
            notes=notes,
        )
        event_id = self._insert(event, ALREADY_CHECKED_IN, stored)

        logger.info("User %s checked in (%s, %s)", principal.user_id, source.value, decision.status.value)
        return self._events.get_by_id(event_id)

    def _check_out(
        self,
        principal: Principal,
        *,
        now: datetime,
        location: Location,
        source: EventSource,
        notes: Optional[str] = None,
        data: Optional[dict[str, Any]] = None,
        photo: Optional[FileStorage] = None,
    ) -> AttendanceEvent:
        if self._events.get_for_user_and_date(principal.user_id, now.date(), EventKind.CHECKIN) is None:
            raise ConflictError(NO_CHECKIN)
        if self._events.get_for_user_and_date(principal.user_id, now.date(), EventKind.CHECKOUT):
            raise ConflictError(ALREADY_CHECKED_OUT)

        policy = self._policies.active_policy_for_tenant(principal.tenant_id)
        strategy = self._factory.for_checkout(now=now, policy=policy)
        decision = strategy.decide_checkout(now=now, policy=policy)

        payload = self._payload(data, decision.details)
        stored = self._store_photo(photo, payload, subdir="presences")
        event = NewEvent(
            user_id=principal.user_id,
            kind=EventKind.CHECKOUT,
            source=source,
            status=decision.status,
            timestamp=now,
            location=location,
            data=payload or None,
            notes=notes,
        )
        event_id = self._insert(event, ALREADY_CHECKED_OUT, stored)

        logger.info("User %s checked out (%s, %s)", principal.user_id, source.value, decision.status.value)
        return self._events.get_by_id(event_id)

    def _insert(self, event: NewEvent, conflict_message: str, stored_photo: Optional[str]) -> int:
        try:
            with self._transaction():
                return self._events.insert(event)
        except ConflictError as exc:
            self._discard_media(stored_photo)
            raise ConflictError(conflict_message) from exc
        except Exception:
            self._discard_media(stored_photo)
            raise

    @staticmethod
    def _payload(data: Optional[dict[str, Any]], details: dict[str, Any]) -> dict[str, Any]:
        payload = dict(data or {})
        payload.update(details)
        return payload

    def _store_photo(self, photo: Optional[FileStorage], payload: dict[str, Any], *, subdir: str) -> Optional[str]:
        """Persist the photo into ``payload``; a storage failure is recorded, not raised."""

        if photo is None or self._media is None:
            return None
        self._media.validate(photo)
        try:
            path = self._media.save(photo, subdir=subdir)
        except MediaStorageError as exc:
            logger.warning("Photo not stored, continuing without it: %s", exc)
            payload["media_error"] = "Photo could not be stored"
            return None
        payload["photo_path"] = path
        return path

    def _discard_media(self, path: Optional[str]) -> None:
        if not path or self._media is None:
            return
        try:
            self._media.delete(path)
        except MediaStorageError as exc:
            logger.warning("Attachment cleanup failed: %s", exc)
