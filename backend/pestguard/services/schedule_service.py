# Overview: Service-layer operations for visit scheduling; encapsulates business logic and database work.

"""
Schedule Conflict Engine

WHY: A technician can only be in one store at a time. Each employee's
timeline is a set of half-open intervals [start, end) on a 15-minute grid,
and no two of them overlap. Back-to-back visits (end == next start) are fine.

ROLES:
- admin: plans visits and may change any field.
- employee: may only change the status of a visit.
- customer: read-only, limited to accessible stores (enforced by routes).

CONCURRENCY: the overlap check and the write run while the employee row is
locked (SELECT ... FOR UPDATE), so two planners cannot double-book the same
employee on backends that honor row locks. File-based SQLite has no row
locks, so the transaction starts with BEGIN IMMEDIATE instead (see
concurrency.begin_write). Nothing is retried here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Mapping

from ..models import AccessOwner, Admin, Employee, ScheduleEvent, Store, SCHEDULE_STATUSES
from ..validation import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ServiceError,
    ValidationError,
    parse_id,
    parse_instant,
    require_id,
)
from .concurrency import begin_write, lock_for_update
from .session_service import Actor
from pestguard.time_utils import utcnow


logger = logging.getLogger(__name__)


GRID_MINUTES = 15
DEFAULT_STATUS = "PLANNED"
DEFAULT_TITLE = "Ziyaret"

PATCHABLE_FIELDS = frozenset({"title", "notes", "employee_id", "store_id", "start", "end", "status"})

# Request bodies from the calendar UI use camelCase ids
_FIELD_ALIASES = {
    "employeeId": "employee_id",
    "storeId": "store_id",
    "start_at": "start",
    "end_at": "end",
}

_PLANNER_MODELS = {
    "employee": Employee,
    "admin": Admin,
}


def intervals_overlap(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """Half-open overlap test: touching endpoints do not overlap."""
    return start_a < end_b and start_b < end_a


def is_on_grid(dt: datetime) -> bool:
    # Seconds are not checked; only the minute component is quantized
    return dt.minute % GRID_MINUTES == 0


def normalize_status(value: Any) -> str | None:
    status = str(value or "").strip().upper()
    return status if status in SCHEDULE_STATUSES else None


def _normalize_fields(fields: Mapping[str, Any] | None) -> dict:
    data = {}
    for key, value in (fields or {}).items():
        data[_FIELD_ALIASES.get(key, key)] = value
    return data


def _clean_title(value: Any) -> str:
    return str(value or "").strip() or DEFAULT_TITLE


def _clean_notes(value: Any) -> str | None:
    return str(value) if value else None


def _optional_id(value: Any, field: str) -> int | None:
    if value is None:
        return None
    parsed = parse_id(value)
    if parsed is None:
        raise ValidationError(f"{field} is invalid")
    return parsed


def _require_grid(dt: datetime, field: str) -> None:
    if not is_on_grid(dt):
        raise ValidationError(f"{field} must sit on the {GRID_MINUTES}-minute grid (e.g. 09:00, 09:15)")


def _require_window(start: datetime, end: datetime) -> None:
    if end <= start:
        raise ValidationError("end must be after start")


def employee_label(employee: Employee | None) -> str | None:
    if employee is not None:
        return employee.full_name or employee.email or f"Personel #{employee.id}"
    return None


def planner_fallback_label(role: str | None, planner_id: int | None) -> str | None:
    if not planner_id:
        return None
    if role == "admin":
        return f"Admin #{planner_id}"
    if role == "employee":
        return f"Personel #{planner_id}"
    return None


@dataclass
class EventDetail:
    event: ScheduleEvent
    employee_name: str | None
    store_name: str | None
    store: Store | None
    planned_by_name: str | None

    def to_dict(self) -> dict:
        data = self.event.to_dict()
        data["employee_name"] = self.employee_name
        data["store_name"] = self.store_name
        data["store"] = self.store.to_dict() if self.store else None
        data["planned_by_name"] = self.planned_by_name
        return data


class ScheduleEngine:
    """Per-employee visit timeline over an injected SQLAlchemy session."""

    def __init__(self, session):
        self.session = session

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def query_events(
        self,
        start: Any,
        end: Any,
        *,
        employee_id: Any = None,
        store_id: Any = None,
        store_ids: Iterable[int] | None = None,
    ) -> list[ScheduleEvent]:
        """
        Events intersecting [start, end), ordered by start.

        store_ids restricts results to an allowed set; an empty set yields nothing.
        """
        window_start = parse_instant(start, "from")
        window_end = parse_instant(end, "to")
        if window_end <= window_start:
            raise ValidationError("to must be after from")

        employee_filter = _optional_id(employee_id, "employee_id")
        store_filter = _optional_id(store_id, "store_id")

        query = self.session.query(ScheduleEvent).filter(
            ScheduleEvent.start_at < window_end,
            ScheduleEvent.end_at > window_start,
        )
        if employee_filter is not None:
            query = query.filter(ScheduleEvent.employee_id == employee_filter)
        if store_filter is not None:
            query = query.filter(ScheduleEvent.store_id == store_filter)
        if store_ids is not None:
            allowed = sorted(set(store_ids))
            if not allowed:
                return []
            query = query.filter(ScheduleEvent.store_id.in_(allowed))

        return query.order_by(ScheduleEvent.start_at.asc(), ScheduleEvent.id.asc()).all()

    def list_event_details(self, start: Any, end: Any, **filters) -> list[EventDetail]:
        """query_events with employee and store names resolved in batch."""
        events = self.query_events(start, end, **filters)

        employee_ids = {ev.employee_id for ev in events if ev.employee_id}
        store_ids = {ev.store_id for ev in events if ev.store_id}

        employees = {}
        if employee_ids:
            employees = {
                e.id: e for e in self.session.query(Employee).filter(Employee.id.in_(employee_ids)).all()
            }
        stores = {}
        if store_ids:
            stores = {s.id: s for s in self.session.query(Store).filter(Store.id.in_(store_ids)).all()}

        details = []
        for ev in events:
            store = stores.get(ev.store_id)
            details.append(EventDetail(
                event=ev,
                employee_name=employee_label(employees.get(ev.employee_id)),
                store_name=store.label if store else None,
                store=None,
                planned_by_name=ev.planned_by_name,
            ))
        return details

    def get_event(self, event_id: Any) -> EventDetail:
        event = self._require_event(event_id)

        employee = self.session.get(Employee, event.employee_id) if event.employee_id else None
        store = self.session.get(Store, event.store_id) if event.store_id else None

        return EventDetail(
            event=event,
            employee_name=employee_label(employee),
            store_name=store.label if store else None,
            store=store,
            planned_by_name=event.planned_by_name
            or planner_fallback_label(event.planned_by_role, event.planned_by_id),
        )

    def resolve_planner_name(self, actor: Actor | None) -> str | None:
        """
        Actor-supplied display name first, then the account record for the
        actor's role (employee, admin, otherwise access owner).
        """
        if actor is None:
            return None
        if actor.display_name:
            return actor.display_name
        if not actor.id:
            return None

        model = _PLANNER_MODELS.get(actor.role, AccessOwner)
        record = self.session.get(model, actor.id)
        return record.display_name if record else None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_event(self, fields: Mapping[str, Any], actor: Actor | None) -> ScheduleEvent:
        """
        Plan a visit. Admin only.

        Raises ForbiddenError, ValidationError, NotFoundError or ConflictError;
        nothing is written unless every check passes.
        """
        if actor is None or actor.role != "admin":
            raise ForbiddenError("Only admins can plan visits")

        data = _normalize_fields(fields)
        employee_id = require_id(data.get("employee_id"), "employee_id")
        store_id = require_id(data.get("store_id"), "store_id")
        start = parse_instant(data.get("start"), "start")
        end = parse_instant(data.get("end"), "end")
        _require_window(start, end)
        _require_grid(start, "start")
        _require_grid(end, "end")

        # Empty status counts as absent
        status = DEFAULT_STATUS
        if data.get("status"):
            status = normalize_status(data["status"])
            if status is None:
                raise ValidationError("Invalid status")

        begin_write(self.session)
        try:
            self._lock_employee(employee_id)
            if self.session.get(Store, store_id) is None:
                raise NotFoundError("Store not found")
            self._ensure_no_overlap(employee_id, start, end)

            event = ScheduleEvent(
                title=_clean_title(data.get("title")),
                notes=_clean_notes(data.get("notes")),
                employee_id=employee_id,
                store_id=store_id,
                start_at=start,
                end_at=end,
                status=status,
                planned_by_id=actor.id,
                planned_by_role=actor.role,
                planned_by_name=self.resolve_planner_name(actor),
                planned_at=utcnow(),
            )
            self.session.add(event)
            self.session.commit()
        except ServiceError:
            self.session.rollback()
            raise

        logger.info(
            "Visit %s planned for employee %s at store %s (%s - %s)",
            event.id, employee_id, store_id, start.isoformat(), end.isoformat(),
        )
        return event

    def update_event(self, event_id: Any, patch: Mapping[str, Any] | None, actor: Actor | None) -> ScheduleEvent:
        """
        Patch a visit.

        Employees may send only {"status": ...}. Admins may patch any of
        PATCHABLE_FIELDS; grid, interval and overlap rules are checked on the
        merged result, never field by field.
        """
        data = _normalize_fields(patch)
        role = actor.role if actor else None
        if role not in ("admin", "employee"):
            raise ForbiddenError("Only admins can edit visits")

        begin_write(self.session)
        try:
            event = self._require_event(event_id)
            if role == "employee":
                self._apply_status(event, data)
            else:
                self._apply_admin_patch(event, data)
            self.session.commit()
        except ServiceError:
            self.session.rollback()
            raise

        return event

    def _apply_status(self, event: ScheduleEvent, data: dict) -> None:
        if set(data) != {"status"}:
            raise ForbiddenError("Employees can only update the status of a visit")
        status = normalize_status(data["status"])
        if status is None:
            raise ValidationError("Invalid status")
        event.status = status

    def _apply_admin_patch(self, event: ScheduleEvent, data: dict) -> None:
        unknown = set(data) - PATCHABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")

        changes: dict[str, Any] = {}
        if "title" in data:
            changes["title"] = _clean_title(data["title"])
        if "notes" in data:
            changes["notes"] = _clean_notes(data["notes"])
        if "employee_id" in data:
            changes["employee_id"] = require_id(data["employee_id"], "employee_id")
        if "store_id" in data:
            changes["store_id"] = require_id(data["store_id"], "store_id")
        if "start" in data:
            start = parse_instant(data["start"], "start")
            _require_grid(start, "start")
            changes["start_at"] = start
        if "end" in data:
            end = parse_instant(data["end"], "end")
            _require_grid(end, "end")
            changes["end_at"] = end
        if "status" in data:
            status = normalize_status(data["status"])
            if status is None:
                raise ValidationError("Invalid status")
            changes["status"] = status

        effective_start = changes.get("start_at", event.start_at)
        effective_end = changes.get("end_at", event.end_at)
        effective_employee = changes.get("employee_id", event.employee_id)
        _require_window(effective_start, effective_end)

        self._lock_employee(effective_employee)
        if "store_id" in changes and self.session.get(Store, changes["store_id"]) is None:
            raise NotFoundError("Store not found")
        self._ensure_no_overlap(effective_employee, effective_start, effective_end, exclude_id=event.id)

        for key, value in changes.items():
            setattr(event, key, value)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_event(self, event_id: Any) -> ScheduleEvent:
        eid = require_id(event_id, "id")
        event = self.session.get(ScheduleEvent, eid)
        if event is None:
            raise NotFoundError("Visit not found")
        return event

    def _lock_employee(self, employee_id: int) -> Employee:
        employee = lock_for_update(self.session.query(Employee).filter_by(id=employee_id)).first()
        if employee is None:
            raise NotFoundError("Employee not found")
        return employee

    def _ensure_no_overlap(
        self, employee_id: int, start: datetime, end: datetime, *, exclude_id: int | None = None
    ) -> None:
        query = self.session.query(ScheduleEvent).filter(
            ScheduleEvent.employee_id == employee_id,
            ScheduleEvent.start_at < end,
            ScheduleEvent.end_at > start,
        )
        if exclude_id is not None:
            query = query.filter(ScheduleEvent.id != exclude_id)

        conflict = query.order_by(ScheduleEvent.start_at.asc()).first()
        if conflict is not None:
            logger.info(
                "Booking conflict for employee %s: [%s, %s) overlaps visit %s",
                employee_id, start.isoformat(), end.isoformat(), conflict.id,
            )
            raise ConflictError("Employee already has another visit in this time range")
