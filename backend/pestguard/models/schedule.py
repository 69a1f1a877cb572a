from __future__ import annotations

from ..extensions import db
from pestguard.time_utils import to_utc_z


SCHEDULE_STATUSES = ("PENDING", "PLANNED", "COMPLETED", "FAILED", "CANCELLED", "POSTPONED")


class ScheduleEvent(db.Model):
    """
    Planned service visit of one employee to one store.

    INVARIANTS (enforced by ScheduleEngine, the only writer):
    - end_at > start_at
    - start_at and end_at sit on the 15-minute grid
    - no two events of the same employee overlap on [start_at, end_at)

    STATUS: PENDING, PLANNED, COMPLETED, FAILED, CANCELLED, POSTPONED.
    No transition is forbidden and no state is terminal.
    """
    __tablename__ = "schedule_events"
    __table_args__ = (
        db.CheckConstraint("end_at > start_at", name="ck_schedule_events_interval"),
        db.Index("ix_schedule_events_employee_window", "employee_id", "start_at", "end_at"),
        db.Index("ix_schedule_events_store_start", "store_id", "start_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False, default="Ziyaret")
    notes = db.Column(db.Text, nullable=True)

    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    # UTC-naive instants
    start_at = db.Column(db.DateTime, nullable=False, index=True)
    end_at = db.Column(db.DateTime, nullable=False)

    status = db.Column(db.String(16), nullable=False, default="PLANNED", index=True)

    # Planner attribution, captured at creation
    planned_by_id = db.Column(db.Integer, nullable=True)
    planned_by_role = db.Column(db.String(16), nullable=True)
    planned_by_name = db.Column(db.String(255), nullable=True)
    planned_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    employee = db.relationship("Employee", backref=db.backref("schedule_events", lazy=True))
    store = db.relationship("Store", backref=db.backref("schedule_events", lazy=True))

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "notes": self.notes,
            "employee_id": self.employee_id,
            "store_id": self.store_id,
            "start": to_utc_z(self.start_at),
            "end": to_utc_z(self.end_at),
            "status": self.status,
            "planned_by_id": self.planned_by_id,
            "planned_by_role": self.planned_by_role,
            "planned_by_name": self.planned_by_name,
            "planned_at": to_utc_z(self.planned_at) if self.planned_at else None,
            "version_id": self.version_id,
        }
