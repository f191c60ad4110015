"""
Rewrite scheduling datetimes that were stored as UTC instants ("false UTC")
into local civil time for the tenant's business timezone.

Scheduling columns (appointments.date_time, schedule_exceptions.start_datetime
and end_datetime) hold naive local wall-clock values. Rows written before that
rule held the UTC reading of the same instant, e.g. a 09:00 appointment in
America/Sao_Paulo stored as 12:00.

The affected rows must be named explicitly, either by id or by a created_at
cutoff, so running the script twice never shifts a row twice. Dry run by
default; pass --apply to write.

Usage:
    python migrations/fix_false_utc_timestamps.py --tenant-id 3 --created-before 2025-03-01
    python migrations/fix_false_utc_timestamps.py --tenant-id 3 --appointment-ids 10 11 --apply
    python migrations/fix_false_utc_timestamps.py --tenant-id 3 --appointment-ids 10 11 --apply --down
"""

# Ensure this script can be run directly from repo root
import sys
from pathlib import Path

CURRENT_DIR = Path(__file__).resolve().parent
ROOT_DIR = CURRENT_DIR.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from datetime import date, datetime, time  # noqa: E402
from typing import Optional  # noqa: E402

import pytz  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from agenda.database import SessionLocal  # noqa: E402
from agenda.domain.scheduling.timeutils import get_timezone, to_civil  # noqa: E402
from agenda.models import Appointment, Professional, ScheduleException, Tenant  # noqa: E402

COLUMNS = {
    Appointment: ("date_time",),
    ScheduleException: ("start_datetime", "end_datetime"),
}


def utc_to_civil(value: datetime, tz) -> datetime:
    return to_civil(value, tz)


def civil_to_utc(value: datetime, tz) -> datetime:
    return tz.localize(value).astimezone(pytz.utc).replace(tzinfo=None)


def _rows(
    db: Session,
    tenant_id: int,
    model,
    ids: Optional[list[int]],
    created_before: Optional[datetime],
):
    if model is Appointment:
        query = db.query(Appointment).filter(Appointment.tenant_id == tenant_id)
    else:
        query = (
            db.query(ScheduleException)
            .join(Professional, Professional.id == ScheduleException.professional_id)
            .filter(Professional.tenant_id == tenant_id)
        )
    if ids is not None:
        query = query.filter(model.id.in_(ids))
    if created_before is not None:
        query = query.filter(model.created_at < created_before)
    return query.order_by(model.id).all()


def plan_changes(
    db: Session,
    tenant_id: int,
    appointment_ids: Optional[list[int]] = None,
    exception_ids: Optional[list[int]] = None,
    created_before: Optional[datetime] = None,
    down: bool = False,
) -> list[tuple[str, int, str, datetime, datetime]]:
    """List (table, id, column, old, new) for every value to rewrite"""
    if appointment_ids is None and exception_ids is None and created_before is None:
        raise ValueError("Name the affected rows with ids or a created_before cutoff")

    tenant = db.query(Tenant).filter(Tenant.id == tenant_id).first()
    if not tenant:
        raise ValueError(f"Tenant {tenant_id} not found")
    tz = get_timezone(tenant.timezone)
    convert = civil_to_utc if down else utc_to_civil

    selections = {Appointment: appointment_ids, ScheduleException: exception_ids}
    if created_before is None:
        # Only the tables whose ids were named
        selections = {m: ids for m, ids in selections.items() if ids is not None}

    changes = []
    for model, ids in selections.items():
        for row in _rows(db, tenant_id, model, ids, created_before):
            for column in COLUMNS[model]:
                old = getattr(row, column)
                changes.append((model.__tablename__, row.id, column, old, convert(old, tz)))
    return changes


def apply_changes(db: Session, changes: list[tuple[str, int, str, datetime, datetime]]) -> int:
    models = {m.__tablename__: m for m in COLUMNS}
    try:
        for table, row_id, column, _old, new in changes:
            row = db.query(models[table]).filter(models[table].id == row_id).one()
            setattr(row, column, new)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return len(changes)


def upgrade(
    tenant_id: int,
    appointment_ids: Optional[list[int]] = None,
    exception_ids: Optional[list[int]] = None,
    created_before: Optional[datetime] = None,
    apply: bool = False,
    db: Optional[Session] = None,
    down: bool = False,
):
    own_session = db is None
    db = db or SessionLocal()
    try:
        changes = plan_changes(db, tenant_id, appointment_ids, exception_ids, created_before, down)
        for table, row_id, column, old, new in changes:
            print(f"{table}#{row_id}.{column}: {old} -> {new}")
        if apply:
            apply_changes(db, changes)
            print(f"Migration fix_false_utc_timestamps applied to {len(changes)} value(s)")
        else:
            print(f"Dry run: {len(changes)} value(s) would change. Pass --apply to write.")
        return changes
    finally:
        if own_session:
            db.close()


def downgrade(tenant_id: int, **kwargs):
    return upgrade(tenant_id, down=True, **kwargs)


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Convert false-UTC scheduling timestamps to civil time")
    parser.add_argument("--tenant-id", type=int, required=True)
    parser.add_argument("--appointment-ids", type=int, nargs="*")
    parser.add_argument("--exception-ids", type=int, nargs="*")
    parser.add_argument("--created-before", type=date.fromisoformat, help="YYYY-MM-DD")
    parser.add_argument("--apply", action="store_true", help="Write the changes")
    parser.add_argument("--down", action="store_true", help="Convert civil time back to UTC")
    args = parser.parse_args()

    cutoff = datetime.combine(args.created_before, time.min) if args.created_before else None
    kwargs = dict(
        appointment_ids=args.appointment_ids,
        exception_ids=args.exception_ids,
        created_before=cutoff,
        apply=args.apply,
    )
    if args.down:
        downgrade(args.tenant_id, **kwargs)
    else:
        upgrade(args.tenant_id, **kwargs)
