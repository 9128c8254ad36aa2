from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from .dispatcher import load_day_record
from .errors import ValidationError
from .models import AttendanceRecord
from .schemas import AttendanceOut, TodayStatusResponse
from .status import allowed_actions, derive_status, worked_seconds
from .utils import utcnow, work_date_for


def attendance_out(record: AttendanceRecord) -> AttendanceOut:
    return AttendanceOut(
        id=record.id,
        user_id=record.user_id,
        work_date=record.work_date,
        punch_in_time=record.punch_in_time,
        break_start_time=record.break_start_time,
        break_end_time=record.break_end_time,
        punch_out_time=record.punch_out_time,
        total_break_seconds=record.total_break_seconds or 0,
        source=record.source,
        notes=record.notes,
        status=derive_status(record),
        worked_seconds=worked_seconds(record),
    )


def today_status(db: Session, user_id: int, now: Optional[datetime] = None) -> TodayStatusResponse:
    record = load_day_record(db, user_id, work_date_for(now or utcnow()))
    status = derive_status(record)
    return TodayStatusResponse(
        status=status,
        attendance=attendance_out(record) if record else None,
        allowed_actions=allowed_actions(status),
    )


def list_attendance(
    db: Session,
    user_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> List[AttendanceOut]:
    if start_date and end_date and start_date > end_date:
        raise ValidationError("start_date must not be after end_date")
    stmt = select(AttendanceRecord)
    if user_id is not None:
        stmt = stmt.where(AttendanceRecord.user_id == user_id)
    if start_date:
        stmt = stmt.where(AttendanceRecord.work_date >= start_date)
    if end_date:
        stmt = stmt.where(AttendanceRecord.work_date <= end_date)
    rows = db.execute(stmt.order_by(AttendanceRecord.work_date.desc(), AttendanceRecord.id.desc())).scalars().all()
    return [attendance_out(r) for r in rows]
