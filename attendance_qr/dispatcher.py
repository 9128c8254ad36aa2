from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from .errors import (
    AttendanceError,
    ConflictError,
    InvalidToken,
    NotFound,
    TokenExpired,
    TokenInactive,
    ValidationError,
)
from .models import AttendanceRecord, User
from .registry import TokenRegistry
from .schemas import ScanResult, ScanUser
from .status import (
    ACTION_LABELS,
    AttendanceAction,
    TokenStatus,
    check_transition,
    derive_status,
    parse_action,
    token_status,
)
from .utils import utcnow, work_date_for


logger = logging.getLogger("qr.scan")


def load_day_record(db: Session, user_id: int, work_date: date) -> Optional[AttendanceRecord]:
    return db.execute(
        select(AttendanceRecord).where(
            AttendanceRecord.user_id == user_id, AttendanceRecord.work_date == work_date
        )
    ).scalar_one_or_none()


def apply_action(
    db: Session,
    user: User,
    action: AttendanceAction,
    now: datetime,
    source: str = "qr",
) -> ScanResult:
    """Validate ``action`` against today's status and stamp it, in one commit.

    The first punch-in of the day inserts the record; the unique (user, day)
    constraint and the record's version column turn a concurrent double
    submission into a ConflictError instead of two writes.
    """
    record = load_day_record(db, user.id, work_date_for(now))
    new_status = check_transition(derive_status(record), action)
    if record is not None:
        stamps = [t for t in (record.punch_in_time, record.break_start_time, record.break_end_time) if t]
        if stamps and now < max(stamps):
            raise ValidationError("Timestamp is earlier than the last recorded event")

    if action == AttendanceAction.PUNCH_IN:
        record = AttendanceRecord(user_id=user.id, work_date=work_date_for(now), punch_in_time=now, source=source)
    elif action == AttendanceAction.BREAK_START:
        record.break_start_time = now
        record.break_end_time = None
    elif action == AttendanceAction.BREAK_END:
        record.break_end_time = now
        record.total_break_seconds = (record.total_break_seconds or 0) + int(
            (now - record.break_start_time).total_seconds()
        )
    elif action == AttendanceAction.PUNCH_OUT:
        record.punch_out_time = now

    db.add(record)
    try:
        db.commit()
    except (IntegrityError, StaleDataError):
        db.rollback()
        logger.warning("attendance conflict user=%s action=%s", user.id, action.value)
        raise ConflictError("Attendance was updated concurrently, refresh and try again")

    return ScanResult(
        message=f"{ACTION_LABELS[action]} recorded for {user.full_name}",
        action=action,
        timestamp=now,
        status=new_status,
        user=ScanUser(id=user.id, name=user.full_name),
    )


class ScanDispatcher:
    def __init__(self, db: Session, registry: Optional[TokenRegistry] = None) -> None:
        self.db = db
        self.registry = registry or TokenRegistry(db)

    def scan(self, token: str, user_id: int, action, now: Optional[datetime] = None) -> ScanResult:
        now = now or utcnow()
        action = parse_action(action)
        try:
            qr = self.registry.find_by_token(token)
            if qr is None:
                raise InvalidToken()
            state = token_status(qr, now)
            if state == TokenStatus.DEACTIVATED:
                raise TokenInactive()
            if state == TokenStatus.EXPIRED:
                raise TokenExpired()

            user = self.db.get(User, user_id)
            if user is None:
                raise NotFound("User not found")

            result = apply_action(self.db, user, action, now, source="qr")
        except AttendanceError as exc:
            logger.info("scan rejected user=%s action=%s kind=%s", user_id, action.value, exc.kind)
            raise
        logger.info("scan accepted user=%s action=%s qr_id=%s", user_id, action.value, qr.id)
        return result
