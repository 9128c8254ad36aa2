from __future__ import annotations

import sys
from datetime import date, datetime, timedelta
from pathlib import Path

import pytest
from sqlalchemy import delete

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from attendance_qr import dispatcher as dispatcher_module
from attendance_qr.config import get_settings
from attendance_qr.database import Base, engine, SessionLocal
from attendance_qr.dispatcher import ScanDispatcher, apply_action, load_day_record
from attendance_qr.errors import (
    ConflictError,
    IllegalTransition,
    InvalidToken,
    NotFound,
    TokenExpired,
    TokenInactive,
    ValidationError,
)
from attendance_qr.models import AttendanceRecord, QRCode, User
from attendance_qr.projection import today_status
from attendance_qr.registry import TokenRegistry
from attendance_qr.status import AttendanceAction, AttendanceStatus, derive_status


T0 = datetime(2030, 1, 15, 8, 0, 0)


@pytest.fixture()
def db_session():
    get_settings.cache_clear()  # type: ignore[attr-defined]
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        db.execute(delete(AttendanceRecord))
        db.execute(delete(QRCode))
        db.execute(delete(User))
        db.commit()
        yield db
    finally:
        db.close()


@pytest.fixture()
def user(db_session) -> User:
    u = User(id=42, username="mrossi", full_name="Mario Rossi")
    db_session.add(u)
    db_session.commit()
    return u


def test_front_desk_scenario(db_session, user) -> None:
    qr = TokenRegistry(db_session).generate("Front desk", 24, now=T0)
    assert qr.is_active and qr.expires_at == T0 + timedelta(hours=24)

    result = ScanDispatcher(db_session).scan(qr.token, 42, "punch_in", now=T0 + timedelta(hours=1))
    assert result.ok is True
    assert result.timestamp == T0 + timedelta(hours=1)
    assert result.user.name == "Mario Rossi"
    assert result.status == AttendanceStatus.PRESENT

    record = load_day_record(db_session, 42, date(2030, 1, 15))
    assert record.punch_in_time == T0 + timedelta(hours=1)
    assert derive_status(record) == AttendanceStatus.PRESENT

    with pytest.raises(IllegalTransition) as exc:
        ScanDispatcher(db_session).scan(qr.token, 42, "punch_in", now=T0 + timedelta(hours=1, minutes=5))
    assert exc.value.current_status == "present"
    assert exc.value.attempted_action == "punch_in"


def test_expired_token_even_with_active_flag(db_session, user) -> None:
    qr = TokenRegistry(db_session).generate("Front desk", 24, now=T0)
    with pytest.raises(TokenExpired):
        ScanDispatcher(db_session).scan(qr.token, 42, "punch_in", now=T0 + timedelta(hours=25))
    db_session.refresh(qr)
    assert qr.is_active is True


def test_unknown_token(db_session, user) -> None:
    with pytest.raises(InvalidToken):
        ScanDispatcher(db_session).scan("never-generated", 42, "punch_in", now=T0)


def test_deactivated_token(db_session, user) -> None:
    registry = TokenRegistry(db_session)
    qr = registry.generate("old", None, now=T0)
    registry.deactivate(qr.id)
    with pytest.raises(TokenInactive):
        ScanDispatcher(db_session).scan(qr.token, 42, "punch_in", now=T0)


def test_superseded_token_is_inactive(db_session, user) -> None:
    registry = TokenRegistry(db_session)
    old = registry.generate("old", None, now=T0)
    registry.generate("new", None, now=T0 + timedelta(minutes=1))
    with pytest.raises(TokenInactive):
        ScanDispatcher(db_session).scan(old.token, 42, "punch_in", now=T0 + timedelta(minutes=2))


def test_unknown_user(db_session, user) -> None:
    qr = TokenRegistry(db_session).generate("desk", None, now=T0)
    with pytest.raises(NotFound):
        ScanDispatcher(db_session).scan(qr.token, 7, "punch_in", now=T0)


def test_full_day_round_trip_with_two_breaks(db_session, user) -> None:
    qr = TokenRegistry(db_session).generate("desk", None, now=T0)
    dispatcher = ScanDispatcher(db_session)
    steps = [
        ("punch_in", 0, AttendanceStatus.PRESENT),
        ("break_start", 60, AttendanceStatus.ON_BREAK),
        ("break_end", 90, AttendanceStatus.PRESENT),
        ("break_in", 240, AttendanceStatus.ON_BREAK),
        ("break_out", 250, AttendanceStatus.PRESENT),
        ("punch_out", 480, AttendanceStatus.COMPLETED),
    ]
    for action, minutes, expected in steps:
        result = dispatcher.scan(qr.token, 42, action, now=T0 + timedelta(minutes=minutes))
        assert result.status == expected

    status = today_status(db_session, 42, now=T0 + timedelta(hours=9))
    assert status.status == AttendanceStatus.COMPLETED
    assert status.allowed_actions == []
    assert status.attendance.total_break_seconds == 40 * 60
    assert status.attendance.worked_seconds == 480 * 60 - 40 * 60

    for action in AttendanceAction:
        with pytest.raises(IllegalTransition):
            dispatcher.scan(qr.token, 42, action, now=T0 + timedelta(hours=10))


@pytest.mark.parametrize(
    "prefix, bad_action",
    [
        ([], "break_start"),
        ([], "break_end"),
        ([], "punch_out"),
        (["punch_in"], "break_end"),
        (["punch_in", "break_start"], "punch_out"),
        (["punch_in", "break_start"], "break_start"),
        (["punch_in", "break_start"], "punch_in"),
    ],
)
def test_illegal_orderings(db_session, user, prefix, bad_action) -> None:
    qr = TokenRegistry(db_session).generate("desk", None, now=T0)
    dispatcher = ScanDispatcher(db_session)
    for i, action in enumerate(prefix):
        dispatcher.scan(qr.token, 42, action, now=T0 + timedelta(minutes=i))
    with pytest.raises(IllegalTransition):
        dispatcher.scan(qr.token, 42, bad_action, now=T0 + timedelta(minutes=30))


def test_new_day_starts_fresh(db_session, user) -> None:
    qr = TokenRegistry(db_session).generate("desk", None, now=T0)
    dispatcher = ScanDispatcher(db_session)
    dispatcher.scan(qr.token, 42, "punch_in", now=T0)
    dispatcher.scan(qr.token, 42, "punch_out", now=T0 + timedelta(hours=8))
    result = dispatcher.scan(qr.token, 42, "punch_in", now=T0 + timedelta(days=1))
    assert result.status == AttendanceStatus.PRESENT


def test_timestamps_must_not_go_backwards(db_session, user) -> None:
    qr = TokenRegistry(db_session).generate("desk", None, now=T0)
    dispatcher = ScanDispatcher(db_session)
    dispatcher.scan(qr.token, 42, "punch_in", now=T0 + timedelta(hours=2))
    with pytest.raises(ValidationError):
        dispatcher.scan(qr.token, 42, "break_start", now=T0 + timedelta(hours=1))


def test_concurrent_first_punch_in_conflicts(db_session, user, monkeypatch: pytest.MonkeyPatch) -> None:
    apply_action(db_session, user, AttendanceAction.PUNCH_IN, T0)
    # second writer read "not started" before the first one committed
    monkeypatch.setattr(dispatcher_module, "load_day_record", lambda db, user_id, work_date: None)
    with pytest.raises(ConflictError):
        apply_action(db_session, user, AttendanceAction.PUNCH_IN, T0 + timedelta(seconds=1))


def test_stale_record_update_conflicts(db_session, user, monkeypatch: pytest.MonkeyPatch) -> None:
    apply_action(db_session, user, AttendanceAction.PUNCH_IN, T0)
    other = SessionLocal()
    try:
        stale_user = other.get(User, 42)
        stale_record = load_day_record(other, 42, T0.date())
        assert stale_record is not None and stale_record.break_start_time is None
        apply_action(db_session, user, AttendanceAction.BREAK_START, T0 + timedelta(minutes=5))
        # second writer still holds the version it read before the first commit
        monkeypatch.setattr(dispatcher_module, "load_day_record", lambda db, user_id, work_date: stale_record)
        with pytest.raises(ConflictError):
            apply_action(other, stale_user, AttendanceAction.BREAK_START, T0 + timedelta(minutes=6))
    finally:
        other.close()
    db_session.expire_all()
    record = load_day_record(db_session, 42, T0.date())
    assert record.break_start_time == T0 + timedelta(minutes=5)
    assert record.version == 2
