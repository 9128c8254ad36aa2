from __future__ import annotations

import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from sqlalchemy import delete, func, select

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from attendance_qr.config import get_settings
from attendance_qr.database import Base, engine, SessionLocal
from attendance_qr.errors import NotFound, ValidationError
from attendance_qr.models import AttendanceRecord, QRCode
from attendance_qr.registry import TokenRegistry
from attendance_qr.status import TokenStatus


T0 = datetime(2030, 1, 15, 8, 0, 0)


@pytest.fixture()
def db_session():
    get_settings.cache_clear()  # type: ignore[attr-defined]
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        db.execute(delete(AttendanceRecord))
        db.execute(delete(QRCode))
        db.commit()
        yield db
    finally:
        db.close()


def _active_count(db) -> int:
    return db.execute(select(func.count()).select_from(QRCode).where(QRCode.is_active.is_(True))).scalar_one()


def test_generate_first_token(db_session) -> None:
    qr = TokenRegistry(db_session).generate("Front desk", 24, created_by="admin", now=T0)
    assert qr.is_active is True
    assert qr.description == "Front desk"
    assert qr.created_by == "admin"
    assert qr.expires_at == T0 + timedelta(hours=24)
    assert len(qr.token) >= 32
    assert _active_count(db_session) == 1


def test_generate_without_expiry(db_session) -> None:
    qr = TokenRegistry(db_session).generate("No expiry", None, now=T0)
    assert qr.expires_at is None
    assert TokenRegistry(db_session).get_active(now=T0 + timedelta(days=365)).id == qr.id


def test_single_active_after_every_generate(db_session) -> None:
    registry = TokenRegistry(db_session)
    tokens = set()
    for i in range(5):
        qr = registry.generate(f"gen {i}", 1, now=T0 + timedelta(minutes=i))
        tokens.add(qr.token)
        assert _active_count(db_session) == 1
        assert registry.get_active(now=T0 + timedelta(minutes=i)).id == qr.id
    assert len(tokens) == 5


def test_generate_from_separate_sessions_keeps_one_active(db_session) -> None:
    other = SessionLocal()
    try:
        first = TokenRegistry(db_session).generate("session a", None, now=T0)
        second = TokenRegistry(other).generate("session b", None, now=T0 + timedelta(seconds=1))
    finally:
        other.close()
    db_session.expire_all()
    assert db_session.get(QRCode, first.id).is_active is False
    assert db_session.get(QRCode, second.id).is_active is True
    assert _active_count(db_session) == 1


def test_description_length_bound(db_session) -> None:
    registry = TokenRegistry(db_session)
    registry.generate("x" * 255, None, now=T0)
    with pytest.raises(ValidationError):
        registry.generate("x" * 256, None, now=T0)


def test_expires_hours_must_be_positive(db_session) -> None:
    with pytest.raises(ValidationError):
        TokenRegistry(db_session).generate("bad", 0, now=T0)


@pytest.mark.parametrize("hours", [1e9, float("inf"), float("nan"), 24 * 365 * 10 + 1])
def test_expires_hours_out_of_range(db_session, hours) -> None:
    registry = TokenRegistry(db_session)
    with pytest.raises(ValidationError):
        registry.generate("bad", hours, now=T0)
    assert registry.get_active(now=T0) is None


def test_expires_hours_upper_bound_is_accepted(db_session) -> None:
    qr = TokenRegistry(db_session).generate("long", 24 * 365 * 10, now=T0)
    assert qr.expires_at == T0 + timedelta(hours=24 * 365 * 10)


def test_get_active_none_when_expired(db_session) -> None:
    registry = TokenRegistry(db_session)
    assert registry.get_active(now=T0) is None
    registry.generate("short", 1, now=T0)
    assert registry.get_active(now=T0 + timedelta(minutes=59)) is not None
    assert registry.get_active(now=T0 + timedelta(hours=1)) is None


def test_deactivate_is_idempotent(db_session) -> None:
    registry = TokenRegistry(db_session)
    qr = registry.generate("to disable", None, now=T0)
    registry.deactivate(qr.id)
    again = registry.deactivate(qr.id)
    assert again.is_active is False
    assert again.active_scope is None
    assert registry.get_active(now=T0) is None


def test_deactivate_unknown(db_session) -> None:
    with pytest.raises(NotFound):
        TokenRegistry(db_session).deactivate(999999)


def test_history_annotations(db_session) -> None:
    registry = TokenRegistry(db_session)
    first = registry.generate("first", None, now=T0)
    second = registry.generate("second", 2, now=T0 + timedelta(hours=1))

    history = registry.history(now=T0 + timedelta(hours=2))
    assert [qr.id for qr, _ in history] == [second.id, first.id]
    assert [status for _, status in history] == [TokenStatus.ACTIVE, TokenStatus.DEACTIVATED]

    later = registry.history(now=T0 + timedelta(hours=4))
    assert [status for _, status in later] == [TokenStatus.EXPIRED, TokenStatus.DEACTIVATED]
