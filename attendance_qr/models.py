from __future__ import annotations

"""
EMBED_SUMMARY: Core data models for employees, QR check-in tokens, and daily attendance records.
EMBED_TAGS: models, qr, attendance, schema
"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Index,
)
from sqlalchemy.orm import relationship, Mapped, mapped_column

from .database import Base
from .utils import utcnow


class User(Base):
    __tablename__ = "users"
    """
    EMBED_SUMMARY: Employee profile; source of the display name returned by scans.
    EMBED_TAGS: users, employees
    """

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(32), default="employee", nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class QRCode(Base):
    __tablename__ = "qr_codes"
    """
    EMBED_SUMMARY: Generated QR credentials. At most one row per scope has active_scope set.
    EMBED_TAGS: qr, tokens, check-in
    """

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    token: Mapped[str] = mapped_column(String(128), unique=True, nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    scope: Mapped[str] = mapped_column(String(64), default="default", nullable=False)
    # Equals scope while active, NULL otherwise; the unique index is the singleton guard
    active_scope: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    __table_args__ = (
        UniqueConstraint("active_scope", name="uq_qr_codes_active_scope"),
        Index("ix_qr_codes_created_at", "created_at"),
    )


class AttendanceRecord(Base):
    __tablename__ = "attendance_records"
    """
    EMBED_SUMMARY: One user's punch and break timestamps for one calendar day.
    EMBED_TAGS: attendance, punches, breaks
    """

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    punch_in_time: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    break_start_time: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    break_end_time: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    punch_out_time: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    total_break_seconds: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    source: Mapped[str] = mapped_column(String(16), default="qr", nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    user: Mapped[User] = relationship(User, lazy="joined")

    __table_args__ = (
        UniqueConstraint("user_id", "work_date", name="uq_attendance_user_day"),
        Index("ix_attendance_work_date", "work_date"),
    )
    __mapper_args__ = {"version_id_col": version}
