from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from .errors import ValidationError
from .status import AttendanceAction, AttendanceStatus, TokenStatus, parse_action


# Users
class UserCreate(BaseModel):
    username: str = Field(min_length=1, max_length=64)
    full_name: str = Field(min_length=1, max_length=255)
    role: str = Field(default="employee")


class UserOut(BaseModel):
    id: int
    username: str
    full_name: str
    role: str

    model_config = dict(from_attributes=True)


class UsersListResponse(BaseModel):
    items: List[UserOut]
    total: int


class ScanUser(BaseModel):
    id: int
    name: str


# QR codes
class QRCodeGenerate(BaseModel):
    description: str = Field(default="Attendance QR code")
    expires_hours: Optional[float] = Field(default=None, gt=0, allow_inf_nan=False)
    created_by: Optional[str] = None

    @field_validator("expires_hours", mode="before")
    @classmethod
    def _blank_means_no_expiry(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class QRCodeOut(BaseModel):
    id: int
    token: str
    description: Optional[str] = None
    created_at: datetime
    expires_at: Optional[datetime] = None
    is_active: bool
    created_by: Optional[str] = None
    status: TokenStatus


class QRCodeGenerateResponse(BaseModel):
    message: str
    qr_code: QRCodeOut


class ActiveQRCodeResponse(BaseModel):
    qr_code: Optional[QRCodeOut] = None


class QRCodeHistoryResponse(BaseModel):
    qr_codes: List[QRCodeOut]


# Scans
class ScanRequest(BaseModel):
    token: str
    user_id: int
    action: AttendanceAction

    @field_validator("token")
    @classmethod
    def _token_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("token must not be empty")
        return v

    @field_validator("action", mode="before")
    @classmethod
    def _accept_aliases(cls, v):
        try:
            return parse_action(v)
        except ValidationError as exc:
            raise ValueError(exc.message) from exc


class ScanResult(BaseModel):
    ok: bool = True
    message: str
    action: AttendanceAction
    timestamp: datetime
    status: AttendanceStatus
    user: ScanUser


# Attendance
class AttendanceOut(BaseModel):
    id: int
    user_id: int
    work_date: date
    punch_in_time: Optional[datetime] = None
    break_start_time: Optional[datetime] = None
    break_end_time: Optional[datetime] = None
    punch_out_time: Optional[datetime] = None
    total_break_seconds: int = 0
    source: str
    notes: Optional[str] = None
    status: AttendanceStatus
    worked_seconds: Optional[int] = None


class TodayStatusResponse(BaseModel):
    status: AttendanceStatus
    attendance: Optional[AttendanceOut] = None
    allowed_actions: List[AttendanceAction]


class AttendanceListResponse(BaseModel):
    attendances: List[AttendanceOut]
