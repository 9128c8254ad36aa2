from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..deps import current_user, get_db, require_token
from ..dispatcher import apply_action
from ..models import User
from ..projection import list_attendance, today_status
from ..schemas import AttendanceListResponse, ScanResult, TodayStatusResponse
from ..status import AttendanceAction
from ..utils import utcnow


router = APIRouter(prefix="/api/attendance", tags=["attendance"], dependencies=[Depends(require_token)])


def _manual(db: Session, user: User, action: AttendanceAction) -> ScanResult:
    return apply_action(db, user, action, utcnow(), source="manual")


@router.post("/punch-in", response_model=ScanResult)
def punch_in(user: User = Depends(current_user), db: Session = Depends(get_db)):
    return _manual(db, user, AttendanceAction.PUNCH_IN)


@router.post("/break-start", response_model=ScanResult)
def break_start(user: User = Depends(current_user), db: Session = Depends(get_db)):
    return _manual(db, user, AttendanceAction.BREAK_START)


@router.post("/break-end", response_model=ScanResult)
def break_end(user: User = Depends(current_user), db: Session = Depends(get_db)):
    return _manual(db, user, AttendanceAction.BREAK_END)


@router.post("/punch-out", response_model=ScanResult)
def punch_out(user: User = Depends(current_user), db: Session = Depends(get_db)):
    return _manual(db, user, AttendanceAction.PUNCH_OUT)


@router.get("/today-status", response_model=TodayStatusResponse)
def get_today_status(user: User = Depends(current_user), db: Session = Depends(get_db)):
    return today_status(db, user.id)


@router.get("/my-attendance", response_model=AttendanceListResponse)
def my_attendance(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    return {"attendances": list_attendance(db, user.id, start_date, end_date)}


@router.get("/all", response_model=AttendanceListResponse)
def all_attendance(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    user_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    return {"attendances": list_attendance(db, user_id, start_date, end_date)}
