from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..deps import get_db, require_token
from ..errors import ValidationError
from ..models import User
from ..schemas import UserCreate, UserOut, UsersListResponse


router = APIRouter(prefix="/api", tags=["users"], dependencies=[Depends(require_token)])


@router.post("/users", response_model=UserOut, status_code=201)
def users_create(payload: UserCreate, db: Session = Depends(get_db)):
    exists = db.execute(select(User).where(User.username == payload.username)).scalar_one_or_none()
    if exists:
        raise ValidationError("Username already taken")
    user = User(username=payload.username, full_name=payload.full_name, role=payload.role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@router.get("/users", response_model=UsersListResponse)
def users_list(
    db: Session = Depends(get_db),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=50, ge=1, le=500),
):
    total = db.execute(select(User).order_by(User.id)).scalars().all()
    items = total[(page - 1) * page_size : page * page_size]
    return {"items": items, "total": len(total)}
