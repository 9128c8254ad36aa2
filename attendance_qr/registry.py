from __future__ import annotations

import logging
import math
import secrets
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .config import get_settings
from .errors import ConflictError, NotFound, ValidationError
from .models import QRCode
from .status import TokenStatus, token_status
from .utils import utcnow


logger = logging.getLogger("qr.registry")


class TokenRegistry:
    """Holds at most one active QR token per scope.

    The active token is the row whose ``active_scope`` equals the scope. The
    column is unique, so the database refuses a second active row even when two
    ``generate`` calls race; the loser rolls back and tries again.
    """

    def __init__(self, db: Session, scope: Optional[str] = None) -> None:
        self.db = db
        self.settings = get_settings()
        self.scope = scope or self.settings.qr_scope

    def generate(
        self,
        description: Optional[str],
        expires_hours: Optional[float] = None,
        created_by: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> QRCode:
        description = (description or "").strip()
        max_len = self.settings.qr_description_max_length
        if len(description) > max_len:
            raise ValidationError(f"Description must be at most {max_len} characters")
        lifetime = self._lifetime(expires_hours)

        attempts = max(self.settings.qr_generate_retries, 1)
        for attempt in range(1, attempts + 1):
            ts = now or utcnow()
            try:
                expires_at = ts + lifetime if lifetime is not None else None
            except OverflowError:
                raise ValidationError("expires_hours is out of range")
            try:
                self.db.execute(
                    update(QRCode)
                    .where(QRCode.active_scope == self.scope)
                    .values(is_active=False, active_scope=None)
                )
                qr = QRCode(
                    token=secrets.token_urlsafe(self.settings.qr_token_bytes),
                    description=description or None,
                    created_at=ts,
                    expires_at=expires_at,
                    is_active=True,
                    scope=self.scope,
                    active_scope=self.scope,
                    created_by=created_by,
                )
                self.db.add(qr)
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                logger.warning("qr generate conflict scope=%s attempt=%s", self.scope, attempt)
                continue
            self.db.refresh(qr)
            logger.info("qr generated id=%s scope=%s expires_at=%s by=%s", qr.id, self.scope, qr.expires_at, created_by)
            return qr
        raise ConflictError("Another QR code was generated at the same time, try again")

    def _lifetime(self, expires_hours: Optional[float]) -> Optional[timedelta]:
        if expires_hours is None:
            return None
        if not math.isfinite(expires_hours) or expires_hours <= 0:
            raise ValidationError("expires_hours must be a positive number")
        max_hours = self.settings.qr_max_expires_hours
        if expires_hours > max_hours:
            raise ValidationError(f"expires_hours must be at most {max_hours:g}")
        try:
            return timedelta(hours=expires_hours)
        except (OverflowError, ValueError):
            raise ValidationError("expires_hours is out of range")

    def get_active(self, now: Optional[datetime] = None) -> Optional[QRCode]:
        qr = self.db.execute(select(QRCode).where(QRCode.active_scope == self.scope)).scalar_one_or_none()
        if qr is None or token_status(qr, now or utcnow()) != TokenStatus.ACTIVE:
            return None
        return qr

    def deactivate(self, token_id: int) -> QRCode:
        qr = self.db.get(QRCode, token_id)
        if qr is None:
            raise NotFound("QR code not found")
        if not qr.is_active:
            return qr
        qr.is_active = False
        qr.active_scope = None
        self.db.add(qr)
        self.db.commit()
        self.db.refresh(qr)
        logger.info("qr deactivated id=%s", qr.id)
        return qr

    def history(self, now: Optional[datetime] = None) -> List[Tuple[QRCode, TokenStatus]]:
        ts = now or utcnow()
        rows = self.db.execute(
            select(QRCode)
            .where(QRCode.scope == self.scope)
            .order_by(QRCode.created_at.desc(), QRCode.id.desc())
        ).scalars().all()
        return [(qr, token_status(qr, ts)) for qr in rows]

    def find_by_token(self, token: str) -> Optional[QRCode]:
        return self.db.execute(select(QRCode).where(QRCode.token == token)).scalar_one_or_none()
