from __future__ import annotations

from io import BytesIO

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from ..deps import get_db, require_token
from ..dispatcher import ScanDispatcher
from ..errors import NotFound
from ..models import QRCode
from ..rate_limit import scan_rate_limit
from ..registry import TokenRegistry
from ..schemas import (
    ActiveQRCodeResponse,
    QRCodeGenerate,
    QRCodeGenerateResponse,
    QRCodeHistoryResponse,
    QRCodeOut,
    ScanRequest,
    ScanResult,
)
from ..status import TokenStatus, token_status
from ..utils import utcnow


router = APIRouter(prefix="/api/qr-code", tags=["qr"], dependencies=[Depends(require_token)])
# The QR token itself is the credential for scans
scan_router = APIRouter(prefix="/api/qr-code", tags=["qr"], dependencies=[Depends(scan_rate_limit)])


def _qr_out(qr: QRCode, status: TokenStatus) -> QRCodeOut:
    return QRCodeOut(
        id=qr.id,
        token=qr.token,
        description=qr.description,
        created_at=qr.created_at,
        expires_at=qr.expires_at,
        is_active=qr.is_active,
        created_by=qr.created_by,
        status=status,
    )


@router.post("/generate", response_model=QRCodeGenerateResponse, status_code=201)
def qr_generate(payload: QRCodeGenerate, db: Session = Depends(get_db)):
    qr = TokenRegistry(db).generate(payload.description, payload.expires_hours, created_by=payload.created_by)
    return {"message": "QR code generated", "qr_code": _qr_out(qr, token_status(qr, utcnow()))}


@router.get("/active", response_model=ActiveQRCodeResponse)
def qr_active(db: Session = Depends(get_db)):
    qr = TokenRegistry(db).get_active()
    return {"qr_code": _qr_out(qr, TokenStatus.ACTIVE) if qr else None}


@router.get("/active.png")
def qr_active_png(db: Session = Depends(get_db)):
    import qrcode

    qr = TokenRegistry(db).get_active()
    if qr is None:
        raise NotFound("No active QR code")
    img = qrcode.make(qr.token)
    buf = BytesIO()
    img.save(buf, format="PNG")
    return Response(content=buf.getvalue(), media_type="image/png")


@router.get("/history", response_model=QRCodeHistoryResponse)
def qr_history(db: Session = Depends(get_db)):
    return {"qr_codes": [_qr_out(qr, status) for qr, status in TokenRegistry(db).history()]}


@router.post("/{qr_id}/deactivate")
def qr_deactivate(qr_id: int, db: Session = Depends(get_db)) -> dict:
    TokenRegistry(db).deactivate(qr_id)
    return {}


@scan_router.post("/scan", response_model=ScanResult)
def qr_scan(payload: ScanRequest, db: Session = Depends(get_db)):
    return ScanDispatcher(db).scan(payload.token, payload.user_id, payload.action)
