from __future__ import annotations

"""HTTP client the desktop app uses to talk to the attendance API."""

import logging
from datetime import date
from typing import Any, Dict, List, Optional

import httpx

from ..config import get_settings
from ..schemas import (
    AttendanceOut,
    QRCodeOut,
    ScanResult,
    TodayStatusResponse,
    UserOut,
)
from ..status import AttendanceAction, parse_action


logger = logging.getLogger("client.api")


class ApiError(Exception):
    """Non-2xx response from the API; ``str(exc)`` is the user-facing message."""

    def __init__(self, message: str, status_code: int, kind: str = "error", details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.kind = kind
        self.details = details or {}


class NetworkError(Exception):
    """Backend unreachable; the user may simply try again."""


def _handle_response(response: httpx.Response) -> Dict[str, Any]:
    if response.is_error:
        try:
            body = response.json()
        except ValueError:
            body = {}
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict):
            details = {k: v for k, v in error.items() if k not in ("message", "kind", "status", "path")}
            raise ApiError(
                error.get("message") or f"Error {response.status_code}",
                response.status_code,
                error.get("kind", "error"),
                details,
            )
        if isinstance(error, str):
            raise ApiError(error, response.status_code)
        raise ApiError(f"Error {response.status_code}: {response.reason_phrase}", response.status_code)
    if response.status_code == 204 or not response.content:
        return {}
    return response.json()


def _dates(start_date: Optional[date], end_date: Optional[date]) -> Dict[str, str]:
    params = {}
    if start_date:
        params["start_date"] = start_date.isoformat()
    if end_date:
        params["end_date"] = end_date.isoformat()
    return params


class AttendanceClient:
    def __init__(self, http: httpx.Client, token: Optional[str] = None, user_id: Optional[int] = None) -> None:
        self.http = http
        self.token = token
        self.user_id = user_id

    @classmethod
    def from_settings(cls, token: Optional[str] = None, user_id: Optional[int] = None) -> "AttendanceClient":
        settings = get_settings()
        http = httpx.Client(base_url=settings.api_base_url, timeout=settings.client_timeout_seconds)
        return cls(http, token=token, user_id=user_id)

    def close(self) -> None:
        self.http.close()

    def _headers(self, auth: bool = True) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if auth and self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if auth and self.user_id is not None:
            headers["X-User-Id"] = str(self.user_id)
        return headers

    def _request(self, method: str, path: str, auth: bool = True, **kwargs) -> Dict[str, Any]:
        try:
            response = self.http.request(method, path, headers=self._headers(auth), **kwargs)
        except httpx.TransportError as exc:
            logger.warning("request failed method=%s path=%s error=%s", method, path, exc)
            raise NetworkError("Network error: the attendance server could not be reached") from exc
        return _handle_response(response)

    # Users
    def create_user(self, username: str, full_name: str, role: str = "employee") -> UserOut:
        data = self._request("POST", "/api/users", json={"username": username, "full_name": full_name, "role": role})
        return UserOut.model_validate(data)

    def list_users(self) -> List[UserOut]:
        data = self._request("GET", "/api/users")
        return [UserOut.model_validate(u) for u in data.get("items", [])]

    # QR codes
    def generate_qr_code(self, description: str, expires_hours: Optional[float] = None) -> QRCodeOut:
        data = self._request(
            "POST", "/api/qr-code/generate", json={"description": description, "expires_hours": expires_hours}
        )
        return QRCodeOut.model_validate(data["qr_code"])

    def get_active_qr_code(self) -> Optional[QRCodeOut]:
        data = self._request("GET", "/api/qr-code/active")
        qr = data.get("qr_code")
        return QRCodeOut.model_validate(qr) if qr else None

    def get_qr_code_history(self) -> List[QRCodeOut]:
        data = self._request("GET", "/api/qr-code/history")
        return [QRCodeOut.model_validate(q) for q in data.get("qr_codes", [])]

    def deactivate_qr_code(self, qr_id: int) -> None:
        self._request("POST", f"/api/qr-code/{qr_id}/deactivate")

    def scan(self, token: str, user_id: int, action) -> ScanResult:
        action = parse_action(action)
        data = self._request(
            "POST",
            "/api/qr-code/scan",
            auth=False,
            json={"token": token, "user_id": user_id, "action": action.value},
        )
        return ScanResult.model_validate(data)

    # Attendance
    def _punch(self, action: AttendanceAction) -> ScanResult:
        path = "/api/attendance/" + action.value.replace("_", "-")
        return ScanResult.model_validate(self._request("POST", path))

    def punch_in(self) -> ScanResult:
        return self._punch(AttendanceAction.PUNCH_IN)

    def break_start(self) -> ScanResult:
        return self._punch(AttendanceAction.BREAK_START)

    def break_end(self) -> ScanResult:
        return self._punch(AttendanceAction.BREAK_END)

    def punch_out(self) -> ScanResult:
        return self._punch(AttendanceAction.PUNCH_OUT)

    def today_status(self) -> TodayStatusResponse:
        return TodayStatusResponse.model_validate(self._request("GET", "/api/attendance/today-status"))

    def my_attendance(self, start_date: Optional[date] = None, end_date: Optional[date] = None) -> List[AttendanceOut]:
        data = self._request("GET", "/api/attendance/my-attendance", params=_dates(start_date, end_date))
        return [AttendanceOut.model_validate(a) for a in data.get("attendances", [])]

    def all_attendance(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        user_id: Optional[int] = None,
    ) -> List[AttendanceOut]:
        params = _dates(start_date, end_date)
        if user_id is not None:
            params["user_id"] = str(user_id)
        data = self._request("GET", "/api/attendance/all", params=params)
        return [AttendanceOut.model_validate(a) for a in data.get("attendances", [])]
