from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from ..config import get_settings
from ..status import AttendanceAction, parse_action
from .api import ApiError, AttendanceClient, NetworkError
from .camera import Camera, CameraError, CaptureSession, DecodeError, Decoder


logger = logging.getLogger("client.scanner")


@dataclass
class LastScan:
    action: AttendanceAction
    timestamp: datetime
    user_name: str


class ScanController:
    """Owns the camera session and funnels decoded or typed tokens into a scan.

    One capture session at most; a decoded token ends the session before the
    scan is sent so rapid frames cannot submit twice. Every exit path goes
    through ``stop()``, which releases the device.
    """

    def __init__(
        self,
        client: AttendanceClient,
        user_id: int,
        camera: Camera,
        decoder: Decoder,
        clock: Callable[[], float] = time.monotonic,
        success_clear_seconds: Optional[float] = None,
    ) -> None:
        self.client = client
        self.user_id = user_id
        self.camera = camera
        self.decoder = decoder
        self.clock = clock
        if success_clear_seconds is None:
            success_clear_seconds = get_settings().success_clear_seconds
        self.success_clear_seconds = success_clear_seconds

        self.selected_action = AttendanceAction.PUNCH_IN
        self.error: Optional[str] = None
        self.last_scan: Optional[LastScan] = None
        self._session: Optional[CaptureSession] = None
        self._success: Optional[str] = None
        self._success_at = 0.0

    @property
    def scanning(self) -> bool:
        return self._session is not None

    @property
    def success(self) -> Optional[str]:
        if self._success and self.clock() - self._success_at >= self.success_clear_seconds:
            self._success = None
        return self._success

    def select_action(self, action) -> None:
        self.selected_action = parse_action(action)

    def start(self) -> bool:
        if self._session is not None:
            return False
        self.error = None
        self._success = None
        try:
            self._session = CaptureSession.acquire(self.camera)
        except CameraError as exc:
            self.error = f"Could not start the camera: {exc}"
            logger.warning("camera start failed: %s", exc)
            return False
        logger.info("scan session started action=%s", self.selected_action.value)
        return True

    def stop(self) -> None:
        session, self._session = self._session, None
        if session is not None:
            session.release()
            logger.info("scan session stopped")

    def poll(self) -> bool:
        """Read and decode one frame. Returns True once the session has ended."""
        if self._session is None:
            return True
        try:
            frame = self._session.read()
        except CameraError as exc:
            self.error = f"Camera error: {exc}"
            logger.warning("camera read failed: %s", exc)
            self.stop()
            return True
        try:
            token = self.decoder.decode(frame)
        except DecodeError:
            return False
        if not token:
            return False
        self.stop()
        self._submit(token)
        return True

    def run(self, max_frames: Optional[int] = None) -> None:
        frames = 0
        try:
            while self.scanning and (max_frames is None or frames < max_frames):
                frames += 1
                if self.poll():
                    break
        finally:
            self.stop()

    def submit_manual(self, text: str) -> bool:
        token = (text or "").strip()
        if not token:
            self.error = "Enter a valid token"
            return False
        return self._submit(token)

    def _submit(self, token: str) -> bool:
        self.error = None
        self._success = None
        try:
            result = self.client.scan(token, self.user_id, self.selected_action)
        except (ApiError, NetworkError) as exc:
            self.error = f"Scan failed: {exc}"
            logger.info("scan failed user=%s action=%s error=%s", self.user_id, self.selected_action.value, exc)
            return False
        self._success = result.message
        self._success_at = self.clock()
        self.last_scan = LastScan(action=result.action, timestamp=result.timestamp, user_name=result.user.name)
        return True

    def __enter__(self) -> "ScanController":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
