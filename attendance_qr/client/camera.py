from __future__ import annotations

"""
Camera and QR decoder adapters.

The scan controller only needs three things from a camera: open it, read a
frame, release it. ``CaptureSession`` wraps whatever device handle the camera
returns so release happens exactly once no matter which path ends the session.
OpenCV is optional and only imported when the OpenCV adapters are used.
"""

import logging
from typing import Any, Optional, Protocol


logger = logging.getLogger("client.camera")


class CameraError(Exception):
    """Device could not be opened or read (missing camera, permission denied)."""


class DecodeError(Exception):
    """A frame held no readable QR code. Expected on most frames."""


class CameraDevice(Protocol):
    def read(self) -> Any: ...

    def release(self) -> None: ...


class Camera(Protocol):
    def open(self) -> CameraDevice: ...


class Decoder(Protocol):
    def decode(self, frame: Any) -> Optional[str]: ...


class CaptureSession:
    def __init__(self, device: CameraDevice) -> None:
        self._device: Optional[CameraDevice] = device

    @classmethod
    def acquire(cls, camera: Camera) -> "CaptureSession":
        return cls(camera.open())

    @property
    def active(self) -> bool:
        return self._device is not None

    def read(self) -> Any:
        if self._device is None:
            raise CameraError("Capture session already released")
        return self._device.read()

    def release(self) -> None:
        device, self._device = self._device, None
        if device is None:
            return
        try:
            device.release()
        except Exception:
            logger.exception("camera release failed")

    def __enter__(self) -> "CaptureSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


class _OpenCVDevice:
    def __init__(self, cap) -> None:
        self.cap = cap

    def read(self):
        ok, frame = self.cap.read()
        if not ok:
            raise CameraError("Could not read a frame from the camera")
        return frame

    def release(self) -> None:
        self.cap.release()


class OpenCVCamera:
    def __init__(self, index: int = 0) -> None:
        self.index = index

    def open(self) -> _OpenCVDevice:
        import cv2

        cap = cv2.VideoCapture(self.index)
        if not cap.isOpened():
            cap.release()
            raise CameraError(f"Could not open camera {self.index}")
        return _OpenCVDevice(cap)


class OpenCVQRDecoder:
    def __init__(self) -> None:
        import cv2

        self.detector = cv2.QRCodeDetector()
        self._cv_error = cv2.error

    def decode(self, frame) -> Optional[str]:
        try:
            data, _points, _ = self.detector.detectAndDecode(frame)
        except self._cv_error as exc:
            raise DecodeError(str(exc)) from exc
        return data or None
