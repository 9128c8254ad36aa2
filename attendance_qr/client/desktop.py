from __future__ import annotations

import argparse
import logging
from typing import Optional, Sequence

from ..config import get_settings
from ..status import AttendanceAction
from .api import AttendanceClient
from .camera import OpenCVCamera, OpenCVQRDecoder
from .scanner import ScanController


logger = logging.getLogger("client.desktop")


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Scan the attendance QR code with the local camera")
    parser.add_argument("user_id", type=int)
    parser.add_argument("--action", default=AttendanceAction.PUNCH_IN.value, choices=[a.value for a in AttendanceAction])
    parser.add_argument("--token", help="Type the QR token instead of using the camera")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    settings = get_settings()
    client = AttendanceClient.from_settings()
    try:
        with ScanController(client, args.user_id, OpenCVCamera(settings.camera_index), OpenCVQRDecoder()) as controller:
            controller.select_action(args.action)
            if args.token is not None:
                controller.submit_manual(args.token)
            elif controller.start():
                controller.run()
            if controller.error:
                logger.error(controller.error)
                return 1
            logger.info("%s", controller.success or "No QR code scanned")
            return 0
    finally:
        client.close()


if __name__ == "__main__":
    raise SystemExit(main())
