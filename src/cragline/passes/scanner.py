"""Barcode scanner state derived from the platform camera."""

from __future__ import annotations

from enum import StrEnum
from typing import Protocol

import structlog

from cragline.passes.viewmodel import PassViewModel
from cragline.viewmodel import ViewModel, ViewState

logger = structlog.get_logger()


class CameraAuthorization(StrEnum):
    AUTHORIZED = "authorized"
    DENIED = "denied"
    RESTRICTED = "restricted"
    NOT_DETERMINED = "not_determined"


class ScannerStatus(StrEnum):
    NOT_DETERMINED = "not_determined"
    NO_CAMERA_ACCESS = "no_camera_access"
    CAMERA_NOT_FOUND = "camera_not_found"
    SCANNER_AVAILABLE = "scanner_available"
    SCANNER_NOT_AVAILABLE = "scanner_not_available"


class CameraAccess(Protocol):
    def has_camera(self) -> bool: ...

    def authorization(self) -> CameraAuthorization: ...

    async def request_access(self) -> bool: ...

    def scanner_supported(self) -> bool: ...


class ScannerState(ViewState):
    status: ScannerStatus = ScannerStatus.NOT_DETERMINED
    is_barcode_detected: bool = False


class PassScannerViewModel(ViewModel[ScannerState]):
    def __init__(self, camera: CameraAccess, passes: PassViewModel) -> None:
        super().__init__(ScannerState())
        self.camera = camera
        self.passes = passes

    def _available(self) -> ScannerStatus:
        if self.camera.scanner_supported():
            return ScannerStatus.SCANNER_AVAILABLE
        return ScannerStatus.SCANNER_NOT_AVAILABLE

    async def check_camera_permissions(self) -> ScannerStatus:
        """Resolve the scanner status, asking for camera access if it was never granted or denied."""
        try:
            if not self.camera.has_camera():
                status = ScannerStatus.CAMERA_NOT_FOUND
            else:
                match self.camera.authorization():
                    case CameraAuthorization.AUTHORIZED:
                        status = self._available()
                    case CameraAuthorization.NOT_DETERMINED:
                        granted = await self.camera.request_access()
                        status = self._available() if granted else ScannerStatus.NO_CAMERA_ACCESS
                    case _:
                        status = ScannerStatus.NO_CAMERA_ACCESS
        except Exception as exc:
            logger.warning("camera_permission_error", error=str(exc))
            status = ScannerStatus.NO_CAMERA_ACCESS
        self._set(status=status)
        return status

    def update_detection(self, detected: bool) -> None:
        self._set(is_barcode_detected=detected)

    def process_scanned_code(self, payload: str | None, symbology: str) -> None:
        """Forward a recognised barcode to the wallet screen."""
        self._set(is_barcode_detected=True)
        self.passes.handle_scanned_barcode(payload or "Unknown", symbology)
