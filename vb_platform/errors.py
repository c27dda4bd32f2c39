# vb_platform/errors.py
# ViewBridge - error taxonomy shared by adapters, services and the HTTP layer
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

from typing import Any

__all__ = [
    "ViewBridgeError",
    "InvalidInput",
    "NotFound",
    "StoreUnavailable",
]


class ViewBridgeError(RuntimeError):
    status_code = 500
    summary = "Request failed"

    def __init__(self, message: str = "", *, details: Any = None):
        super().__init__(message or self.summary)
        self.details = details

    def payload(self) -> dict[str, Any]:
        out: dict[str, Any] = {"success": False, "error": str(self)}
        if self.details is not None:
            out["details"] = self.details
        return out


class InvalidInput(ViewBridgeError):
    status_code = 400
    summary = "Invalid input"


class NotFound(ViewBridgeError):
    status_code = 404
    summary = "Not found"


class StoreUnavailable(ViewBridgeError):
    """A backing store failed, timed out, or answered with a non-success status."""

    status_code = 500
    summary = "Upstream store unavailable"

    def __init__(
        self,
        message: str = "",
        *,
        store: str = "",
        status: int | None = None,
        details: Any = None,
    ):
        super().__init__(message, details=details)
        self.store = store
        self.status = status

    def payload(self) -> dict[str, Any]:
        out = super().payload()
        if self.store:
            out["store"] = self.store
        if self.status is not None:
            out["upstream_status"] = self.status
        return out
