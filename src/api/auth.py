"""Admin token check for the ``/api/v1/admin`` routes.

# ─── HOW ADMIN AUTH WORKS ────────────────────────────────────────────
#
# Every admin route depends on ``require_admin_token``.  The caller sends
# the shared secret in the ``X-Admin-Token`` header; it is compared with
# ``Settings.admin_token`` in constant time (``hmac.compare_digest``).
#
#   - Dev mode bypass: if ADMIN_TOKEN is empty, the check is skipped so
#     local development needs no secret.
#   - Chat, feedback and health stay public.
# ─────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import hmac

import structlog
from fastapi import HTTPException, Request

from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

ADMIN_TOKEN_HEADER = "X-Admin-Token"


def _configured_token(request: Request) -> str:
    settings = getattr(request.app.state, "settings", None)
    return getattr(settings, "admin_token", "") or ""


def require_admin_token(request: Request) -> None:
    """FastAPI dependency: reject the request unless the admin token matches."""
    expected = _configured_token(request)
    if not expected:
        return

    supplied = request.headers.get(ADMIN_TOKEN_HEADER, "")
    if not hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8")):
        _logger.warning("admin_auth_rejected", path=str(request.url.path))
        raise HTTPException(status_code=401, detail="Unauthorized")
