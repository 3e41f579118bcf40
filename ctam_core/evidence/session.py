# ctam_core/evidence/session.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from django.conf import settings
from django.utils import timezone
from rest_framework.exceptions import NotAuthenticated
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.serializers import TokenRefreshSerializer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionCheck:
    refreshed: bool
    access: Optional[str] = None
    refresh: Optional[str] = None


def seconds_until_expiry(token) -> Optional[float]:
    """
    Remaining lifetime of a validated simplejwt token, or None when the
    request was not authenticated with one (session auth, test clients).
    """
    payload = getattr(token, "payload", None)
    if not payload or "exp" not in payload:
        return None
    return float(payload["exp"]) - timezone.now().timestamp()


def ensure_valid_session(request, *, leeway: Optional[int] = None) -> SessionCheck:
    """
    Refresh the caller's JWT pair when the access token expires within
    `leeway` seconds, so a slow blob transfer does not outlive the session.
    The caller must put the returned tokens on its response.
    """
    if leeway is None:
        leeway = int(getattr(settings, "CTAM_SESSION_REFRESH_LEEWAY_SECONDS", 60))

    remaining = seconds_until_expiry(getattr(request, "auth", None))
    if remaining is None or remaining > leeway:
        return SessionCheck(refreshed=False)

    cookie_name = settings.SIMPLE_JWT.get("AUTH_COOKIE_REFRESH", "ctam_refresh")
    raw_refresh = request.COOKIES.get(cookie_name)
    if not raw_refresh:
        raise NotAuthenticated("Session is about to expire. Please sign in again.")

    serializer = TokenRefreshSerializer(data={"refresh": raw_refresh})
    try:
        serializer.is_valid(raise_exception=True)
    except TokenError as e:
        logger.info("Session refresh rejected user=%s: %s", getattr(request.user, "id", None), e)
        raise NotAuthenticated("Session expired. Please sign in again.")

    logger.info("Session refreshed before download user=%s remaining=%.0fs", request.user.id, remaining)
    return SessionCheck(
        refreshed=True,
        access=serializer.validated_data["access"],
        refresh=serializer.validated_data.get("refresh", raw_refresh),
    )
