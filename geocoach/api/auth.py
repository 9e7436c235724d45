"""Session check shared by every route: known token or redirect to login."""

import hmac
import logging
from typing import Optional

from fastapi import Request
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class AuthRedirect(Exception):
    """Raised by :func:`require_user`; answered with a redirect to *location*."""

    def __init__(self, location: str):
        super().__init__(location)
        self.location = location


class CurrentUser(BaseModel):
    id: str


def _presented_token(request: Request, cookie_name: str) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        token = header[len("Bearer "):].strip()
        if token:
            return token
    return request.cookies.get(cookie_name) or None


def require_user(request: Request) -> CurrentUser:
    """FastAPI dependency: return the session's user or redirect to login.

    A session is either ``Authorization: Bearer <token>`` or the session
    cookie, holding one of the configured session tokens.
    """
    auth = request.app.state.coach.config.auth
    if not auth.enabled:
        return CurrentUser(id="anonymous")

    token = _presented_token(request, auth.cookie_name)
    if token:
        for index, known in enumerate(auth.session_tokens):
            if hmac.compare_digest(token.encode(), known.encode()):
                return CurrentUser(id=f"session-{index}")
        logger.info("Rejected unknown session token on %s", request.url.path)
    raise AuthRedirect(auth.login_url)
