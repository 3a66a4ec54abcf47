from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import Request
from fastapi.responses import Response

from .models import Course

logger = logging.getLogger("cc.identity")

ROLE_SUPERADMIN = "superadmin"
ROLE_ADMIN = "admin"
ROLE_USER = "user"
ROLES = (ROLE_SUPERADMIN, ROLE_ADMIN, ROLE_USER)

USER_HEADER = "x-user-id"
ROLE_HEADER = "x-user-role"
USER_COOKIE = "cc_user_id"
ROLE_COOKIE = "cc_user_role"


@dataclass(frozen=True)
class Identity:
    user_id: str
    role: str = ROLE_USER

    @property
    def is_admin(self) -> bool:
        return self.role in (ROLE_ADMIN, ROLE_SUPERADMIN)

    @property
    def is_superadmin(self) -> bool:
        return self.role == ROLE_SUPERADMIN

    def can_edit(self, course: Course) -> bool:
        if self.is_superadmin:
            return True
        return self.is_admin and course.created_by == self.user_id


def identity_from_request(request: Request) -> Identity | None:
    """
    Opaque identity read. Whoever sits in front of this service (session layer, proxy) is trusted
    to set the headers or cookies; nothing here authenticates.
    """
    user_id = (request.headers.get(USER_HEADER) or request.cookies.get(USER_COOKIE) or "").strip()
    if not user_id:
        return None
    role = (request.headers.get(ROLE_HEADER) or request.cookies.get(ROLE_COOKIE) or ROLE_USER).strip().lower()
    if role not in ROLES:
        logger.debug("identity: unknown role %r for %s, treated as user", role, user_id)
        role = ROLE_USER
    return Identity(user_id=user_id, role=role)


def require_user(request: Request) -> Identity | Response:
    ident = identity_from_request(request)
    if ident is None:
        return Response(status_code=401, content="Not signed in", media_type="text/plain")
    return ident


def require_admin(request: Request) -> Identity | Response:
    ident = require_user(request)
    if isinstance(ident, Response):
        return ident
    if not ident.is_admin:
        logger.warning("require_admin: 403 for %s (role=%s) on %s", ident.user_id, ident.role, request.url.path)
        return Response(status_code=403, content="Admin role required", media_type="text/plain")
    return ident
