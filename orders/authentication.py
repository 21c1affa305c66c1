"""
orders.authentication

Caller identity for the HTTP surface.

The routing layer in front of us authenticates end users and forwards:
- X-Caller-Id    : stable caller id
- X-Caller-Role  : customer | vendor | admin
- X-Router-Key   : shared key proving the request came through the router

Identity headers are trusted only when X-Router-Key matches ROUTER_SHARED_KEY.
Logging hygiene: only lengths and the match flag are logged, never the key.
"""

from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass
from typing import Optional

from django.conf import settings
from rest_framework import authentication, exceptions

from orders.transitions import CALLER_ROLES

log = logging.getLogger("foodmarket")


@dataclass(frozen=True)
class Caller:
    caller_id: str
    role: str

    is_authenticated = True
    is_anonymous = False

    @property
    def pk(self) -> str:
        return self.caller_id

    def __str__(self) -> str:
        return f"{self.role}:{self.caller_id}"


def _normalize_key(val: Optional[str]) -> str:
    """Strip wrapping quotes, CR/LF and whitespace from secret-like values."""
    if val is None:
        return ""
    return val.strip().strip("'").strip('"').replace("\r", "").replace("\n", "")


def router_key_ok(provided: Optional[str]) -> bool:
    expected = _normalize_key(getattr(settings, "ROUTER_SHARED_KEY", ""))
    provided = _normalize_key(provided)
    match = expected != "" and hmac.compare_digest(expected.encode("utf-8"), provided.encode("utf-8"))
    log.debug(
        "[orders][auth] expected_len=%s provided_len=%s match=%s",
        len(expected), len(provided), match,
    )
    return match


class RouterHeaderAuthentication(authentication.BaseAuthentication):
    def authenticate(self, request):
        router_key = request.headers.get("X-Router-Key")
        if router_key is None:
            return None
        if not router_key_ok(router_key):
            raise exceptions.AuthenticationFailed("Invalid router key.")

        caller_id = (request.headers.get("X-Caller-Id") or "").strip()
        role = (request.headers.get("X-Caller-Role") or "").strip().lower()
        if not caller_id or role not in CALLER_ROLES:
            raise exceptions.AuthenticationFailed("Missing or invalid caller identity.")
        return Caller(caller_id=caller_id, role=role), None

    def authenticate_header(self, request):
        return "X-Router-Key"
