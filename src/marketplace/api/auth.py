"""Bearer-token sessions and the access rules the routes enforce.

Sessions live behind the ``SessionStore`` interface; the application owns
one instance (``app.state.session_store``), so nothing here is module-global.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

from fastapi import Request

from marketplace.errors import Forbidden, Unauthorized
from marketplace.settings import SESSION_TTL_SECONDS
from marketplace.utils.logging import add_context


class Role(Enum):
    BUYER = "buyer"
    STAFF = "staff"
    ADMIN = "admin"


@dataclass(frozen=True)
class Actor:
    user_id: str
    role: Role = Role.BUYER
    store_ids: tuple[str, ...] = ()

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def staffs(self, store_id) -> bool:
        return self.role == Role.STAFF and str(store_id) in self.store_ids


class SessionStore(ABC):
    @abstractmethod
    def get(self, token: str) -> Actor | None: ...

    @abstractmethod
    def set(self, token: str, actor: Actor, ttl_seconds: int | None = None) -> None: ...

    @abstractmethod
    def expire(self, token: str) -> None: ...


class InMemorySessionStore(SessionStore):
    def __init__(self, ttl_seconds: int = SESSION_TTL_SECONDS, clock=time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._sessions: dict[str, tuple[Actor, float]] = {}

    def get(self, token):
        session = self._sessions.get(token)
        if session is None:
            return None
        actor, expires_at = session
        if self._clock() >= expires_at:
            self.expire(token)
            return None
        return actor

    def set(self, token, actor, ttl_seconds=None):
        self._sessions[token] = (actor, self._clock() + (ttl_seconds or self.ttl_seconds))

    def expire(self, token):
        self._sessions.pop(token, None)


def current_actor(request: Request) -> Actor:
    """FastAPI dependency resolving ``Authorization: Bearer <token>``."""
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise Unauthorized("Missing bearer token")

    actor = request.app.state.session_store.get(token.strip())
    if actor is None:
        raise Unauthorized("Session expired or unknown")

    add_context(user_id=actor.user_id, role=actor.role.value)
    return actor


def require_store_staff(actor: Actor, store_id) -> None:
    if actor.is_admin or actor.staffs(store_id):
        return
    raise Forbidden("Store staff or admin access required")


def require_order_access(actor: Actor, order) -> None:
    """Admins, staff of the selling store, and the buyer may act on an order."""
    if actor.is_admin or actor.staffs(order.store_id) or str(order.buyer_id) == actor.user_id:
        return
    raise Forbidden("You do not have access to this order")
