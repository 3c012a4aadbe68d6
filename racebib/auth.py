from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Optional

from fastapi import Request, HTTPException, Depends
from itsdangerous import URLSafeSerializer, BadData

from .settings import settings

logger = logging.getLogger(__name__)

COOKIE_NAME = "racebib_auth"

def _serializer() -> URLSafeSerializer:
    return URLSafeSerializer(settings.RACEBIB_SECRET_KEY, salt="racebib-auth")

@dataclass
class CurrentUser:
    id: str
    username: str
    role: str  # "admin" | "organizer" | "runner"
    event_id: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def is_organizer(self) -> bool:
        return self.role == "organizer"

def issue_token(*, user_id: str, username: str, role: str, event_id: Optional[str] = None) -> str:
    return _serializer().dumps({"id": user_id, "u": username, "r": role, "event_id": event_id})

def _raw_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return request.cookies.get(COOKIE_NAME)

def get_current_user(request: Request) -> Optional[CurrentUser]:
    raw = _raw_token(request)
    if not raw:
        return None
    try:
        data = _serializer().loads(raw)
        return CurrentUser(
            id=str(data["id"]),
            username=str(data.get("u") or ""),
            role=str(data.get("r") or ""),
            event_id=data.get("event_id"),
        )
    except (BadData, KeyError, TypeError):
        logger.warning("Rejected auth token")
        return None

def staff_required(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user:
        raise HTTPException(status_code=401, detail="Login required")
    if user.role not in ("admin", "organizer"):
        raise HTTPException(status_code=403, detail="Forbidden")
    return user

def assert_can_access_event(user: CurrentUser, event_id: str) -> None:
    # Admin can access everything; organizers only their own event
    if user.role == "admin":
        return
    if user.role == "organizer" and user.event_id == event_id:
        return
    raise HTTPException(status_code=403, detail="Not allowed for this event")

def assert_can_sync(user: Optional[CurrentUser], owner_id: str) -> None:
    """Registration owner or admin, when SYNC_REQUIRE_AUTH is on."""
    if not settings.SYNC_REQUIRE_AUTH:
        return
    if not user:
        raise HTTPException(status_code=401, detail="Login required")
    if user.is_admin or user.id == owner_id:
        return
    raise HTTPException(status_code=403, detail="Not allowed for this registration")
