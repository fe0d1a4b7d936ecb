"""
Session registry for logged-in workplace users.

The Flask session cookie identifies the browser; this registry tracks which
CMS user is behind it (for "who is online", broadcast messages, forced
logout). Only real users are registered: the guest user and the export user
never are.
"""
from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta

from app.cms.default_users import DefaultUsers

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestContext:
    user_name: str
    project: str = "Online"
    site_root: str = "/"
    locale: str = "en"
    remote_addr: str | None = None
    session_id: str | None = None


@dataclass
class SessionInfo:
    session_id: str
    user_name: str
    max_inactive_interval: int  # seconds
    project: str = "Online"
    site_root: str = "/"
    created_at: datetime = field(default_factory=datetime.utcnow)
    last_access: datetime = field(default_factory=datetime.utcnow)

    @classmethod
    def from_context(cls, context: RequestContext, session_id: str, max_inactive_interval: int) -> "SessionInfo":
        return cls(
            session_id=session_id,
            user_name=context.user_name,
            max_inactive_interval=max_inactive_interval,
            project=context.project,
            site_root=context.site_root,
        )

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.max_inactive_interval <= 0:
            return False
        now = now or datetime.utcnow()
        return now - self.last_access > timedelta(seconds=self.max_inactive_interval)

    def touch(self, now: datetime | None = None) -> None:
        self.last_access = now or datetime.utcnow()


class SessionManager:
    def __init__(self) -> None:
        self._sessions: dict[str, SessionInfo] = {}
        self._lock = threading.RLock()

    def add_session_info(self, info: SessionInfo) -> None:
        with self._lock:
            self._sessions[info.session_id] = info
        logger.info("Session registered user=%s session_id=%s", info.user_name, info.session_id)

    def get_session_info(self, session_id: str | None) -> SessionInfo | None:
        if not session_id:
            return None
        with self._lock:
            return self._sessions.get(session_id)

    def update_session_info(self, session_id: str, context: RequestContext | None = None) -> SessionInfo | None:
        """Refresh a live session; an expired one is dropped and None returned."""
        with self._lock:
            info = self._sessions.get(session_id)
            if info is None:
                return None
            if info.is_expired():
                del self._sessions[session_id]
                logger.info("Session expired user=%s session_id=%s", info.user_name, session_id)
                return None
            if context is not None:
                info.project = context.project
                info.site_root = context.site_root
            info.touch()
            return info

    def remove_session(self, session_id: str | None) -> SessionInfo | None:
        if not session_id:
            return None
        with self._lock:
            info = self._sessions.pop(session_id, None)
        if info is not None:
            logger.info("Session removed user=%s session_id=%s", info.user_name, session_id)
        return info

    def get_session_infos(self, user_name: str | None = None) -> list[SessionInfo]:
        with self._lock:
            infos = list(self._sessions.values())
        if user_name is not None:
            infos = [i for i in infos if i.user_name == user_name]
        return sorted(infos, key=lambda i: i.created_at)

    def get_session_count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def validate_sessions(self, now: datetime | None = None) -> list[str]:
        """Drop expired sessions, returning their ids."""
        now = now or datetime.utcnow()
        with self._lock:
            expired = [sid for sid, info in self._sessions.items() if info.is_expired(now)]
            for sid in expired:
                del self._sessions[sid]
        if expired:
            logger.info("Dropped %d expired session(s)", len(expired))
        return expired


class AuthorizationHandler:
    """
    Registers authenticated request contexts with the session manager.
    """

    def __init__(self, session_manager: SessionManager, default_users: DefaultUsers, max_inactive_interval: int):
        self.session_manager = session_manager
        self.default_users = default_users
        self.max_inactive_interval = max_inactive_interval

    def update_context(self, context: RequestContext) -> RequestContext:
        if context.session_id and self.session_manager.get_session_info(context.session_id):
            return context
        return replace(context, session_id=None)

    def register_session(self, context: RequestContext) -> RequestContext:
        context = self.update_context(context)
        user_name = context.user_name
        if self.default_users.is_user_guest(user_name) or self.default_users.is_user_export(user_name):
            return context

        info = SessionInfo.from_context(context, uuid.uuid4().hex, self.max_inactive_interval)
        self.session_manager.add_session_info(info)
        return replace(context, session_id=info.session_id)
