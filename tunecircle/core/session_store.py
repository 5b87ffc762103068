"""Persist and load per-user Spotify sessions (JSON)."""
import json
import logging
import threading
from dataclasses import asdict, replace
from pathlib import Path
from typing import Dict, Optional

from tunecircle.config import SESSIONS_PATH
from tunecircle.models.session import UserSession

logger = logging.getLogger(__name__)

_FIELDS = set(UserSession.__dataclass_fields__)


class SessionStore:
    """JSON-file store keyed by user_id. Reads and read-modify-write are atomic per process."""

    def __init__(self, path: Path = SESSIONS_PATH) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    def _load(self, for_write: bool = False) -> Dict[str, UserSession]:
        """Read all sessions. An unreadable file is empty for reads and raises OSError for writes."""
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text())
        except json.JSONDecodeError as e:
            logger.warning("Session store corrupt (%s): %s", self._path, e)
            return {}
        except OSError as e:
            logger.warning("Session store unreadable (%s): %s", self._path, e)
            if for_write:
                raise
            return {}
        out = {}
        for item in data.get("sessions", []):
            try:
                session = UserSession(
                    user_id=item["user_id"],
                    access_token=item["access_token"],
                    refresh_token=item["refresh_token"],
                    token_expires_at=float(item["token_expires_at"]),
                    active_device_id=item.get("active_device_id"),
                    display_name=item.get("display_name") or "",
                )
            except (KeyError, TypeError, ValueError):
                continue
            out[session.user_id] = session
        return out

    def _save(self, sessions: Dict[str, UserSession]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        data = {"sessions": [asdict(s) for s in sessions.values()]}
        tmp = self._path.with_suffix(".tmp")
        tmp.write_text(json.dumps(data, indent=2))
        tmp.replace(self._path)

    def get(self, user_id: str) -> Optional[UserSession]:
        """Return the session for user_id or None."""
        with self._lock:
            return self._load().get(user_id)

    def save(self, session: UserSession) -> UserSession:
        """Insert or replace a session."""
        with self._lock:
            sessions = self._load(for_write=True)
            sessions[session.user_id] = session
            self._save(sessions)
        return session

    def update(self, user_id: str, **changes) -> Optional[UserSession]:
        """Apply field changes to an existing session; save. Returns updated session or None."""
        unknown = set(changes) - _FIELDS
        if unknown:
            raise TypeError(f"Unknown session fields: {sorted(unknown)}")
        with self._lock:
            sessions = self._load(for_write=True)
            current = sessions.get(user_id)
            if current is None:
                return None
            updated = replace(current, **changes)
            sessions[user_id] = updated
            self._save(sessions)
            return updated

    def delete(self, user_id: str) -> bool:
        """Remove a session; save. Returns True if found and removed."""
        with self._lock:
            sessions = self._load(for_write=True)
            if sessions.pop(user_id, None) is None:
                return False
            self._save(sessions)
            return True
