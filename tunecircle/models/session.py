"""Per-user Spotify session record."""
from dataclasses import dataclass
from typing import Optional


@dataclass
class UserSession:
    """Stored credentials for one user: access/refresh tokens and last device."""
    user_id: str
    access_token: str
    refresh_token: str
    token_expires_at: float  # epoch seconds, provider expiry minus skew
    active_device_id: Optional[str] = None
    display_name: str = ""
