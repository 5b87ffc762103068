"""App session tokens (JWT): who is calling, independent of the Spotify credential."""
import logging
import secrets
import time

import jwt
from fastapi import Header, HTTPException

from tunecircle.config import (
    API_RELOAD,
    APP_JWT_ALGORITHM,
    APP_JWT_SECRET,
    APP_JWT_SECRET_SET,
    APP_JWT_TTL_SEC,
)

logger = logging.getLogger(__name__)


def check_app_secret(secret_set: bool = APP_JWT_SECRET_SET, dev_mode: bool = API_RELOAD) -> None:
    """Fail startup when app tokens would be signed with the built-in dev secret."""
    if secret_set:
        return
    if not dev_mode:
        raise RuntimeError("TUNECIRCLE_JWT_SECRET is not set; refusing to sign app tokens with the dev secret")
    logger.warning("TUNECIRCLE_JWT_SECRET is not set; using the dev secret (reload mode only)")


def issue_app_token(user_id: str, now: float | None = None) -> str:
    issued = int(time.time() if now is None else now)
    payload = {"sub": user_id, "iat": issued, "exp": issued + APP_JWT_TTL_SEC}
    return jwt.encode(payload, APP_JWT_SECRET, algorithm=APP_JWT_ALGORITHM)


def get_current_user_id(authorization: str | None = Header(None)) -> str:
    """Resolve the user from 'Authorization: Bearer <app token>'."""
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Not authenticated")
    token = authorization.split(" ", 1)[1].strip()
    try:
        payload = jwt.decode(token, APP_JWT_SECRET, algorithms=[APP_JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Session expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token")
    return user_id


OAUTH_STATE_TTL_SEC = 600


def issue_oauth_state(now: float | None = None) -> str:
    """Signed, short-lived OAuth state so the callback can be checked without server storage."""
    issued = int(time.time() if now is None else now)
    payload = {"purpose": "spotify-oauth", "nonce": secrets.token_urlsafe(8), "exp": issued + OAUTH_STATE_TTL_SEC}
    return jwt.encode(payload, APP_JWT_SECRET, algorithm=APP_JWT_ALGORITHM)


def verify_oauth_state(state: str | None) -> bool:
    if not state:
        return False
    try:
        payload = jwt.decode(state, APP_JWT_SECRET, algorithms=[APP_JWT_ALGORITHM])
    except jwt.InvalidTokenError:
        return False
    return payload.get("purpose") == "spotify-oauth"
