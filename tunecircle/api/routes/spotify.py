"""Spotify OAuth (auth URL, callback), access-token hand-out for the web player, and logout."""
import logging
import time
import urllib.parse

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import RedirectResponse

from tunecircle.api.auth import (
    get_current_user_id,
    issue_app_token,
    issue_oauth_state,
    verify_oauth_state,
)
from tunecircle.api.state import AppState, get_state
from tunecircle.config import WEB_ORIGIN
from tunecircle.core import spotify_client
from tunecircle.models.session import UserSession

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/auth-url")
def get_auth_url():
    """Return the Spotify OAuth authorization URL."""
    if not spotify_client.is_configured():
        return {"auth_url": None, "error": "SPOTIFY_CLIENT_ID not set"}
    return {"auth_url": spotify_client.get_authorize_url(issue_oauth_state())}


@router.get("/callback")
def spotify_callback(
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    app_state: AppState = Depends(get_state),
):
    """Exchange code for tokens, store the session, then hand the app token to the web app."""
    if error:
        raise HTTPException(status_code=400, detail=f"Spotify authorization failed: {error}")
    if not code:
        raise HTTPException(status_code=400, detail="Missing authorization code. Try logging in again.")
    if not verify_oauth_state(state):
        raise HTTPException(status_code=400, detail="Invalid or expired login state. Try logging in again.")

    token_info = spotify_client.exchange_code(code)
    profile = spotify_client.fetch_profile(token_info["access_token"])
    user_id = profile.get("id")
    if not user_id:
        raise HTTPException(status_code=502, detail="Spotify profile has no user id")

    existing = app_state.store.get(user_id)
    app_state.store.save(
        UserSession(
            user_id=user_id,
            access_token=token_info["access_token"],
            refresh_token=token_info.get("refresh_token") or (existing.refresh_token if existing else ""),
            token_expires_at=spotify_client.expires_at_from(token_info),
            active_device_id=existing.active_device_id if existing else None,
            display_name=profile.get("display_name") or user_id,
        )
    )
    logger.info("Spotify linked for user=%s", user_id)

    app_token = issue_app_token(user_id)
    if WEB_ORIGIN:
        query = urllib.parse.urlencode({"token": app_token})
        return RedirectResponse(url=f"{WEB_ORIGIN.rstrip('/')}/auth/callback?{query}", status_code=302)
    return {"token": app_token, "user_id": user_id}


@router.get("/token")
def get_access_token(
    user_id: str = Depends(get_current_user_id),
    app_state: AppState = Depends(get_state),
):
    """Return a valid Spotify access token for the web player (refreshed if needed)."""
    token = app_state.tokens.get_valid_access_token(user_id)
    session = app_state.store.get(user_id)
    ttl = max(0, int(session.token_expires_at - time.time())) if session else 0
    return {"access_token": token, "expires_in": ttl}


@router.get("/status")
def get_status(
    user_id: str = Depends(get_current_user_id),
    app_state: AppState = Depends(get_state),
):
    """Whether Spotify is linked for the caller, and the last device we transferred to."""
    session = app_state.store.get(user_id)
    return {
        "linked": session is not None,
        "token_valid": app_state.tokens.is_token_valid(user_id),
        "active_device_id": session.active_device_id if session else None,
        "display_name": session.display_name if session else "",
    }


@router.post("/logout")
def logout(
    user_id: str = Depends(get_current_user_id),
    app_state: AppState = Depends(get_state),
):
    """Forget the caller's Spotify session."""
    app_state.store.delete(user_id)
    logger.info("Spotify unlinked for user=%s", user_id)
    return {"ok": True}
