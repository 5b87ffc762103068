"""Playback control on the caller's Spotify devices."""
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from tunecircle.api.auth import get_current_user_id
from tunecircle.api.state import AppState, get_state

router = APIRouter()


class TransferBody(BaseModel):
    device_id: str = ""


class PlayBody(BaseModel):
    device_id: str = ""
    track_uri: str = ""


@router.get("/devices")
def list_devices(
    user_id: str = Depends(get_current_user_id),
    state: AppState = Depends(get_state),
):
    """Return the caller's available Spotify Connect devices."""
    return {"devices": state.playback.devices(user_id)}


@router.put("/transfer")
def transfer_playback(
    body: TransferBody,
    user_id: str = Depends(get_current_user_id),
    state: AppState = Depends(get_state),
):
    """Transfer playback to a device (usually the web player that just became ready)."""
    device_id = state.playback.transfer(user_id, body.device_id)
    return {"ok": True, "device_id": device_id}


@router.put("/play")
def play_track(
    body: PlayBody,
    user_id: str = Depends(get_current_user_id),
    state: AppState = Depends(get_state),
):
    """Play a track URI (spotify:track:...) on a device."""
    state.playback.play(user_id, body.device_id, body.track_uri)
    return {"ok": True, "device_id": body.device_id.strip(), "track_uri": body.track_uri.strip()}
