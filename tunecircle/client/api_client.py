"""HTTP client the web player uses to reach the TuneCircle API."""
import logging
from typing import Optional

import httpx

from tunecircle.config import API_BASE_URL, PROVIDER_TIMEOUT_SEC
from tunecircle.core.errors import UpstreamUnavailable, error_from_response
from tunecircle.models.share import ListenEvent

logger = logging.getLogger(__name__)


class BackendClient:
    """Async wrapper over the API, authenticated with the app session token.

    Error responses come back as the same PlaybackError subclasses the server raised.
    """

    def __init__(
        self,
        app_token: str,
        base_url: str = API_BASE_URL,
        timeout: float = PROVIDER_TIMEOUT_SEC,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": f"Bearer {app_token}"},
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> dict:
        try:
            r = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise UpstreamUnavailable(f"{method} {path} failed: {e}") from e
        if r.status_code >= 400:
            try:
                body = r.json()
            except ValueError:
                body = {}
            detail = body.get("detail") if isinstance(body, dict) else None
            code = body.get("error") if isinstance(body, dict) else None
            raise error_from_response(r.status_code, code, str(detail or r.text or r.reason_phrase))
        if not r.content:
            return {}
        try:
            return r.json()
        except ValueError:
            return {}

    async def get_access_token(self) -> str:
        """Fresh Spotify access token for the SDK (the server refreshes as needed)."""
        data = await self._request("GET", "/api/spotify/token")
        token = data.get("access_token")
        if not token:
            raise UpstreamUnavailable("Token response had no access_token")
        return token

    async def transfer(self, device_id: str) -> None:
        await self._request("PUT", "/api/player/transfer", json={"device_id": device_id})

    async def play(self, device_id: str, track_uri: str) -> None:
        await self._request("PUT", "/api/player/play", json={"device_id": device_id, "track_uri": track_uri})

    async def record_listen(self, share_id: str) -> Optional[ListenEvent]:
        """Mark a share as listened by the caller (share service endpoint).

        Returns the stored listen when the service echoes it back.
        """
        data = await self._request("POST", f"/api/shares/{share_id}/listen")
        listen = data.get("listen") if isinstance(data, dict) else None
        if not isinstance(listen, dict) or not listen.get("user_id"):
            return None
        return ListenEvent(
            share_id=share_id,
            user_id=str(listen["user_id"]),
            listened_at=str(listen.get("listened_at") or ""),
        )
