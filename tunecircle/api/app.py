"""FastAPI app, CORS, error mapping, and route registration."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s: %(name)s: %(message)s",
)

from tunecircle.api.auth import check_app_secret
from tunecircle.api.state import AppState, get_state
from tunecircle.config import WEB_ORIGIN, ensure_data_dir
from tunecircle.core.errors import PlaybackError

# Import routes after state to avoid circular imports
from tunecircle.api.routes import player, spotify

__all__ = ["app", "AppState", "get_state"]

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    check_app_secret()
    ensure_data_dir()
    logger.info("TuneCircle API ready")
    yield


app = FastAPI(
    title="TuneCircle API",
    description="Spotify session and playback control for TuneCircle",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[WEB_ORIGIN.rstrip("/")] if WEB_ORIGIN else ["*"],
    allow_credentials=bool(WEB_ORIGIN),
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PlaybackError)
async def playback_error_handler(request: Request, exc: PlaybackError):
    if exc.status_code >= 500:
        logger.warning("%s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": exc.code},
    )


@app.get("/api/health")
def health():
    return {"ok": True}


app.include_router(player.router, prefix="/api/player", tags=["player"])
app.include_router(spotify.router, prefix="/api/spotify", tags=["spotify"])
