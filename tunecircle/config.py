"""Configuration: env, Spotify credentials, token and playback timings."""
import os
from pathlib import Path

from dotenv import load_dotenv

# Base paths (project root = parent of tunecircle package)
BASE_DIR = Path(__file__).resolve().parent.parent

# Load .env from project root so SPOTIFY_CLIENT_ID etc. are set
load_dotenv(BASE_DIR / ".env")

DATA_DIR = Path(os.getenv("TUNECIRCLE_DATA_DIR", str(BASE_DIR / "data")))
SESSIONS_PATH = DATA_DIR / "sessions.json"

# API
API_HOST = os.getenv("TUNECIRCLE_API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("TUNECIRCLE_API_PORT", "8000"))
API_RELOAD = os.getenv("TUNECIRCLE_API_RELOAD", "") == "1"
# Where the browser-side client reaches the API
API_BASE_URL = os.getenv("TUNECIRCLE_API_BASE_URL", f"http://localhost:{API_PORT}")
# After OAuth callback, redirect here (e.g. http://localhost:5173 for Vite dev)
WEB_ORIGIN = os.getenv("TUNECIRCLE_WEB_ORIGIN", "")

# App session tokens (our own identity, not the Spotify credential)
# Unset only in local dev; the API refuses to start without it unless reload is on
APP_JWT_SECRET_SET = bool(os.getenv("TUNECIRCLE_JWT_SECRET"))
APP_JWT_SECRET = os.getenv("TUNECIRCLE_JWT_SECRET") or "dev-secret-change-me"
APP_JWT_ALGORITHM = "HS256"
APP_JWT_TTL_SEC = int(os.getenv("TUNECIRCLE_JWT_TTL_SEC", str(7 * 24 * 3600)))

# Spotify (OAuth; tokens stored per user after first connect)
SPOTIFY_CLIENT_ID = os.getenv("SPOTIFY_CLIENT_ID", "")
SPOTIFY_CLIENT_SECRET = os.getenv("SPOTIFY_CLIENT_SECRET", "")
SPOTIFY_REDIRECT_URI = os.getenv("SPOTIFY_REDIRECT_URI", "http://localhost:8000/api/spotify/callback")
# streaming is required by the Web Playback SDK
SPOTIFY_SCOPES = (
    "streaming user-read-email user-read-private "
    "user-read-playback-state user-modify-playback-state user-read-currently-playing"
)

# Token lifecycle
TOKEN_REFRESH_BUFFER_SEC = int(os.getenv("TUNECIRCLE_TOKEN_BUFFER_SEC", "300"))
TOKEN_EXPIRY_SKEW_SEC = 30
PROVIDER_TIMEOUT_SEC = float(os.getenv("TUNECIRCLE_PROVIDER_TIMEOUT_SEC", "10"))

# Web player
PLAYER_NAME = os.getenv("TUNECIRCLE_PLAYER_NAME", "TuneCircle Web Player")
PLAYER_INITIAL_VOLUME = 1.0
# Web Playback SDK devices need a moment before the transfer sticks
DEVICE_ACTIVATION_DELAY_SEC = float(os.getenv("TUNECIRCLE_DEVICE_ACTIVATION_DELAY_SEC", "2.0"))
COMPLETION_TOLERANCE_MS = 1000
COMPLETION_POLL_INTERVAL_SEC = 1.0


def ensure_data_dir() -> None:
    DATA_DIR.mkdir(parents=True, exist_ok=True)
