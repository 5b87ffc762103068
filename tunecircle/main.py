"""Entry: start the TuneCircle API server."""
import logging
import uvicorn

from tunecircle.config import API_HOST, API_PORT, API_RELOAD

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(name)s: %(message)s")
    uvicorn.run(
        "tunecircle.api.app:app",
        host=API_HOST,
        port=API_PORT,
        reload=API_RELOAD,
    )
