# Vault - FastAPI Backend
#
# Local REST API the UI process talks to. Binds to localhost by default and
# protects every vault route with the per-process session token.

import logging

import uvicorn
from fastapi import FastAPI

from .. import __version__
from .vault_routes import router as vault_router

logger = logging.getLogger(__name__)

app = FastAPI(
    title="keysafe API",
    description="Local encrypted password vault",
    version=__version__,
)

app.include_router(vault_router)


@app.get("/api/health")
async def health():
    return {"status": "ok", "version": __version__}


def start_api_server(host: str = "127.0.0.1", port: int = 8000):
    """
    Start FastAPI server.

    Args:
        host: Host to bind to (default: localhost only for security)
        port: Port to listen on
    """
    uvicorn.run(app, host=host, port=port, log_level="info")
