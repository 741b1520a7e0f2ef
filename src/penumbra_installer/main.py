from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from penumbra_installer import __version__
from penumbra_installer.config import get_config, save_config
from penumbra_installer.logger import get_logger
from penumbra_installer.routers import installer_api as installer_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifespan events."""
    config = get_config()
    config.paths.data_dir.mkdir(parents=True, exist_ok=True)
    yield


app = FastAPI(title="PenumbraOS Installer", version=__version__, lifespan=lifespan)

# The desktop front end is served from its own origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


app.include_router(installer_router.router)


def run_server(port: int | None = None) -> None:
    """Run the installer API server.

    Args:
        port: Optional port number to override config. If provided, will be saved to config.
    """
    config = get_config()

    if port is not None and port != config.server.port:
        logger.info("Port override detected, updating config", old_port=config.server.port, new_port=port)
        config.server.port = port
        save_config(config)

    logger.info("Starting API server", host=config.server.host, port=config.server.port)
    uvicorn.run(app, host=config.server.host, port=config.server.port)
