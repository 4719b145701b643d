"""
Prioritizer API Server - REST API over the CD3 prioritizer.
"""

import logging

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from prioritizer import __version__, build_service, config
from prioritizer.observability import CorrelationIdMiddleware, configure_logging
from prioritizer.service import PrioritizerService

logger = logging.getLogger(__name__)


def create_app(service: PrioritizerService | None = None) -> FastAPI:
    """
    Build the FastAPI app.

    Without ``service`` the app uses the SQLite store at the configured path.
    """
    app = FastAPI(
        title="CD3 Prioritizer API",
        description="Rank backlog items by cost of delay divided by duration",
        version=__version__,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials="*" not in config.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(CorrelationIdMiddleware)

    app.state.service = service or build_service()

    from api.prioritizer_router import prioritizer_router

    app.include_router(prioritizer_router, prefix="/api")
    logger.info("Prioritizer API ready")
    return app


# ==== Main ====


def main():
    """Run the server."""
    configure_logging(config.LOG_LEVEL, config.LOG_JSON)
    uvicorn.run(
        "api.server:create_app", factory=True, host=config.API_HOST, port=config.API_PORT
    )


if __name__ == "__main__":
    main()
