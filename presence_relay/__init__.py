# Uvicorn application factory <https://www.uvicorn.org/#application-factories>
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from presence_relay.logging import logger
from presence_relay.middlewares.correlation_id import CorrelationIDMiddleware
from presence_relay.routing import collect_subrouters
from presence_relay.settings import app_settings
from presence_relay.storage.db import engine, wait_and_init_db


def startup():
    """
    Application startup handler
    """

    async def wrapper():
        """
        Wait for the message database and create missing tables.

        Presence state is in-memory and starts empty on every boot.
        """
        logger.info("Application startup initiated")
        await wait_and_init_db()
        logger.info("Initialized database and tables")

    return wrapper


def shutdown():
    """
    Application shutdown handler
    """

    async def wrapper():
        """
        Release the database connection pool.

        Open WebSocket connections are closed by the server, which runs
        the normal disconnect path for each of them.
        """
        logger.info("Application shutdown initiated")
        await engine.dispose()
        logger.info("Application shutdown complete")

    return wrapper


def application() -> FastAPI:
    """
    Initializes and configures the FastAPI application.

    It adds the startup/shutdown handlers, includes the routers collected by
    `presence_relay.routing.collect_subrouters()` (HTTP endpoints and the
    `/ws` consumer) and registers the middlewares:
    - `CORSMiddleware`: allows the configured browser origins.
    - `CorrelationIDMiddleware`: request correlation IDs for HTTP requests.
    """
    app = FastAPI(
        title="Presence & chat relay",
        description="Real-time presence tracking and chat message relay",
        version="1.0.0",
    )

    app.add_event_handler("startup", startup())
    app.add_event_handler("shutdown", shutdown())

    app.include_router(collect_subrouters())

    # Middlewares (execute in REVERSE order of registration)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.CORS_ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(CorrelationIDMiddleware)

    return app
