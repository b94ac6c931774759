from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from unlock_core.api.v1 import health, orders, payments
from unlock_core.clients.external import ExternalClient
from unlock_core.config.logging import setup_logging
from unlock_core.config.settings import Settings
from unlock_core.monitoring.metrics import init_app_info, setup_instrumentator


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting unlock-core service")

    if not hasattr(app.state, "external_client"):
        app.state.external_client = ExternalClient(Settings())

    yield
    logger.info("Shutting down unlock-core service")


def create_app() -> FastAPI:
    settings = Settings()
    setup_logging(settings.log_level)

    app = FastAPI(
        title="Unlock Core Service",
        description="Payment confirmation and handcart unlock orchestrator",
        version="1.0.0",
        lifespan=lifespan,
    )

    instrumentator = setup_instrumentator()
    instrumentator.instrument(app).expose(app)

    init_app_info("1.0.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router, prefix="/api/v1", tags=["health"])
    app.include_router(payments.router, prefix="/api", tags=["payments"])
    app.include_router(orders.router, prefix="/api", tags=["orders"])

    return app


def main():
    import uvicorn

    uvicorn.run(
        "unlock_core.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_config=None,
    )


app = create_app()


if __name__ == "__main__":
    main()
