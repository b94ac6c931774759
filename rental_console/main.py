import uuid
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Optional

from fastapi import Body, Depends, FastAPI, HTTPException, Request, Response
from loguru import logger

from rental_console.checkout import start_checkout
from rental_console.clients.api import OrchestratorClient
from rental_console.config.logging import setup_logging
from rental_console.config.settings import ConsoleSettings
from rental_console.exceptions import InvalidSelectionError
from rental_console.intent_store import IntentStore, build_intent_store
from rental_console.return_handler import ReturnHandler, ReturnResult


@lru_cache()
def get_console_settings() -> ConsoleSettings:
    return ConsoleSettings()


def get_intent_store(request: Request) -> IntentStore:
    return request.app.state.intent_store


def get_orchestrator_client(request: Request) -> OrchestratorClient:
    return request.app.state.orchestrator_client


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_console_settings()
    logger.info(f"Starting rental console, orchestrator at {settings.api_base}")

    if not hasattr(app.state, "intent_store"):
        app.state.intent_store = build_intent_store(
            settings.intent_backend,
            settings.intent_dir,
            settings.intent_ttl_sec,
            redis_url=settings.redis_url,
        )
    if not hasattr(app.state, "orchestrator_client"):
        app.state.orchestrator_client = OrchestratorClient(
            settings.api_base, timeout_sec=settings.confirm_timeout_sec
        )

    yield

    await app.state.orchestrator_client.aclose()
    logger.info("Shutting down rental console")


def create_app() -> FastAPI:
    settings = get_console_settings()
    setup_logging(settings.log_level)

    app = FastAPI(
        title="Rental Console",
        description="Customer checkout and payment return pages",
        version="1.0.0",
        lifespan=lifespan,
    )

    @app.post("/rent/checkout")
    def checkout(
        request: Request,
        response: Response,
        selection: dict = Body(...),
        settings: ConsoleSettings = Depends(get_console_settings),
        store: IntentStore = Depends(get_intent_store),
    ):
        session_key = request.cookies.get(settings.session_cookie) or uuid.uuid4().hex
        try:
            form = start_checkout(store.for_session(session_key), selection, settings)
        except InvalidSelectionError as e:
            raise HTTPException(status_code=422, detail=str(e))

        response.set_cookie(settings.session_cookie, session_key, httponly=True, samesite="lax")
        return form

    @app.get("/pay/return", response_model=ReturnResult)
    async def payment_return(
        request: Request,
        settings: ConsoleSettings = Depends(get_console_settings),
        store: IntentStore = Depends(get_intent_store),
        client: OrchestratorClient = Depends(get_orchestrator_client),
    ):
        session_key: Optional[str] = request.cookies.get(settings.session_cookie)
        if not session_key:
            logger.warning("Return page hit without a console session cookie")
            session_key = ""

        handler = ReturnHandler(
            dict(request.query_params),
            store.for_session(session_key),
            client,
            timeout_sec=settings.confirm_timeout_sec,
        )
        return await handler.run()

    return app


def main():
    import uvicorn

    uvicorn.run(
        "rental_console.main:app",
        host="0.0.0.0",
        port=8080,
        reload=True,
        log_config=None,
    )


app = create_app()


if __name__ == "__main__":
    main()
