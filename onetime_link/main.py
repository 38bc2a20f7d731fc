from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from onetime_link.core.config import settings
from onetime_link.core.deps import get_link_service
from onetime_link.core.exceptions import OneTimeLinkException
from onetime_link.core.logging import setup_logging
from onetime_link.db.session import init_db
from onetime_link.routers import email_verification
from onetime_link.services.sweeper import start_link_sweeper, stop_link_sweeper


def create_app() -> FastAPI:
    setup_logging(settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        if settings.is_sqlite:
            init_db()
        await start_link_sweeper(get_link_service())
        try:
            yield
        finally:
            await stop_link_sweeper()

    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
    app.include_router(email_verification.router, prefix="/api/email-verification", tags=["email-verification"])

    @app.exception_handler(OneTimeLinkException)
    async def handle_link_exception(_: Request, exc: OneTimeLinkException) -> JSONResponse:
        headers = exc.headers if getattr(exc, "headers", None) else None
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)

    return app


app = create_app()
