from __future__ import annotations
"""server/alert_engine/main.py
~~~~~~~~~~~~~~~~~~~~~~~~
Point d'entrée FastAPI.
"""
from typing import List, Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from alert_engine.api.v1.router import api_router
from alert_engine.application.container import AlertEngine
from alert_engine.core.config import settings
from alert_engine.core.logging import setup_logging
from alert_engine.domain.errors import InvalidInputError, NotFoundError


def create_app(engine: Optional[AlertEngine] = None) -> FastAPI:
    app = FastAPI(title="Maritime Hazard Alert Engine", version="0.1.0")
    app.state.alert_engine = engine

    allow_origins: List[str] = []
    if origins := settings.CORS_ALLOW_ORIGINS:
        allow_origins = [o.strip() for o in origins.split(",") if o.strip()]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(NotFoundError)
    async def not_found(_: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})

    @app.exception_handler(InvalidInputError)
    async def invalid_input(_: Request, exc: InvalidInputError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": str(exc), "field": exc.field},
        )

    @app.on_event("startup")
    async def startup() -> None:
        setup_logging()

    app.include_router(api_router, prefix="/api/v1")
    return app


app = create_app()
