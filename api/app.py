from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from readlater.anchoring import AnchoringInvariantError, PersistenceError

from api.routes.documents import router as documents_router
from api.routes.highlights import router as highlights_router

logger = logging.getLogger(__name__)


async def persistence_error_handler(request: Request, exc: PersistenceError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"success": False, "detail": str(exc)})


async def invariant_error_handler(request: Request, exc: AnchoringInvariantError) -> JSONResponse:
    logger.error("Highlight rendering aborted for %s: %s", request.url.path, exc)
    return JSONResponse(status_code=500, content={"success": False, "detail": f"Highlight rendering failed: {exc}"})


def create_app() -> FastAPI:
    app = FastAPI(title="Readlater API", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(PersistenceError, persistence_error_handler)
    app.add_exception_handler(AnchoringInvariantError, invariant_error_handler)

    app.include_router(documents_router)
    app.include_router(highlights_router)

    @app.get("/healthz")
    def health() -> dict:
        return {"status": "ok"}

    return app


app = create_app()
