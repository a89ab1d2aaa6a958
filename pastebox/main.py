import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from pastebox.config import Settings
from pastebox.logger import logger
from pastebox.routers.pastes import router as pastes_router
from pastebox.runtime import Runtime


class _RequestLogMiddleware(BaseHTTPMiddleware):
    """Log method, path, status and latency. Client IPs and bodies are not logged."""

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "%s %s | status=%d latency=%.1fms",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        return response


def create_app(settings: Settings | None = None, runtime: Runtime | None = None) -> FastAPI:
    settings = settings or (runtime.settings if runtime else Settings.from_env())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # a runtime handed in by the caller stays owned by the caller
        owned = runtime is None
        app.state.runtime = runtime or Runtime.from_settings(settings)
        logger.info("pastebox API starting up")
        try:
            yield
        finally:
            if owned:
                app.state.runtime.close()
            logger.info("pastebox API shutting down")

    app = FastAPI(title="pastebox", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.add_middleware(_RequestLogMiddleware)
    app.include_router(pastes_router)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


app = create_app()
