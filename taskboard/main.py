# taskboard/main.py
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from taskboard.config import Settings
from taskboard.errors import TaskboardError
from taskboard.routers import auth, graphql_api, profile, socket_rpc, tasks, updates
from taskboard.services.auth_service import TokenService
from taskboard.services.broadcaster import Broadcaster
from taskboard.services.credential_store import CredentialStore
from taskboard.services.task_store import TaskStore
from taskboard.utils.blobs import BlobDirectory
from taskboard.utils.database import create_engine, create_sessionmaker, create_tables

logger = logging.getLogger("taskboard")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    logging.basicConfig(level=settings.log_level.upper())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Application startup: preparing storage at %s", settings.database_url)
        engine = create_engine(settings.database_url)
        await create_tables(engine)
        sessionmaker = create_sessionmaker(engine)
        executor = ThreadPoolExecutor()

        task_store = TaskStore(sessionmaker, BlobDirectory(settings.uploads_dir))
        broadcaster = Broadcaster(task_store, send_timeout=settings.broadcast_send_timeout)
        task_store.add_listener(broadcaster.notify_all)

        app.state.tokens = TokenService(settings.jwt_secret, settings.jwt_algorithm, settings.jwt_expire_minutes)
        app.state.credentials = CredentialStore(sessionmaker, executor)
        app.state.task_store = task_store
        app.state.broadcaster = broadcaster
        logger.info("Application startup complete.")
        yield
        await broadcaster.close()
        executor.shutdown(wait=False)
        await engine.dispose()
        logger.info("Application shutdown: storage closed.")

    app = FastAPI(title="Taskboard", lifespan=lifespan)
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware, allow_origins=settings.cors_origins, allow_credentials=True,
        allow_methods=["*"], allow_headers=["*"],
    )

    @app.exception_handler(TaskboardError)
    async def taskboard_error_handler(request: Request, exc: TaskboardError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "Invalid input", "detail": jsonable_encoder(exc.errors())})

    # --- Include Routers ---
    app.include_router(auth.router)       # /api/auth/...
    app.include_router(profile.router)    # /api/me
    app.include_router(tasks.router)      # /api/tasks/...
    app.include_router(updates.router)    # WS /updates
    app.include_router(socket_rpc.router) # WS /socket
    app.include_router(graphql_api.router, prefix="/graphql")  # POST /graphql

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    return app


app = create_app()


def run():
    import uvicorn

    uvicorn.run("taskboard.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "3000")))
