import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from tasktracker.api.errors import register_exception_handlers
from tasktracker.api.router import router as api_router
from tasktracker.config import settings
from tasktracker.crud.task import TaskRepository
from tasktracker.services.image_store import ImageStore
from tasktracker.services.task_service import TaskService

logger = logging.getLogger("tasktracker.api")


def create_app(task_service: TaskService | None = None) -> FastAPI:
    """Build the API.

    The task service (and the repository behind it) is created once here and
    handed to request handlers through `get_task_service`. Pass one in to run
    against a different store.
    """

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    owns_store = task_service is None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if owns_store and settings.auto_create_schema:
            from tasktracker.database import engine, init_models

            await init_models(engine)
        yield

    app = FastAPI(title="Task Tracker API", lifespan=lifespan)

    if task_service is None:
        from tasktracker.database import SessionLocal

        task_service = TaskService(TaskRepository(SessionLocal), ImageStore())
    app.state.task_service = task_service

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        """Attach a request id to every response and log a compact access line.

        - If the caller provides X-Request-ID, we reuse it.
        - Otherwise we generate a UUID4.
        """

        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id

        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        response.headers["X-Request-ID"] = request_id
        logger.info(
            "access request_id=%s method=%s path=%s status=%s duration_ms=%.2f",
            request_id,
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
        )
        return response

    register_exception_handlers(app)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    app.include_router(api_router)
    return app


app = create_app()
