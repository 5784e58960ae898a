import logging

logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
)
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from judge.config import get_settings
from judge.controllers.compiler import router as compiler_router
from judge.controllers.health import router as health_router
from judge.controllers.submissions import router as submissions_router
from judge.errors import register_exception_handlers
from judge.lifespan import cleanup_resources, setup_resources

settings = get_settings()

app = FastAPI(title="Judge API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors.origins,
    allow_credentials=settings.cors.allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

if settings.debug.runner:
    logging.getLogger("judge.runner").setLevel(logging.DEBUG)

if settings.debug.admission:
    logging.getLogger("judge.runner.admission").setLevel(logging.DEBUG)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    resources = await setup_resources()
    try:
        yield
    finally:
        await cleanup_resources(resources)

app.router.lifespan_context = lifespan

app.include_router(health_router)
app.include_router(compiler_router)
app.include_router(submissions_router)
