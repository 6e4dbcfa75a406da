"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI

from app.api.v1 import auth, invocations, skills, tools
from app.config import settings

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    from app.db.database import init_db
    from app.services.maintenance import MaintenanceScheduler

    await init_db()

    scheduler = MaintenanceScheduler()
    if settings.retention_enabled:
        await scheduler.start()
    try:
        yield
    finally:
        await scheduler.stop()


app = FastAPI(title="SkillSync API", lifespan=lifespan)

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth.router)
api_router.include_router(skills.router)
api_router.include_router(tools.router)
api_router.include_router(invocations.router)
app.include_router(api_router)


@app.get("/health")
async def health():
    return {"status": "ok"}


def run():
    import uvicorn

    uvicorn.run("app.main:app", host=settings.host, port=settings.port, reload=settings.debug)
