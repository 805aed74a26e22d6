"""FastAPI application entrypoint."""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.staticfiles import StaticFiles

from civic.api import leaderboard, ops, reports
from civic.api.errors import install_error_handlers
from civic.domain.reports import container
from civic.infra import postgres
from civic.infra.redis import redis_client
from civic.obs import init as obs_init
from civic.obs.logging import get_logger
from civic.settings import settings

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
	if settings.storage_backend == "postgres":
		pool = await postgres.init_pool()
		container.configure_postgres(pool, redis_client)
		logger.info("reports core bound to postgres")
	try:
		yield
	finally:
		await postgres.close_pool()


app = FastAPI(title="Civic Reports Core", lifespan=lifespan)
install_error_handlers(app)

allow_origins = list(settings.cors_allow_origins)
if not allow_origins and settings.is_dev():
	allow_origins = [
		"http://localhost:3000",
		"http://127.0.0.1:3000",
		"http://localhost:5173",
		"http://127.0.0.1:5173",
	]

app.add_middleware(
	CORSMiddleware,
	allow_origins=allow_origins,
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)
obs_init(app)

# Uploaded images are served by the API only in dev; production fronts them with a CDN
if settings.is_dev():
	upload_root = Path(settings.upload_dir).resolve()
	upload_root.mkdir(parents=True, exist_ok=True)
	app.mount("/uploads", StaticFiles(directory=str(upload_root)), name="uploads")

app.include_router(reports.router)
app.include_router(leaderboard.router)
app.include_router(ops.router)
