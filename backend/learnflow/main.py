import asyncio
import logging

from fastapi import FastAPI

from .cache import MemoryResultCache
from .cleanup import purge_expired_results
from .db import Base, SessionLocal, engine, get_db, ensure_schema
from .dedup import DedupGuard
from .orchestrator import Orchestrator
from .routers import compute, health
from .settings import settings
from .tasks import build_policies
from .webhook_client import WebhookClient

logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)

app = FastAPI(title="Learnflow Compute API")
app.include_router(health.router)
app.include_router(compute.router)


def _purge_once() -> None:
	db = next(get_db())
	try:
		removed = purge_expired_results(db, settings.result_retention_days)
		if removed:
			logger.info("Purged %d expired computed results", removed)
	except Exception:
		logger.exception("Result purge failed")
	finally:
		db.close()


async def _cleanup_watcher():
	# Initial purge runs at startup; repeat daily
	while True:
		await asyncio.sleep(24 * 60 * 60)
		_purge_once()


@app.on_event("startup")
async def startup_event():
	# Initialize DB schema
	Base.metadata.create_all(bind=engine)
	# Apply lightweight dev migrations
	try:
		ensure_schema()
	except Exception:
		logger.exception("Schema migration failed")
	_purge_once()
	app.state.orchestrator = Orchestrator(
		build_policies(settings),
		WebhookClient(),
		DedupGuard(SessionLocal),
		cache=MemoryResultCache(),
	)
	app.state.cleanup_task = asyncio.create_task(_cleanup_watcher())


@app.on_event("shutdown")
async def shutdown_event():
	task = getattr(app.state, "cleanup_task", None)
	if task is not None:
		task.cancel()
	orchestrator = getattr(app.state, "orchestrator", None)
	if orchestrator is not None:
		await orchestrator.aclose()
