"""
Main FastAPI application for entity sync.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional
from fastapi import FastAPI, HTTPException, Depends, BackgroundTasks, Body
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from ..connectors.backstage import BackstageConnector
from ..connectors.base import StaticTokenCredentialProvider
from ..connectors.datadog import DatadogConnector
from ..core.config import get_optional_env, load_sync_configs, setup_logging
from ..engine.registry import SyncRegistry, build_syncs, register_configured_syncs
from ..engine.sync import EntitySync, SyncClients
from ..exceptions import ConfigurationError, ExecutionError
from ..models.sync import SyncRunResult
from ..services.events import InMemoryEventsService
from ..services.firestore import FirestoreService
from ..services.scheduler import SchedulerService
from ..services.secrets import SecretManagerService
from ..version import __version__

logger = logging.getLogger(__name__)

# Global services (initialized in lifespan)
syncs: Dict[str, EntitySync] = {}
events_service: Optional[InMemoryEventsService] = None
firestore_service: Optional[FirestoreService] = None
scheduler_service: Optional[SchedulerService] = None
secret_service: Optional[SecretManagerService] = None


def build_clients(credentials: Dict[str, str], events: InMemoryEventsService) -> SyncClients:
    """Create the shared Datadog/Backstage clients every sync uses."""
    return SyncClients(
        datadog=DatadogConnector(
            credentials={
                "api_key": credentials.get("DATADOG_API_KEY"),
                "app_key": credentials.get("DATADOG_APP_KEY"),
            },
            site=get_optional_env("DATADOG_SITE", "datadoghq.com"),
        ),
        catalog=BackstageConnector(base_url=get_optional_env("BACKSTAGE_BASE_URL", "http://localhost:7007")),
        auth=secret_service or StaticTokenCredentialProvider(credentials.get("BACKSTAGE_SERVICE_TOKEN") or None),
        events=events,
    )


def schedule_cron_syncs(scheduler: SchedulerService, service_url: str) -> None:
    for sync in syncs.values():
        schedule = sync.config.schedule
        if schedule is not None and schedule.cron:
            scheduler.create_schedule(sync.sync_id, schedule.cron, service_url)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    global syncs, events_service, firestore_service, scheduler_service, secret_service
    
    setup_logging(get_optional_env("LOG_LEVEL", "INFO"))
    project_id = os.getenv("GOOGLE_CLOUD_PROJECT")
    region = os.getenv("GOOGLE_CLOUD_REGION", "us-central1")
    
    try:
        secret_service = SecretManagerService(project_id=project_id)
        logger.info("Secret Manager service initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize Secret Manager service: {e}")
        secret_service = None
    
    try:
        firestore_service = FirestoreService(project_id=project_id)
        logger.info("Firestore service initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize Firestore service: {e}")
        firestore_service = None
    
    if secret_service:
        credentials = secret_service.get_api_credentials()
    else:
        credentials = {
            "DATADOG_API_KEY": os.getenv("DATADOG_API_KEY", ""),
            "DATADOG_APP_KEY": os.getenv("DATADOG_APP_KEY", ""),
            "BACKSTAGE_SERVICE_TOKEN": os.getenv("BACKSTAGE_SERVICE_TOKEN", ""),
        }
    
    events_service = InMemoryEventsService()
    registry = SyncRegistry()
    register_configured_syncs(registry, load_sync_configs())
    syncs = build_syncs(registry, build_clients(credentials, events_service), history=firestore_service)
    for sync in syncs.values():
        await sync.start()
    
    if get_optional_env("SCHEDULER_BACKEND", "local") == "cloud":
        try:
            scheduler_service = SchedulerService(project_id=project_id, region=region)
            schedule_cron_syncs(scheduler_service, get_optional_env("API_BASE_URL", "http://localhost:8000"))
        except Exception as e:
            logger.error(f"Failed to initialize Scheduler service: {e}")
            scheduler_service = None
    
    logger.info(f"Application startup complete with {len(syncs)} syncs")
    
    yield
    
    for sync in syncs.values():
        await sync.stop()
    logger.info("Application shutdown")


app = FastAPI(
    title="Entity Sync API",
    description="Synchronizes Backstage catalog entities to the Datadog Software Catalog",
    version=__version__,
    lifespan=lifespan
)

allowed_origins = [origin.strip() for origin in os.getenv("ALLOWED_ORIGINS", "").split(",") if origin.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class SyncRunRequest(BaseModel):
    """Body of a manual run request."""
    model_config = ConfigDict(populate_by_name=True)

    entity_filter: Optional[Dict[str, Any]] = Field(None, alias="entityFilter")
    dry_run: bool = Field(False, alias="dryRun")
    triggered_by: str = Field("api", description="What triggered this run (api, scheduler)")


class SyncEnabledUpdate(BaseModel):
    enabled: bool


# Dependency injection
def get_sync(sync_id: str) -> EntitySync:
    sync = syncs.get(sync_id)
    if sync is None:
        raise HTTPException(status_code=404, detail=f"Sync {sync_id} not found")
    return sync

def get_events_service() -> InMemoryEventsService:
    if events_service is None:
        raise HTTPException(status_code=500, detail="Events service not initialized")
    return events_service


@app.get("/health")
async def health_check():
    """Check the health of the application and its services."""
    return {
        "status": "healthy",
        "syncs": len(syncs),
        "services": {
            "events": events_service is not None,
            "firestore": firestore_service is not None,
            "scheduler": scheduler_service is not None,
            "secret_manager": secret_service is not None,
        }
    }


@app.get("/api/v1/syncs")
async def list_syncs() -> List[Dict[str, Any]]:
    """List registered syncs and their latest run."""
    return [
        {
            "sync_id": sync.sync_id,
            "enabled": sync.enabled,
            "topic": sync.topic,
            "rate_limit": sync.config.rate_limit.model_dump(),
            "schedule": sync.config.schedule.model_dump(by_alias=True) if sync.config.schedule else None,
            "last_run": sync.last_run.get_summary() if sync.last_run else None,
        }
        for sync in syncs.values()
    ]


@app.post("/api/v1/syncs/{sync_id}/run", response_model=SyncRunResult)
async def run_sync(
    request: Optional[SyncRunRequest] = None,
    sync: EntitySync = Depends(get_sync),
):
    """Run a sync and return the per-entity results."""
    request = request or SyncRunRequest()
    try:
        return await sync.run_sync(request.entity_filter, request.dry_run, triggered_by=request.triggered_by)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ExecutionError as e:
        logger.error(f"Sync {sync.sync_id} failed: {e}")
        raise HTTPException(status_code=502, detail=str(e))


@app.post("/api/v1/syncs/{sync_id}/trigger", status_code=202)
async def trigger_sync(
    background_tasks: BackgroundTasks,
    request: Optional[SyncRunRequest] = None,
    sync: EntitySync = Depends(get_sync),
):
    """Start a sync in the background."""
    request = request or SyncRunRequest()

    async def run_in_background():
        try:
            await sync.run_sync(request.entity_filter, request.dry_run, triggered_by=request.triggered_by)
        except Exception as e:
            logger.error(f"Background run of sync {sync.sync_id} failed: {e}")

    background_tasks.add_task(run_in_background)
    return {"sync_id": sync.sync_id, "status": "accepted"}


@app.put("/api/v1/syncs/{sync_id}/enabled")
async def set_sync_enabled(update: SyncEnabledUpdate, sync: EntitySync = Depends(get_sync)):
    """Switch live syncing on or off."""
    sync.enabled = update.enabled
    return {"sync_id": sync.sync_id, "enabled": sync.enabled}


@app.get("/api/v1/syncs/{sync_id}/runs")
async def list_sync_runs(limit: int = 100, sync: EntitySync = Depends(get_sync)):
    """List recorded runs of a sync, newest first."""
    if firestore_service is None:
        return [sync.last_run.get_summary()] if sync.last_run else []
    try:
        return firestore_service.list_sync_runs(sync_id=sync.sync_id, limit=limit)
    except Exception as e:
        logger.error(f"Failed to list runs for sync {sync.sync_id}: {e}")
        raise HTTPException(status_code=500, detail="An unexpected error occurred.")


@app.post("/api/v1/events/{topic}", status_code=202)
async def publish_event(
    topic: str,
    payload: Any = Body(None),
    events: InMemoryEventsService = Depends(get_events_service),
):
    """Publish an event, e.g. to trigger a filtered sync on ``datadog-entity-sync.<id>``."""
    delivered = await events.publish(topic, payload)
    return {"topic": topic, "delivered": delivered}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
