from fastapi import APIRouter

from solargen.api.v1.endpoints import backfills, system

api_v1_router = APIRouter()

# System / health endpoints (status, generator configuration)
api_v1_router.include_router(system.router, tags=["System"])

# Historical backfill runs: dispatch + status polling
api_v1_router.include_router(backfills.router, tags=["Backfills"])
