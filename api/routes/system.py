"""System endpoints."""
from fastapi import APIRouter

from services.measurement_store import get_measurement_store

router = APIRouter()


@router.get("/health")
async def health():
    """Liveness check."""
    return {"status": "ok", "users": len(get_measurement_store().user_ids())}
