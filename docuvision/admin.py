"""Admin endpoints for key pool diagnostics."""

from typing import Dict

from fastapi import APIRouter, Request, HTTPException

from docuvision.models import STATUS_EXHAUSTED
from docuvision.rotation import LEAST_USED, call_with_rotation

admin_router = APIRouter(prefix="/admin", tags=["admin"])


@admin_router.get("/status")
async def get_all_status(request: Request) -> Dict[str, object]:
    """Get status of all API keys in the pool."""
    key_manager = request.app.state.key_manager
    quota_window = request.app.state.quota_window
    stats = key_manager.get_stats()
    exhausted = sum(1 for item in stats if item.status == STATUS_EXHAUSTED)
    return {
        "total_keys": len(stats),
        "available_keys": len(stats) - exhausted,
        "exhausted_keys": exhausted,
        "all_exhausted": key_manager.is_all_exhausted(),
        "next_reset": quota_window.next_reset,
        "keys": [item.to_dict() for item in stats],
    }


@admin_router.get("/status/{index}")
async def get_key_status(request: Request, index: int) -> Dict[str, object]:
    """Get status of the key at a pool position."""
    stats = request.app.state.key_manager.get_stats()
    if index < 0 or index >= len(stats):
        raise HTTPException(status_code=404, detail=f"Key {index} not found")
    return stats[index].to_dict()


@admin_router.post("/reset")
async def reset_counters(request: Request) -> Dict[str, str]:
    """Clear exhaustion marks and usage counters for all keys."""
    request.app.state.key_manager.reset_counters()
    return {"message": "Counters reset successfully"}


@admin_router.get("/models")
async def list_models(request: Request) -> Dict[str, object]:
    """List the Gemini models visible to the pool."""
    state = request.app.state
    models = await call_with_rotation(
        state.key_manager,
        state.gemini_client.list_models,
        strategy=LEAST_USED,
        max_key_attempts=state.config.max_key_attempts,
    )
    return {"models": models}
