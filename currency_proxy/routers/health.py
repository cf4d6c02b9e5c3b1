from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health", summary="Service liveness and cache size")
async def health(request: Request):
    state = request.app.state
    return {
        "status": "ok",
        "version": state.settings.version,
        "provider": state.coordinator.client.name,
        "cached_entries": len(state.coordinator.cache),
    }
