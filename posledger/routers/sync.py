from fastapi import APIRouter, Depends

from posledger.deps import get_device, require_auth

router = APIRouter(prefix="/sync", tags=["sync"])


@router.get("/status")
def sync_status(device=Depends(get_device), sub: str = Depends(require_auth)):
    stats = device.ledger.sync_stats(device.tenant_id) if device.tenant_id else None
    return {
        "tenant_id": device.tenant_id,
        "stats": stats.model_dump() if stats else None,
        **device.engine.status(),
    }


@router.post("/trigger")
async def sync_trigger(device=Depends(get_device), sub: str = Depends(require_auth)):
    result = await device.engine.trigger_now()
    return result.model_dump()
