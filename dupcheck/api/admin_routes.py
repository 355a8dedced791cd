from fastapi import APIRouter, Depends, HTTPException, Header
from dupcheck.settings import settings
from dupcheck.api.routes import get_registry
from dupcheck.core.registry import SessionRegistry
import dupcheck.observability.metrics as metrics

router = APIRouter(prefix="/admin", tags=["admin"])

def require_admin(x_admin_key: str = Header(default="", alias="x-admin-key")):
    if not settings.ADMIN_RBAC_ENABLED:
        return
    # Secure default: if enabled but no key configured, reject all.
    if not settings.ADMIN_API_KEY:
        raise HTTPException(status_code=403, detail="Admin access disabled (no key configured)")
    if x_admin_key != settings.ADMIN_API_KEY:
        raise HTTPException(status_code=403, detail="Invalid admin key")

@router.get("/sessions")
def list_live_sessions(_=Depends(require_admin), reg: SessionRegistry = Depends(get_registry)):
    """Open sessions in this process and their FSM state."""
    return {"count": len(reg), "sessions": reg.summary()}

@router.get("/metrics")
def get_metrics(_=Depends(require_admin)):
    """
    Lookup / advance counters backed by Redis.
    """
    return metrics.get_metrics_snapshot()
