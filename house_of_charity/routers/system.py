# house_of_charity/routers/system.py
from fastapi import APIRouter, Depends

from house_of_charity.deps import get_repo, get_settings
from house_of_charity.utils.dates import utcnow

router = APIRouter(tags=["system"])


def _health(repo):
    return {
        "status": "OK",
        "message": "House of Charity API is running",
        "timestamp": utcnow().isoformat(),
        "mode": repo.mode,
    }


@router.get("/health")
async def health(repo=Depends(get_repo)):
    return _health(repo)


@router.get("/api/health")
async def api_health(repo=Depends(get_repo)):
    return _health(repo)


@router.get("/api/db-status")
async def db_status(repo=Depends(get_repo), settings=Depends(get_settings)):
    enabled = repo.mode == "supabase"
    return {
        "mode": repo.mode,
        "supabase": {
            "enabled": enabled,
            "connected": repo.status.get("connected") if enabled else False,
            "url_configured": bool(settings.supabase_url),
            "error": repo.status.get("error") if enabled else None,
        },
    }
