# house_of_charity/routers/users.py
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends

from house_of_charity.deps import get_connection_service, get_current_user, get_user_service
from house_of_charity.schemas import ConnectionIn

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("/ngos")
async def list_ngos(svc=Depends(get_user_service)):
    return {"ngos": await svc.list_ngos()}


# ---------- connections ----------
@router.post("/connections")
async def connect(body: ConnectionIn, user=Depends(get_current_user), svc=Depends(get_connection_service)):
    return await svc.connect(body.donor_id, body.ngo_id, user)


@router.delete("/connections")
async def disconnect(body: ConnectionIn, user=Depends(get_current_user), svc=Depends(get_connection_service)):
    return await svc.disconnect(body.donor_id, body.ngo_id, user)


@router.get("/{user_id}/connections")
async def connections(user_id: str, user=Depends(get_current_user), svc=Depends(get_connection_service)):
    return {"connections": await svc.list_for(user_id)}


# ---------- profile ----------
@router.get("/{user_id}")
async def get_profile(user_id: str, user=Depends(get_current_user), svc=Depends(get_user_service)):
    return {"user": await svc.get_profile(user_id, user)}


@router.put("/{user_id}")
async def update_profile(
    user_id: str,
    updates: Dict[str, Any] = Body(...),
    user=Depends(get_current_user),
    svc=Depends(get_user_service),
):
    updated = await svc.update_profile(user_id, user, updates)
    return {"message": "Profile updated successfully", "user": updated}


@router.get("/{user_id}/stats")
async def stats(user_id: str, user=Depends(get_current_user), svc=Depends(get_user_service)):
    return {"stats": await svc.stats(user_id)}
