# house_of_charity/routers/requirements.py
from fastapi import APIRouter, Depends

from house_of_charity.deps import get_current_user, get_requirement_service
from house_of_charity.schemas import RequirementIn, RequirementUpdate

router = APIRouter(prefix="/api/requirements", tags=["requirements"])


@router.post("", status_code=201)
async def create(body: RequirementIn, user=Depends(get_current_user), svc=Depends(get_requirement_service)):
    requirement = await svc.create(user, body)
    return {"message": "Requirement created successfully", "requirement": requirement}


@router.get("")
async def list_active(svc=Depends(get_requirement_service)):
    return {"requirements": await svc.list_active()}


@router.get("/ngo/{ngo_id}")
async def for_ngo(ngo_id: str, svc=Depends(get_requirement_service)):
    return {"requirements": await svc.list_for_ngo(ngo_id)}


@router.get("/category/{category}")
async def by_category(category: str, svc=Depends(get_requirement_service)):
    return {"requirements": await svc.list_by_category(category)}


@router.get("/{requirement_id}")
async def get_one(requirement_id: str, svc=Depends(get_requirement_service)):
    return {"requirement": await svc.get(requirement_id)}


@router.put("/{requirement_id}")
async def update(
    requirement_id: str,
    body: RequirementUpdate,
    user=Depends(get_current_user),
    svc=Depends(get_requirement_service),
):
    requirement = await svc.update(requirement_id, user, body)
    return {"message": "Requirement updated successfully", "requirement": requirement}


@router.delete("/{requirement_id}")
async def delete(requirement_id: str, user=Depends(get_current_user), svc=Depends(get_requirement_service)):
    await svc.delete(requirement_id, user)
    return {"message": "Requirement deleted successfully"}
