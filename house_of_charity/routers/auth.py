# house_of_charity/routers/auth.py
from fastapi import APIRouter, Depends

from house_of_charity.deps import bearer_token, get_auth_service
from house_of_charity.schemas import LoginIn, RegisterIn

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", status_code=201)
async def register(body: RegisterIn, auth=Depends(get_auth_service)):
    return await auth.register(body)


@router.post("/login")
async def login(body: LoginIn, auth=Depends(get_auth_service)):
    return await auth.login(body.email, body.password)


@router.get("/verify")
async def verify(token: str = Depends(bearer_token), auth=Depends(get_auth_service)):
    return await auth.verify(token)
