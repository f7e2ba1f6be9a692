# house_of_charity/routers/donations.py
from typing import Optional

from fastapi import APIRouter, Depends

from house_of_charity.deps import get_current_user, get_donation_service
from house_of_charity.schemas import DonationIn, RequestAgainIn, StatusIn

router = APIRouter(prefix="/api/donations", tags=["donations"])


@router.post("", status_code=201)
async def create(body: DonationIn, user=Depends(get_current_user), svc=Depends(get_donation_service)):
    donation = await svc.create(user, body)
    return {"message": "Donation created successfully", "donation": donation}


# public feed of recent completed donations
@router.get("")
async def completed_feed(svc=Depends(get_donation_service)):
    return {"donations": await svc.list_completed_feed()}


@router.get("/donor/{donor_id}")
async def for_donor(donor_id: str, user=Depends(get_current_user), svc=Depends(get_donation_service)):
    return {"donations": await svc.list_for_donor(donor_id, user)}


@router.get("/ngo/{ngo_id}")
async def for_ngo(ngo_id: str, user=Depends(get_current_user), svc=Depends(get_donation_service)):
    return {"donations": await svc.list_for_ngo(ngo_id)}


@router.get("/{donation_id}")
async def get_one(donation_id: str, user=Depends(get_current_user), svc=Depends(get_donation_service)):
    return {"donation": await svc.get(donation_id, user)}


@router.put("/{donation_id}/status")
async def update_status(
    donation_id: str,
    body: StatusIn,
    user=Depends(get_current_user),
    svc=Depends(get_donation_service),
):
    donation = await svc.update_status(donation_id, body.status, user)
    return {"message": "Donation status updated successfully", "donation": donation}


@router.post("/{donation_id}/request-again")
async def request_again(
    donation_id: str,
    body: Optional[RequestAgainIn] = None,
    user=Depends(get_current_user),
    svc=Depends(get_donation_service),
):
    new_date = body.new_delivery_date if body else None
    donation = await svc.request_again(donation_id, user, new_date)
    return {"message": "Donation requested again", "donation": donation}
