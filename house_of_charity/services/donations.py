# house_of_charity/services/donations.py
"""
Donation lifecycle: create, read, status changes and "request again".

Statuses are pending, confirmed, completed, failed, cancelled. Any valid
status may follow any other. Only the donor and the receiving NGO may read or
change an individual donation.
"""
import logging
import math
from datetime import datetime, timedelta
from typing import List, Optional

from house_of_charity.core.config import Settings
from house_of_charity.core.exceptions import NotFoundError, ValidationError
from house_of_charity.core.guards import ensure_owner, ensure_party, ensure_user_type
from house_of_charity.core.states import (
    CLOSED_DONATION_STATES,
    DONATION_STATES,
    DONATION_TYPES,
    can_transition,
    normalize_donation_type,
)
from house_of_charity.repos.base import Repository
from house_of_charity.schemas import DonationIn
from house_of_charity.services.notifications import Notifier
from house_of_charity.utils.dates import as_utc, utcnow

logger = logging.getLogger(__name__)

REQUEST_AGAIN_DEFAULT = timedelta(days=7)
REMINDER_WINDOW_DAYS = (1, 2)


def enrich(donation: dict) -> dict:
    donation["display_name"] = "Anonymous" if donation.get("anonymous") else donation.get("donor_name")
    return donation


def reminder_due(delivery_date, now: Optional[datetime] = None) -> bool:
    """True when delivery falls 1 or 2 calendar days after today (UTC)."""
    when = as_utc(delivery_date)
    if not when:
        return False
    today = (now or utcnow()).date()
    return (when.date() - today).days in REMINDER_WINDOW_DAYS


def _positive(v) -> bool:
    return v is not None and math.isfinite(v) and v > 0


class DonationService:
    def __init__(self, repo: Repository, notifier: Notifier, settings: Settings):
        self.repo = repo
        self.notifier = notifier
        self.settings = settings

    async def _load(self, donation_id: str) -> dict:
        donation = await self.repo.find_donation_by_id(donation_id)
        if not donation:
            raise NotFoundError("Donation not found")
        return donation

    # ---------- create ----------
    def _build_payload(self, donor_id: str, body: DonationIn) -> dict:
        dtype = normalize_donation_type(body.donation_type)
        if dtype not in DONATION_TYPES:
            raise ValidationError("Invalid donation type", field="donation_type")

        payload = {
            "donor_id": donor_id,
            "ngo_id": body.ngo_id,
            "donation_type": dtype,
            "message": body.message,
            "anonymous": bool(body.anonymous),
            "delivery_date": as_utc(body.delivery_date),
        }

        if dtype == "money":
            if not _positive(body.amount):
                raise ValidationError("Amount is required for money donations", field="amount")
            status = body.status or "pending"
            if status not in DONATION_STATES:
                raise ValidationError("Invalid status", field="status")
            payload.update(
                amount=body.amount,
                currency=body.currency or self.settings.default_currency,
                payment_method=body.payment_method,
                transaction_id=body.transaction_id,
                quantity=None,
                unit=None,
                essential_type=None,
                status=status,
            )
            return payload

        if not _positive(body.quantity):
            raise ValidationError("Quantity is required for non-monetary donations", field="quantity")
        if not (body.unit or "").strip():
            raise ValidationError("Unit is required for non-monetary donations", field="unit")
        if not payload["delivery_date"]:
            raise ValidationError("Delivery date is required for non-monetary donations", field="delivery_date")
        payload.update(
            amount=None,
            currency=None,
            payment_method=None,
            transaction_id=None,
            quantity=body.quantity,
            unit=body.unit.strip(),
            essential_type=body.essential_type if dtype == "daily_essentials" else None,
            status="pending",
        )
        return payload

    async def create(self, actor: dict, body: DonationIn) -> dict:
        payload = self._build_payload(actor["id"], body)
        ensure_user_type(actor, "donor", "Only donors can create donations")

        ngo = await self.repo.find_user_by_id(body.ngo_id)
        if not ngo or ngo["user_type"] != "ngo":
            raise NotFoundError("NGO not found")

        donation = await self.repo.create_donation(payload)
        logger.info(
            "Donation %s created: %s from %s to %s",
            donation["id"], donation["donation_type"], actor["id"], ngo["id"],
        )
        await self.notifier.donation_received(donation, donor=actor)
        return enrich(donation)

    # ---------- reads ----------
    async def get(self, donation_id: str, actor: dict) -> dict:
        donation = await self._load(donation_id)
        ensure_party(donation, actor["id"])
        return enrich(donation)

    async def list_for_donor(self, donor_id: str, actor: dict) -> List[dict]:
        ensure_owner(donor_id, actor["id"])
        return [enrich(d) for d in await self.repo.list_donations(donor_id=donor_id)]

    async def list_for_ngo(self, ngo_id: str) -> List[dict]:
        ngo = await self.repo.find_user_by_id(ngo_id)
        if not ngo or ngo["user_type"] != "ngo":
            raise NotFoundError("NGO not found")
        return [enrich(d) for d in await self.repo.list_donations(ngo_id=ngo_id)]

    async def list_completed_feed(self) -> List[dict]:
        rows = await self.repo.list_donations(status="completed", limit=self.settings.donation_feed_limit)
        return [enrich(d) for d in rows]

    # ---------- transitions ----------
    async def update_status(self, donation_id: str, new_status: str, actor: dict) -> dict:
        donation = await self._load(donation_id)
        ensure_party(donation, actor["id"])
        if not can_transition(donation["status"], new_status):
            raise ValidationError("Invalid status", field="status")

        updated = await self.repo.update_donation(donation_id, {"status": new_status})
        if not updated:
            raise NotFoundError("Donation not found")
        logger.info("Donation %s: %s -> %s by %s", donation_id, donation["status"], new_status, actor["id"])

        if new_status == "confirmed" and reminder_due(updated["delivery_date"]):
            await self.notifier.delivery_reminder(updated)
        return enrich(updated)

    async def request_again(
        self, donation_id: str, actor: dict, new_delivery_date: Optional[datetime] = None
    ) -> dict:
        donation = await self._load(donation_id)
        ensure_owner(donation["ngo_id"], actor["id"], "Only the receiving NGO can request a donation again")

        if donation["status"] in CLOSED_DONATION_STATES:
            raise ValidationError("Completed or cancelled donations cannot be requested again")
        delivery = donation["delivery_date"]
        if not delivery:
            raise ValidationError("Donation has no delivery date", field="delivery_date")

        now = utcnow()
        if delivery >= now:
            raise ValidationError("The delivery date has not passed yet", field="delivery_date")
        target = as_utc(new_delivery_date) if new_delivery_date else now + REQUEST_AGAIN_DEFAULT
        if target <= now:
            raise ValidationError("New delivery date must be in the future", field="new_delivery_date")

        updated = await self.repo.update_donation(
            donation_id, {"delivery_date": target, "status": "pending"}
        )
        if not updated:
            raise NotFoundError("Donation not found")
        logger.info("Donation %s requested again for %s", donation_id, target.isoformat())
        await self.notifier.donation_requested_again(updated)
        return enrich(updated)
