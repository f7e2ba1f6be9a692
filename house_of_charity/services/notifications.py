# house_of_charity/services/notifications.py
"""
Best-effort notification fan-out.

Callers invoke the notifier after their own write has gone through. Nothing
raised in here reaches the caller: failures are logged and dropped, there is
no retry and no ordering between concurrent fan-outs.
"""
import copy
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from house_of_charity.core.config import Settings, get_settings
from house_of_charity.repos.base import Repository
from house_of_charity.utils.dates import as_utc

logger = logging.getLogger(__name__)

Payload = Dict[str, Any]
DonorPayloadBuilder = Callable[[dict], Optional[Payload]]

PREVIEW_LIMIT = 120


def truncate_preview(text: Optional[str]) -> str:
    trimmed = text.strip() if isinstance(text, str) else ""
    if not trimmed:
        return "See their profile for details."
    if len(trimmed) > PREVIEW_LIMIT:
        return trimmed[: PREVIEW_LIMIT - 3] + "..."
    return trimmed


def _money(amount, currency: str) -> Optional[str]:
    try:
        value = float(amount)
    except (TypeError, ValueError):
        return None
    if value <= 0:
        return None
    shown = int(value) if value.is_integer() else value
    return f"{currency} {shown}"


class Notifier:
    def __init__(self, repo: Repository, settings: Optional[Settings] = None):
        self.repo = repo
        self.settings = settings or get_settings()

    # ---------- dispatch ----------
    async def _insert(self, rows: List[Payload]) -> int:
        if not rows:
            return 0
        await self.repo.create_notifications(rows)
        return len(rows)

    async def notify_ngo(self, ngo_id: str, payload: Payload) -> int:
        try:
            return await self._insert([{**payload, "user_id": ngo_id, "account_type": "ngo"}])
        except Exception:
            logger.exception("notify_ngo failed for ngo=%s", ngo_id)
            return 0

    async def notify_donor(self, donor_id: str, payload: Payload) -> int:
        try:
            return await self._insert([{**payload, "user_id": donor_id, "account_type": "donor"}])
        except Exception:
            logger.exception("notify_donor failed for donor=%s", donor_id)
            return 0

    async def notify_connected_donors(self, ngo_id: str, builder: DonorPayloadBuilder) -> int:
        """One row per connected donor; ``builder`` returning None skips that donor."""
        try:
            donors = await self.repo.list_connected_donors(ngo_id)
            rows = []
            for donor in donors:
                payload = builder(donor)
                if payload:
                    rows.append({**copy.deepcopy(payload), "user_id": donor["id"], "account_type": "donor"})
            return await self._insert(rows)
        except Exception:
            logger.exception("notify_connected_donors failed for ngo=%s", ngo_id)
            return 0

    # ---------- donation events ----------
    async def donation_received(self, donation: dict, donor: Optional[dict] = None) -> int:
        dtype = donation.get("donation_type") or "money"
        currency = donation.get("currency") or self.settings.default_currency
        amount = _money(donation.get("amount"), currency) if dtype == "money" else None

        if donation.get("anonymous"):
            display = "An anonymous donor"
        else:
            display = (donor or {}).get("name") or donation.get("donor_name") or "A donor"
        message = (
            f"{display} contributed {amount}."
            if amount
            else f"{display} made a {dtype} donation."
        )
        return await self.notify_ngo(donation["ngo_id"], {
            "title": "New donation received",
            "message": message,
            "type": "donation",
            "related_id": donation["id"],
            "related_type": "donation",
            "meta": {
                "donation_type": dtype,
                "amount": donation.get("amount") if amount else None,
            },
        })

    async def delivery_reminder(self, donation: dict) -> int:
        when = as_utc(donation.get("delivery_date"))
        day = when.strftime("%Y-%m-%d") if when else "soon"
        ngo = donation.get("ngo_name") or "The NGO"
        return await self.notify_donor(donation["donor_id"], {
            "title": "Upcoming delivery reminder",
            "message": f"{ngo} confirmed your donation. Delivery is scheduled for {day}.",
            "type": "donation",
            "related_id": donation["id"],
            "related_type": "donation",
            "meta": {"delivery_date": when.isoformat() if when else None},
        })

    async def donation_requested_again(self, donation: dict) -> int:
        when = as_utc(donation.get("delivery_date"))
        ngo = donation.get("ngo_name") or "The NGO"
        day = when.strftime("%Y-%m-%d") if when else "a new date"
        return await self.notify_donor(donation["donor_id"], {
            "title": "Donation requested again",
            "message": f"{ngo} is still expecting your donation. New delivery date: {day}.",
            "type": "donation",
            "related_id": donation["id"],
            "related_type": "donation",
            "meta": {"delivery_date": when.isoformat() if when else None},
        })

    # ---------- requirement / profile events ----------
    def _requirement_payload(self, requirement: dict, title: str, message: str) -> Payload:
        return {
            "title": title,
            "message": message,
            "type": "requirement",
            "related_id": requirement["id"],
            "related_type": "requirement",
            "meta": {
                "ngo_id": requirement["ngo_id"],
                "requirement_id": requirement["id"],
                "ngo_name": requirement.get("ngo_name"),
            },
        }

    async def requirement_posted(self, requirement: dict) -> int:
        ngo = requirement.get("ngo_name") or "An NGO"
        amount = _money(
            requirement.get("amount_needed"),
            requirement.get("currency") or self.settings.default_currency,
        )
        title = requirement.get("title")
        message = (
            f'{ngo} requires {amount} for "{title}".'
            if amount
            else f'{ngo} posted a new requirement: "{title}".'
        )
        payload = self._requirement_payload(
            requirement, "New requirement from your connected NGO", message
        )
        return await self.notify_connected_donors(requirement["ngo_id"], lambda _donor: payload)

    async def requirement_updated(self, requirement: dict, changed: Iterable[str] = ()) -> int:
        ngo = requirement.get("ngo_name") or "An NGO"
        payload = self._requirement_payload(
            requirement,
            "Requirement updated",
            f'{ngo} updated their requirement: "{requirement.get("title")}".',
        )
        payload["meta"]["changed"] = sorted(changed)
        return await self.notify_connected_donors(requirement["ngo_id"], lambda _donor: payload)

    async def current_requirements_updated(self, ngo: dict) -> int:
        preview = truncate_preview(ngo.get("current_requirements"))
        payload = {
            "title": "NGO updated their current requirements",
            "message": f"{ngo.get('name') or 'An NGO'} shared new requirements: {preview}",
            "type": "requirement",
            "related_id": ngo["id"],
            "related_type": "ngo",
            "meta": {"ngo_id": ngo["id"], "source": "profile"},
        }
        return await self.notify_connected_donors(ngo["id"], lambda _donor: payload)

    # ---------- connection events ----------
    async def connection_created(self, donor: dict, ngo: dict) -> int:
        return await self.notify_ngo(ngo["id"], {
            "title": "New connection",
            "message": f"{donor.get('name') or 'A donor'} connected with your organization.",
            "type": "connection",
            "related_id": donor["id"],
            "related_type": "donor",
            "meta": {"donor_id": donor["id"]},
        })
