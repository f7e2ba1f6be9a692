# house_of_charity/services/users.py
import logging
from typing import Any, Dict, List

from house_of_charity.core.exceptions import NotFoundError, ValidationError
from house_of_charity.core.guards import ensure_owner
from house_of_charity.repos.base import Repository
from house_of_charity.repos.normalize import NGO_DETAIL_FIELDS, PROFILE_FIELDS, sanitize_user
from house_of_charity.services.notifications import Notifier

logger = logging.getLogger(__name__)

BASE_EDITABLE = PROFILE_FIELDS + ["verified"]
OPEN_REQUIREMENT_STATES = ("active", "partially_fulfilled")


def _total(rows: List[dict], field: str) -> float:
    return sum(r.get(field) or 0 for r in rows)


def _clean_patch(updates: Dict[str, Any], allowed: List[str]) -> Dict[str, Any]:
    patch = {}
    for key in allowed:
        if key not in updates:
            continue
        value = updates[key]
        if key == "verified":
            if not isinstance(value, bool):
                raise ValidationError("verified must be true or false", field=key)
        elif value is not None and not isinstance(value, str):
            raise ValidationError(f"{key} must be a string", field=key)
        patch[key] = value
    return patch


class UserService:
    def __init__(self, repo: Repository, notifier: Notifier):
        self.repo = repo
        self.notifier = notifier

    async def _load(self, user_id: str) -> dict:
        user = await self.repo.find_user_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    async def list_ngos(self) -> List[dict]:
        return [sanitize_user(u) for u in await self.repo.list_users("ngo")]

    async def get_profile(self, user_id: str, actor: dict) -> dict:
        ensure_owner(user_id, actor["id"], "You can only view your own profile")
        return sanitize_user(await self._load(user_id))

    async def update_profile(self, user_id: str, actor: dict, updates: Dict[str, Any]) -> dict:
        existing = await self._load(user_id)
        ensure_owner(user_id, actor["id"], "You can only update your own profile")

        is_ngo = existing["user_type"] == "ngo"
        allowed = BASE_EDITABLE + NGO_DETAIL_FIELDS if is_ngo else BASE_EDITABLE
        patch = _clean_patch(updates or {}, allowed)
        if not patch:
            raise ValidationError("No valid fields to update")

        updated = await self.repo.update_user(user_id, patch)
        if not updated:
            raise NotFoundError("User not found")
        logger.info("Profile %s updated: %s", user_id, ", ".join(sorted(patch)))

        new_reqs = (patch.get("current_requirements") or "").strip()
        if is_ngo and new_reqs and new_reqs != (existing.get("current_requirements") or "").strip():
            await self.notifier.current_requirements_updated(updated)
        return sanitize_user(updated)

    async def stats(self, user_id: str) -> dict:
        user = await self._load(user_id)

        if user["user_type"] == "donor":
            donations = await self.repo.list_donations(donor_id=user_id)
            total = _total(donations, "amount")
            return {
                "total_donations": len(donations),
                "total_amount": total,
                "average_amount": total / len(donations) if donations else 0,
                "completed_donations": sum(1 for d in donations if d["status"] == "completed"),
            }

        donations = await self.repo.list_donations(ngo_id=user_id, status="completed")
        requirements = await self.repo.list_requirements(ngo_id=user_id)
        total = _total(donations, "amount")
        return {
            "total_donations_received": len(donations),
            "total_amount_received": total,
            "average_donation": total / len(donations) if donations else 0,
            "total_requirements": len(requirements),
            "active_requirements": sum(1 for r in requirements if r["status"] in OPEN_REQUIREMENT_STATES),
            "fulfilled_requirements": sum(1 for r in requirements if r["status"] == "fulfilled"),
        }
