# house_of_charity/services/connections.py
import logging
from typing import List, Optional, Tuple

from house_of_charity.core.exceptions import NotFoundError, ValidationError
from house_of_charity.core.guards import ensure_owner
from house_of_charity.repos.base import Repository
from house_of_charity.repos.normalize import sanitize_user
from house_of_charity.services.notifications import Notifier

logger = logging.getLogger(__name__)


class ConnectionService:
    """Donor <-> NGO links. Both sides always list each other."""

    def __init__(self, repo: Repository, notifier: Notifier):
        self.repo = repo
        self.notifier = notifier

    async def _typed_user(self, user_id: str, user_type: str, label: str) -> dict:
        user = await self.repo.find_user_by_id(user_id)
        if not user or user["user_type"] != user_type:
            raise NotFoundError(f"{label} not found")
        return user

    async def _pair(self, donor_id: Optional[str], ngo_id: Optional[str], actor: dict) -> Tuple[dict, dict]:
        if not donor_id or not ngo_id:
            raise ValidationError("donorId and ngoId are required")
        ensure_owner(donor_id, actor["id"], "You can only manage your own connections")
        donor = await self._typed_user(donor_id, "donor", "Donor")
        ngo = await self._typed_user(ngo_id, "ngo", "NGO")
        return donor, ngo

    async def _result(self, message: str, donor_id: str, ngo_id: str) -> dict:
        return {
            "message": message,
            "donor": sanitize_user(await self.repo.find_user_by_id(donor_id)),
            "ngo": sanitize_user(await self.repo.find_user_by_id(ngo_id)),
        }

    async def connect(self, donor_id: Optional[str], ngo_id: Optional[str], actor: dict) -> dict:
        donor, ngo = await self._pair(donor_id, ngo_id, actor)
        is_new = ngo["id"] not in donor.get("connected_ngos", [])

        await self.repo.link_donor_ngo(donor["id"], ngo["id"])
        if is_new:
            logger.info("Connected donor %s to ngo %s", donor["id"], ngo["id"])
            await self.notifier.connection_created(donor, ngo)
        return await self._result("Connection created successfully", donor["id"], ngo["id"])

    async def disconnect(self, donor_id: Optional[str], ngo_id: Optional[str], actor: dict) -> dict:
        donor, ngo = await self._pair(donor_id, ngo_id, actor)
        await self.repo.unlink_donor_ngo(donor["id"], ngo["id"])
        logger.info("Disconnected donor %s from ngo %s", donor["id"], ngo["id"])
        return await self._result("Connection removed successfully", donor["id"], ngo["id"])

    async def list_for(self, user_id: str) -> List[dict]:
        user = await self.repo.find_user_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")
        if user["user_type"] == "ngo":
            rows = await self.repo.list_connected_donors(user_id)
        else:
            rows = await self.repo.list_connected_ngos(user_id)
        return [sanitize_user(u) for u in rows]
