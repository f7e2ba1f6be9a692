# house_of_charity/services/requirements.py
import logging
from typing import List

from house_of_charity.core.config import Settings
from house_of_charity.core.exceptions import NotFoundError, ValidationError
from house_of_charity.core.guards import ensure_owner, ensure_user_type
from house_of_charity.core.states import REQUIREMENT_STATES, priority_rank
from house_of_charity.repos.base import Repository
from house_of_charity.schemas import RequirementIn, RequirementUpdate
from house_of_charity.services.notifications import Notifier
from house_of_charity.utils.dates import as_utc

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = [
    "title", "description", "category", "request_type", "amount_needed",
    "currency", "priority", "status", "deadline", "quantity", "unit",
]


def rank_by_priority(rows: List[dict]) -> List[dict]:
    # rows arrive newest-first; sorted() is stable so that order survives within a priority
    return sorted(rows, key=lambda r: priority_rank(r.get("priority")))


def _clean_choices(fields: dict) -> None:
    # unrecognised priorities are kept and rank after "low"
    if "priority" in fields:
        priority = (fields["priority"] or "").strip().lower()
        if not priority:
            raise ValidationError("Invalid priority", field="priority")
        fields["priority"] = priority
    if "status" in fields and fields["status"] not in REQUIREMENT_STATES:
        raise ValidationError("Invalid status", field="status")


class RequirementService:
    def __init__(self, repo: Repository, notifier: Notifier, settings: Settings):
        self.repo = repo
        self.notifier = notifier
        self.settings = settings

    async def _load(self, requirement_id: str) -> dict:
        requirement = await self.repo.find_requirement_by_id(requirement_id)
        if not requirement:
            raise NotFoundError("Requirement not found")
        return requirement

    async def create(self, actor: dict, body: RequirementIn) -> dict:
        title = (body.title or "").strip()
        if not title:
            raise ValidationError("Title is required", field="title")
        ensure_user_type(actor, "ngo", "Only NGOs can create requirements")

        fields = body.model_dump()
        fields.update(
            title=title,
            ngo_id=actor["id"],
            priority=(body.priority or "").strip() or "medium",
            status=body.status or "active",
            currency=body.currency or self.settings.default_currency,
            deadline=as_utc(body.deadline),
        )
        _clean_choices(fields)

        requirement = await self.repo.create_requirement(fields)
        logger.info("Requirement %s posted by %s (%s)", requirement["id"], actor["id"], requirement["priority"])
        await self.notifier.requirement_posted(requirement)
        return requirement

    async def list_active(self) -> List[dict]:
        return rank_by_priority(await self.repo.list_requirements(status="active"))

    async def list_by_category(self, category: str) -> List[dict]:
        return rank_by_priority(await self.repo.list_requirements(status="active", category=category))

    async def list_for_ngo(self, ngo_id: str) -> List[dict]:
        return await self.repo.list_requirements(ngo_id=ngo_id)

    async def get(self, requirement_id: str) -> dict:
        return await self._load(requirement_id)

    async def update(self, requirement_id: str, actor: dict, body: RequirementUpdate) -> dict:
        requirement = await self._load(requirement_id)
        ensure_owner(requirement["ngo_id"], actor["id"], "You can only update your own requirements")

        sent = body.model_dump(exclude_unset=True)
        patch = {k: sent[k] for k in UPDATABLE_FIELDS if k in sent}
        if not patch:
            raise ValidationError("No valid fields to update")
        if "title" in patch and not (patch["title"] or "").strip():
            raise ValidationError("Title is required", field="title")
        if "deadline" in patch:
            patch["deadline"] = as_utc(patch["deadline"])
        _clean_choices(patch)

        updated = await self.repo.update_requirement(requirement_id, patch)
        if not updated:
            raise NotFoundError("Requirement not found")
        logger.info("Requirement %s updated: %s", requirement_id, ", ".join(sorted(patch)))
        await self.notifier.requirement_updated(updated, changed=patch.keys())
        return updated

    async def delete(self, requirement_id: str, actor: dict) -> None:
        requirement = await self._load(requirement_id)
        ensure_owner(requirement["ngo_id"], actor["id"], "You can only delete your own requirements")
        if not await self.repo.delete_requirement(requirement_id):
            raise NotFoundError("Requirement not found")
        logger.info("Requirement %s deleted by %s", requirement_id, actor["id"])
