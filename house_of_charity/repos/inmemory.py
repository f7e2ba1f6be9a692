# house_of_charity/repos/inmemory.py
import copy
import uuid
from typing import Dict, Iterable, List, Optional

from house_of_charity.repos.base import Repository
from house_of_charity.repos.fixtures import seed_donations, seed_requirements, seed_users
from house_of_charity.repos.normalize import (
    normalize_donation,
    normalize_notification,
    normalize_requirement,
    normalize_user,
)
from house_of_charity.utils.dates import utcnow


def _id() -> str:
    return str(uuid.uuid4())


def _newest_first(rows: Iterable[dict]) -> List[dict]:
    # reversed() first so equal timestamps still come out newest-inserted first
    return sorted(reversed(list(rows)), key=lambda r: r["created_at"], reverse=True)


class InMemoryRepo(Repository):
    """
    Process-local development store seeded with fixture rows.

    No concurrency control: concurrent mutations can race. Every read returns
    a copy so callers never alias stored rows.
    """

    mode = "mock"

    def __init__(self, seed: bool = True):
        super().__init__()
        self._seed = seed
        self.reset()

    def reset(self) -> None:
        self.users: Dict[str, dict] = {}
        self.users_by_email: Dict[str, str] = {}
        self.donations: Dict[str, dict] = {}
        self.requirements: Dict[str, dict] = {}
        self.notifications: Dict[str, dict] = {}
        if self._seed:
            for u in seed_users():
                self.users[u["id"]] = u
                self.users_by_email[u["email"].lower()] = u["id"]
            self.donations = {d["id"]: d for d in seed_donations()}
            self.requirements = {r["id"]: r for r in seed_requirements()}
        self.status = {"connected": True}

    # Users
    def _user_out(self, doc: Optional[dict]) -> Optional[dict]:
        return normalize_user(copy.deepcopy(doc)) if doc else None

    async def find_user_by_id(self, user_id: str) -> Optional[dict]:
        return self._user_out(self.users.get(user_id))

    async def find_user_by_email(self, email: str) -> Optional[dict]:
        uid = self.users_by_email.get((email or "").lower())
        return self._user_out(self.users.get(uid)) if uid else None

    async def list_users(self, user_type: Optional[str] = None) -> List[dict]:
        vals = self.users.values()
        docs = [u for u in vals if user_type is None or u["user_type"] == user_type]
        return [self._user_out(u) for u in _newest_first(docs)]

    async def create_user(self, user_type: str, payload: dict) -> dict:
        now = utcnow()
        doc = {
            "verified": False,
            "logo_url": None,
            **payload,
            "id": _id(),
            "user_type": user_type,
            "created_at": now,
            "updated_at": now,
        }
        if user_type == "ngo":
            doc.setdefault("connected_donors", [])
        else:
            doc.setdefault("connected_ngos", [])
        self.users[doc["id"]] = doc
        self.users_by_email[doc["email"].lower()] = doc["id"]
        return self._user_out(doc)

    async def update_user(self, user_id: str, updates: dict) -> Optional[dict]:
        doc = self.users.get(user_id)
        if not doc:
            return None
        doc.update(updates, updated_at=utcnow())
        return self._user_out(doc)

    # Connections
    async def link_donor_ngo(self, donor_id: str, ngo_id: str) -> None:
        donor, ngo = self.users[donor_id], self.users[ngo_id]
        now = utcnow()
        if ngo_id not in donor.setdefault("connected_ngos", []):
            donor["connected_ngos"].append(ngo_id)
        if donor_id not in ngo.setdefault("connected_donors", []):
            ngo["connected_donors"].append(donor_id)
        donor["updated_at"] = ngo["updated_at"] = now

    async def unlink_donor_ngo(self, donor_id: str, ngo_id: str) -> None:
        donor, ngo = self.users[donor_id], self.users[ngo_id]
        now = utcnow()
        donor["connected_ngos"] = [i for i in donor.get("connected_ngos", []) if i != ngo_id]
        ngo["connected_donors"] = [i for i in ngo.get("connected_donors", []) if i != donor_id]
        donor["updated_at"] = ngo["updated_at"] = now

    def _connected(self, user_id: str, own_type: str, field: str, other_type: str) -> List[dict]:
        doc = self.users.get(user_id)
        if not doc or doc["user_type"] != own_type:
            return []
        out = []
        for other_id in doc.get(field) or []:
            other = self.users.get(other_id)
            if other and other["user_type"] == other_type:
                out.append(self._user_out(other))
        return out

    async def list_connected_donors(self, ngo_id: str) -> List[dict]:
        return self._connected(ngo_id, "ngo", "connected_donors", "donor")

    async def list_connected_ngos(self, donor_id: str) -> List[dict]:
        return self._connected(donor_id, "donor", "connected_ngos", "ngo")

    # Donations
    def _donation_out(self, doc: Optional[dict]) -> Optional[dict]:
        if not doc:
            return None
        row = copy.deepcopy(doc)
        donor = self.users.get(doc["donor_id"]) or {}
        ngo = self.users.get(doc["ngo_id"]) or {}
        row.update(
            donor_name=donor.get("name"),
            donor_email=donor.get("email"),
            ngo_name=ngo.get("name"),
            ngo_email=ngo.get("email"),
        )
        return normalize_donation(row)

    async def find_donation_by_id(self, donation_id: str) -> Optional[dict]:
        return self._donation_out(self.donations.get(donation_id))

    async def list_donations(self, donor_id=None, ngo_id=None, status=None, limit=None) -> List[dict]:
        docs = [
            d for d in self.donations.values()
            if (donor_id is None or d["donor_id"] == donor_id)
            and (ngo_id is None or d["ngo_id"] == ngo_id)
            and (status is None or d["status"] == status)
        ]
        docs = _newest_first(docs)
        if limit:
            docs = docs[:limit]
        return [self._donation_out(d) for d in docs]

    async def create_donation(self, payload: dict) -> dict:
        now = utcnow()
        doc = {"status": "pending", "anonymous": False, **payload,
               "id": _id(), "created_at": now, "updated_at": now}
        self.donations[doc["id"]] = doc
        return self._donation_out(doc)

    async def update_donation(self, donation_id: str, updates: dict) -> Optional[dict]:
        doc = self.donations.get(donation_id)
        if not doc:
            return None
        doc.update(updates, updated_at=utcnow())
        return self._donation_out(doc)

    # Requirements
    def _requirement_out(self, doc: Optional[dict]) -> Optional[dict]:
        if not doc:
            return None
        row = copy.deepcopy(doc)
        ngo = self.users.get(doc["ngo_id"]) or {}
        row.update(
            ngo_name=ngo.get("name"),
            ngo_description=ngo.get("description"),
            city=ngo.get("city"),
            state=ngo.get("state"),
            website=ngo.get("website"),
        )
        return normalize_requirement(row)

    async def find_requirement_by_id(self, requirement_id: str) -> Optional[dict]:
        return self._requirement_out(self.requirements.get(requirement_id))

    async def list_requirements(self, ngo_id=None, status=None, category=None) -> List[dict]:
        docs = [
            r for r in self.requirements.values()
            if (ngo_id is None or r["ngo_id"] == ngo_id)
            and (status is None or r["status"] == status)
            and (category is None or r.get("category") == category)
        ]
        return [self._requirement_out(r) for r in _newest_first(docs)]

    async def create_requirement(self, payload: dict) -> dict:
        now = utcnow()
        doc = {"status": "active", **payload, "id": _id(), "created_at": now, "updated_at": now}
        self.requirements[doc["id"]] = doc
        return self._requirement_out(doc)

    async def update_requirement(self, requirement_id: str, updates: dict) -> Optional[dict]:
        doc = self.requirements.get(requirement_id)
        if not doc:
            return None
        doc.update(updates, updated_at=utcnow())
        return self._requirement_out(doc)

    async def delete_requirement(self, requirement_id: str) -> bool:
        return self.requirements.pop(requirement_id, None) is not None

    # Notifications
    async def create_notifications(self, rows: Iterable[dict]) -> List[dict]:
        out = []
        for row in rows:
            doc = {"read": False, "meta": {}, **row, "id": _id(), "created_at": utcnow()}
            self.notifications[doc["id"]] = doc
            out.append(normalize_notification(copy.deepcopy(doc)))
        return out

    async def list_notifications(self, user_id: str, unread_only: bool = False, limit=None) -> List[dict]:
        docs = [
            n for n in self.notifications.values()
            if n["user_id"] == user_id and (not unread_only or not n["read"])
        ]
        docs = _newest_first(docs)
        if limit:
            docs = docs[:limit]
        return [normalize_notification(copy.deepcopy(n)) for n in docs]

    async def count_unread_notifications(self, user_id: str) -> int:
        return sum(1 for n in self.notifications.values() if n["user_id"] == user_id and not n["read"])

    async def mark_notifications_read(self, user_id: str, ids: Optional[List[str]] = None) -> int:
        wanted = set(ids) if ids is not None else None
        updated = 0
        for n in self.notifications.values():
            if n["user_id"] != user_id or n["read"]:
                continue
            if wanted is not None and n["id"] not in wanted:
                continue
            n["read"] = True
            updated += 1
        return updated
