# house_of_charity/repos/supabase.py
"""
Hosted Postgres backend spoken to through its PostgREST endpoint (``/rest/v1``).

The hosted schema has no single ``users`` table: donors and NGOs live in
``donors`` and ``ngos``. Lookups try ``donors`` first, then ``ngos``, and tag
the result with the table it came from. Numeric columns may come back as JSON
strings; ``repos.normalize`` coerces them.
"""
import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import httpx

from house_of_charity.core.exceptions import BackendError
from house_of_charity.repos.base import Repository
from house_of_charity.repos.normalize import (
    NGO_DETAIL_FIELDS,
    normalize_donation,
    normalize_notification,
    normalize_requirement,
    normalize_user,
)
from house_of_charity.utils.dates import utcnow

logger = logging.getLogger(__name__)

_BASE_COLUMNS = [
    "id", "name", "email", "password_hash", "phone_number", "address", "city",
    "state", "country", "pincode", "description", "website", "logo_url",
    "verified", "created_at", "updated_at",
]
DONOR_COLUMNS = _BASE_COLUMNS + ["connected_ngos"]
NGO_COLUMNS = _BASE_COLUMNS + NGO_DETAIL_FIELDS + ["connected_donors"]

TABLE_FOR = {"donor": "donors", "ngo": "ngos"}
COLUMNS_FOR = {"donor": DONOR_COLUMNS, "ngo": NGO_COLUMNS}

DONATION_SELECT = "*,donor:donors(id,name,email),ngo:ngos(id,name,email)"
REQUIREMENT_SELECT = "*,ngo:ngos(id,name,description,city,state,website)"


def _jsonable(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {k: (v.isoformat() if isinstance(v, datetime) else v) for k, v in payload.items()}


def _in(ids: Iterable[str]) -> str:
    return "in.(" + ",".join(ids) + ")"


def _ilike_literal(value: str) -> str:
    """Case-insensitive equality filter with LIKE wildcards escaped."""
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"ilike.{escaped}"


def _map_user(row: Dict[str, Any], user_type: str) -> dict:
    row = dict(row)
    row["phone"] = row.pop("phone_number", None)
    return normalize_user(row, user_type)


def _to_user_columns(user_type: str, payload: dict) -> dict:
    data = dict(payload)
    if "phone" in data:
        data["phone_number"] = data.pop("phone")
    cols = set(COLUMNS_FOR[user_type])
    return _jsonable({k: v for k, v in data.items() if k in cols})


def _flatten_donation(row: dict) -> dict:
    row = dict(row)
    donor = row.pop("donor", None) or {}
    ngo = row.pop("ngo", None) or {}
    row.update(
        donor_name=donor.get("name"),
        donor_email=donor.get("email"),
        ngo_name=ngo.get("name"),
        ngo_email=ngo.get("email"),
    )
    return normalize_donation(row)


def _flatten_requirement(row: dict) -> dict:
    row = dict(row)
    ngo = row.pop("ngo", None) or {}
    row.update(
        ngo_name=ngo.get("name"),
        ngo_description=ngo.get("description"),
        city=ngo.get("city"),
        state=ngo.get("state"),
        website=ngo.get("website"),
    )
    return normalize_requirement(row)


class SupabaseRepo(Repository):
    mode = "supabase"

    def __init__(self, url: str, key: str, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__()
        self.url = url.rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=f"{self.url}/rest/v1",
            headers={
                "apikey": key,
                "Authorization": f"Bearer {key}",
                "Content-Type": "application/json",
            },
            timeout=httpx.Timeout(10.0, connect=5.0),
            transport=transport,
        )
        self.status = {"connected": None, "error": None}
        self._check_task: Optional[asyncio.Task] = None

    # ---------- plumbing ----------
    async def _request(
        self,
        method: str,
        table: str,
        params: Optional[Dict[str, str]] = None,
        json: Any = None,
        prefer: Optional[str] = None,
    ) -> List[dict]:
        headers = {"Prefer": prefer} if prefer else None
        try:
            r = await self.client.request(method, f"/{table}", params=params, json=json, headers=headers)
        except httpx.HTTPError as exc:
            logger.error("Hosted database unreachable (%s %s): %s", method, table, exc)
            raise BackendError("Hosted database unreachable", backend=self.mode) from exc

        if r.status_code >= 400:
            logger.error("Hosted database error %s on %s %s: %s", r.status_code, method, table, r.text[:500])
            raise BackendError("Hosted database request failed", backend=self.mode)
        if not r.content:
            return []
        try:
            data = r.json()
        except ValueError as exc:
            logger.error("Hosted database sent a non-JSON body on %s %s: %s", method, table, r.text[:200])
            raise BackendError("Hosted database returned an invalid response", backend=self.mode) from exc
        return data if isinstance(data, list) else [data]

    async def _first(self, table: str, params: Dict[str, str]) -> Optional[dict]:
        rows = await self._request("GET", table, params={**params, "limit": "1"})
        return rows[0] if rows else None

    async def check_connection(self) -> None:
        """Single connectivity check; logs instead of raising."""
        try:
            await self._request("GET", "donors", params={"select": "id", "limit": "1"})
        except BackendError as exc:
            self.status = {"connected": False, "error": exc.message}
            logger.error("Hosted database connection failed: %s", exc.message)
            return
        self.status = {"connected": True, "error": None}
        logger.info("Hosted database connection verified")

    async def startup(self) -> None:
        # must not block or fail startup
        self._check_task = asyncio.create_task(self.check_connection())

    async def shutdown(self) -> None:
        if self._check_task and not self._check_task.done():
            self._check_task.cancel()
        await self.client.aclose()

    # ---------- Users ----------
    async def _find_user(self, field: str, value: str) -> Optional[dict]:
        # donors checked first; a donor match wins over an ngo match
        for user_type in ("donor", "ngo"):
            row = await self._first(TABLE_FOR[user_type], {
                "select": ",".join(COLUMNS_FOR[user_type]),
                field: f"eq.{value}",
            })
            if row:
                return _map_user(row, user_type)
        return None

    async def find_user_by_id(self, user_id: str) -> Optional[dict]:
        return await self._find_user("id", user_id)

    async def find_user_by_email(self, email: str) -> Optional[dict]:
        wanted = (email or "").strip().lower()
        if not wanted:
            return None
        for user_type in ("donor", "ngo"):
            rows = await self._request("GET", TABLE_FOR[user_type], params={
                "select": ",".join(COLUMNS_FOR[user_type]),
                "email": _ilike_literal(wanted),
            })
            # "*" cannot be escaped for PostgREST, so confirm the match here
            for row in rows:
                if (row.get("email") or "").lower() == wanted:
                    return _map_user(row, user_type)
        return None

    async def list_users(self, user_type: Optional[str] = None) -> List[dict]:
        out: List[dict] = []
        for ut in ([user_type] if user_type else ["donor", "ngo"]):
            rows = await self._request("GET", TABLE_FOR[ut], params={
                "select": ",".join(COLUMNS_FOR[ut]),
                "order": "created_at.desc",
            })
            out.extend(_map_user(r, ut) for r in rows)
        if not user_type:
            out.sort(key=lambda u: u["created_at"].timestamp() if u["created_at"] else 0, reverse=True)
        return out

    async def create_user(self, user_type: str, payload: dict) -> dict:
        rows = await self._request(
            "POST", TABLE_FOR[user_type],
            params={"select": ",".join(COLUMNS_FOR[user_type])},
            json=_to_user_columns(user_type, payload),
            prefer="return=representation",
        )
        if not rows:
            raise BackendError("Hosted database returned no row for new user", backend=self.mode)
        return _map_user(rows[0], user_type)

    async def update_user(self, user_id: str, updates: dict) -> Optional[dict]:
        existing = await self.find_user_by_id(user_id)
        if not existing:
            return None
        user_type = existing["user_type"]
        rows = await self._request(
            "PATCH", TABLE_FOR[user_type],
            params={"id": f"eq.{user_id}", "select": ",".join(COLUMNS_FOR[user_type])},
            json=_to_user_columns(user_type, {**updates, "updated_at": utcnow()}),
            prefer="return=representation",
        )
        return _map_user(rows[0], user_type) if rows else None

    # ---------- Connections ----------
    async def _ids(self, table: str, user_id: str, field: str) -> List[str]:
        row = await self._first(table, {"select": field, "id": f"eq.{user_id}"})
        ids = (row or {}).get(field)
        return [i for i in ids if i] if isinstance(ids, list) else []

    async def link_donor_ngo(self, donor_id: str, ngo_id: str) -> None:
        donor_ids = await self._ids("donors", donor_id, "connected_ngos")
        ngo_ids = await self._ids("ngos", ngo_id, "connected_donors")

        # donor side first; the ngo side is what fan-out reads
        if ngo_id not in donor_ids:
            await self._request("PATCH", "donors", params={"id": f"eq.{donor_id}"},
                                json={"connected_ngos": donor_ids + [ngo_id]})
        if donor_id not in ngo_ids:
            await self._request("PATCH", "ngos", params={"id": f"eq.{ngo_id}"},
                                json={"connected_donors": ngo_ids + [donor_id]})
        await self._request(
            "POST", "donor_ngo_links",
            params={"on_conflict": "donor_id,ngo_id"},
            json={"donor_id": donor_id, "ngo_id": ngo_id},
            prefer="resolution=merge-duplicates",
        )

    async def unlink_donor_ngo(self, donor_id: str, ngo_id: str) -> None:
        donor_ids = await self._ids("donors", donor_id, "connected_ngos")
        ngo_ids = await self._ids("ngos", ngo_id, "connected_donors")

        await self._request("PATCH", "donors", params={"id": f"eq.{donor_id}"},
                            json={"connected_ngos": [i for i in donor_ids if i != ngo_id]})
        await self._request("PATCH", "ngos", params={"id": f"eq.{ngo_id}"},
                            json={"connected_donors": [i for i in ngo_ids if i != donor_id]})
        await self._request("DELETE", "donor_ngo_links",
                            params={"donor_id": f"eq.{donor_id}", "ngo_id": f"eq.{ngo_id}"})

    async def _connected(self, own_table: str, field: str, other_type: str, user_id: str) -> List[dict]:
        ids = await self._ids(own_table, user_id, field)
        if not ids:
            return []
        rows = await self._request("GET", TABLE_FOR[other_type], params={
            "select": ",".join(COLUMNS_FOR[other_type]),
            "id": _in(ids),
        })
        order = {v: i for i, v in enumerate(ids)}
        users = [_map_user(r, other_type) for r in rows]
        return sorted(users, key=lambda u: order.get(u["id"], len(order)))

    async def list_connected_donors(self, ngo_id: str) -> List[dict]:
        return await self._connected("ngos", "connected_donors", "donor", ngo_id)

    async def list_connected_ngos(self, donor_id: str) -> List[dict]:
        return await self._connected("donors", "connected_ngos", "ngo", donor_id)

    # ---------- Donations ----------
    async def find_donation_by_id(self, donation_id: str) -> Optional[dict]:
        row = await self._first("donations", {"select": DONATION_SELECT, "id": f"eq.{donation_id}"})
        return _flatten_donation(row) if row else None

    async def list_donations(self, donor_id=None, ngo_id=None, status=None, limit=None) -> List[dict]:
        params = {"select": DONATION_SELECT, "order": "created_at.desc"}
        if donor_id:
            params["donor_id"] = f"eq.{donor_id}"
        if ngo_id:
            params["ngo_id"] = f"eq.{ngo_id}"
        if status:
            params["status"] = f"eq.{status}"
        if limit:
            params["limit"] = str(limit)
        return [_flatten_donation(r) for r in await self._request("GET", "donations", params=params)]

    async def create_donation(self, payload: dict) -> dict:
        rows = await self._request(
            "POST", "donations",
            params={"select": DONATION_SELECT},
            json=_jsonable({"status": "pending", **payload}),
            prefer="return=representation",
        )
        if not rows:
            raise BackendError("Hosted database returned no row for new donation", backend=self.mode)
        return _flatten_donation(rows[0])

    async def update_donation(self, donation_id: str, updates: dict) -> Optional[dict]:
        rows = await self._request(
            "PATCH", "donations",
            params={"id": f"eq.{donation_id}", "select": DONATION_SELECT},
            json=_jsonable({**updates, "updated_at": utcnow()}),
            prefer="return=representation",
        )
        return _flatten_donation(rows[0]) if rows else None

    # ---------- Requirements ----------
    async def find_requirement_by_id(self, requirement_id: str) -> Optional[dict]:
        row = await self._first("requirements", {"select": REQUIREMENT_SELECT, "id": f"eq.{requirement_id}"})
        return _flatten_requirement(row) if row else None

    async def list_requirements(self, ngo_id=None, status=None, category=None) -> List[dict]:
        params = {"select": REQUIREMENT_SELECT, "order": "created_at.desc"}
        if ngo_id:
            params["ngo_id"] = f"eq.{ngo_id}"
        if status:
            params["status"] = f"eq.{status}"
        if category:
            params["category"] = f"eq.{category}"
        return [_flatten_requirement(r) for r in await self._request("GET", "requirements", params=params)]

    async def create_requirement(self, payload: dict) -> dict:
        rows = await self._request(
            "POST", "requirements",
            params={"select": REQUIREMENT_SELECT},
            json=_jsonable({"status": "active", **payload}),
            prefer="return=representation",
        )
        if not rows:
            raise BackendError("Hosted database returned no row for new requirement", backend=self.mode)
        return _flatten_requirement(rows[0])

    async def update_requirement(self, requirement_id: str, updates: dict) -> Optional[dict]:
        rows = await self._request(
            "PATCH", "requirements",
            params={"id": f"eq.{requirement_id}", "select": REQUIREMENT_SELECT},
            json=_jsonable({**updates, "updated_at": utcnow()}),
            prefer="return=representation",
        )
        return _flatten_requirement(rows[0]) if rows else None

    async def delete_requirement(self, requirement_id: str) -> bool:
        rows = await self._request(
            "DELETE", "requirements",
            params={"id": f"eq.{requirement_id}"},
            prefer="return=representation",
        )
        return bool(rows)

    # ---------- Notifications ----------
    async def create_notifications(self, rows: Iterable[dict]) -> List[dict]:
        body = [_jsonable({"read": False, "meta": {}, **r}) for r in rows]
        if not body:
            return []
        created = await self._request("POST", "notifications", json=body, prefer="return=representation")
        return [normalize_notification(r) for r in created]

    async def list_notifications(self, user_id: str, unread_only: bool = False, limit=None) -> List[dict]:
        params = {"select": "*", "user_id": f"eq.{user_id}", "order": "created_at.desc"}
        if unread_only:
            params["read"] = "eq.false"
        if limit:
            params["limit"] = str(limit)
        return [normalize_notification(r) for r in await self._request("GET", "notifications", params=params)]

    async def count_unread_notifications(self, user_id: str) -> int:
        rows = await self._request("GET", "notifications", params={
            "select": "id", "user_id": f"eq.{user_id}", "read": "eq.false",
        })
        return len(rows)

    async def mark_notifications_read(self, user_id: str, ids: Optional[List[str]] = None) -> int:
        params = {"user_id": f"eq.{user_id}", "read": "eq.false", "select": "id"}
        if ids is not None:
            if not ids:
                return 0
            params["id"] = _in(ids)
        rows = await self._request("PATCH", "notifications", params=params,
                                   json={"read": True}, prefer="return=representation")
        return len(rows)
