# house_of_charity/repos/sql.py
import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Iterable, List, Optional

from sqlalchemy import and_, delete, func, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from house_of_charity.core.exceptions import BackendError
from house_of_charity.repos import tables as t
from house_of_charity.repos.base import Repository
from house_of_charity.repos.normalize import (
    normalize_donation,
    normalize_notification,
    normalize_requirement,
    normalize_user,
)
from house_of_charity.utils.dates import utcnow

logger = logging.getLogger(__name__)

donor_u = t.users.alias("donor")
ngo_u = t.users.alias("ngo")


def _id() -> str:
    return str(uuid.uuid4())


def _only_columns(table, payload: dict) -> dict:
    cols = set(table.c.keys())
    return {k: v for k, v in payload.items() if k in cols}


def _donation_select():
    return (
        select(
            t.donations,
            donor_u.c.name.label("donor_name"),
            donor_u.c.email.label("donor_email"),
            ngo_u.c.name.label("ngo_name"),
            ngo_u.c.email.label("ngo_email"),
        )
        .select_from(
            t.donations
            .outerjoin(donor_u, t.donations.c.donor_id == donor_u.c.id)
            .outerjoin(ngo_u, t.donations.c.ngo_id == ngo_u.c.id)
        )
    )


def _requirement_select():
    return (
        select(
            t.requirements,
            ngo_u.c.name.label("ngo_name"),
            ngo_u.c.description.label("ngo_description"),
            ngo_u.c.city.label("city"),
            ngo_u.c.state.label("state"),
            ngo_u.c.website.label("website"),
        )
        .select_from(t.requirements.outerjoin(ngo_u, t.requirements.c.ngo_id == ngo_u.c.id))
    )


class SqlRepo(Repository):
    """Relational backend on SQLAlchemy async Core (Postgres via asyncpg, SQLite via aiosqlite)."""

    mode = "sql"

    def __init__(self, database_url: str, echo: bool = False, engine: Optional[AsyncEngine] = None):
        super().__init__()
        self.database_url = database_url
        self._echo = echo
        self._engine = engine

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            url = self.database_url
            if ":memory:" in url:
                # one shared connection, otherwise every checkout sees an empty db
                self._engine = create_async_engine(
                    url, echo=self._echo, poolclass=StaticPool,
                    connect_args={"check_same_thread": False},
                )
            elif "sqlite" in url:
                self._engine = create_async_engine(url, echo=self._echo, poolclass=NullPool)
            else:
                self._engine = create_async_engine(url, echo=self._echo, pool_pre_ping=True)
        return self._engine

    async def startup(self) -> None:
        async with self._tx() as conn:
            await conn.run_sync(t.metadata.create_all)
        self.status = {"connected": True}
        logger.info("SQL backend ready (%s)", self.engine.url.get_backend_name())

    async def shutdown(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None

    @asynccontextmanager
    async def _conn(self) -> AsyncIterator[AsyncConnection]:
        try:
            async with self.engine.connect() as conn:
                yield conn
        except SQLAlchemyError as exc:
            logger.error("SQL query failed: %s", exc)
            raise BackendError("Database query failed", backend=self.mode) from exc
        except OSError as exc:
            raise BackendError("Database unavailable", backend=self.mode) from exc

    @asynccontextmanager
    async def _tx(self) -> AsyncIterator[AsyncConnection]:
        try:
            async with self.engine.begin() as conn:
                yield conn
        except SQLAlchemyError as exc:
            logger.error("SQL write failed: %s", exc)
            raise BackendError("Database query failed", backend=self.mode) from exc
        except OSError as exc:
            raise BackendError("Database unavailable", backend=self.mode) from exc

    # ---------- Users ----------
    async def _links_for(self, conn: AsyncConnection, user_ids: List[str]) -> Dict[str, List[str]]:
        """user id -> ids on the other side of its connections, oldest link first."""
        if not user_ids:
            return {}
        q = (
            select(t.donor_ngo_links)
            .where(
                t.donor_ngo_links.c.donor_id.in_(user_ids)
                | t.donor_ngo_links.c.ngo_id.in_(user_ids)
            )
            .order_by(t.donor_ngo_links.c.created_at)
        )
        out: Dict[str, List[str]] = {}
        for link in (await conn.execute(q)).mappings():
            out.setdefault(link["donor_id"], []).append(link["ngo_id"])
            out.setdefault(link["ngo_id"], []).append(link["donor_id"])
        return out

    async def _users(self, conn: AsyncConnection, q) -> List[dict]:
        rows = [dict(r) for r in (await conn.execute(q)).mappings()]
        links = await self._links_for(conn, [r["id"] for r in rows])
        for r in rows:
            key = "connected_donors" if r["user_type"] == "ngo" else "connected_ngos"
            r[key] = links.get(r["id"], [])
        return [normalize_user(r) for r in rows]

    async def find_user_by_id(self, user_id: str) -> Optional[dict]:
        async with self._conn() as conn:
            found = await self._users(conn, select(t.users).where(t.users.c.id == user_id))
        return found[0] if found else None

    async def find_user_by_email(self, email: str) -> Optional[dict]:
        q = select(t.users).where(func.lower(t.users.c.email) == (email or "").lower())
        async with self._conn() as conn:
            found = await self._users(conn, q)
        return found[0] if found else None

    async def list_users(self, user_type: Optional[str] = None) -> List[dict]:
        q = select(t.users).order_by(t.users.c.created_at.desc())
        if user_type:
            q = q.where(t.users.c.user_type == user_type)
        async with self._conn() as conn:
            return await self._users(conn, q)

    async def create_user(self, user_type: str, payload: dict) -> dict:
        now = utcnow()
        values = {
            "verified": False,
            **_only_columns(t.users, payload),
            "id": _id(),
            "user_type": user_type,
            "created_at": now,
            "updated_at": now,
        }
        async with self._tx() as conn:
            await conn.execute(insert(t.users).values(**values))
        return await self.find_user_by_id(values["id"])

    async def update_user(self, user_id: str, updates: dict) -> Optional[dict]:
        values = _only_columns(t.users, updates)
        values["updated_at"] = utcnow()
        async with self._tx() as conn:
            res = await conn.execute(update(t.users).where(t.users.c.id == user_id).values(**values))
        if res.rowcount == 0:
            return None
        return await self.find_user_by_id(user_id)

    # ---------- Connections ----------
    async def link_donor_ngo(self, donor_id: str, ngo_id: str) -> None:
        links = t.donor_ngo_links
        async with self._tx() as conn:
            exists = (await conn.execute(
                select(links.c.donor_id).where(and_(links.c.donor_id == donor_id, links.c.ngo_id == ngo_id))
            )).first()
            if not exists:
                await conn.execute(insert(links).values(donor_id=donor_id, ngo_id=ngo_id, created_at=utcnow()))
            await conn.execute(
                update(t.users).where(t.users.c.id.in_([donor_id, ngo_id])).values(updated_at=utcnow())
            )

    async def unlink_donor_ngo(self, donor_id: str, ngo_id: str) -> None:
        links = t.donor_ngo_links
        async with self._tx() as conn:
            await conn.execute(delete(links).where(and_(links.c.donor_id == donor_id, links.c.ngo_id == ngo_id)))
            await conn.execute(
                update(t.users).where(t.users.c.id.in_([donor_id, ngo_id])).values(updated_at=utcnow())
            )

    async def list_connected_donors(self, ngo_id: str) -> List[dict]:
        links = t.donor_ngo_links
        q = (
            select(t.users)
            .join(links, links.c.donor_id == t.users.c.id)
            .where(and_(links.c.ngo_id == ngo_id, t.users.c.user_type == "donor"))
            .order_by(links.c.created_at)
        )
        async with self._conn() as conn:
            return await self._users(conn, q)

    async def list_connected_ngos(self, donor_id: str) -> List[dict]:
        links = t.donor_ngo_links
        q = (
            select(t.users)
            .join(links, links.c.ngo_id == t.users.c.id)
            .where(and_(links.c.donor_id == donor_id, t.users.c.user_type == "ngo"))
            .order_by(links.c.created_at)
        )
        async with self._conn() as conn:
            return await self._users(conn, q)

    # ---------- Donations ----------
    async def find_donation_by_id(self, donation_id: str) -> Optional[dict]:
        async with self._conn() as conn:
            row = (await conn.execute(_donation_select().where(t.donations.c.id == donation_id))).mappings().first()
        return normalize_donation(dict(row)) if row else None

    async def list_donations(self, donor_id=None, ngo_id=None, status=None, limit=None) -> List[dict]:
        q = _donation_select().order_by(t.donations.c.created_at.desc())
        if donor_id:
            q = q.where(t.donations.c.donor_id == donor_id)
        if ngo_id:
            q = q.where(t.donations.c.ngo_id == ngo_id)
        if status:
            q = q.where(t.donations.c.status == status)
        if limit:
            q = q.limit(limit)
        async with self._conn() as conn:
            rows = (await conn.execute(q)).mappings().all()
        return [normalize_donation(dict(r)) for r in rows]

    async def create_donation(self, payload: dict) -> dict:
        now = utcnow()
        values = {
            "status": "pending",
            "anonymous": False,
            **_only_columns(t.donations, payload),
            "id": _id(),
            "created_at": now,
            "updated_at": now,
        }
        async with self._tx() as conn:
            await conn.execute(insert(t.donations).values(**values))
        return await self.find_donation_by_id(values["id"])

    async def update_donation(self, donation_id: str, updates: dict) -> Optional[dict]:
        values = _only_columns(t.donations, updates)
        values["updated_at"] = utcnow()
        async with self._tx() as conn:
            res = await conn.execute(update(t.donations).where(t.donations.c.id == donation_id).values(**values))
        if res.rowcount == 0:
            return None
        return await self.find_donation_by_id(donation_id)

    # ---------- Requirements ----------
    async def find_requirement_by_id(self, requirement_id: str) -> Optional[dict]:
        q = _requirement_select().where(t.requirements.c.id == requirement_id)
        async with self._conn() as conn:
            row = (await conn.execute(q)).mappings().first()
        return normalize_requirement(dict(row)) if row else None

    async def list_requirements(self, ngo_id=None, status=None, category=None) -> List[dict]:
        q = _requirement_select().order_by(t.requirements.c.created_at.desc())
        if ngo_id:
            q = q.where(t.requirements.c.ngo_id == ngo_id)
        if status:
            q = q.where(t.requirements.c.status == status)
        if category:
            q = q.where(t.requirements.c.category == category)
        async with self._conn() as conn:
            rows = (await conn.execute(q)).mappings().all()
        return [normalize_requirement(dict(r)) for r in rows]

    async def create_requirement(self, payload: dict) -> dict:
        now = utcnow()
        values = {
            "status": "active",
            "priority": "medium",
            **_only_columns(t.requirements, payload),
            "id": _id(),
            "created_at": now,
            "updated_at": now,
        }
        async with self._tx() as conn:
            await conn.execute(insert(t.requirements).values(**values))
        return await self.find_requirement_by_id(values["id"])

    async def update_requirement(self, requirement_id: str, updates: dict) -> Optional[dict]:
        values = _only_columns(t.requirements, updates)
        values["updated_at"] = utcnow()
        async with self._tx() as conn:
            res = await conn.execute(
                update(t.requirements).where(t.requirements.c.id == requirement_id).values(**values)
            )
        if res.rowcount == 0:
            return None
        return await self.find_requirement_by_id(requirement_id)

    async def delete_requirement(self, requirement_id: str) -> bool:
        async with self._tx() as conn:
            res = await conn.execute(delete(t.requirements).where(t.requirements.c.id == requirement_id))
        return res.rowcount > 0

    # ---------- Notifications ----------
    async def create_notifications(self, rows: Iterable[dict]) -> List[dict]:
        values = []
        for row in rows:
            values.append({
                "read": False,
                "meta": {},
                **_only_columns(t.notifications, row),
                "id": _id(),
                "created_at": utcnow(),
            })
        if not values:
            return []
        async with self._tx() as conn:
            await conn.execute(insert(t.notifications), values)
        return [normalize_notification(v) for v in values]

    async def list_notifications(self, user_id: str, unread_only: bool = False, limit=None) -> List[dict]:
        n = t.notifications
        q = select(n).where(n.c.user_id == user_id).order_by(n.c.created_at.desc())
        if unread_only:
            q = q.where(n.c.read.is_(False))
        if limit:
            q = q.limit(limit)
        async with self._conn() as conn:
            rows = (await conn.execute(q)).mappings().all()
        return [normalize_notification(dict(r)) for r in rows]

    async def count_unread_notifications(self, user_id: str) -> int:
        n = t.notifications
        q = select(func.count()).select_from(n).where(and_(n.c.user_id == user_id, n.c.read.is_(False)))
        async with self._conn() as conn:
            return int((await conn.execute(q)).scalar_one())

    async def mark_notifications_read(self, user_id: str, ids: Optional[List[str]] = None) -> int:
        n = t.notifications
        cond = and_(n.c.user_id == user_id, n.c.read.is_(False))
        if ids is not None:
            if not ids:
                return 0
            cond = and_(cond, n.c.id.in_(ids))
        async with self._tx() as conn:
            res = await conn.execute(update(n).where(cond).values(read=True))
        return res.rowcount
