# tests/test_supabase_repo.py
import json
import re
import uuid
from datetime import datetime, timedelta, timezone

import httpx
import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient

from house_of_charity.core.exceptions import BackendError
from house_of_charity.main import create_app
from house_of_charity.repos.supabase import SupabaseRepo
from house_of_charity.security import hash_password

pytestmark = pytest.mark.anyio

RESERVED = {"select", "order", "limit", "on_conflict"}


def _fmt(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


def _like(pattern: str):
    out, chars = "", iter(pattern)
    for ch in chars:
        if ch == "\\":
            out += re.escape(next(chars, ""))
        elif ch in "*%":
            out += ".*"
        elif ch == "_":
            out += "."
        else:
            out += re.escape(ch)
    return re.compile(out, re.IGNORECASE | re.DOTALL)


def _split_top(select: str):
    parts, depth, buf = [], 0, ""
    for ch in select:
        if ch == "," and depth == 0:
            parts.append(buf)
            buf = ""
            continue
        depth += ch == "("
        depth -= ch == ")"
        buf += ch
    if buf:
        parts.append(buf)
    return parts


class FakePostgrest:
    """Just enough PostgREST for the repository: eq/in/ilike filters, embeds, upserts."""

    def __init__(self):
        self.tables = {name: [] for name in
                       ("donors", "ngos", "donations", "requirements", "notifications", "donor_ngo_links")}
        self.fail = set()
        self.garbage = set()
        self.calls = []
        self._tick = 0

    def _stamp(self) -> str:
        self._tick += 1
        return (datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(seconds=self._tick)).isoformat()

    def seed(self, table: str, **row) -> dict:
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", self._stamp())
        self.tables[table].append(row)
        return row

    def _match(self, row: dict, filters: dict) -> bool:
        for col, expr in filters.items():
            op, _, arg = expr.partition(".")
            if op == "eq" and _fmt(row.get(col)) != arg:
                return False
            if op == "in" and _fmt(row.get(col)) not in arg.strip("()").split(","):
                return False
            if op == "ilike" and not _like(arg).fullmatch(_fmt(row.get(col))):
                return False
        return True

    def _project(self, row: dict, select: str) -> dict:
        out = {}
        for part in _split_top(select or "*"):
            if part == "*":
                out.update(row)
            elif "(" in part:
                alias, _, rest = part.partition(":")
                table, _, cols = rest.partition("(")
                target = next((r for r in self.tables[table] if r["id"] == row.get(f"{alias}_id")), None)
                out[alias] = self._project(target, cols.rstrip(")")) if target else None
            else:
                out[part] = row.get(part)
        return out

    def __call__(self, request: httpx.Request) -> httpx.Response:
        table = request.url.path.rsplit("/", 1)[-1]
        params = dict(request.url.params)
        body = json.loads(request.content) if request.content else None
        self.calls.append((request.method, table, params, body))
        if table in self.fail:
            return httpx.Response(500, json={"message": "boom"})
        if table in self.garbage:
            return httpx.Response(200, text="<html>maintenance</html>")

        filters = {k: v for k, v in params.items() if k not in RESERVED}
        rows = self.tables[table]
        wants_rows = "return=representation" in request.headers.get("prefer", "")

        if request.method == "GET":
            found = [r for r in rows if self._match(r, filters)]
            if params.get("order") == "created_at.desc":
                found.sort(key=lambda r: r.get("created_at") or "", reverse=True)
            if "limit" in params:
                found = found[: int(params["limit"])]
            return httpx.Response(200, json=[self._project(r, params.get("select")) for r in found])

        if request.method == "POST":
            written = []
            keys = params.get("on_conflict", "").split(",") if "on_conflict" in params else None
            for item in body if isinstance(body, list) else [body]:
                existing = None
                if keys:
                    existing = next((r for r in rows if all(r.get(k) == item.get(k) for k in keys)), None)
                if existing is not None:
                    existing.update(item)
                    written.append(existing)
                else:
                    written.append(self.seed(table, **item))
            if wants_rows:
                return httpx.Response(201, json=[self._project(r, params.get("select")) for r in written])
            return httpx.Response(201)

        if request.method == "PATCH":
            found = [r for r in rows if self._match(r, filters)]
            for r in found:
                r.update(body)
            if wants_rows:
                return httpx.Response(200, json=[self._project(r, params.get("select")) for r in found])
            return httpx.Response(204)

        if request.method == "DELETE":
            found = [r for r in rows if self._match(r, filters)]
            self.tables[table] = [r for r in rows if r not in found]
            if wants_rows:
                return httpx.Response(200, json=found)
            return httpx.Response(204)

        return httpx.Response(405)


@pytest.fixture
def fake():
    return FakePostgrest()


@pytest.fixture
async def hosted(fake):
    repo = SupabaseRepo("https://charity.supabase.co/", "anon-key", transport=httpx.MockTransport(fake))
    yield repo
    await repo.shutdown()


def _writes(fake):
    return [(method, table) for method, table, _, _ in fake.calls if method != "GET"]


async def test_requests_carry_project_key(fake, hosted):
    await hosted.list_users("ngo")
    method, table, params, _ = fake.calls[0]
    assert (method, table) == ("GET", "ngos")
    assert params["order"] == "created_at.desc"
    assert hosted.client.headers["apikey"] == "anon-key"
    assert hosted.client.headers["Authorization"] == "Bearer anon-key"


async def test_donor_table_wins_when_email_in_both(fake, hosted):
    fake.seed("donors", id="d1", email="both@example.com", name="As Donor", phone_number="555")
    fake.seed("ngos", id="n1", email="both@example.com", name="As NGO")

    user = await hosted.find_user_by_email("both@example.com")
    assert user["id"] == "d1" and user["user_type"] == "donor"
    assert user["phone"] == "555"
    assert "phone_number" not in user

    ngo = await hosted.find_user_by_id("n1")
    assert ngo["user_type"] == "ngo"
    assert [t for _, t, _, _ in fake.calls[-2:]] == ["donors", "ngos"]
    assert await hosted.find_user_by_id("nobody") is None


async def test_email_lookup_ignores_case(fake, hosted):
    fake.seed("donors", id="d1", email="Mixed@Example.com", name="Mixed")
    fake.seed("ngos", id="n1", email="Shelter@Example.ORG", name="Shelter")

    assert (await hosted.find_user_by_email("mixed@example.com"))["id"] == "d1"
    assert (await hosted.find_user_by_email("  MIXED@example.com "))["id"] == "d1"
    assert (await hosted.find_user_by_email("shelter@example.org"))["id"] == "n1"
    assert await hosted.find_user_by_email("") is None


async def test_email_lookup_treats_wildcards_literally(fake, hosted):
    fake.seed("donors", id="plain", email="axb@example.com")
    fake.seed("donors", id="underscore", email="a_b@example.com")
    fake.seed("donors", id="star", email="a*b@example.com")

    assert (await hosted.find_user_by_email("a_b@example.com"))["id"] == "underscore"
    assert (await hosted.find_user_by_email("a*b@example.com"))["id"] == "star"
    assert await hosted.find_user_by_email("a%@example.com") is None
    _, _, params, _ = next(c for c in fake.calls if c[2].get("email", "").startswith("ilike.a\\_b"))
    assert params["email"] == "ilike.a\\_b@example.com"


async def test_mixed_case_hosted_account_can_log_in_and_blocks_duplicates(settings, fake):
    fake.seed("donors", id="d1", email="Mixed@Example.com", name="Mixed",
              password_hash=hash_password("pw123456"))
    repo = SupabaseRepo("https://charity.supabase.co", "k", transport=httpx.MockTransport(fake))
    app = create_app(settings.model_copy(update={"db_mode": "supabase"}), repository=repo)
    async with LifespanManager(app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            r = await ac.post("/api/auth/login", json={"email": "mixed@example.com", "password": "pw123456"})
            assert r.status_code == 200, r.text
            assert r.json()["user"]["id"] == "d1"

            dup = await ac.post("/api/auth/register", json={
                "email": "MIXED@example.com", "password": "pw123456",
                "userData": {"user_type": "ngo", "name": "Copycat"},
            })
            assert dup.status_code == 400
            assert fake.tables["ngos"] == []


async def test_create_user_maps_phone_and_drops_unknown_columns(fake, hosted):
    user = await hosted.create_user("donor", {"email": "new@example.com", "name": "New", "phone": "999",
                                              "works_done": "ngo only"})
    stored = fake.tables["donors"][0]
    assert stored["phone_number"] == "999"
    assert "phone" not in stored and "works_done" not in stored
    assert user["phone"] == "999" and user["connected_ngos"] == []


async def test_update_user_patches_right_table(fake, hosted):
    fake.seed("ngos", id="n1", email="ngo@example.com", name="Shelter")
    updated = await hosted.update_user("n1", {"about": "We shelter", "phone": "1"})
    assert updated["about"] == "We shelter" and updated["phone"] == "1"
    assert ("PATCH", "ngos") in _writes(fake)
    assert "updated_at" in fake.tables["ngos"][0]
    assert await hosted.update_user("ghost", {"name": "x"}) is None


async def test_donations_flatten_embeds_and_coerce_numbers(fake, hosted):
    fake.seed("donors", id="d1", email="d@example.com", name="Giver")
    fake.seed("ngos", id="n1", email="n@example.com", name="Shelter")
    fake.seed("donations", id="x1", donor_id="d1", ngo_id="n1", donation_type="money",
              amount="250.00", status="completed", delivery_date="2024-02-01T10:00:00+00:00")

    donation = await hosted.find_donation_by_id("x1")
    assert donation["amount"] == 250.0
    assert donation["donor_name"] == "Giver" and donation["ngo_name"] == "Shelter"
    assert donation["delivery_date"].tzinfo is not None
    assert "donor" not in donation

    created = await hosted.create_donation({"donor_id": "d1", "ngo_id": "n1", "donation_type": "food",
                                            "quantity": "4", "unit": "kg"})
    assert created["status"] == "pending" and created["quantity"] == 4.0
    assert [d["id"] for d in await hosted.list_donations(ngo_id="n1")] == [created["id"], "x1"]
    assert [d["id"] for d in await hosted.list_donations(status="completed", limit=5)] == ["x1"]


async def test_requirements_carry_ngo_details(fake, hosted):
    fake.seed("ngos", id="n1", email="n@example.com", name="Shelter", city="Pune", website="https://s.org")
    req = await hosted.create_requirement({"ngo_id": "n1", "title": "Blankets", "amount_needed": "800"})
    assert req["ngo_name"] == "Shelter" and req["city"] == "Pune" and req["website"] == "https://s.org"
    assert req["amount_needed"] == 800.0 and req["status"] == "active"

    assert await hosted.delete_requirement(req["id"]) is True
    assert await hosted.delete_requirement(req["id"]) is False


async def test_link_writes_donor_then_ngo_then_link_row(fake, hosted):
    fake.seed("donors", id="d1", email="d@example.com", connected_ngos=[])
    fake.seed("ngos", id="n1", email="n@example.com", connected_donors=None)

    await hosted.link_donor_ngo("d1", "n1")
    assert _writes(fake) == [("PATCH", "donors"), ("PATCH", "ngos"), ("POST", "donor_ngo_links")]
    assert fake.tables["donors"][0]["connected_ngos"] == ["n1"]
    assert fake.tables["ngos"][0]["connected_donors"] == ["d1"]

    fake.calls.clear()
    await hosted.link_donor_ngo("d1", "n1")
    assert _writes(fake) == [("POST", "donor_ngo_links")]
    assert len(fake.tables["donor_ngo_links"]) == 1

    assert [u["id"] for u in await hosted.list_connected_donors("n1")] == ["d1"]

    await hosted.unlink_donor_ngo("d1", "n1")
    assert fake.tables["donors"][0]["connected_ngos"] == []
    assert fake.tables["ngos"][0]["connected_donors"] == []
    assert fake.tables["donor_ngo_links"] == []
    assert await hosted.list_connected_ngos("d1") == []


async def test_notifications_unread_bookkeeping(fake, hosted):
    created = await hosted.create_notifications([
        {"user_id": "u1", "title": "a", "message": "m", "type": "general"},
        {"user_id": "u1", "title": "b", "message": "m", "type": "general"},
    ])
    assert len(created) == 2 and all(n["read"] is False for n in created)
    assert await hosted.create_notifications([]) == []
    assert await hosted.count_unread_notifications("u1") == 2

    assert await hosted.mark_notifications_read("u1", [created[0]["id"]]) == 1
    assert await hosted.mark_notifications_read("u1", []) == 0
    assert [n["title"] for n in await hosted.list_notifications("u1", unread_only=True)] == ["b"]
    assert await hosted.mark_notifications_read("u1") == 1
    assert await hosted.count_unread_notifications("u1") == 0


async def test_error_status_becomes_backend_error(fake, hosted):
    fake.fail.add("donations")
    with pytest.raises(BackendError) as err:
        await hosted.list_donations()
    assert err.value.message == "Hosted database request failed"


async def test_unreachable_host_becomes_backend_error():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    repo = SupabaseRepo("https://charity.supabase.co", "k", transport=httpx.MockTransport(refuse))
    with pytest.raises(BackendError) as err:
        await repo.find_user_by_id("x")
    assert err.value.message == "Hosted database unreachable"
    await repo.shutdown()


async def test_connection_check_records_failure_without_raising(fake, hosted):
    fake.fail.add("donors")
    await hosted.check_connection()
    assert hosted.status["connected"] is False
    assert hosted.status["error"] == "Hosted database request failed"

    fake.fail.clear()
    await hosted.check_connection()
    assert hosted.status == {"connected": True, "error": None}


async def test_non_json_reply_is_a_backend_error(fake, hosted):
    fake.garbage.add("donations")
    with pytest.raises(BackendError) as err:
        await hosted.list_donations()
    assert err.value.message == "Hosted database returned an invalid response"


async def test_connection_check_records_non_json_reply(fake, hosted):
    fake.garbage.add("donors")
    await hosted.check_connection()
    assert hosted.status == {"connected": False, "error": "Hosted database returned an invalid response"}


async def test_db_status_reports_failed_startup_check(settings, fake):
    fake.garbage.add("donors")
    repo = SupabaseRepo("https://charity.supabase.co", "k", transport=httpx.MockTransport(fake))
    app = create_app(settings.model_copy(update={"db_mode": "supabase"}), repository=repo)
    async with LifespanManager(app):
        # let the background check finish
        await repo._check_task
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            body = (await ac.get("/api/db-status")).json()
    assert body["supabase"]["connected"] is False
    assert body["supabase"]["error"] == "Hosted database returned an invalid response"


async def test_ngo_cannot_donate_through_hosted_backend(settings, fake):
    repo = SupabaseRepo("https://charity.supabase.co", "k", transport=httpx.MockTransport(fake))
    cfg = settings.model_copy(update={"db_mode": "supabase", "supabase_url": "https://charity.supabase.co",
                                      "supabase_anon_key": "k"})
    app = create_app(cfg, repository=repo)
    async with LifespanManager(app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            reg = await ac.post("/api/auth/register", json={
                "email": "ngo@shelter.org", "password": "pw123456",
                "userData": {"user_type": "ngo", "name": "Shelter"},
            })
            assert reg.status_code == 201, reg.text
            assert fake.tables["ngos"][0]["email"] == "ngo@shelter.org"

            headers = {"Authorization": f"Bearer {reg.json()['token']}"}
            r = await ac.post("/api/donations", json={"ngo_id": reg.json()["user"]["id"],
                                                      "donation_type": "money", "amount": 100},
                              headers=headers)
            assert r.status_code == 403
            assert r.json() == {"error": "Only donors can create donations"}
            assert fake.tables["donations"] == []

            status = await ac.get("/api/db-status")
            assert status.json()["mode"] == "supabase"
