# tests/test_inbox.py
import pytest

pytestmark = pytest.mark.anyio


async def _seed(repo, user_id="donor-1", n=3):
    return await repo.create_notifications([
        {"user_id": user_id, "account_type": "donor", "title": f"n{i}", "message": "m", "type": "general"}
        for i in range(n)
    ])


async def test_list_requires_auth(client):
    assert (await client.get("/api/notifications")).status_code == 401


async def test_list_and_unread_count(client, login, repo):
    await _seed(repo)
    await _seed(repo, user_id="donor-2", n=2)
    headers = await login("donor@example.com")

    r = await client.get("/api/notifications", headers=headers)
    body = r.json()
    assert len(body["notifications"]) == 3
    assert body["unreadCount"] == 3
    assert [n["title"] for n in body["notifications"]] == ["n2", "n1", "n0"]

    r = await client.get("/api/notifications", params={"limit": 1}, headers=headers)
    assert len(r.json()["notifications"]) == 1
    # the count is over all unread rows, not the page
    assert r.json()["unreadCount"] == 3


async def test_mark_selected_then_all(client, login, repo):
    created = await _seed(repo)
    headers = await login("donor@example.com")

    r = await client.post("/api/notifications/mark-read", json={"ids": [created[0]["id"]]}, headers=headers)
    assert r.json() == {"updated": 1, "unreadCount": 2}

    unread = await client.get("/api/notifications", params={"unreadOnly": "true"}, headers=headers)
    assert {n["id"] for n in unread.json()["notifications"]} == {created[1]["id"], created[2]["id"]}

    r = await client.post("/api/notifications/mark-read", headers=headers)
    assert r.json() == {"updated": 2, "unreadCount": 0}


async def test_mark_read_ignores_other_users_rows(client, login, repo):
    theirs = await _seed(repo, user_id="donor-2", n=1)
    headers = await login("donor@example.com")
    r = await client.post("/api/notifications/mark-read", json={"ids": [theirs[0]["id"]]}, headers=headers)
    assert r.json()["updated"] == 0
    assert await repo.count_unread_notifications("donor-2") == 1


async def test_mark_read_with_empty_list_updates_nothing(client, login, repo):
    await _seed(repo, n=2)
    headers = await login("donor@example.com")
    r = await client.post("/api/notifications/mark-read", json={"ids": []}, headers=headers)
    assert r.json() == {"updated": 0, "unreadCount": 2}
