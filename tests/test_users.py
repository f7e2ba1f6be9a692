# tests/test_users.py
import pytest

pytestmark = pytest.mark.anyio


async def test_public_ngo_directory(client):
    r = await client.get("/api/users/ngos")
    assert r.status_code == 200
    ngos = r.json()["ngos"]
    assert {n["id"] for n in ngos} == {"ngo-1", "ngo-2"}
    assert all("password_hash" not in n for n in ngos)


async def test_profile_is_self_only(client, login):
    headers = await login("donor@example.com")
    r = await client.get("/api/users/donor-1", headers=headers)
    assert r.status_code == 200
    assert r.json()["user"]["email"] == "donor@example.com"
    assert "password_hash" not in r.json()["user"]

    assert (await client.get("/api/users/donor-2", headers=headers)).status_code == 403


async def test_update_profile_applies_allow_list(client, login):
    headers = await login("donor@example.com")
    r = await client.put("/api/users/donor-1", json={
        "name": "Jane Q. Doe", "city": "Dallas", "email": "hijack@example.com", "user_type": "ngo",
    }, headers=headers)
    assert r.status_code == 200, r.text
    user = r.json()["user"]
    assert user["name"] == "Jane Q. Doe"
    assert user["city"] == "Dallas"
    assert user["email"] == "donor@example.com"
    assert user["user_type"] == "donor"


async def test_update_profile_rejects_empty_and_foreign(client, login):
    headers = await login("donor@example.com")
    r = await client.put("/api/users/donor-1", json={"about": "donors have no about"}, headers=headers)
    assert r.status_code == 400
    assert r.json() == {"error": "No valid fields to update"}

    r = await client.put("/api/users/donor-2", json={"name": "x"}, headers=headers)
    assert r.status_code == 403

    r = await client.put("/api/users/donor-1", json={"name": 42}, headers=headers)
    assert r.status_code == 400


async def test_ngo_requirements_update_notifies_connected_donors(client, login, repo):
    await repo.link_donor_ngo("donor-1", "ngo-1")
    await repo.link_donor_ngo("donor-2", "ngo-1")
    headers = await login("ngo@example.com")

    text = "Winter blankets and warm socks for 200 children. " * 4
    r = await client.put("/api/users/ngo-1", json={"current_requirements": text, "about": "Since 1919"},
                         headers=headers)
    assert r.status_code == 200, r.text
    assert r.json()["user"]["about"] == "Since 1919"

    for donor_id in ("donor-1", "donor-2"):
        notes = await repo.list_notifications(donor_id)
        assert len(notes) == 1
        assert notes[0]["title"] == "NGO updated their current requirements"
        assert notes[0]["message"].startswith("Save the Children shared new requirements: Winter blankets")
        assert notes[0]["message"].endswith("...")
        assert notes[0]["related_type"] == "ngo"

    # same text again is not news
    await client.put("/api/users/ngo-1", json={"current_requirements": text}, headers=headers)
    assert len(await repo.list_notifications("donor-1")) == 1


async def test_donor_stats(client, login):
    headers = await login("donor@example.com")
    r = await client.get("/api/users/donor-1/stats", headers=headers)
    stats = r.json()["stats"]
    assert stats["total_donations"] == 2
    assert stats["total_amount"] == 5000
    assert stats["average_amount"] == 2500
    assert stats["completed_donations"] == 2


async def test_ngo_stats_count_completed_donations_and_open_requirements(client, login, repo):
    repo.requirements["req-1"]["status"] = "partially_fulfilled"
    headers = await login("donor@example.com")
    r = await client.get("/api/users/ngo-1/stats", headers=headers)
    stats = r.json()["stats"]
    assert stats["total_donations_received"] == 1
    assert stats["total_amount_received"] == 5000
    assert stats["average_donation"] == 5000
    assert stats["total_requirements"] == 1
    assert stats["active_requirements"] == 1
    assert stats["fulfilled_requirements"] == 0


async def test_stats_for_unknown_user_is_404(client, login):
    headers = await login("donor@example.com")
    assert (await client.get("/api/users/ghost/stats", headers=headers)).status_code == 404
