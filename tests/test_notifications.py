# tests/test_notifications.py
import logging

import pytest

from house_of_charity.core.exceptions import BackendError
from house_of_charity.repos.inmemory import InMemoryRepo
from house_of_charity.services.notifications import Notifier, truncate_preview

pytestmark = pytest.mark.anyio


class BrokenNotificationsRepo(InMemoryRepo):
    """Everything works except writing notifications."""

    async def create_notifications(self, rows):
        raise BackendError("notifications table is gone", backend="mock")


class BrokenFanoutRepo(InMemoryRepo):
    async def list_connected_donors(self, ngo_id):
        raise BackendError("connections unavailable", backend="mock")


@pytest.fixture
def repo():
    return BrokenNotificationsRepo()


async def test_donation_survives_notification_failure(client, login, repo, caplog):
    headers = await login("donor@example.com")
    with caplog.at_level(logging.ERROR, logger="house_of_charity.services.notifications"):
        r = await client.post("/api/donations", json={
            "ngo_id": "ngo-1", "donation_type": "money", "amount": 75,
        }, headers=headers)

    assert r.status_code == 201, r.text
    donation_id = r.json()["donation"]["id"]
    assert (await repo.find_donation_by_id(donation_id))["status"] == "pending"
    assert any("notify_ngo failed" in rec.getMessage() for rec in caplog.records)


async def test_requirement_survives_fanout_failure(settings):
    repo = BrokenFanoutRepo()
    notifier = Notifier(repo, settings)
    sent = await notifier.requirement_posted({
        "id": "req-x", "ngo_id": "ngo-1", "title": "Chairs", "ngo_name": "Save the Children",
    })
    assert sent == 0


async def test_fanout_builder_can_skip_donors(settings):
    repo = InMemoryRepo()
    await repo.link_donor_ngo("donor-1", "ngo-1")
    await repo.link_donor_ngo("donor-2", "ngo-1")
    notifier = Notifier(repo, settings)

    def only_jane(donor):
        if donor["name"] != "Jane Doe":
            return None
        return {"title": "Hi", "message": "Just you", "type": "general"}

    assert await notifier.notify_connected_donors("ngo-1", only_jane) == 1
    assert len(await repo.list_notifications("donor-1")) == 1
    assert await repo.list_notifications("donor-2") == []


def test_truncate_preview():
    assert truncate_preview(None) == "See their profile for details."
    assert truncate_preview("   ") == "See their profile for details."
    assert truncate_preview(" short ") == "short"
    long = "x" * 130
    out = truncate_preview(long)
    assert len(out) == 120 and out.endswith("...")
    assert truncate_preview("y" * 120) == "y" * 120
