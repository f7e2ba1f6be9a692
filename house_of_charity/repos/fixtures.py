# house_of_charity/repos/fixtures.py
from datetime import timedelta
from functools import lru_cache
from typing import Dict, List

from house_of_charity.security import hash_password
from house_of_charity.utils.dates import utcnow

FIXTURE_PASSWORD = "password123"


@lru_cache(maxsize=1)
def _fixture_hash() -> str:
    # one slow hash shared by every seeded account
    return hash_password(FIXTURE_PASSWORD)


def seed_users() -> List[Dict]:
    now = utcnow()
    pw = _fixture_hash()
    base = {"password_hash": pw, "verified": True, "logo_url": None,
            "created_at": now, "updated_at": now}
    return [
        {
            **base,
            "id": "ngo-1",
            "email": "ngo@example.com",
            "user_type": "ngo",
            "name": "Save the Children",
            "phone": "+1 (555) 123-4567",
            "address": "123 Charity St, New York, NY 10001",
            "city": "New York", "state": "NY", "country": "USA", "pincode": "10001",
            "description": "Working to improve the lives of children through better "
                           "education, health care, and economic opportunities.",
            "website": "https://savethechildren.org",
            "connected_donors": [],
        },
        {
            **base,
            "id": "ngo-2",
            "email": "foodbank@example.com",
            "user_type": "ngo",
            "name": "Food Bank International",
            "phone": "+1 (555) 987-6543",
            "address": "456 Hope Ave, Los Angeles, CA 90210",
            "city": "Los Angeles", "state": "CA", "country": "USA", "pincode": "90210",
            "description": "Providing food assistance to families in need across the country.",
            "website": "https://foodbank.org",
            "connected_donors": [],
        },
        {
            **base,
            "id": "donor-1",
            "email": "donor@example.com",
            "user_type": "donor",
            "name": "Jane Doe",
            "phone": "+1 (555) 222-3344",
            "address": "789 Kindness Blvd, Austin, TX 73301",
            "city": "Austin", "state": "TX", "country": "USA", "pincode": "73301",
            "description": "Passionate about supporting education and child welfare.",
            "website": None,
            "connected_ngos": [],
        },
        {
            **base,
            "id": "donor-2",
            "email": "kindgiver@example.com",
            "user_type": "donor",
            "name": "Kind Giver",
            "phone": "+1 (555) 987-1122",
            "address": "52 Hope Street, Denver, CO 80014",
            "city": "Denver", "state": "CO", "country": "USA", "pincode": "80014",
            "description": "Excited to support NGOs with time and resources.",
            "website": None,
            "connected_ngos": [],
        },
    ]


def seed_donations() -> List[Dict]:
    now = utcnow()
    ts = {"created_at": now, "updated_at": now}
    return [
        {
            **ts,
            "id": "donation-1", "donor_id": "donor-1", "ngo_id": "ngo-1",
            "donation_type": "money", "amount": 5000, "currency": "USD",
            "payment_method": "credit_card", "transaction_id": "TXN123456",
            "quantity": None, "unit": None, "essential_type": None,
            "status": "completed", "message": "Keep up the great work!",
            "anonymous": False, "delivery_date": None,
        },
        {
            **ts,
            "id": "donation-2", "donor_id": "donor-1", "ngo_id": "ngo-2",
            "donation_type": "food", "amount": None, "currency": None,
            "payment_method": None, "transaction_id": None,
            "quantity": 40, "unit": "boxes", "essential_type": None,
            "status": "completed", "message": None,
            "anonymous": True, "delivery_date": now,
        },
        {
            **ts,
            "id": "donation-3", "donor_id": "donor-2", "ngo_id": "ngo-1",
            "donation_type": "daily_essentials", "amount": None, "currency": None,
            "payment_method": None, "transaction_id": None,
            "quantity": 75, "unit": "items", "essential_type": "clothes",
            "status": "pending", "message": "Winter clothes delivery scheduled next week.",
            "anonymous": False, "delivery_date": now + timedelta(days=7),
        },
    ]


def seed_requirements() -> List[Dict]:
    now = utcnow()
    ts = {"created_at": now, "updated_at": now}
    return [
        {
            **ts,
            "id": "req-1", "ngo_id": "ngo-1",
            "title": "School Supplies for 100 Children",
            "description": "Notebooks, backpacks, and stationery for underprivileged students.",
            "category": "education", "request_type": "money",
            "amount_needed": 5000, "currency": "USD",
            "priority": "urgent", "status": "active", "deadline": None,
            "quantity": None, "unit": None,
        },
        {
            **ts,
            "id": "req-2", "ngo_id": "ngo-2",
            "title": "Monthly Food Packages",
            "description": "Food essentials for 50 families for one month.",
            "category": "food", "request_type": "food",
            "amount_needed": 3000, "currency": "USD",
            "priority": "high", "status": "active", "deadline": None,
            "quantity": None, "unit": None,
        },
    ]
