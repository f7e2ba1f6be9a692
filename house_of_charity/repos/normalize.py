# house_of_charity/repos/normalize.py
"""
Backend-agnostic record shapes.

Every repository hands rows through these helpers before returning them, so
services see the same keys and Python types whether the row came from the
in-memory fixtures, SQLAlchemy, or PostgREST JSON (where numerics may arrive
as strings and timestamps as ISO text).
"""
from decimal import Decimal
from typing import Any, Dict, List, Optional

from house_of_charity.utils.dates import as_utc

PROFILE_FIELDS = [
    "name", "phone", "address", "city", "state", "country", "pincode",
    "description", "website", "logo_url",
]

NGO_DETAIL_FIELDS = [
    "works_done", "awards_received", "about", "gallery", "current_requirements",
    "future_plans", "awards_and_recognition", "recent_activities",
]

DONATION_FIELDS = [
    "donor_id", "ngo_id", "donation_type", "amount", "currency",
    "payment_method", "transaction_id", "quantity", "unit", "essential_type",
    "message", "anonymous", "delivery_date", "status",
]

# read-time join columns
DONATION_JOIN_FIELDS = ["donor_name", "donor_email", "ngo_name", "ngo_email"]

REQUIREMENT_FIELDS = [
    "ngo_id", "title", "description", "category", "request_type",
    "amount_needed", "currency", "priority", "status", "deadline",
    "quantity", "unit",
]

REQUIREMENT_JOIN_FIELDS = ["ngo_name", "ngo_description", "city", "state", "website"]

NOTIFICATION_FIELDS = [
    "user_id", "account_type", "title", "message", "type",
    "related_id", "related_type", "meta", "read",
]


def to_number(v) -> Optional[float]:
    """Coerce loosely-typed numerics (str, Decimal, int) to float."""
    if v is None or v == "":
        return None
    if isinstance(v, bool):
        return float(v)
    if isinstance(v, (int, float, Decimal)):
        return float(v)
    try:
        return float(str(v).strip())
    except ValueError:
        return None


def _id_list(v) -> List[str]:
    if not isinstance(v, (list, tuple)):
        return []
    return [str(x) for x in v if x]


def normalize_user(row: Dict[str, Any], user_type: Optional[str] = None) -> Dict[str, Any]:
    user_type = user_type or row.get("user_type")
    out = {
        "id": str(row["id"]),
        "email": row.get("email"),
        "password_hash": row.get("password_hash"),
        "user_type": user_type,
    }
    for f in PROFILE_FIELDS:
        out[f] = row.get(f)
    out["verified"] = bool(row.get("verified") or False)
    if user_type == "ngo":
        for f in NGO_DETAIL_FIELDS:
            out[f] = row.get(f)
        out["connected_donors"] = _id_list(row.get("connected_donors"))
    else:
        out["connected_ngos"] = _id_list(row.get("connected_ngos"))
    out["created_at"] = as_utc(row.get("created_at"))
    out["updated_at"] = as_utc(row.get("updated_at"))
    return out


def sanitize_user(user: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Strip credential material before a user record leaves the API."""
    if not user:
        return None
    return {k: v for k, v in user.items() if k not in ("password_hash", "password")}


def normalize_donation(row: Dict[str, Any]) -> Dict[str, Any]:
    out = {"id": str(row["id"])}
    for f in DONATION_FIELDS + DONATION_JOIN_FIELDS:
        out[f] = row.get(f)
    out["amount"] = to_number(row.get("amount"))
    out["quantity"] = to_number(row.get("quantity"))
    out["anonymous"] = bool(row.get("anonymous") or False)
    out["delivery_date"] = as_utc(row.get("delivery_date"))
    out["created_at"] = as_utc(row.get("created_at"))
    out["updated_at"] = as_utc(row.get("updated_at"))
    return out


def normalize_requirement(row: Dict[str, Any]) -> Dict[str, Any]:
    out = {"id": str(row["id"])}
    for f in REQUIREMENT_FIELDS + REQUIREMENT_JOIN_FIELDS:
        out[f] = row.get(f)
    out["amount_needed"] = to_number(row.get("amount_needed"))
    out["quantity"] = to_number(row.get("quantity"))
    out["deadline"] = as_utc(row.get("deadline"))
    out["created_at"] = as_utc(row.get("created_at"))
    out["updated_at"] = as_utc(row.get("updated_at"))
    return out


def normalize_notification(row: Dict[str, Any]) -> Dict[str, Any]:
    out = {"id": str(row["id"])}
    for f in NOTIFICATION_FIELDS:
        out[f] = row.get(f)
    out["meta"] = row.get("meta") or {}
    out["read"] = bool(row.get("read") or False)
    out["created_at"] = as_utc(row.get("created_at"))
    return out
