DONATION_STATES = ["pending", "confirmed", "completed", "failed", "cancelled"]

# no request-again out of these
CLOSED_DONATION_STATES = {"completed", "cancelled"}

DONATION_TYPES = ["money", "food", "daily_essentials", "services"]
DONATION_TYPE_ALIASES = {"essentials": "daily_essentials"}

REQUIREMENT_STATES = ["active", "fulfilled", "cancelled", "partially_fulfilled"]

PRIORITY_RANK = {
    "urgent": 1,
    "high": 2,
    "medium": 3,
    "low": 4,
}
UNKNOWN_PRIORITY_RANK = 5


def normalize_donation_type(value) -> str:
    """Map legacy aliases onto stored type tags; empty means money."""
    t = (value or "money").strip().lower()
    return DONATION_TYPE_ALIASES.get(t, t)


def can_transition(src: str, dst: str) -> bool:
    # Any valid status may follow any other; there is no transition table.
    return dst in DONATION_STATES


def priority_rank(priority) -> int:
    return PRIORITY_RANK.get((priority or "").lower(), UNKNOWN_PRIORITY_RANK)
