from house_of_charity.core.exceptions import AuthorizationError


def ensure_party(donation: dict, user_id: str, message: str = "Access denied"):
    if user_id not in (donation.get("donor_id"), donation.get("ngo_id")):
        raise AuthorizationError(message)


def ensure_owner(resource_owner_id, user_id, message: str = "Access denied"):
    if resource_owner_id != user_id:
        raise AuthorizationError(message)


def ensure_user_type(user: dict, user_type: str, message: str):
    if not user or user.get("user_type") != user_type:
        raise AuthorizationError(message)
