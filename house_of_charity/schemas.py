from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

UserType = Literal["donor", "ngo"]

# --------------------------
# Auth
# --------------------------
class RegisterUserData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    user_type: UserType
    name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    pincode: Optional[str] = None
    description: Optional[str] = None
    website: Optional[str] = None
    logo_url: Optional[str] = None
    verified: bool = False
    # ngo accounts only
    works_done: Optional[str] = None
    awards_received: Optional[str] = None


class RegisterIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: EmailStr
    password: str = Field(min_length=6)
    user_data: RegisterUserData = Field(alias="userData")


class LoginIn(BaseModel):
    email: EmailStr
    password: str = ""


# --------------------------
# Donations
# --------------------------
class DonationIn(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    ngo_id: str
    donation_type: Optional[str] = None
    amount: Optional[float] = None
    currency: Optional[str] = None
    payment_method: Optional[str] = None
    transaction_id: Optional[str] = None
    quantity: Optional[float] = None
    unit: Optional[str] = None
    essential_type: Optional[str] = None
    message: Optional[str] = None
    anonymous: bool = False
    delivery_date: Optional[datetime] = None
    status: Optional[str] = None


class StatusIn(BaseModel):
    status: str


class RequestAgainIn(BaseModel):
    new_delivery_date: Optional[datetime] = None


# --------------------------
# Requirements
# --------------------------
class RequirementIn(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    request_type: Optional[str] = None
    amount_needed: Optional[float] = None
    currency: Optional[str] = None
    priority: Optional[str] = None
    status: Optional[str] = None
    deadline: Optional[datetime] = None
    quantity: Optional[float] = None
    unit: Optional[str] = None


class RequirementUpdate(RequirementIn):
    """Same fields; only the ones actually sent are applied."""


# --------------------------
# Connections / notifications
# --------------------------
class ConnectionIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    donor_id: Optional[str] = Field(default=None, alias="donorId")
    ngo_id: Optional[str] = Field(default=None, alias="ngoId")


class MarkReadIn(BaseModel):
    ids: Optional[List[str]] = None
