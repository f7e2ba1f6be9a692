# house_of_charity/repos/tables.py
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    MetaData,
    PrimaryKeyConstraint,
    String,
    Table,
    Text,
)

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("email", String(255), nullable=False, unique=True, index=True),
    Column("password_hash", String(255)),
    Column("user_type", String(10), nullable=False, index=True),
    Column("name", String(255)),
    Column("phone", String(50)),
    Column("address", Text),
    Column("city", String(100)),
    Column("state", String(100)),
    Column("country", String(100)),
    Column("pincode", String(20)),
    Column("description", Text),
    Column("website", String(255)),
    Column("logo_url", String(500)),
    Column("verified", Boolean, nullable=False, default=False),
    # ngo-only narrative
    Column("works_done", Text),
    Column("awards_received", Text),
    Column("about", Text),
    Column("gallery", Text),
    Column("current_requirements", Text),
    Column("future_plans", Text),
    Column("awards_and_recognition", Text),
    Column("recent_activities", Text),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

donor_ngo_links = Table(
    "donor_ngo_links",
    metadata,
    Column("donor_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("ngo_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    PrimaryKeyConstraint("donor_id", "ngo_id"),
)

donations = Table(
    "donations",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("donor_id", String(36), ForeignKey("users.id"), nullable=False, index=True),
    Column("ngo_id", String(36), ForeignKey("users.id"), nullable=False, index=True),
    Column("donation_type", String(30), nullable=False, default="money"),
    Column("amount", Float),
    Column("currency", String(10)),
    Column("payment_method", String(50)),
    Column("transaction_id", String(100)),
    Column("quantity", Float),
    Column("unit", String(50)),
    Column("essential_type", String(100)),
    Column("message", Text),
    Column("anonymous", Boolean, nullable=False, default=False),
    Column("delivery_date", DateTime(timezone=True)),
    Column("status", String(20), nullable=False, default="pending", index=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

requirements = Table(
    "requirements",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("ngo_id", String(36), ForeignKey("users.id"), nullable=False, index=True),
    Column("title", String(255), nullable=False),
    Column("description", Text),
    Column("category", String(100), index=True),
    Column("request_type", String(50)),
    Column("amount_needed", Float),
    Column("currency", String(10)),
    Column("priority", String(10), nullable=False, default="medium"),
    Column("status", String(30), nullable=False, default="active", index=True),
    Column("deadline", DateTime(timezone=True)),
    Column("quantity", Float),
    Column("unit", String(50)),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

notifications = Table(
    "notifications",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("user_id", String(36), nullable=False, index=True),
    Column("account_type", String(10)),
    Column("title", String(255), nullable=False),
    Column("message", Text, nullable=False),
    Column("type", String(20), nullable=False, default="general"),
    Column("related_id", String(36)),
    Column("related_type", String(30)),
    Column("meta", JSON),
    Column("read", Boolean, nullable=False, default=False, index=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
)
