# house_of_charity/deps.py
import logging
from typing import Optional

from fastapi import Depends, Header, Request

from house_of_charity.core.config import Settings
from house_of_charity.core.exceptions import AuthenticationError
from house_of_charity.repos.base import Repository
from house_of_charity.services.auth import AuthService
from house_of_charity.services.connections import ConnectionService
from house_of_charity.services.donations import DonationService
from house_of_charity.services.notifications import Notifier
from house_of_charity.services.requirements import RequirementService
from house_of_charity.services.users import UserService

logger = logging.getLogger(__name__)


def build_repository(settings: Settings) -> Repository:
    """Pick the storage backend once per process from DB_MODE."""
    if settings.db_mode == "supabase":
        from house_of_charity.repos.supabase import SupabaseRepo

        if not settings.supabase_url or not settings.supabase_key:
            raise ValueError("DB_MODE=supabase needs SUPABASE_URL and a service-role or anon key")
        repo: Repository = SupabaseRepo(settings.supabase_url, settings.supabase_key)
    elif settings.db_mode == "sql":
        from house_of_charity.repos.sql import SqlRepo

        repo = SqlRepo(settings.async_database_url, echo=settings.db_echo)
    else:
        from house_of_charity.repos.inmemory import InMemoryRepo

        repo = InMemoryRepo()
    logger.info("Using %s storage backend", repo.mode)
    return repo


# ---------- app-scoped singletons ----------
def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_repo(request: Request) -> Repository:
    return request.app.state.repo


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


# ---------- services ----------
def get_auth_service(repo=Depends(get_repo), settings=Depends(get_settings)) -> AuthService:
    return AuthService(repo, settings)


def get_donation_service(
    repo=Depends(get_repo), notifier=Depends(get_notifier), settings=Depends(get_settings)
) -> DonationService:
    return DonationService(repo, notifier, settings)


def get_requirement_service(
    repo=Depends(get_repo), notifier=Depends(get_notifier), settings=Depends(get_settings)
) -> RequirementService:
    return RequirementService(repo, notifier, settings)


def get_connection_service(repo=Depends(get_repo), notifier=Depends(get_notifier)) -> ConnectionService:
    return ConnectionService(repo, notifier)


def get_user_service(repo=Depends(get_repo), notifier=Depends(get_notifier)) -> UserService:
    return UserService(repo, notifier)


# ---------- auth ----------
def bearer_token(authorization: Optional[str] = Header(default=None)) -> str:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise AuthenticationError()
    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise AuthenticationError()
    return token


async def get_current_user(
    request: Request,
    token: str = Depends(bearer_token),
    auth: AuthService = Depends(get_auth_service),
) -> dict:
    user = await auth.resolve(token)
    # picked up by the request-log middleware
    request.state.user_id = user["id"]
    return user
