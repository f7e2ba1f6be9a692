# house_of_charity/services/auth.py
import logging
from typing import Optional

from starlette.concurrency import run_in_threadpool

from house_of_charity.core.config import Settings
from house_of_charity.core.exceptions import (
    ConflictError,
    InvalidCredentialsError,
    NotFoundError,
)
from house_of_charity.repos.base import Repository
from house_of_charity.repos.normalize import sanitize_user
from house_of_charity.schemas import RegisterIn
from house_of_charity.security import create_token, decode_token, hash_password, verify_password

logger = logging.getLogger(__name__)

# narrative fields an NGO may fill in at sign-up
NGO_SIGNUP_FIELDS = ("works_done", "awards_received")


class AuthService:
    def __init__(self, repo: Repository, settings: Settings):
        self.repo = repo
        self.settings = settings

    def _session(self, user: dict, message: str) -> dict:
        return {
            "message": message,
            "token": create_token(user, self.settings),
            "user": sanitize_user(user),
        }

    async def register(self, body: RegisterIn) -> dict:
        email = body.email.strip().lower()
        if await self.repo.find_user_by_email(email):
            raise ConflictError()

        # hashing is CPU-bound; keep it off the event loop
        hashed = await run_in_threadpool(hash_password, body.password)
        skip = {"user_type"} if body.user_data.user_type == "ngo" else {"user_type", *NGO_SIGNUP_FIELDS}
        profile = body.user_data.model_dump(exclude=skip)
        user = await self.repo.create_user(
            body.user_data.user_type,
            {**profile, "email": email, "password_hash": hashed},
        )
        logger.info("Registered %s account %s", user["user_type"], user["id"])
        return self._session(user, "User registered successfully")

    async def login(self, email: str, password: Optional[str]) -> dict:
        user = await self.repo.find_user_by_email((email or "").strip().lower())
        if not user:
            raise InvalidCredentialsError()

        stored = user.get("password_hash")
        if not stored:
            if not self.settings.allow_passwordless_login:
                logger.warning("Rejected login for account %s with no password set", user["id"])
                raise InvalidCredentialsError()
            logger.warning("Passwordless login accepted for account %s", user["id"])
        elif not await run_in_threadpool(verify_password, password or "", stored):
            raise InvalidCredentialsError()

        return self._session(user, "Login successful")

    async def resolve(self, token: str) -> dict:
        """Token -> stored user (with hash). Raises InvalidTokenError / NotFoundError."""
        claims = decode_token(token, self.settings)
        user = await self.repo.find_user_by_id(claims["sub"])
        if not user:
            raise NotFoundError("User not found")
        return user

    async def verify(self, token: str) -> dict:
        return {"user": sanitize_user(await self.resolve(token))}
