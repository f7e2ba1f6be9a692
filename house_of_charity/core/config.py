from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DbMode = Literal["mock", "sql", "supabase"]


class Settings(BaseSettings):
    environment: str = "development"
    db_mode: DbMode = "mock"

    # relational backend
    database_url: str = "sqlite+aiosqlite:///./house_of_charity.db"
    db_echo: bool = False

    # hosted postgres service (PostgREST)
    supabase_url: Optional[str] = None
    supabase_service_role_key: Optional[str] = None
    supabase_anon_key: Optional[str] = None

    jwt_secret: str = "dev-secret-change-me"
    jwt_alg: str = "HS256"
    token_ttl_hours: int = 24
    allow_passwordless_login: bool = False

    default_currency: str = "INR"
    frontend_url: Optional[str] = None

    log_level: str = "INFO"
    log_json: bool = False

    donation_feed_limit: int = Field(default=50, ge=1)

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @property
    def supabase_key(self) -> Optional[str]:
        return self.supabase_service_role_key or self.supabase_anon_key

    @property
    def async_database_url(self) -> str:
        url = self.database_url
        if url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return url

    @property
    def cors_origins(self) -> List[str]:
        if not self.frontend_url:
            return ["*"]
        return [o.strip() for o in self.frontend_url.split(",") if o.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
