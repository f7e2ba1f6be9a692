# house_of_charity/security.py
from datetime import timedelta
from typing import Any, Dict, Optional

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from house_of_charity.core.config import Settings, get_settings
from house_of_charity.core.exceptions import InvalidTokenError
from house_of_charity.utils.dates import utcnow

pwd_ctx = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(p: str) -> str:
    return pwd_ctx.hash(p)


def verify_password(p: str, h: str) -> bool:
    try:
        return pwd_ctx.verify(p, h)
    except (ValueError, TypeError):
        # unknown / corrupt hash format
        return False


def create_token(user: Dict[str, Any], settings: Optional[Settings] = None) -> str:
    settings = settings or get_settings()
    now = utcnow()
    payload = {
        "sub": user["id"],
        "email": user.get("email"),
        "user_type": user.get("user_type"),
        "iat": now,
        "exp": now + timedelta(hours=settings.token_ttl_hours),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_alg)


def decode_token(token: str, settings: Optional[Settings] = None) -> Dict[str, Any]:
    settings = settings or get_settings()
    try:
        data = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_alg])
    except ExpiredSignatureError:
        raise InvalidTokenError("Token expired")
    except JWTError:
        raise InvalidTokenError()
    if not data.get("sub"):
        raise InvalidTokenError()
    return data
