import os
import secrets
from functools import lru_cache
from pathlib import Path
from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from src.api.auth_utils import decode_access_token
from src.app_shell.context import ServiceContext, default_db_path, default_rules_path
from src.core.entities import Actor
from src.rules.loader import load_rules
from src.rules.models import Rules
from src.services.newsletter import NewsletterService


# --- Settings ---
class Settings:
    def __init__(self) -> None:
        self.base_dir = Path(os.getcwd())
        self.db_path = default_db_path()
        self.rules_path = default_rules_path()


@lru_cache
def get_settings() -> Settings:
    return Settings()


# --- Rules ---
@lru_cache
def get_rules() -> Rules:
    return load_rules(get_settings().rules_path)


# --- Context ---
_ctx_instance: ServiceContext | None = None


def get_ctx() -> ServiceContext:
    """Get the service context singleton."""
    global _ctx_instance
    if _ctx_instance is None:
        _ctx_instance = ServiceContext.create(get_settings().db_path, get_rules())
    return _ctx_instance


def get_newsletter_service(ctx: ServiceContext = Depends(get_ctx)) -> NewsletterService:
    return ctx.newsletter_service


# --- Auth ---
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token", auto_error=False)

ADMIN_ROLES = ("admin", "creator")


async def get_current_actor(
    request: Request,
    token: Annotated[str | None, Depends(oauth2_scheme)],
) -> Actor:
    # 1. Try Cookie first (HttpOnly)
    cookie_token = request.cookies.get("access_token")
    if cookie_token and cookie_token.startswith("Bearer "):
        token = cookie_token.split(" ")[1]

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # 2. Decode
    payload = decode_access_token(token)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    subject = payload.get("sub")
    role = payload.get("role", "creator")
    if not isinstance(subject, str):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )
    try:
        user_id = UUID(subject)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        ) from None

    # 3. Role gate
    if role not in ADMIN_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient role",
        )

    return Actor(user_id=user_id, role=role)


def require_cron_secret(request: Request, rules: Rules = Depends(get_rules)) -> None:
    """Shared-secret check for scheduler calls (`Authorization: Bearer <secret>`)."""
    expected = os.environ.get(rules.ops.cron_secret_env)
    header = request.headers.get("authorization", "")
    provided = header[len("Bearer ") :] if header.startswith("Bearer ") else ""
    if not expected or not secrets.compare_digest(provided.encode(), expected.encode()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


def get_client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None
