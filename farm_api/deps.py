"""Request-scoped dependencies: session, tenant, actor and posting services."""

from __future__ import annotations

from typing import Generator

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from farm_config import get_active_config
from farm_kernel.db.engine import get_session
from farm_kernel.domain.clock import Clock, SystemClock
from farm_kernel.domain.policy import PostingPolicy
from farm_kernel.exceptions import PostingValidationError
from farm_kernel.logging_config import get_logger
from farm_services import DocumentPoster

logger = get_logger("api.deps")


class MissingTenantError(PostingValidationError):
    """Request carried no tenant header."""

    code: str = "TENANT_REQUIRED"

    def __init__(self):
        super().__init__("The X-Tenant-Id header is required")


def get_db() -> Generator[Session, None, None]:
    """
    One session per request.

    Routes commit explicitly once the posting succeeded; anything raised
    rolls the request's work back.
    """
    session = get_session()
    try:
        yield session
    except Exception:
        session.rollback()
        logger.warning("request_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def get_tenant_id(x_tenant_id: str | None = Header(default=None)) -> str:
    if not x_tenant_id or not x_tenant_id.strip():
        raise MissingTenantError()
    return x_tenant_id.strip()


def get_actor_id(x_user_id: str | None = Header(default=None)) -> str | None:
    return x_user_id


def get_policy() -> PostingPolicy:
    return get_active_config().policy


def get_clock() -> Clock:
    return SystemClock()


def get_poster(
    db: Session = Depends(get_db),
    policy: PostingPolicy = Depends(get_policy),
    clock: Clock = Depends(get_clock),
) -> DocumentPoster:
    return DocumentPoster(db, policy, clock)
