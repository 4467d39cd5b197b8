"""Shared FastAPI dependencies: record store, caller identity, client IP."""

from typing import Annotated

from fastapi import Depends, Request, Security
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.exceptions import AuthError
from app.services.record_store import RecordStore, SqlRecordStore

# Identity is asserted by the upstream auth gateway
owner_header = APIKeyHeader(name="X-Racker-User", auto_error=False)


async def get_record_store(db: AsyncSession = Depends(get_db)) -> RecordStore:
    """One SQL-backed store per request."""
    return SqlRecordStore(db, timeout_seconds=settings.store_query_timeout_seconds)


async def require_owner(
    owner_id: Annotated[str | None, Security(owner_header)] = None,
) -> str:
    """Return the authenticated owner id.

    Raises:
        AuthError: 401 if the identity header is missing or blank
    """
    if not owner_id or not owner_id.strip():
        raise AuthError()
    return owner_id.strip()


def client_ip(request: Request) -> str | None:
    """Origin IP from proxy headers; None when it cannot be determined."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.headers.get("x-real-ip") or request.headers.get("cf-connecting-ip")


StoreDep = Annotated[RecordStore, Depends(get_record_store)]
OwnerDep = Annotated[str, Depends(require_owner)]
