"""Authoritative link record lookup backed by PostgreSQL."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from linkrouter.models import Link
from linkrouter.schemas import LinkRecord

__all__ = ["SqlRecordStore"]


class SqlRecordStore:
    """Single-key lookup of routing records.

    Returns validated LinkRecord snapshots rather than ORM objects, so nothing
    downstream can lazily touch the session after the request ends.
    """

    def __init__(self, db: AsyncSession):
        self._db = db

    async def get(self, link_id: str) -> LinkRecord | None:
        result = await self._db.execute(select(Link).where(Link.id == link_id))
        link = result.scalar_one_or_none()
        if link is None:
            return None
        return LinkRecord.model_validate(link)
