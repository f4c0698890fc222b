"""SQLAlchemy ORM models for the link routing service.

Data Model Layout
=================
::
    links table
    ├─ id (VARCHAR(64) PRIMARY KEY)
    ├─ account_id (VARCHAR(64), INDEXED)
    ├─ name (VARCHAR(255))
    ├─ destinations (JSON NOT NULL)  {"default": url, "<country>": url, ...}
    ├─ created_at (TIMESTAMPTZ, DEFAULT NOW())
    └─ updated_at (TIMESTAMPTZ, DEFAULT NOW())

Key Behaviours
===============
- Rows are written by the link management service; this service only reads.
- destinations must always carry a "default" key; LinkRecord validation
  enforces it when a row is loaded.

Classes:
    Link:  One short link and its per-country destinations.
"""

import datetime

from sqlalchemy import JSON, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from linkrouter.database import Base

__all__ = ["Link"]


class Link(Base):
    __tablename__ = "links"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    account_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    destinations: Mapped[dict[str, str]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<Link(id='{self.id}', account_id='{self.account_id}')>"
