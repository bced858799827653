"""Beginner-friendly overview for this module.

WHAT: Declares the ``Gadget`` table, the asset tracked through its lifecycle.
WHEN: Imported by the app factory so ``Base.metadata`` knows about the table.
WHY: Every inventory and self-destruct operation reads or writes these rows.
HOW: A plain SQLAlchemy declarative model; lifecycle rules live in
``app.core.gadget_status`` and ``app.crud.gadgets``.

File: app/models/gadget.py
"""


from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, String, Text

from ..core.gadget_status import STATUS_ACTIVE
from ..db.session import Base


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class Gadget(Base):
    __tablename__ = "gadgets"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    codename = Column(String(64), nullable=False, unique=True, index=True)
    status = Column(String(20), nullable=False, default=STATUS_ACTIVE, index=True)
    decommissioned_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)
