# app/crud/gadgets.py
from __future__ import annotations

import random
from datetime import datetime, timezone

from sqlalchemy import desc, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.codenames import generate_codename
from ..core.errors import InvalidState, NotFound, StorageError
from ..core.gadget_status import (
    STATUS_ACTIVE,
    STATUS_CHOICES,
    STATUS_DECOMMISSIONED,
    can_transition,
    is_retired,
)
from ..models.gadget import Gadget

# The codename word lists only yield 64 combinations; after this many clashes a
# numeric suffix is appended so creation always terminates.
PLAIN_CODENAME_ATTEMPTS = 16


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def list_gadgets(db: Session, status: str | None = None) -> list[Gadget]:
    """
    Return gadgets newest first, optionally filtered by lifecycle status.
    """
    if status is not None and status not in STATUS_CHOICES:
        raise ValueError(f"Invalid status. Must be one of: {', '.join(STATUS_CHOICES)}")
    stmt = select(Gadget)
    if status is not None:
        stmt = stmt.where(Gadget.status == status)
    stmt = stmt.order_by(desc(Gadget.created_at))
    return list(db.execute(stmt).scalars().all())


def get_gadget(db: Session, gadget_id: str) -> Gadget | None:
    return db.get(Gadget, gadget_id)


def _codename_taken(db: Session, codename: str) -> bool:
    stmt = select(Gadget.id).where(Gadget.codename == codename)
    return db.execute(stmt).scalars().first() is not None


def _unique_codename(db: Session, rng: random.Random | None = None) -> str:
    attempt = 0
    while True:
        candidate = generate_codename(rng)
        if attempt >= PLAIN_CODENAME_ATTEMPTS:
            chooser = rng or random
            candidate = f"{candidate} {chooser.randint(2, 999)}"
        if not _codename_taken(db, candidate):
            return candidate
        attempt += 1


def create_gadget(db: Session, payload: dict, rng: random.Random | None = None) -> Gadget:
    """
    Create and persist a gadget with a freshly generated, unique codename.
    """
    data = {key: value.strip() if isinstance(value, str) else value for key, value in payload.items()}
    obj = Gadget(
        name=data["name"],
        description=data["description"],
        codename=_unique_codename(db, rng),
    )
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj


def update_gadget(db: Session, gadget: Gadget, payload: dict) -> Gadget:
    """
    Apply a partial update. Status changes must follow the one-way lifecycle;
    retiring a gadget stamps ``decommissioned_at``.
    """
    for key in ("name", "description"):
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            setattr(gadget, key, value.strip())

    target = payload.get("status")
    if target is not None and target != gadget.status:
        if not can_transition(gadget.status, target):
            raise InvalidState(f"Cannot change status from {gadget.status} to {target}")
        gadget.status = target
        if is_retired(target):
            gadget.decommissioned_at = _utcnow()

    db.commit()
    db.refresh(gadget)
    return gadget


def decommission_gadget(db: Session, gadget: Gadget) -> Gadget:
    if is_retired(gadget.status):
        raise InvalidState(f"Gadget is already {gadget.status}")
    gadget.status = STATUS_DECOMMISSIONED
    gadget.decommissioned_at = _utcnow()
    db.commit()
    db.refresh(gadget)
    return gadget


class GadgetStore:
    """Gadget persistence as seen by the self-destruct workflow."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def find_by_id(self, gadget_id: str) -> Gadget | None:
        return get_gadget(self.session, gadget_id)

    def update_status_and_timestamp(self, gadget_id: str, status: str, timestamp: datetime) -> Gadget:
        """Move an Active gadget to ``status``.

        The write is guarded on ``status == Active`` in the UPDATE itself, so a
        decommission committed by another session after the caller read the
        row is never overwritten. That case raises ``InvalidState``.
        """
        try:
            result = self.session.execute(
                update(Gadget)
                .where(Gadget.id == gadget_id, Gadget.status == STATUS_ACTIVE)
                .values(status=status, decommissioned_at=timestamp)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                self.session.rollback()
                current = self.session.get(Gadget, gadget_id)
                if current is None:
                    raise NotFound("Gadget not found")
                raise InvalidState(f"Cannot self-destruct a {current.status.lower()} gadget")
            self.session.commit()
            gadget = self.session.get(Gadget, gadget_id)
            self.session.refresh(gadget)
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageError("Failed to persist gadget status") from exc
        return gadget
