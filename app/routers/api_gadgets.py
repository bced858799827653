"""Beginner-friendly overview for this module.

WHAT: HTTP endpoints for gadget inventory and the self-destruct sequence.
WHEN: Mounted under ``/api/gadgets`` by the application factory.
WHY: Keeps request parsing and permission checks apart from the lifecycle
rules in ``app.crud.gadgets`` and ``app.services.self_destruct``.
HOW: Every route requires a bearer token; destructive routes also require the
ADMIN role. Domain errors bubble up and are rendered by the error handlers.

File: app/routers/api_gadgets.py
"""


from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..core.errors import NotFound
from ..core.logging import log_event
from ..core.security import ROLE_ADMIN
from ..crud.gadgets import create_gadget, decommission_gadget, get_gadget, list_gadgets, update_gadget
from ..db.session import get_db
from ..deps.auth import AuthContext, require_role, require_user
from ..deps.services import get_workflow
from ..models.gadget import Gadget
from ..schemas.gadget import GadgetCreate, GadgetMessage, GadgetOut, GadgetUpdate
from ..schemas.self_destruct import SelfDestructCompleted, SelfDestructConfirm, SelfDestructInitiated
from ..services.self_destruct import SelfDestructWorkflow

router = APIRouter(prefix="/api/gadgets", tags=["gadgets"], dependencies=[Depends(require_user)])
logger = logging.getLogger("app.gadgets")

require_admin = require_role(ROLE_ADMIN)


def _lookup_gadget(db: Session, gadget_id: str) -> Gadget:
    gadget = get_gadget(db, gadget_id)
    if gadget is None:
        raise NotFound("Gadget not found")
    return gadget


@router.get("", response_model=list[GadgetOut])
def api_list(status: str | None = None, db: Session = Depends(get_db)):
    try:
        return list_gadgets(db, status=status)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.post("", response_model=GadgetOut, status_code=201)
def api_create(payload: GadgetCreate, db: Session = Depends(get_db)):
    gadget = create_gadget(db, payload.model_dump())
    log_event(logger, "gadget.created", gadget_id=gadget.id, codename=gadget.codename)
    return gadget


@router.patch("/{gadget_id}", response_model=GadgetOut)
def api_update(gadget_id: str, payload: GadgetUpdate, db: Session = Depends(get_db)):
    gadget = _lookup_gadget(db, gadget_id)
    data = payload.model_dump(exclude_none=True)
    if not data:
        return gadget
    return update_gadget(db, gadget, data)


@router.delete("/{gadget_id}", response_model=GadgetMessage)
def api_decommission(
    gadget_id: str,
    db: Session = Depends(get_db),
    user: AuthContext = Depends(require_admin),
):
    gadget = _lookup_gadget(db, gadget_id)
    decommission_gadget(db, gadget)
    log_event(logger, "gadget.decommissioned", gadget_id=gadget.id, by=user.user_id)
    return GadgetMessage(message="Gadget decommissioned successfully")


@router.post(
    "/{gadget_id}/self-destruct",
    response_model=SelfDestructInitiated,
    dependencies=[Depends(require_admin)],
    summary="Arm the self-destruct sequence and receive a one-time confirmation code",
)
def api_initiate_self_destruct(
    gadget_id: str,
    workflow: SelfDestructWorkflow = Depends(get_workflow),
):
    challenge = workflow.initiate(gadget_id)
    return SelfDestructInitiated(
        confirmation_code=challenge.code,
        expires_at=challenge.expires_at,
        expires_in=int(workflow.ttl.total_seconds()),
    )


@router.post(
    "/{gadget_id}/self-destruct/confirm",
    response_model=SelfDestructCompleted,
    dependencies=[Depends(require_admin)],
    summary="Confirm the self-destruct sequence with the issued code",
)
def api_confirm_self_destruct(
    gadget_id: str,
    payload: SelfDestructConfirm,
    workflow: SelfDestructWorkflow = Depends(get_workflow),
):
    gadget = workflow.confirm(gadget_id, payload.confirmation_code)
    return SelfDestructCompleted(gadget=GadgetOut.model_validate(gadget))
