"""Dependencies that hand request handlers the process-wide services.

The application factory stores the shared ``ConfirmationRegistry`` and related
settings on ``app.state``; each request gets a workflow bound to its own
database session.
"""


from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from ..crud.gadgets import GadgetStore
from ..db.session import get_db
from ..services.self_destruct import SelfDestructWorkflow


def get_workflow(request: Request, db: Session = Depends(get_db)) -> SelfDestructWorkflow:
    state = request.app.state
    return SelfDestructWorkflow(
        state.confirmations,
        GadgetStore(db),
        clock=state.clock,
        token_bytes=state.token_bytes,
        ttl=state.challenge_ttl,
        max_attempts=state.max_attempts,
    )
