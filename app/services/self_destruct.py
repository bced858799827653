"""Two-phase self-destruct protocol for gadgets.

``initiate`` arms a gadget by issuing a one-time confirmation code, and
``confirm`` destroys it when that code is echoed back before it expires and
before the attempt budget runs out. Every failure is a ``GadgetError``
subclass so the HTTP layer can render it without special cases.
"""

from __future__ import annotations

import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Protocol

from ..core.errors import (
    BadRequest,
    Conflict,
    Expired,
    InvalidCode,
    InvalidState,
    NoPendingSequence,
    NotFound,
    StorageError,
    TooManyAttempts,
)
from ..core.gadget_status import STATUS_DESTROYED, is_retired
from ..core.logging import log_event
from ..models.gadget import Gadget
from .confirmations import Clock, ConfirmationRegistry

logger = logging.getLogger("app.self_destruct")

CHALLENGE_TTL = timedelta(minutes=5)
MAX_ATTEMPTS = 3
CODE_BYTES = 4

TokenSource = Callable[[int], bytes]


class GadgetStoreProtocol(Protocol):
    def find_by_id(self, gadget_id: str) -> Gadget | None: ...

    def update_status_and_timestamp(self, gadget_id: str, status: str, timestamp: datetime) -> Gadget: ...


@dataclass(frozen=True)
class InitiatedChallenge:
    code: str
    expires_at: datetime


class SelfDestructWorkflow:
    def __init__(
        self,
        registry: ConfirmationRegistry,
        store: GadgetStoreProtocol,
        *,
        clock: Clock | None = None,
        token_bytes: TokenSource = secrets.token_bytes,
        ttl: timedelta = CHALLENGE_TTL,
        max_attempts: int = MAX_ATTEMPTS,
    ) -> None:
        self.registry = registry
        self.store = store
        self.clock = clock or registry.clock
        self.token_bytes = token_bytes
        self.ttl = ttl
        self.max_attempts = max_attempts

    def _generate_code(self) -> str:
        return self.token_bytes(CODE_BYTES).hex().upper()

    def _require_gadget(self, gadget_id: str) -> Gadget:
        gadget = self.store.find_by_id(gadget_id)
        if gadget is None:
            raise NotFound("Gadget not found")
        return gadget

    def initiate(self, gadget_id: str) -> InitiatedChallenge:
        with self.registry.lock_for(gadget_id):
            gadget = self._require_gadget(gadget_id)
            if is_retired(gadget.status):
                raise InvalidState(f"Cannot self-destruct a {gadget.status.lower()} gadget")

            now = self.clock()
            existing = self.registry.get(gadget_id)
            if existing is not None and not existing.is_expired(now):
                raise Conflict(
                    "Self-destruct sequence already in progress",
                    details={
                        "expires_at": existing.expires_at.isoformat(),
                        "remaining_attempts": self.max_attempts - existing.attempts,
                    },
                )

            self.registry.create(gadget_id, self._generate_code(), self.ttl, now=now)
            challenge = self.registry.get(gadget_id)
            log_event(
                logger,
                "self_destruct.initiated",
                gadget_id=gadget_id,
                expires_at=challenge.expires_at.isoformat(),
            )
            return InitiatedChallenge(code=challenge.code, expires_at=challenge.expires_at)

    def confirm(self, gadget_id: str, supplied_code: object) -> Gadget:
        # JSON bodies can carry any type here; only a string can be a code.
        if supplied_code is not None and not isinstance(supplied_code, str):
            raise BadRequest("Confirmation code must be a string")
        normalized = (supplied_code or "").strip().upper()
        if not normalized:
            raise BadRequest("Confirmation code is required")

        with self.registry.lock_for(gadget_id):
            gadget = self._require_gadget(gadget_id)

            challenge = self.registry.get(gadget_id)
            if challenge is None:
                raise NoPendingSequence("No pending self-destruct sequence found")

            if is_retired(gadget.status):
                # Retired through another path after the sequence was armed.
                self.registry.delete(gadget_id)
                raise InvalidState(f"Cannot self-destruct a {gadget.status.lower()} gadget")

            now = self.clock()
            if challenge.is_expired(now):
                self.registry.delete(gadget_id)
                log_event(logger, "self_destruct.expired", gadget_id=gadget_id)
                raise Expired("Confirmation code has expired")

            matches = hmac.compare_digest(normalized.encode("utf-8"), challenge.code.encode("utf-8"))

            # The attempt is spent before the code is trusted: the final attempt
            # aborts the sequence even when it carries the right code.
            attempts = self.registry.increment_attempts(gadget_id)
            if attempts is None:
                raise NoPendingSequence("No pending self-destruct sequence found")
            if attempts >= self.max_attempts:
                self.registry.delete(gadget_id)
                log_event(logger, "self_destruct.aborted", gadget_id=gadget_id, attempts=attempts)
                raise TooManyAttempts("Too many failed attempts. Self-destruct sequence aborted")

            if not matches:
                remaining = self.max_attempts - attempts
                log_event(logger, "self_destruct.rejected", gadget_id=gadget_id, remaining_attempts=remaining)
                raise InvalidCode("Invalid confirmation code", details={"remaining_attempts": remaining})

            try:
                destroyed = self.store.update_status_and_timestamp(gadget_id, STATUS_DESTROYED, now)
            except StorageError:
                # Nothing was written, so the attempt does not count and the code stays valid.
                self.registry.restore_attempt(gadget_id)
                log_event(logger, "self_destruct.persist_failed", level=logging.WARNING, gadget_id=gadget_id)
                raise
            except (InvalidState, NotFound):
                # Retired or removed by another writer between the read above and the update.
                self.registry.delete(gadget_id)
                raise
            self.registry.delete(gadget_id)
            log_event(logger, "self_destruct.confirmed", gadget_id=gadget_id)
            return destroyed
