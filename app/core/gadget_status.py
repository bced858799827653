"""Shared gadget lifecycle constants and helpers."""

STATUS_ACTIVE = "Active"
STATUS_DECOMMISSIONED = "Decommissioned"
STATUS_DESTROYED = "Destroyed"

STATUS_CHOICES = (
    STATUS_ACTIVE,
    STATUS_DECOMMISSIONED,
    STATUS_DESTROYED,
)

# Retired gadgets never return to service.
RETIRED_STATUSES = {
    STATUS_DECOMMISSIONED,
    STATUS_DESTROYED,
}


def is_retired(status: str | None) -> bool:
    return status in RETIRED_STATUSES


def can_transition(current: str, target: str) -> bool:
    """Return True when ``current`` may move to ``target``.

    Only Active gadgets change status, and only into a retired state. Setting a
    status to the value it already has is treated as a no-op and allowed.
    """

    if current == target:
        return True
    return current == STATUS_ACTIVE and target in RETIRED_STATUSES


__all__ = [
    "RETIRED_STATUSES",
    "STATUS_ACTIVE",
    "STATUS_CHOICES",
    "STATUS_DECOMMISSIONED",
    "STATUS_DESTROYED",
    "can_transition",
    "is_retired",
]
