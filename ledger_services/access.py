"""
ledger_services.access -- Role gating for snapshot mutations.

Responsibility:
    Resolve the acting user into an Actor with a coarse role (administrator
    or read-only viewer) and decide whether that actor may perform a
    mutation.  Computations never consult the role; only mutations are
    gated.

Architecture position:
    Services layer.  Called by OperationsLedger before every mutation.

Invariants:
    - Identity is supplied by the caller; this module does not authenticate.
    - Admin membership is a case-insensitive username match.
    - Every mutation name is in MUTATION_ACTIONS; an unknown action is
      denied for everyone.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from ledger_kernel.domain.snapshot import username_key
from ledger_kernel.exceptions import PermissionDeniedError
from ledger_kernel.logging_config import get_logger

logger = get_logger("services.access")


class Role(str, Enum):
    ADMIN = "admin"
    VIEWER = "viewer"


# Mutations exposed by OperationsLedger
MUTATION_ACTIONS: frozenset[str] = frozenset({
    "add_hub",
    "save_customer",
    "remove_customer",
    "set_price",
    "receive_consignment",
    "remove_consignment",
    "record_sale",
    "remove_sale",
    "record_payment",
    "remove_payment",
    "record_return",
    "remove_return",
})


@dataclass(frozen=True)
class Actor:
    """The acting user and the role they act under."""

    user_id: str
    role: Role = Role.VIEWER

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


def resolve_actor(user_id: str | None, admin_usernames: Iterable[str]) -> Actor:
    """Admin iff ``user_id`` appears in ``admin_usernames`` (case-insensitive)."""
    name = (user_id or "").strip()
    admins = {username_key(a) for a in admin_usernames if a}
    role = Role.ADMIN if name and username_key(name) in admins else Role.VIEWER
    return Actor(user_id=name, role=role)


def check_mutation_allowed(actor: Actor, action: str) -> tuple[bool, str]:
    """Check whether ``actor`` may perform ``action``.

    Returns:
        (allowed, reason).  reason is empty when allowed, or a short message
        when denied.
    """
    if action not in MUTATION_ACTIONS:
        return (False, f"unknown mutation '{action}'")
    if not actor.user_id:
        return (False, "no authenticated user")
    if not actor.is_admin:
        return (False, f"role '{actor.role.value}' is read-only")
    return (True, "")


def require_admin(actor: Actor, action: str) -> None:
    """Raise PermissionDeniedError unless ``actor`` may perform ``action``."""
    allowed, reason = check_mutation_allowed(actor, action)
    if not allowed:
        logger.warning("mutation_denied", extra={
            "actor_id": actor.user_id or None,
            "action": action,
            "reason": reason,
        })
        raise PermissionDeniedError(actor.user_id or None, action, reason)
