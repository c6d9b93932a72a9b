"""Permission checking: one ordered resolver chain.

This is the ONE place where access rules for jurisdictions (collections) and
person records (items) are defined. Route guards describe the request; this
module decides.

Chain, evaluated in order, first non-Defer verdict wins:

    admin_override          ADMIN role            -> Allow (no grant lookups)
    collection_grant_check  jurisdiction grant    -> Deny unless can_view;
                                                     resolves collection-scoped
                                                     requests, Defers item ones
    ownership_check         creator of the item   -> Allow
    item_grant_check        person grant flag     -> Allow / Deny

A chain that runs out of steps denies.

Rules for collection-scoped requests (no item id):
    - create an item inside a jurisdiction: can_view is enough
    - view the jurisdiction:                can_view
    - edit the jurisdiction:                can_edit
    - delete the jurisdiction:              ADMIN only
    - create a jurisdiction (no id at all): ADMIN only
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol, Sequence

from ..exceptions import ForbiddenError

logger = logging.getLogger(__name__)


class Action(str, Enum):
    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"


class VerdictKind(str, Enum):
    ALLOW = "allow"
    DENY = "deny"
    DEFER = "defer"


@dataclass(frozen=True)
class Verdict:
    kind: VerdictKind
    step: str = ""
    reason: str = ""

    @property
    def allowed(self) -> bool:
        return self.kind == VerdictKind.ALLOW


def allow(step: str, reason: str = "") -> Verdict:
    return Verdict(VerdictKind.ALLOW, step, reason)


def deny(step: str, reason: str) -> Verdict:
    return Verdict(VerdictKind.DENY, step, reason)


DEFER = Verdict(VerdictKind.DEFER)


class Actor(Protocol):
    user_id: int
    role: str


class GrantFlags(Protocol):
    can_view: bool
    can_create: bool
    can_edit: bool


class GrantStore(Protocol):
    def find_collection_grant(self, user_id: int, jurisdiction_id: int) -> Optional[GrantFlags]: ...

    def find_item_grant(self, user_id: int, person_id: int) -> Optional[GrantFlags]: ...


@dataclass(frozen=True)
class AccessRequest:
    """What the caller wants to do.

    ``collection_id`` is None only when creating a new jurisdiction.
    ``item_id`` is None for collection-scoped requests.
    """
    action: Action
    collection_id: Optional[int] = None
    item_id: Optional[int] = None
    item_creator_id: Optional[int] = None

    @property
    def is_item_scoped(self) -> bool:
        return self.item_id is not None


Resolver = Callable[[Actor, AccessRequest, GrantStore], Verdict]


# ---------------------------------------------------------------------------
# Resolver steps
# ---------------------------------------------------------------------------

def admin_override(actor: Actor, request: AccessRequest, store: GrantStore) -> Verdict:
    if actor.role == "ADMIN":
        return allow("admin_override", "administrator")
    return DEFER


def collection_grant_check(actor: Actor, request: AccessRequest, store: GrantStore) -> Verdict:
    step = "collection_grant_check"
    if request.collection_id is None:
        return deny(step, "Only administrators can create jurisdictions")

    grant = store.find_collection_grant(actor.user_id, request.collection_id)
    # can_view on the jurisdiction is a prerequisite for every action inside it.
    if grant is None or not grant.can_view:
        return deny(step, "No access to this jurisdiction")

    if request.is_item_scoped:
        return DEFER

    if request.action in (Action.VIEW, Action.CREATE):
        return allow(step, "jurisdiction view grant")
    if request.action == Action.EDIT:
        if grant.can_edit:
            return allow(step, "jurisdiction edit grant")
        return deny(step, "No edit permission on this jurisdiction")
    return deny(step, "Only administrators can delete jurisdictions")


def ownership_check(actor: Actor, request: AccessRequest, store: GrantStore) -> Verdict:
    if (
        request.is_item_scoped
        and request.action in (Action.VIEW, Action.EDIT, Action.DELETE)
        and request.item_creator_id is not None
        and request.item_creator_id == actor.user_id
    ):
        return allow("ownership_check", "creator")
    return DEFER


def item_grant_check(actor: Actor, request: AccessRequest, store: GrantStore) -> Verdict:
    step = "item_grant_check"
    if not request.is_item_scoped:
        return DEFER

    grant = store.find_item_grant(actor.user_id, request.item_id)
    if grant is None:
        return deny(step, f"No permission to {request.action.value} this person")

    if _item_flag(grant, request.action):
        return allow(step, f"person {request.action.value} grant")
    return deny(step, f"No permission to {request.action.value} this person")


def _item_flag(grant: GrantFlags, action: Action) -> bool:
    if action == Action.VIEW:
        return bool(grant.can_view)
    if action == Action.CREATE:
        return bool(grant.can_create)
    # Deleting a record is an edit of it.
    return bool(grant.can_edit)


DEFAULT_CHAIN: tuple[Resolver, ...] = (
    admin_override,
    collection_grant_check,
    ownership_check,
    item_grant_check,
)


# ---------------------------------------------------------------------------
# Public interface
# ---------------------------------------------------------------------------

def resolve(
    actor: Actor,
    request: AccessRequest,
    store: GrantStore,
    chain: Sequence[Resolver] = DEFAULT_CHAIN,
) -> Verdict:
    """Run *chain* and return the first Allow or Deny. Never raises."""
    for step in chain:
        verdict = step(actor, request, store)
        if verdict.kind != VerdictKind.DEFER:
            return verdict
    return deny("chain_exhausted", "No applicable grant")


def check_permission(actor: Actor, request: AccessRequest, store: GrantStore) -> bool:
    return resolve(actor, request, store).allowed


def authorize(actor: Actor, request: AccessRequest, store: GrantStore) -> Verdict:
    """Like ``resolve`` but raises ForbiddenError on deny.

    Has no side effects besides reading grants; denials are only reported
    to the application log.
    """
    verdict = resolve(actor, request, store)
    if verdict.allowed:
        return verdict

    logger.info(
        "Access denied",
        extra={
            "user_id": actor.user_id,
            "action": request.action.value,
            "jurisdiction_id": request.collection_id,
            "person_id": request.item_id,
            "step": verdict.step,
        },
    )
    raise ForbiddenError(
        verdict.reason,
        details={"action": request.action.value, "step": verdict.step},
    )
