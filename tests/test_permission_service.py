"""Tests for the permission resolution chain, against an in-memory grant store."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from casegate.exceptions import ForbiddenError
from casegate.services.permission_service import (
    DEFER,
    AccessRequest,
    Action,
    VerdictKind,
    admin_override,
    authorize,
    check_permission,
    resolve,
)

ADMIN = SimpleNamespace(user_id=1, role="ADMIN")
ANA = SimpleNamespace(user_id=2, role="COLLABORATOR")

JURISDICTION = 10
PERSON = 100


def _flags(can_view=True, can_create=False, can_edit=False):
    return SimpleNamespace(can_view=can_view, can_create=can_create, can_edit=can_edit)


class FakeStore:
    """Grant store backed by two dicts keyed by (user_id, resource_id)."""

    def __init__(self, collection=None, item=None):
        self.collection = collection or {}
        self.item = item or {}

    def find_collection_grant(self, user_id, jurisdiction_id):
        return self.collection.get((user_id, jurisdiction_id))

    def find_item_grant(self, user_id, person_id):
        return self.item.get((user_id, person_id))


def _on_person(action, creator=None) -> AccessRequest:
    return AccessRequest(action=action, collection_id=JURISDICTION, item_id=PERSON, item_creator_id=creator)


class TestAdminOverride:

    @pytest.mark.parametrize("action", list(Action))
    @pytest.mark.parametrize("request_", [
        AccessRequest(action=Action.CREATE),
        AccessRequest(action=Action.VIEW, collection_id=JURISDICTION),
        AccessRequest(action=Action.EDIT, collection_id=JURISDICTION, item_id=PERSON, item_creator_id=99),
    ])
    def test_admin_never_touches_the_store(self, action, request_):
        store = MagicMock()
        req = AccessRequest(action, request_.collection_id, request_.item_id, request_.item_creator_id)
        assert check_permission(ADMIN, req, store) is True
        assert store.method_calls == []

    def test_non_admin_defers(self):
        assert admin_override(ANA, AccessRequest(Action.VIEW, JURISDICTION), FakeStore()) is DEFER


class TestCollectionTier:

    def test_no_collection_grant_denies_everything(self):
        store = FakeStore(item={(ANA.user_id, PERSON): _flags(can_view=True, can_edit=True)})
        for action in Action:
            assert check_permission(ANA, _on_person(action, creator=ANA.user_id), store) is False

    def test_collection_grant_without_view_denies(self):
        store = FakeStore(collection={(ANA.user_id, JURISDICTION): _flags(can_view=False, can_edit=True)})
        assert check_permission(ANA, AccessRequest(Action.EDIT, JURISDICTION), store) is False

    def test_view_grant_allows_view_and_create_in_collection(self):
        store = FakeStore(collection={(ANA.user_id, JURISDICTION): _flags()})
        assert check_permission(ANA, AccessRequest(Action.VIEW, JURISDICTION), store)
        assert check_permission(ANA, AccessRequest(Action.CREATE, JURISDICTION), store)

    def test_collection_edit_needs_can_edit(self):
        store = FakeStore(collection={(ANA.user_id, JURISDICTION): _flags()})
        assert not check_permission(ANA, AccessRequest(Action.EDIT, JURISDICTION), store)
        store.collection[(ANA.user_id, JURISDICTION)] = _flags(can_edit=True)
        assert check_permission(ANA, AccessRequest(Action.EDIT, JURISDICTION), store)

    def test_only_admins_delete_or_create_collections(self):
        store = FakeStore(collection={(ANA.user_id, JURISDICTION): _flags(True, True, True)})
        assert not check_permission(ANA, AccessRequest(Action.DELETE, JURISDICTION), store)
        assert not check_permission(ANA, AccessRequest(Action.CREATE), store)


class TestItemTier:

    def _store(self, item_flags=None):
        store = FakeStore(collection={(ANA.user_id, JURISDICTION): _flags()})
        if item_flags is not None:
            store.item[(ANA.user_id, PERSON)] = item_flags
        return store

    def test_no_item_grant_denies_view_and_edit(self):
        store = self._store()
        assert not check_permission(ANA, _on_person(Action.VIEW, creator=99), store)
        assert not check_permission(ANA, _on_person(Action.EDIT, creator=99), store)

    def test_item_view_grant_allows_view_not_edit(self):
        store = self._store(_flags(can_view=True))
        assert check_permission(ANA, _on_person(Action.VIEW, creator=99), store)
        verdict = resolve(ANA, _on_person(Action.EDIT, creator=99), store)
        assert verdict.kind == VerdictKind.DENY
        assert verdict.step == "item_grant_check"

    def test_item_edit_grant_allows_edit_and_delete(self):
        store = self._store(_flags(can_view=False, can_edit=True))
        assert check_permission(ANA, _on_person(Action.EDIT), store)
        assert check_permission(ANA, _on_person(Action.DELETE), store)

    def test_creator_needs_no_item_grant(self):
        store = self._store()
        for action in (Action.VIEW, Action.EDIT, Action.DELETE):
            verdict = resolve(ANA, _on_person(action, creator=ANA.user_id), store)
            assert verdict.allowed
            assert verdict.step == "ownership_check"

    def test_creator_still_needs_collection_view(self):
        store = FakeStore()
        assert not check_permission(ANA, _on_person(Action.EDIT, creator=ANA.user_id), store)


class TestAuthorize:

    def test_deny_raises_forbidden_with_step(self):
        with pytest.raises(ForbiddenError) as exc:
            authorize(ANA, AccessRequest(Action.VIEW, JURISDICTION), FakeStore())
        assert exc.value.status_code == 403
        assert exc.value.details == {"action": "view", "step": "collection_grant_check"}

    def test_allow_returns_verdict(self):
        store = FakeStore(collection={(ANA.user_id, JURISDICTION): _flags()})
        verdict = authorize(ANA, AccessRequest(Action.VIEW, JURISDICTION), store)
        assert verdict.allowed

    def test_empty_chain_denies(self):
        verdict = resolve(ADMIN, AccessRequest(Action.VIEW, JURISDICTION), FakeStore(), chain=())
        assert verdict.kind == VerdictKind.DENY
        assert verdict.step == "chain_exhausted"
