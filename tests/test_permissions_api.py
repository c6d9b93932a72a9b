"""Tests for grant management: service-level audit trail and admin endpoints."""

import json

from casegate.models.grant import JurisdictionGrant
from casegate.models.user import AuditLog
from casegate.services import grant_service

from tests.conftest import bearer, make_jurisdiction, make_person


class TestGrantService:

    def test_upsert_records_before_and_after(self, db, admin, collaborator):
        quito = make_jurisdiction(db)
        grant_service.set_jurisdiction_grant(db, admin.id, collaborator.id, quito.id, can_view=True)
        grant_service.set_jurisdiction_grant(
            db, admin.id, collaborator.id, quito.id, can_view=True, can_edit=True
        )

        assert db.query(JurisdictionGrant).count() == 1
        entries = (
            db.query(AuditLog)
            .filter(AuditLog.action == "GRANT_UPDATED")
            .order_by(AuditLog.id)
            .all()
        )
        assert len(entries) == 2
        first, second = (json.loads(e.details) for e in entries)
        assert first["before"] is None
        assert first["after"] == {"can_view": True, "can_create": False, "can_edit": False}
        assert second["before"] == first["after"]
        assert second["after"]["can_edit"] is True
        assert entries[0].category == "PERMISSION"
        assert entries[0].user_id == admin.id

    def test_person_grant_takes_jurisdiction_from_person(self, db, admin, collaborator):
        quito = make_jurisdiction(db)
        person = make_person(db, quito)
        grant = grant_service.set_person_grant(db, admin.id, collaborator.id, person.id, can_view=True)
        assert grant.jurisdiction_id == quito.id

    def test_revoke_reports_whether_anything_changed(self, db, admin, collaborator):
        quito = make_jurisdiction(db)
        assert grant_service.revoke_jurisdiction_grant(db, admin.id, collaborator.id, quito.id) is False
        grant_service.set_jurisdiction_grant(db, admin.id, collaborator.id, quito.id, can_view=True)
        assert grant_service.revoke_jurisdiction_grant(db, admin.id, collaborator.id, quito.id) is True
        revoked = db.query(AuditLog).filter(AuditLog.action == "GRANT_REVOKED").one()
        assert json.loads(revoked.details)["after"] is None


class TestPermissionRoutes:

    def test_admin_assigns_and_lists_grants(self, client, db, admin, collaborator, clock):
        quito = make_jurisdiction(db)
        person = make_person(db, quito)
        headers = bearer(db, admin, clock)

        resp = client.put(
            f"/api/permissions/users/{collaborator.id}/jurisdictions/{quito.id}",
            json={"canView": True, "canCreate": True},
            headers=headers,
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["canCreate"] is True

        client.put(
            f"/api/permissions/users/{collaborator.id}/persons/{person.id}",
            json={"canView": True, "canEdit": True},
            headers=headers,
        )

        listing = client.get(f"/api/permissions/users/{collaborator.id}", headers=headers).json()["data"]
        assert [g["jurisdictionId"] for g in listing["jurisdictions"]] == [quito.id]
        assert listing["persons"][0]["canEdit"] is True

        single = client.get(
            f"/api/permissions/users/{collaborator.id}/persons/{person.id}", headers=headers
        )
        assert single.json()["data"]["personId"] == person.id

    def test_grant_takes_effect_on_next_request(self, client, db, admin, collaborator, clock):
        quito = make_jurisdiction(db)
        user_headers = bearer(db, collaborator, clock)
        assert client.get(f"/api/jurisdictions/{quito.id}", headers=user_headers).status_code == 403

        client.put(
            f"/api/permissions/users/{collaborator.id}/jurisdictions/{quito.id}",
            json={"canView": True},
            headers=bearer(db, admin, clock),
        )
        assert client.get(f"/api/jurisdictions/{quito.id}", headers=user_headers).status_code == 200

        client.delete(
            f"/api/permissions/users/{collaborator.id}/jurisdictions/{quito.id}",
            headers=bearer(db, admin, clock),
        )
        assert client.get(f"/api/jurisdictions/{quito.id}", headers=user_headers).status_code == 403

    def test_revoking_missing_grant_is_404(self, client, db, admin, collaborator, clock):
        quito = make_jurisdiction(db)
        resp = client.delete(
            f"/api/permissions/users/{collaborator.id}/jurisdictions/{quito.id}",
            headers=bearer(db, admin, clock),
        )
        assert resp.status_code == 404

    def test_unknown_user_is_404(self, client, db, admin, clock):
        quito = make_jurisdiction(db)
        resp = client.put(
            f"/api/permissions/users/999/jurisdictions/{quito.id}",
            json={"canView": True},
            headers=bearer(db, admin, clock),
        )
        assert resp.status_code == 404

    def test_collaborator_cannot_manage_grants(self, client, db, collaborator, clock):
        quito = make_jurisdiction(db)
        resp = client.put(
            f"/api/permissions/users/{collaborator.id}/jurisdictions/{quito.id}",
            json={"canView": True, "canEdit": True},
            headers=bearer(db, collaborator, clock),
        )
        assert resp.status_code == 403


class TestActivityFeed:

    def test_admin_sees_recent_entries(self, client, db, admin, collaborator, clock):
        quito = make_jurisdiction(db)
        grant_service.set_jurisdiction_grant(db, admin.id, collaborator.id, quito.id, can_view=True)
        resp = client.get("/api/activity?category=PERMISSION", headers=bearer(db, admin, clock))
        assert resp.status_code == 200
        entries = resp.json()["data"]
        assert [e["action"] for e in entries] == ["GRANT_UPDATED"]
        assert entries[0]["details"]["jurisdiction_id"] == quito.id

    def test_collaborator_cannot_read_activity(self, client, db, collaborator, clock):
        assert client.get("/api/activity", headers=bearer(db, collaborator, clock)).status_code == 403
