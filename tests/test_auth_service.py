"""Tests for credential checks, token issuance and the admin seed, without HTTP."""

from datetime import datetime, timezone

import pytest

from casegate.core.seeder import seed_admin_user
from casegate.exceptions import InvalidTokenError
from casegate.models.user import AuditLog, User
from casegate.repositories.user_repository import UserRepository
from casegate.services import auth_service, token_service
from casegate.services.auth_service import CredentialOutcome

from tests.conftest import PASSWORD, make_user

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class TestVerifyCredentials:

    def test_ok(self, db, collaborator):
        result = auth_service.verify_credentials(db, "COLABORADOR@bufete.ec", PASSWORD)
        assert result.ok
        assert result.user.id == collaborator.id

    def test_disabled_wins_over_password(self, db):
        make_user(db, email="baja@bufete.ec", is_active=False)
        assert auth_service.verify_credentials(db, "baja@bufete.ec", PASSWORD).outcome == CredentialOutcome.DISABLED
        assert auth_service.verify_credentials(db, "baja@bufete.ec", "x").outcome == CredentialOutcome.DISABLED

    def test_not_found_is_not_audited(self, db):
        result = auth_service.verify_credentials(db, "nadie@bufete.ec", PASSWORD)
        assert result.outcome == CredentialOutcome.NOT_FOUND
        assert db.query(AuditLog).count() == 0

    def test_corrupt_hash_never_matches(self, db, collaborator):
        collaborator.password_hash = "not-bcrypt"
        db.commit()
        assert auth_service.verify_credentials(db, collaborator.email, PASSWORD).outcome == CredentialOutcome.BAD_PASSWORD


class TestPasswordStrength:

    def test_strong_password_passes(self):
        assert auth_service.validate_password_strength("Segura#2026") == []

    @pytest.mark.parametrize("password", ["Ab1$", "segura#2026", "SEGURA#2026", "Segura#abcd", "Segura2026"])
    def test_each_rule_is_enforced(self, password):
        assert len(auth_service.validate_password_strength(password)) == 1


class TestTokenIssuance:

    def test_issue_does_not_bump_version(self, db):
        user = make_user(db, email="tres@bufete.ec", token_version=3)
        pair = token_service.issue_tokens(db, user, NOW)
        assert pair.token_version == 3
        assert UserRepository(db).current_token_version(user.id) == 3

    def test_login_bumps_then_issues(self, db, collaborator):
        pair = token_service.login(db, collaborator, NOW)
        assert pair.token_version == 1
        db.refresh(collaborator)
        assert collaborator.last_login is not None

    def test_refresh_matches_current_version(self, db, collaborator):
        pair = token_service.issue_tokens(db, collaborator, NOW)
        access, user = token_service.refresh_access_token(db, pair.refresh_token, NOW)
        assert user.id == collaborator.id
        assert access

    def test_refresh_after_increment_fails(self, db, collaborator):
        pair = token_service.issue_tokens(db, collaborator, NOW)
        UserRepository(db).increment_token_version(collaborator.id)
        with pytest.raises(InvalidTokenError):
            token_service.refresh_access_token(db, pair.refresh_token, NOW)


class TestSeedAdmin:

    def test_seed_creates_ready_admin_once(self, db):
        assert seed_admin_user(db, email="Root@Bufete.ec", password="Raiz#2026") is True
        assert seed_admin_user(db, email="root@bufete.ec", password="otra") is False

        admin = db.query(User).filter(User.email == "root@bufete.ec").one()
        assert admin.role == "ADMIN"
        assert admin.is_first_login is False
        assert admin.is_profile_completed is True
        assert auth_service.check_password("Raiz#2026", admin.password_hash)

    def test_seed_skipped_without_credentials(self, db):
        assert seed_admin_user(db, email="", password="") is False
        assert db.query(User).count() == 0
