"""Tests for settings validation, log redaction and request context in logs."""

import io
import json
import logging

import pytest

from casegate.core.config import ConfigurationError, Settings
from casegate.core.logging_config import _SecretFilter, build_handler, user_id_var

from tests.conftest import bearer


class TestProductionConfig:

    def test_defaults_block_production(self):
        cfg = Settings(environment="production", cors_allowed_origins="https://app.bufete.ec")
        with pytest.raises(ConfigurationError) as exc:
            cfg.validate_production_config()
        assert "JWT_SECRET_KEY" in str(exc.value)

    def test_same_secret_for_both_tokens_is_rejected(self):
        cfg = Settings(
            environment="production",
            cors_allowed_origins="https://app.bufete.ec",
            jwt_secret_key="a" * 64,
            jwt_refresh_secret_key="a" * 64,
            temporary_password="Sitio#Propio1",
        )
        with pytest.raises(ConfigurationError):
            cfg.validate_production_config()

    def test_secure_production_config_passes(self):
        cfg = Settings(
            environment="production",
            cors_allowed_origins="https://app.bufete.ec",
            jwt_secret_key="a" * 64,
            jwt_refresh_secret_key="b" * 64,
            temporary_password="Sitio#Propio1",
        )
        cfg.validate_production_config()

    def test_development_only_warns(self):
        Settings(environment="development").validate_production_config()

    def test_only_hs256(self):
        with pytest.raises(ValueError):
            Settings(jwt_algorithm="none")

    def test_wildcard_cors_rejected(self):
        with pytest.raises(ValueError):
            Settings(cors_allowed_origins="*").get_cors_origins()


class TestSecretFilter:

    def _filtered(self, msg, *args) -> str:
        record = logging.LogRecord("t", logging.INFO, __file__, 1, msg, args, None)
        _SecretFilter().filter(record)
        return record.getMessage()

    def test_bearer_token_redacted(self):
        out = self._filtered("header was Bearer abcdefghijklmnopqrstuvwxyz0123")
        assert "abcdefghijklmnop" not in out
        assert "REDACTED" in out

    def test_jwt_in_args_redacted(self):
        out = self._filtered("token %s", "eyJhbGciOi.eyJpZCI6MX0.c2lnbmF0dXJl")
        assert "eyJhbGciOi" not in out

    def test_password_field_redacted(self):
        out = self._filtered("payload password=Secreto123!")
        assert "Secreto123!" not in out

    def test_plain_message_untouched(self):
        assert self._filtered("GET /health 200") == "GET /health 200"


class TestContextInLogs:

    def _capture(self):
        stream = io.StringIO()
        handler = build_handler("json", stream=stream)
        return stream, handler

    def test_user_id_is_stamped_from_context(self):
        stream, handler = self._capture()
        log = logging.getLogger("casegate.test_context")
        log.addHandler(handler)
        token = user_id_var.set("7")
        try:
            log.warning("inside a request")
        finally:
            user_id_var.reset(token)
            log.removeHandler(handler)
        entry = json.loads(stream.getvalue().splitlines()[-1])
        assert entry["user_id"] == "7"
        assert "path" not in entry

    def test_access_log_carries_authenticated_user(self, client, db, collaborator, clock):
        stream, handler = self._capture()
        root = logging.getLogger()
        root.addHandler(handler)
        try:
            resp = client.get("/api/auth/verify", headers=bearer(db, collaborator, clock))
        finally:
            root.removeHandler(handler)
        assert resp.status_code == 200

        entries = [json.loads(line) for line in stream.getvalue().splitlines()]
        access = [e for e in entries if e["message"] == "GET /api/auth/verify 200"]
        assert access
        assert access[-1]["user_id"] == collaborator.id
        assert access[-1]["request_id"] == resp.headers["x-request-id"]

    def test_anonymous_request_has_no_user(self, client):
        stream, handler = self._capture()
        root = logging.getLogger()
        root.addHandler(handler)
        try:
            client.get("/health")
        finally:
            root.removeHandler(handler)
        entries = [json.loads(line) for line in stream.getvalue().splitlines()]
        access = [e for e in entries if e["message"] == "GET /health 200"]
        assert access
        assert "user_id" not in access[-1]
