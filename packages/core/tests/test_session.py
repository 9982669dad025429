"""Tests for the authorization gate and session lifecycle."""

import json
import os
from unittest.mock import MagicMock

import pytest

from mrlens_core.errors import AuthError, UpstreamError
from mrlens_core.session import (
    AuthenticatedSession,
    ProviderIdentity,
    SessionStore,
    authorize,
    check_group_membership,
    require_session,
)

CONFIG = {
    "trusted_email_domain": "github.com",
    "org_group_id": 9970,
    "session_max_age": 7200,
    "session_update_age": 600,
}


def _client(user=None, membership=None, membership_error=None):
    client = MagicMock()
    client.get_current_user.return_value = user or {"id": 17, "username": "alice", "name": "Alice"}
    if membership_error is not None:
        client.get_group_membership.side_effect = membership_error
    else:
        client.get_group_membership.return_value = membership
    return client


def _session(now=1000.0):
    return AuthenticatedSession.start(ProviderIdentity("tok", "refresh"), "Alice", "a@x.io", now=now)


class TestAuthorize:
    def test_missing_token_denied_without_request(self):
        client = _client()
        with pytest.raises(AuthError):
            authorize(ProviderIdentity(access_token=None), client, CONFIG)
        client.get_current_user.assert_not_called()

    def test_trusted_domain_skips_membership_check(self):
        client = _client(user={"id": 5, "username": "dev", "email": "dev@github.com"})
        session = authorize(ProviderIdentity("tok", name="Dev"), client, CONFIG, now=0)
        assert session.user_name == "Dev"
        assert session.user_email == "dev@github.com"
        client.get_group_membership.assert_not_called()

    def test_trust_comes_from_the_code_host_email(self):
        # The account behind the token is not in the trusted domain, whatever name is claimed.
        client = _client(
            user={"id": 17, "username": "mallory", "email": "mallory@x.io"},
            membership={"state": "blocked", "membership_state": "active"},
        )
        with pytest.raises(AuthError, match="not an active member"):
            authorize(ProviderIdentity("tok", name="ceo@github.com"), client, CONFIG)
        client.get_current_user.assert_called_once()
        client.get_group_membership.assert_called_once_with(9970, 17)

    def test_trusted_domain_disabled(self):
        client = _client(
            user={"id": 17, "username": "dev", "email": "dev@github.com"},
            membership={"state": "active", "membership_state": "active"},
        )
        authorize(ProviderIdentity("tok"), client, {**CONFIG, "trusted_email_domain": None})
        client.get_group_membership.assert_called_once_with(9970, 17)

    def test_lookalike_domain_is_not_trusted(self):
        client = _client(
            user={"id": 17, "username": "dev", "email": "dev@notgithub.com"},
            membership_error=UpstreamError("404", status=404),
        )
        with pytest.raises(AuthError):
            authorize(ProviderIdentity("tok"), client, CONFIG)

    def test_active_member_granted(self):
        client = _client(membership={"state": "active", "membership_state": "active"})
        session = authorize(ProviderIdentity("tok", "ref"), client, CONFIG, now=100.0)
        assert session.user_name == "Alice"
        assert session.access_token == "tok"
        assert session.refresh_token == "ref"
        assert session.expires_at == 100.0 + 7200

    def test_inactive_membership_denied(self):
        client = _client(membership={"state": "active", "membership_state": "awaiting"})
        with pytest.raises(AuthError, match="not an active member"):
            authorize(ProviderIdentity("tok"), client, CONFIG)

    def test_membership_lookup_failure_denied(self):
        client = _client(membership_error=UpstreamError("GET /groups returned 500", status=500))
        with pytest.raises(AuthError):
            authorize(ProviderIdentity("tok"), client, CONFIG)

    def test_user_lookup_failure_denied(self):
        client = _client()
        client.get_current_user.side_effect = UpstreamError("GET /user returned 401", status=401)
        with pytest.raises(AuthError):
            authorize(ProviderIdentity("tok"), client, CONFIG)
        client.get_group_membership.assert_not_called()

    def test_login_event_sent(self):
        notifier = MagicMock()
        client = _client(user={"id": 5, "username": "dev", "email": "dev@github.com"})
        authorize(ProviderIdentity("tok", name="Dev"), client, CONFIG, notifier=notifier)
        event = notifier.notify.call_args.args[0]
        assert event.kind == "login"
        assert event.user_name == "Dev"
        assert event.user_email == "dev@github.com"


class TestCheckGroupMembership:
    def test_non_dict_response_denied(self):
        assert check_group_membership(_client(membership=None), 1, 2) is False

    def test_both_states_required(self):
        assert check_group_membership(_client(membership={"state": "active"}), 1, 2) is False
        assert (
            check_group_membership(_client(membership={"state": "active", "membership_state": "active"}), 1, 2)
            is True
        )


class TestSessionLifetime:
    def test_require_session_rejects_none(self):
        with pytest.raises(AuthError, match="No session"):
            require_session(None)

    def test_require_session_rejects_missing_token(self):
        session = _session()
        session.access_token = ""
        with pytest.raises(AuthError, match="Access token"):
            require_session(session, now=1001.0)

    def test_expired_session_rejected(self):
        session = _session(now=0.0)
        with pytest.raises(AuthError, match="expired"):
            require_session(session, now=7200.0)

    def test_activity_inside_window_does_not_renew(self):
        session = _session(now=0.0)
        require_session(session, now=599.0)
        assert session.expires_at == 7200.0

    def test_activity_after_window_slides_expiry(self):
        session = _session(now=0.0)
        require_session(session, now=600.0)
        assert session.updated_at == 600.0
        assert session.expires_at == 600.0 + 7200


class TestSessionStore:
    def test_round_trip(self, tmp_path):
        store = SessionStore(str(tmp_path / "session.json"), "secret")
        session = _session()
        store.save(session)
        assert store.load() == session

    def test_file_is_private(self, tmp_path):
        path = tmp_path / "session.json"
        SessionStore(str(path), "secret").save(_session())
        assert path.stat().st_mode & 0o777 == 0o600

    def test_file_is_created_private(self, tmp_path, mocker):
        path = tmp_path / "session.json"
        path.write_text("{}")
        path.chmod(0o644)
        opened = mocker.spy(os, "open")

        SessionStore(str(path), "secret").save(_session())

        # The mode is set when the file is created, not patched up afterwards.
        assert opened.call_args.args[2] == 0o600
        assert path.stat().st_mode & 0o777 == 0o600
        assert not (tmp_path / "session.json.tmp").exists()
        assert SessionStore(str(path), "secret").load() is not None

    def test_missing_file_is_no_session(self, tmp_path):
        assert SessionStore(str(tmp_path / "none.json"), "secret").load() is None

    def test_tampered_payload_rejected(self, tmp_path):
        path = tmp_path / "session.json"
        SessionStore(str(path), "secret").save(_session())
        envelope = json.loads(path.read_text())
        envelope["payload"] = envelope["payload"].replace("Alice", "Mallory")
        path.write_text(json.dumps(envelope))
        assert SessionStore(str(path), "secret").load() is None

    def test_wrong_secret_rejected(self, tmp_path):
        path = tmp_path / "session.json"
        SessionStore(str(path), "secret").save(_session())
        assert SessionStore(str(path), "other").load() is None

    def test_garbage_file_is_no_session(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text("not json")
        assert SessionStore(str(path), "secret").load() is None

    def test_save_requires_secret(self, tmp_path):
        with pytest.raises(AuthError, match="MRLENS_SESSION_SECRET"):
            SessionStore(str(tmp_path / "s.json"), None).save(_session())

    def test_clear_is_idempotent(self, tmp_path):
        store = SessionStore(str(tmp_path / "session.json"), "secret")
        store.save(_session())
        store.clear()
        store.clear()
        assert store.load() is None
