"""Session and authorization gate.

Resolution order for a new session (stops at the first decision):
  1. No access token on the identity          → AuthError, no request made
  2. GET /user resolves the account behind the token; failure is a denial
  3. Email reported by GET /user in the trusted first-party domain → granted
  4. Group membership lookup                  → granted only if both the
     membership and the member are "active"; any failure here is a denial

Sessions last ``session_max_age`` seconds and slide: activity at least
``session_update_age`` seconds after the last renewal pushes the expiry out
again. The CLI keeps the session in a JSON file signed with HMAC-SHA256.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import os
import time
from dataclasses import asdict, dataclass
from pathlib import Path

from mrlens_core.errors import AuthError, UpstreamError
from mrlens_core.gh.entities import User
from mrlens_notify.models import login_event

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE = 2 * 60 * 60
DEFAULT_UPDATE_AGE = 10 * 60


@dataclass(frozen=True)
class ProviderIdentity:
    """What the OAuth provider hands over after sign-in.

    There is no email here: the gate reads it from the code host itself.
    """

    access_token: str | None
    refresh_token: str | None = None
    name: str | None = None


@dataclass
class AuthenticatedSession:
    access_token: str
    refresh_token: str | None
    user_name: str
    user_email: str
    issued_at: float
    expires_at: float
    updated_at: float
    max_age: int = DEFAULT_MAX_AGE
    update_age: int = DEFAULT_UPDATE_AGE

    @classmethod
    def start(
        cls,
        identity: ProviderIdentity,
        user_name: str,
        user_email: str,
        max_age: int = DEFAULT_MAX_AGE,
        update_age: int = DEFAULT_UPDATE_AGE,
        now: float | None = None,
    ) -> AuthenticatedSession:
        now = time.time() if now is None else now
        return cls(
            access_token=identity.access_token or "",
            refresh_token=identity.refresh_token,
            user_name=user_name,
            user_email=user_email,
            issued_at=now,
            expires_at=now + max_age,
            updated_at=now,
            max_age=max_age,
            update_age=update_age,
        )

    def is_expired(self, now: float | None = None) -> bool:
        now = time.time() if now is None else now
        return now >= self.expires_at

    def touch(self, now: float | None = None) -> bool:
        """Slide the expiry forward if the renewal window has elapsed. Returns True when renewed."""
        now = time.time() if now is None else now
        if now - self.updated_at < self.update_age:
            return False
        self.updated_at = now
        self.expires_at = now + self.max_age
        return True


def check_group_membership(client, group_id: int, user_id: int) -> bool:
    """Return True only for an active member of an active membership. Fails closed."""
    try:
        membership = client.get_group_membership(group_id, user_id)
    except UpstreamError as e:
        logger.warning("Group membership check failed for user %s: %s", user_id, e)
        return False
    if not isinstance(membership, dict):
        return False
    logger.debug("Membership of user %s in group %s: %s", user_id, group_id, membership.get("state"))
    return membership.get("state") == "active" and membership.get("membership_state") == "active"


def authorize(identity: ProviderIdentity, client, config: dict, notifier=None, now: float | None = None):
    """Turn a provider identity into an AuthenticatedSession or raise AuthError.

    The email used for the trusted-domain decision is the one the code host
    reports for the token, never one supplied by the caller.
    """
    if not identity.access_token:
        raise AuthError("No access token found. Please log in.")

    try:
        user = User.from_api(client.get_current_user())
    except UpstreamError as e:
        raise AuthError(f"Could not resolve the signed-in user: {e}") from e

    domain = config.get("trusted_email_domain")
    email = user.email or ""
    if not (domain and email.lower().endswith("@" + domain.lower())):
        if not check_group_membership(client, config["org_group_id"], user.id):
            raise AuthError(f"{user.username or user.id} is not an active member of the authorized group.")
    user_name = identity.name or user.name or user.username or email

    if notifier is not None:
        notifier.notify(login_event(user_name, email))

    return AuthenticatedSession.start(
        identity,
        user_name=user_name,
        user_email=email,
        max_age=config.get("session_max_age", DEFAULT_MAX_AGE),
        update_age=config.get("session_update_age", DEFAULT_UPDATE_AGE),
        now=now,
    )


def require_session(session: AuthenticatedSession | None, now: float | None = None) -> AuthenticatedSession:
    """Validate ``session`` before any pipeline or chat call and apply sliding renewal."""
    if session is None:
        raise AuthError("No session found. Please log in.")
    if not session.access_token:
        raise AuthError("Access token not found. Please log in.")
    if session.is_expired(now):
        raise AuthError("Session expired. Please log in again.")
    session.touch(now)
    return session


class SessionStore:
    """Signed JSON file holding at most one session.

    A missing, unreadable, unsigned or tampered file loads as "no session".
    ``clear()`` is the sign-out flow.
    """

    def __init__(self, path: str, secret: str | None):
        self._path = Path(path).expanduser()
        self._secret = secret

    def _sign(self, payload: str) -> str:
        return hmac.new(self._secret.encode(), payload.encode(), hashlib.sha256).hexdigest()

    def save(self, session: AuthenticatedSession) -> None:
        if not self._secret:
            raise AuthError("MRLENS_SESSION_SECRET is not set; cannot store the session.")
        payload = json.dumps(asdict(session), sort_keys=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        # Created 0600 beside the target, then swapped in whole.
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w") as f:
            json.dump({"payload": payload, "signature": self._sign(payload)}, f)
        os.chmod(tmp_path, 0o600)
        os.replace(tmp_path, self._path)

    def load(self) -> AuthenticatedSession | None:
        if not self._secret or not self._path.exists():
            return None
        try:
            envelope = json.loads(self._path.read_text())
            payload = envelope["payload"]
            signature = envelope["signature"]
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning("Ignoring unreadable session file %s: %s", self._path, e)
            return None
        if not isinstance(payload, str) or not isinstance(signature, str):
            return None
        if not hmac.compare_digest(signature, self._sign(payload)):
            logger.warning("Ignoring session file with an invalid signature: %s", self._path)
            return None
        try:
            return AuthenticatedSession(**json.loads(payload))
        except (ValueError, TypeError) as e:
            logger.warning("Ignoring malformed session payload: %s", e)
            return None

    def clear(self) -> None:
        try:
            self._path.unlink()
        except FileNotFoundError:
            pass
