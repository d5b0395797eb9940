# Overview: Service-layer operations for sessions; opaque cookie tokens backed by server-side records.

"""
Session Management Service

The client holds a random opaque token in the session cookie; only its
SHA-256 hash is stored. Every authenticated request re-reads the user
from storage, so deactivation and role changes take effect on the next
request rather than at token expiry.

SECURITY FEATURES:
- 32 bytes from secrets.token_hex
- Absolute timeout (SESSION_ABSOLUTE_TIMEOUT_HOURS, default 24)
- Idle timeout (SESSION_IDLE_TIMEOUT_HOURS, default 2)
- Revoked on logout, idle timeout, user or tenant deactivation
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app
from sqlalchemy import and_, or_

from ..context import Identity
from ..extensions import db
from ..models import SessionRecord, Tenant, User
from ..time_utils import utcnow


@dataclass(frozen=True)
class RestoredSession:
    identity: Identity
    session_id: int


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _absolute_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_ABSOLUTE_TIMEOUT_HOURS", 24))


def _idle_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_IDLE_TIMEOUT_HOURS", 2))


def create_session(
    user: User,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionRecord, str]:
    """
    Create a session for an authenticated user.

    Returns (session_record, plaintext_token). Only the hash is persisted.
    """
    plaintext_token = generate_token()
    now = utcnow()

    session = SessionRecord(
        user_id=user.id,
        tenant_id=user.tenant_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + _absolute_timeout(),
        user_agent=(user_agent or "")[:512] or None,
        ip_address=ip_address,
        revoked=False,
    )
    db.session.add(session)
    db.session.commit()
    return session, plaintext_token


def _revoke(session: SessionRecord, reason: str) -> None:
    session.revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason
    db.session.commit()
    current_app.logger.info("Session %s revoked: %s", session.id, reason)


def restore_session(token: str | None) -> RestoredSession | None:
    """
    Restore the identity behind a session token.

    Returns None if the token is unknown, revoked, expired or idle, or if
    the user or the user's tenant is no longer active. The latter cases
    revoke the session. Updates last_used_at on success.
    """
    if not token:
        return None

    session = db.session.query(SessionRecord).filter_by(
        token_hash=hash_token(token),
        revoked=False,
    ).first()
    if session is None:
        return None

    now = utcnow()
    if session.expires_at < now:
        _revoke(session, "Expired")
        return None

    if now - session.last_used_at > _idle_timeout():
        _revoke(session, "Idle timeout")
        return None

    user = db.session.get(User, session.user_id)
    if user is None or not user.active:
        _revoke(session, "User account deactivated")
        return None

    tenant = db.session.get(Tenant, user.tenant_id)
    if tenant is None or not tenant.active:
        _revoke(session, "Tenant deactivated")
        return None

    session.last_used_at = now
    db.session.commit()

    return RestoredSession(identity=Identity.from_user(user), session_id=session.id)


def revoke_session(token: str | None, reason: str = "User logout") -> bool:
    """
    Revoke the session behind a token. Idempotent.

    Returns True if an active session was revoked by this call.
    """
    if not token:
        return False
    session = db.session.query(SessionRecord).filter_by(
        token_hash=hash_token(token),
        revoked=False,
    ).first()
    if session is None:
        return False
    _revoke(session, reason)
    return True


def revoke_all_user_sessions(user_id: int, reason: str = "All sessions revoked") -> int:
    """Revoke every active session for a user. Returns the count revoked."""
    now = utcnow()
    count = db.session.query(SessionRecord).filter_by(
        user_id=user_id,
        revoked=False,
    ).update({
        "revoked": True,
        "revoked_at": now,
        "revoked_reason": reason,
    }, synchronize_session=False)
    db.session.commit()
    return count


def cleanup_expired_sessions(retention_days: int = 7) -> int:
    """
    Delete sessions that expired, or were revoked, more than retention_days
    ago. Returns the count deleted.
    """
    cutoff = utcnow() - timedelta(days=retention_days)
    count = db.session.query(SessionRecord).filter(or_(
        SessionRecord.expires_at < cutoff,
        and_(SessionRecord.revoked.is_(True), SessionRecord.revoked_at < cutoff),
    )).delete(synchronize_session=False)
    db.session.commit()
    return count
