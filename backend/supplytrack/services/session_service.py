# Overview: Identity collaborator; resolves bearer tokens to the acting identity.

"""
Session Token Validation

The lifecycle engine only needs ``{id, role}`` for the caller. This module
turns a bearer token into that Actor by looking up the SHA-256 hash of the
token in session_tokens.

Tokens are issued by the identity provider. ``issue_token`` exists for the
developer CLI and the test-suite; it is not exposed over HTTP.
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..domain import Actor, Role
from ..extensions import db
from ..models import SessionToken, User
from ..time_utils import utcnow


@dataclass
class SessionContext:
    user: User
    session: SessionToken
    actor: Actor


def hash_token(token: str) -> str:
    """SHA-256 hex digest; tokens are high-entropy so a fast hash is sufficient."""
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def issue_token(user_id: int, *, ttl: timedelta | None = None) -> str:
    """
    Create a session for ``user_id`` and return the plaintext token.

    Only the hash is stored.
    """
    user = db.session.get(User, user_id)
    if user is None:
        raise ValueError("User not found")
    if Role.parse(user.role) is None:
        raise ValueError(f"User {user_id} has unknown role {user.role!r}")

    if ttl is None:
        ttl = timedelta(hours=current_app.config.get("SESSION_TTL_HOURS", 24))

    plaintext_token = secrets.token_hex(32)
    now = utcnow()
    db.session.add(SessionToken(
        user_id=user_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        expires_at=now + ttl,
        is_revoked=False,
    ))
    db.session.commit()
    return plaintext_token


def validate_session(token: str) -> SessionContext | None:
    """
    Return the SessionContext for ``token``, or None if the token is
    unknown, revoked, expired, or belongs to an inactive user.
    """
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return None

    if session.expires_at < utcnow():
        return None

    user = session.user
    if not user or not user.is_active:
        return None

    role = Role.parse(user.role)
    if role is None:
        return None

    return SessionContext(user=user, session=session, actor=Actor(id=user.id, role=role))


def revoke_session(token: str) -> bool:
    session = db.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()
    if not session or session.is_revoked:
        return False
    session.is_revoked = True
    session.revoked_at = utcnow()
    db.session.commit()
    return True
