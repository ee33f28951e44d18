from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, Header
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from famsplit.core.config import settings
from famsplit.core.db import get_db
from famsplit.core.errors import AuthenticationError
from famsplit.models.entities import User


@dataclass(frozen=True)
class AuthContext:
    email: str


def get_auth_context(
    x_forwarded_user: str | None = Header(default=None, alias="X-Forwarded-User"),
    x_dev_user: str | None = Header(default=None, alias="X-Dev-User"),
) -> AuthContext | None:
    """
    Auth boundary.

    In prod, requests are expected to be behind Traefik Forward Auth, which injects
    X-Forwarded-User (email). In dev/tests (AUTH_MODE=none) the caller may identify
    itself with X-Dev-User, and anonymous requests are let through to this point.
    """
    if settings.auth_mode == "none":
        email = x_dev_user or x_forwarded_user
        if not email:
            return None
        return AuthContext(email=email.strip().lower())

    email = x_forwarded_user or x_dev_user
    if not email:
        raise AuthenticationError("missing auth header (X-Forwarded-User)")
    return AuthContext(email=email.strip().lower())


def require_auth(ctx: AuthContext | None = Depends(get_auth_context)) -> AuthContext:
    if ctx is None:
        raise AuthenticationError()
    return ctx


def get_current_user(
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
) -> User:
    # The proxy owns credentials; the first request from an email provisions its user row.
    user = db.execute(select(User).where(User.email == ctx.email)).scalar_one_or_none()
    if user is not None:
        return user

    user = User(email=ctx.email, name=ctx.email.split("@", 1)[0])
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # A concurrent request provisioned the same email first.
        db.rollback()
        return db.execute(select(User).where(User.email == ctx.email)).scalar_one()
    db.refresh(user)
    return user
