# backend/app/api/deps.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

from fastapi import Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.db import get_db
from backend.app.models import Account, User
from backend.app.services.finance_data_service import user_can_access_account


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
) -> User:
    """
    Dev identity dependency.

    Reads identity from headers:
      - X-User-Email (preferred; provisions the user record if missing)
      - X-User-Id    (fallback; must already exist)

    Real authentication sits in front of this service; here we only need to
    know whose data a request is about.
    """
    email = request.headers.get("X-User-Email")
    user_id = request.headers.get("X-User-Id")
    if not email and not user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Email or X-User-Id header")

    if email:
        normalized = email.strip().lower()
        if not normalized:
            raise HTTPException(status_code=401, detail="Invalid X-User-Email header")

        user = db.execute(select(User).where(User.email == normalized)).scalars().first()
        if not user:
            user = User(
                email=normalized,
                name=normalized.split("@")[0],
                created_at=utcnow(),
                updated_at=utcnow(),
            )
            db.add(user)
            db.commit()
            db.refresh(user)
        return user

    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=401, detail="Unknown X-User-Id")
    return user


def require_account_access(db: Session, account_id: str, user: User) -> Account:
    """Owner or accepted member; anything else looks like a missing account or a 403."""
    account = db.get(Account, account_id)
    if not account:
        raise HTTPException(status_code=404, detail="account not found")
    if not user_can_access_account(db, user.id, account_id):
        raise HTTPException(status_code=403, detail="membership required")
    return account


def require_account_access_dep() -> Callable[..., Account]:
    def _dep(
        account_id: str,
        db: Session = Depends(get_db),
        user: User = Depends(get_current_user),
    ) -> Account:
        return require_account_access(db, account_id, user)

    return _dep
