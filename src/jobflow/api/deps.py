from __future__ import annotations

from collections.abc import Generator
from typing import Any

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from jobflow.config import get_settings
from jobflow.core.mailer import EmailTransport
from jobflow.core.vault import CredentialVault
from jobflow.db.repositories import Repository
from jobflow.db.session import get_db_session
from jobflow.errors import NotFoundError


def get_db() -> Generator[Session, None, None]:
    yield from get_db_session()


def get_current_user_id(request: Request, db: Session = Depends(get_db)) -> str:
    """Caller identity as forwarded by the authenticating proxy."""
    user_id = request.headers.get(get_settings().user_id_header, "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    Repository(db).ensure_user(user_id)
    return user_id


def get_vault(request: Request) -> CredentialVault:
    return request.app.state.vault


def get_transport(request: Request) -> EmailTransport:
    return request.app.state.transport


def require_owned(row: Any, user_id: str, label: str, entity_id: int) -> Any:
    # Rows owned by someone else are indistinguishable from missing ones.
    if row is None or row.user_id != user_id:
        raise NotFoundError(label, entity_id)
    return row
