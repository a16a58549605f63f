"""
Shared FastAPI dependencies.

The acting user is taken from the X-Acting-User header as an opaque
identifier; authenticating it is the gateway's job. Services are
wrapped by intercept() so every call is logged and mutating calls
are audited.
"""

from typing import Callable

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from ledger_engine.interceptors import intercept
from ledger_engine.models.base import SessionLocal, get_db
from ledger_engine.security import Authorizer, allow_all
from ledger_engine.services.account_service import AccountManager
from ledger_engine.services.transaction_service import TransactionEngine


def get_acting_user(x_acting_user: str = Header(default="anonymous")) -> str:
    return x_acting_user


def get_session_factory() -> Callable[[], Session]:
    """Session factory for audit rows, separate from the request session."""
    return SessionLocal


def get_authorizer() -> Authorizer:
    return allow_all


def get_account_manager(
    db: Session = Depends(get_db),
    acting_user: str = Depends(get_acting_user),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
    authorizer: Authorizer = Depends(get_authorizer),
):
    manager = AccountManager(db, authorizer=authorizer, acting_user=acting_user)
    return intercept(manager, acting_user, session_factory)


def get_transaction_engine(
    db: Session = Depends(get_db),
    acting_user: str = Depends(get_acting_user),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
    authorizer: Authorizer = Depends(get_authorizer),
):
    engine = TransactionEngine(db, acting_user=acting_user, authorizer=authorizer)
    return intercept(engine, acting_user, session_factory)
