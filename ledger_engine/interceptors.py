"""
Logging and audit wrappers for service calls at the boundary.

log_call logs entry, outcome and duration of a call. audit_call also
appends STARTED and COMPLETED/FAILED rows to audit_log for mutating
operations. intercept() wraps every public method of a service with
both, so the collaborator layer gets uniform logging and auditing
without the core knowing about either.

Both wrappers re-raise whatever the wrapped call raised.
"""

import functools
import json
import time
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ledger_engine.exceptions import BankingError
from ledger_engine.logging_config import get_logger
from ledger_engine.models.audit_log import AuditLog
from ledger_engine.models.enums import AuditOutcome

logger = get_logger("interceptors")

# Method name prefixes that change state and are written to audit_log
AUDITED_PREFIXES: tuple[str, ...] = (
    "create",
    "open",
    "change",
    "close",
    "freeze",
    "deposit",
    "withdraw",
    "transfer",
    "reverse",
    "schedule",
    "execute",
)


def is_audited(operation: str) -> bool:
    return operation.startswith(AUDITED_PREFIXES)


def describe_arguments(args: tuple, kwargs: dict) -> str:
    return json.dumps(
        {"args": [str(a) for a in args], "kwargs": {k: str(v) for k, v in kwargs.items()}}
    )


def log_call(func: Callable, operation: str | None = None, acting_user: str = "system") -> Callable:
    """Wrap func so each call logs its start, outcome and duration."""
    operation = operation or func.__name__

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        started = time.perf_counter()
        logger.debug("call_started", extra={"operation": operation, "acting_user": acting_user})
        try:
            result = func(*args, **kwargs)
        except BankingError as e:
            logger.warning(
                "call_rejected",
                extra={
                    "operation": operation,
                    "acting_user": acting_user,
                    "error_code": e.code,
                    "reason": e.message,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                },
            )
            raise
        except Exception:
            logger.exception(
                "call_crashed",
                extra={"operation": operation, "acting_user": acting_user},
            )
            raise

        logger.info(
            "call_completed",
            extra={
                "operation": operation,
                "acting_user": acting_user,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
        return result

    return wrapper


def audit_call(
    func: Callable,
    session_factory: Callable[[], Session],
    acting_user: str,
    event_type: str,
    operation: str | None = None,
) -> Callable:
    """
    Wrap func so each call leaves STARTED and COMPLETED/FAILED audit rows.

    Rows are written through their own session, so an entry for a
    failed operation survives that operation's rollback.
    """
    operation = operation or func.__name__

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        arguments = describe_arguments(args, kwargs)
        write_audit(session_factory, event_type, acting_user, operation,
                    AuditOutcome.STARTED, arguments)
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            details = json.dumps({
                "arguments": json.loads(arguments),
                "error_type": type(e).__name__,
                "error_code": getattr(e, "code", None),
                "error": str(e),
            })
            write_audit(session_factory, event_type, acting_user, operation,
                        AuditOutcome.FAILED, details)
            raise

        write_audit(session_factory, event_type, acting_user, operation,
                    AuditOutcome.COMPLETED, arguments)
        return result

    return wrapper


def write_audit(
    session_factory: Callable[[], Session],
    event_type: str,
    actor: str,
    operation: str,
    outcome: AuditOutcome,
    details: str,
) -> None:
    """Append one audit row. A failed write is logged, never raised into the audited call."""
    session = session_factory()
    try:
        session.add(AuditLog(
            event_type=event_type,
            actor=actor,
            operation=operation,
            outcome=outcome,
            details=details,
        ))
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception(
            "audit_write_failed",
            extra={"operation": operation, "outcome": outcome.value, "actor": actor},
        )
    finally:
        session.close()


class InterceptedService:
    """
    Proxy applying log_call (and audit_call for mutating methods) to
    every public method of the wrapped service.
    """

    def __init__(
        self,
        target: Any,
        acting_user: str,
        session_factory: Callable[[], Session] | None = None,
    ):
        self._target = target
        self._acting_user = acting_user
        self._session_factory = session_factory
        self._event_type = type(target).__name__

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self._target, name)
        if name.startswith("_") or not callable(attr):
            return attr

        wrapped = log_call(attr, operation=name, acting_user=self._acting_user)
        if self._session_factory is not None and is_audited(name):
            wrapped = audit_call(
                wrapped,
                self._session_factory,
                acting_user=self._acting_user,
                event_type=self._event_type,
                operation=name,
            )
        return wrapped

    @property
    def target(self) -> Any:
        return self._target


def intercept(
    target: Any,
    acting_user: str,
    session_factory: Callable[[], Session] | None = None,
) -> InterceptedService:
    """Wrap a service so its public calls are logged and, when a session factory is given, audited."""
    return InterceptedService(target, acting_user, session_factory)
