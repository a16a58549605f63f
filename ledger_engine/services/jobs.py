"""
Scheduled banking jobs.

Each job is a plain function job(session, now) -> summary. Jobs drive
the same TransactionEngine entry points as external callers, one
atomic unit per item, so a failing item never aborts the batch: its
BankingError is logged and counted, and the loop moves on.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy.orm import Session

from ledger_engine.clock import FixedClock
from ledger_engine.config import get_settings
from ledger_engine.exceptions import BankingError
from ledger_engine.logging_config import get_logger
from ledger_engine.models.enums import AccountType
from ledger_engine.services.account_service import AccountManager
from ledger_engine.services.reporting import VolumeReport, monthly_volume, weekly_volume
from ledger_engine.services.transaction_service import TransactionEngine

logger = get_logger("jobs")
settings = get_settings()

SYSTEM_USER = "system"
DAYS_PER_YEAR = Decimal("365")
RATE_PRECISION = Decimal("0.00000001")
CENT = Decimal("0.01")


@dataclass
class ScheduledRunSummary:
    processed: int = 0
    failed: int = 0


@dataclass
class InterestRunSummary:
    accounts_processed: int = 0
    total_interest: Decimal = Decimal("0.00")
    failed: int = 0


@dataclass
class ReconciliationSummary:
    accounts_checked: int = 0
    fees_charged: int = 0
    fees_total: Decimal = Decimal("0.00")
    fees_skipped: int = 0
    balances_corrected: int = 0
    failed: int = 0


def daily_interest(balance: Decimal, annual_rate: Decimal) -> Decimal:
    """
    One day of simple interest.

    The daily rate is rounded half-up to 8 places first, then the
    interest is rounded half-up to cents: 1000.00 at 2.5% -> 0.07.
    """
    daily_rate = (annual_rate / DAYS_PER_YEAR).quantize(RATE_PRECISION, rounding=ROUND_HALF_UP)
    return (balance * daily_rate).quantize(CENT, rounding=ROUND_HALF_UP)


def format_rate(annual_rate: Decimal) -> str:
    return f"{(annual_rate * 100).normalize():f}%"


def process_scheduled_transactions(db: Session, now: datetime) -> ScheduledRunSummary:
    """Execute every SCHEDULED transaction due at or before now."""
    engine = TransactionEngine(db, acting_user=SYSTEM_USER, clock=FixedClock(now))
    summary = ScheduledRunSummary()

    due_ids = [txn.transaction_id for txn in engine.due_now(now)]
    for transaction_id in due_ids:
        try:
            engine.execute_scheduled(transaction_id)
            summary.processed += 1
        except BankingError as e:
            summary.failed += 1
            logger.warning(
                "scheduled_item_failed",
                extra={"transaction_id": transaction_id, "error_code": e.code, "reason": e.message},
            )

    logger.info(
        "scheduled_run_finished",
        extra={"processed": summary.processed, "failed": summary.failed},
    )
    return summary


def accrue_daily_interest(db: Session, now: datetime) -> InterestRunSummary:
    """Credit one day of interest to every eligible savings account."""
    clock = FixedClock(now)
    manager = AccountManager(db, clock=clock)
    engine = TransactionEngine(db, acting_user=SYSTEM_USER, clock=clock)
    summary = InterestRunSummary()
    date = now.strftime("%Y-%m-%d")

    numbers = [a.account_number for a in manager.active_accounts()]
    for number in numbers:
        try:
            account = manager.get_account(number)
            if not manager.eligible_for_interest(account):
                continue
            interest = daily_interest(account.balance, account.interest_rate)
            if interest <= 0:
                continue
            engine.deposit(
                number,
                interest,
                f"Daily Interest - {date} (Rate: {format_rate(account.interest_rate)})",
            )
            summary.accounts_processed += 1
            summary.total_interest += interest
        except BankingError as e:
            summary.failed += 1
            logger.warning(
                "interest_item_failed",
                extra={"account_number": number, "error_code": e.code, "reason": e.message},
            )

    logger.info(
        "interest_run_finished",
        extra={
            "accounts_processed": summary.accounts_processed,
            "total_interest": str(summary.total_interest),
            "failed": summary.failed,
        },
    )
    return summary


def reconcile_balances(db: Session, now: datetime) -> ReconciliationSummary:
    """
    Charge daily maintenance fees and recompute available balances.

    Checking accounts below the fee threshold pay the maintenance
    fee as a withdrawal, unless they cannot cover it.
    """
    clock = FixedClock(now)
    manager = AccountManager(db, clock=clock)
    engine = TransactionEngine(db, acting_user=SYSTEM_USER, clock=clock)
    summary = ReconciliationSummary()
    date = now.strftime("%Y-%m-%d")
    fee = settings.MAINTENANCE_FEE

    numbers = [a.account_number for a in manager.active_accounts()]
    for number in numbers:
        summary.accounts_checked += 1
        try:
            account = manager.get_account(number)
            if (
                account.account_type == AccountType.CHECKING
                and account.balance < settings.MAINTENANCE_FEE_THRESHOLD
            ):
                if manager.has_sufficient_funds(account, fee):
                    engine.withdraw(number, fee, f"Daily Maintenance Fee - {date}")
                    summary.fees_charged += 1
                    summary.fees_total += fee
                else:
                    summary.fees_skipped += 1

            if manager.reconcile_available_balance(number):
                summary.balances_corrected += 1
        except BankingError as e:
            summary.failed += 1
            logger.warning(
                "reconciliation_item_failed",
                extra={"account_number": number, "error_code": e.code, "reason": e.message},
            )

    logger.info(
        "reconciliation_finished",
        extra={
            "accounts_checked": summary.accounts_checked,
            "fees_charged": summary.fees_charged,
            "fees_total": str(summary.fees_total),
            "balances_corrected": summary.balances_corrected,
            "failed": summary.failed,
        },
    )
    return summary


def weekly_report(db: Session, now: datetime) -> VolumeReport:
    report = weekly_volume(db, now)
    _log_report(report)
    return report


def monthly_report(db: Session, now: datetime) -> VolumeReport:
    report = monthly_volume(db, now)
    _log_report(report)
    return report


def _log_report(report: VolumeReport) -> None:
    logger.info(
        "volume_report",
        extra={
            "period": report.period,
            "start": report.start.isoformat(),
            "end": report.end.isoformat(),
            "total_count": report.total_count,
            "total_amount": str(report.total_amount),
            "count_by_type": report.count_by_type,
            "active_accounts": report.active_accounts,
        },
    )
