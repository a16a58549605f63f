"""
Transaction volume reports.

Read-only summaries of COMPLETED transactions over a trailing window.
Used by the weekly and monthly scheduler jobs and the reports endpoint.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy.orm import Session

from ledger_engine.models.enums import AccountStatus, TransactionStatus
from ledger_engine.services.ledger_store import LedgerStore, SortOrder, TransactionQuery

CENT = Decimal("0.01")


@dataclass
class VolumeReport:
    period: str
    start: datetime
    end: datetime
    days: int
    total_count: int = 0
    total_amount: Decimal = Decimal("0.00")
    count_by_type: dict[str, int] = field(default_factory=dict)
    amount_by_type: dict[str, Decimal] = field(default_factory=dict)
    average_daily_count: Decimal = Decimal("0.00")
    average_daily_amount: Decimal = Decimal("0.00")
    active_accounts: int = 0


def build_volume_report(db: Session, end: datetime, days: int, period: str) -> VolumeReport:
    """Summarise COMPLETED transactions dated between end - days and end."""
    store = LedgerStore(db)
    start = end - timedelta(days=days)

    transactions = store.query_transactions(
        TransactionQuery(
            statuses=(TransactionStatus.COMPLETED,),
            start=start,
            end=end,
        ),
        order=SortOrder.ASC,
    )

    counts: dict[str, int] = defaultdict(int)
    amounts: dict[str, Decimal] = defaultdict(lambda: Decimal("0.00"))
    total = Decimal("0.00")
    for txn in transactions:
        key = txn.transaction_type.value
        counts[key] += 1
        amounts[key] += txn.amount
        total += txn.amount

    report = VolumeReport(
        period=period,
        start=start,
        end=end,
        days=days,
        total_count=len(transactions),
        total_amount=total.quantize(CENT, rounding=ROUND_HALF_UP),
        count_by_type=dict(counts),
        amount_by_type={
            k: v.quantize(CENT, rounding=ROUND_HALF_UP) for k, v in amounts.items()
        },
        average_daily_count=(Decimal(len(transactions)) / days).quantize(
            CENT, rounding=ROUND_HALF_UP
        ),
        average_daily_amount=(total / days).quantize(CENT, rounding=ROUND_HALF_UP),
        active_accounts=len(store.query_accounts(status=AccountStatus.ACTIVE)),
    )
    return report


def weekly_volume(db: Session, end: datetime) -> VolumeReport:
    return build_volume_report(db, end, days=7, period="WEEKLY")


def monthly_volume(db: Session, end: datetime) -> VolumeReport:
    return build_volume_report(db, end, days=30, period="MONTHLY")
