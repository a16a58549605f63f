"""
Pydantic schemas for volume reports and scheduler status.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel


class VolumeReportResponse(BaseModel):
    period: str
    start: datetime
    end: datetime
    days: int
    total_count: int
    total_amount: Decimal
    count_by_type: dict[str, int]
    amount_by_type: dict[str, Decimal]
    average_daily_count: Decimal
    average_daily_amount: Decimal
    active_accounts: int

    model_config = {"from_attributes": True}
