"""Dashboard figures computed from a snapshot."""

from datetime import datetime, tzinfo
from decimal import Decimal
from typing import Callable, NamedTuple

from sqlalchemy.ext.asyncio import AsyncSession

from src.services.billing_period import period_of
from src.services.bills_service import utcnow
from src.services.config import BillingSettings, get_settings
from src.services.ledger import ledger_entries, summarize
from src.services.snapshot_service import Snapshot, SnapshotService


class DashboardSummary(NamedTuple):
    period: str
    customer_count: int
    usage_this_period: int
    usage_lifetime: int
    paid_count: int
    unpaid_count: int
    lifetime_balance: Decimal


def summarize_dashboard(snapshot: Snapshot, now: datetime, tz: tzinfo) -> DashboardSummary:
    """Counts for the current period plus lifetime usage and cash balance."""
    period = period_of(now, tz)
    period_bills = [bill for bill in snapshot.bills if bill.period == period]
    entries = ledger_entries(snapshot.bills, snapshot.transactions, snapshot.customers_by_id)
    return DashboardSummary(
        period=period,
        customer_count=len(snapshot.customers),
        usage_this_period=sum(bill.usage for bill in period_bills),
        usage_lifetime=sum(bill.usage for bill in snapshot.bills),
        paid_count=sum(1 for bill in period_bills if bill.is_paid),
        unpaid_count=sum(1 for bill in period_bills if not bill.is_paid),
        lifetime_balance=summarize(entries, None, tz).balance,
    )


class DashboardService:
    def __init__(
        self,
        session: AsyncSession,
        settings: BillingSettings | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.clock = clock

    async def get_summary(self) -> DashboardSummary:
        snapshot = await SnapshotService(self.session).load()
        return summarize_dashboard(snapshot, self.clock(), self.settings.tzinfo)


__all__ = ["DashboardService", "DashboardSummary", "summarize_dashboard"]
