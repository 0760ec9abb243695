"""Cash book operations: manual transactions, summaries and reports."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable, NamedTuple

from sqlalchemy.ext.asyncio import AsyncSession

from src.models.transaction import Transaction, TransactionDirection
from src.services.audit_service import AuditService
from src.services.billing_period import as_utc, period_of, validate_period
from src.services.bills_service import utcnow
from src.services.config import BillingSettings, get_settings
from src.services.db import commit_or_raise, flush_or_raise
from src.services.errors import (
    InvalidAmountError,
    MissingFieldError,
    NotFoundError,
    ProtectedTransactionError,
)
from src.services.ledger import (
    LedgerPage,
    LedgerSummary,
    entries_in_period,
    ledger_entries,
    paginate,
    period_summaries,
    summarize,
)
from src.services.report_export import MonthlyReport, build_monthly_report, render_csv
from src.services.snapshot_service import ChangeFeed, Snapshot, SnapshotService

logger = logging.getLogger(__name__)


class LedgerOverview(NamedTuple):
    """Period and lifetime figures shown on the cash book screen."""

    period: str
    period_summary: LedgerSummary
    lifetime_summary: LedgerSummary


class LedgerService:
    """Manual cash entries plus read-only views over the whole ledger."""

    def __init__(
        self,
        session: AsyncSession,
        feed: ChangeFeed | None = None,
        settings: BillingSettings | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.feed = feed
        self.settings = settings or get_settings()
        self.clock = clock

    async def _snapshot(self) -> Snapshot:
        return await SnapshotService(self.session).load()

    def current_period(self) -> str:
        return period_of(self.clock(), self.settings.tzinfo)

    async def add_transaction(
        self,
        direction: TransactionDirection,
        description: str,
        amount: Decimal,
        occurred_at: datetime | None = None,
        actor: str | None = None,
    ) -> Transaction:
        """Record a manual income or expense.

        Raises:
            MissingFieldError: If description is empty
            InvalidAmountError: If amount is not positive
            StoreError: If the write failed
        """
        description = (description or "").strip()
        if not description:
            raise MissingFieldError("description")
        amount = Decimal(amount)
        if amount <= 0:
            raise InvalidAmountError("Transaction amount must be positive")

        transaction = Transaction(
            direction=TransactionDirection(direction),
            description=description,
            amount=amount,
            occurred_at=as_utc(occurred_at or self.clock()),
            is_manual=True,
        )
        self.session.add(transaction)
        await flush_or_raise(self.session, "transaction")

        AuditService.log(
            session=self.session,
            entity_type="transaction",
            entity_id=transaction.id,
            action="create",
            actor=actor,
            changes={
                "direction": transaction.direction.value,
                "amount": str(amount),
                "description": description,
            },
        )
        await commit_or_raise(self.session, "transaction")
        logger.info(
            "Added %s transaction %d amount=%s",
            transaction.direction.value,
            transaction.id,
            amount,
        )

        if self.feed:
            await self.feed.publish(self.session)
        return transaction

    async def delete_transaction(self, transaction_id: int, actor: str | None = None) -> None:
        """Remove a manual transaction.

        Income from paid bills is not stored as a transaction and can only
        be removed by marking the bill unpaid.

        Raises:
            NotFoundError: If the transaction does not exist
            ProtectedTransactionError: If the row was synthesized from a bill
            StoreError: If the write failed
        """
        transaction = await self.session.get(Transaction, transaction_id)
        if transaction is None:
            raise NotFoundError("Transaction", transaction_id)
        if not transaction.is_manual or transaction.source_bill_id is not None:
            raise ProtectedTransactionError(
                f"Transaction {transaction_id} comes from bill {transaction.source_bill_id}; "
                "mark the bill unpaid instead"
            )

        AuditService.log(
            session=self.session,
            entity_type="transaction",
            entity_id=transaction_id,
            action="delete",
            actor=actor,
            changes={
                "direction": TransactionDirection(transaction.direction).value,
                "amount": str(transaction.amount),
                "description": transaction.description,
            },
        )
        await self.session.delete(transaction)
        await commit_or_raise(self.session, "transaction")
        logger.info("Deleted transaction %d", transaction_id)

        if self.feed:
            await self.feed.publish(self.session)

    async def overview(self, period: str | None = None) -> LedgerOverview:
        """Period (default: current) and lifetime inflow/outflow/balance."""
        period = validate_period(period) if period else self.current_period()
        snapshot = await self._snapshot()
        entries = ledger_entries(snapshot.bills, snapshot.transactions, snapshot.customers_by_id)
        tz = self.settings.tzinfo
        return LedgerOverview(
            period=period,
            period_summary=summarize(entries, period, tz),
            lifetime_summary=summarize(entries, None, tz),
        )

    async def period_balances(self) -> dict[str, LedgerSummary]:
        snapshot = await self._snapshot()
        entries = ledger_entries(snapshot.bills, snapshot.transactions, snapshot.customers_by_id)
        return period_summaries(entries, self.settings.tzinfo)

    async def cash_book(self, period: str | None = None, page: int = 1) -> LedgerPage:
        """One page of a period's entries, newest first."""
        period = validate_period(period) if period else self.current_period()
        snapshot = await self._snapshot()
        entries = ledger_entries(snapshot.bills, snapshot.transactions, snapshot.customers_by_id)
        return paginate(
            entries_in_period(entries, period, self.settings.tzinfo),
            page,
            self.settings.cashbook_page_size,
        )

    async def monthly_report(self, period: str) -> MonthlyReport:
        snapshot = await self._snapshot()
        return build_monthly_report(
            snapshot.customers,
            snapshot.bills,
            snapshot.transactions,
            validate_period(period),
            self.settings.tzinfo,
        )

    async def export_report(self, period: str) -> str:
        """Monthly report rendered as delimited text."""
        report = await self.monthly_report(period)
        logger.info("Exported report for %s with %d bill rows", period, len(report.rows))
        return render_csv(report, self.settings.export_delimiter)


__all__ = ["LedgerOverview", "LedgerService"]
