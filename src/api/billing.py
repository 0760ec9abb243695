"""Billing API endpoints used by the operator app."""

import logging
import time
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable

from fastapi import APIRouter, Depends, Header, Query, Response, status
from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.customer import CustomerCategory
from src.models.transaction import TransactionDirection
from src.services import get_async_session
from src.services.audit_service import AuditService
from src.services.bills_service import BillsService, BillStatusFilter, utcnow
from src.services.config import BillingSettings, get_settings
from src.services.customer_service import CustomerService
from src.services.dashboard_service import DashboardService
from src.services.ledger import LedgerSummary
from src.services.ledger_service import LedgerService
from src.services.notification_service import NotificationService
from src.services.report_export import report_filename
from src.services.settlement_service import SettlementService
from src.services.snapshot_service import ChangeFeed

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["billing"])

# Shared by all requests so subscribers see every committed change
_change_feed = ChangeFeed()


def get_change_feed() -> ChangeFeed:
    return _change_feed


def get_clock() -> Callable[[], datetime]:
    return utcnow


def get_actor(x_operator: str | None = Header(default=None)) -> str | None:
    """Operator name sent by the client, recorded in the audit log."""
    return (x_operator or "").strip() or None


def _log_debug(endpoint: str, start_time: float, **kwargs: Any) -> None:
    duration_ms = int((time.time() - start_time) * 1000)
    extra = " ".join(f"{k}={v}" for k, v in kwargs.items())
    logger.debug(
        "billing.%s: %sduration_ms=%d",
        endpoint,
        f"{extra} " if extra else "",
        duration_ms,
    )


# Request schemas
class CustomerCreate(BaseModel):
    name: str
    address: str = ""
    phone: str | None = None
    category: CustomerCategory = CustomerCategory.STANDARD
    initial_reading: int = 0


class CustomerUpdate(BaseModel):
    """Only the fields present in the request are changed."""

    name: str | None = None
    address: str | None = None
    phone: str | None = None
    category: CustomerCategory | None = None
    last_reading: int | None = None


class ReadingRequest(BaseModel):
    customer_id: int
    reading: int
    notify: bool = True  # Build a bill notice for customers with a phone


class TransactionCreate(BaseModel):
    direction: TransactionDirection
    description: str
    amount: Decimal
    occurred_at: datetime | None = None


# Response schemas
class CustomerResponse(BaseModel):
    id: int
    name: str
    address: str
    phone: str | None = None
    category: CustomerCategory
    last_reading: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BillResponse(BaseModel):
    id: int
    customer_id: int
    period: str
    previous_reading: int
    current_reading: int
    usage: int
    per_unit_rate: Decimal
    base_fee: Decimal
    usage_fee: Decimal
    penalty: Decimal
    amount: Decimal
    is_paid: bool
    paid_at: datetime | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RecordReadingResponse(BaseModel):
    bill: BillResponse
    arrears_count: int
    arrears_total: Decimal
    total_payable: Decimal
    notice_link: str | None = None


class PreviewResponse(BaseModel):
    previous_reading: int
    current_reading: int
    usage: int
    per_unit_rate: Decimal
    base_fee: Decimal
    usage_fee: Decimal
    penalty: Decimal
    amount: Decimal
    arrears_count: int
    arrears_total: Decimal
    total_payable: Decimal


class TransactionResponse(BaseModel):
    id: int
    direction: TransactionDirection
    description: str
    amount: Decimal
    occurred_at: datetime
    is_manual: bool

    model_config = ConfigDict(from_attributes=True)


class LedgerEntryResponse(BaseModel):
    key: str
    direction: TransactionDirection
    description: str
    amount: Decimal
    occurred_at: datetime
    is_manual: bool
    transaction_id: int | None = None
    source_bill_id: int | None = None


class CashBookResponse(BaseModel):
    period: str
    page: int
    total_pages: int
    entries: list[LedgerEntryResponse]


class LedgerSummaryResponse(BaseModel):
    inflow: Decimal
    outflow: Decimal
    balance: Decimal

    @classmethod
    def from_summary(cls, summary: LedgerSummary) -> "LedgerSummaryResponse":
        return cls(**summary._asdict())


class LedgerOverviewResponse(BaseModel):
    period: str
    period_summary: LedgerSummaryResponse
    lifetime_summary: LedgerSummaryResponse


class PeriodBalanceResponse(LedgerSummaryResponse):
    period: str


class AuditEntryResponse(BaseModel):
    action: str
    actor: str | None = None
    changes: dict[str, Any] | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DashboardResponse(BaseModel):
    period: str
    customer_count: int
    usage_this_period: int
    usage_lifetime: int
    paid_count: int
    unpaid_count: int
    lifetime_balance: Decimal


# Customers
@router.get("/customers", response_model=list[CustomerResponse])
async def list_customers(
    search: str | None = Query(default=None),
    session: AsyncSession = Depends(get_async_session),  # noqa: B008
) -> list[CustomerResponse]:
    start_time = time.time()
    customers = await CustomerService(session).list_customers(search)
    _log_debug("customers", start_time, count=len(customers))
    return [CustomerResponse.model_validate(customer) for customer in customers]


@router.post(
    "/customers", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED
)
async def create_customer(
    payload: CustomerCreate,
    session: AsyncSession = Depends(get_async_session),  # noqa: B008
    feed: ChangeFeed = Depends(get_change_feed),  # noqa: B008
    actor: str | None = Depends(get_actor),  # noqa: B008
) -> CustomerResponse:
    customer = await CustomerService(session, feed).create_customer(
        name=payload.name,
        address=payload.address,
        phone=payload.phone,
        category=payload.category,
        initial_reading=payload.initial_reading,
        actor=actor,
    )
    return CustomerResponse.model_validate(customer)


@router.patch("/customers/{customer_id}", response_model=CustomerResponse)
async def update_customer(
    customer_id: int,
    payload: CustomerUpdate,
    session: AsyncSession = Depends(get_async_session),  # noqa: B008
    feed: ChangeFeed = Depends(get_change_feed),  # noqa: B008
    actor: str | None = Depends(get_actor),  # noqa: B008
) -> CustomerResponse:
    # null clears phone or address; for other fields it means unchanged
    changes = {
        key: value
        for key, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or key in ("phone", "address")
    }
    customer = await CustomerService(session, feed).update_customer(
        customer_id, actor=actor, **changes
    )
    return CustomerResponse.model_validate(customer)


@router.get("/customers/{customer_id}/bills", response_model=list[BillResponse])
async def list_customer_bills(
    customer_id: int,
    session: AsyncSession = Depends(get_async_session),  # noqa: B008
    settings: BillingSettings = Depends(get_settings),  # noqa: B008
) -> list[BillResponse]:
    await CustomerService(session).get(customer_id)
    bills = await BillsService(session, settings=settings).get_customer_bills(customer_id)
    return [BillResponse.model_validate(bill) for bill in bills]


# Readings and bills
@router.post("/readings/preview", response_model=PreviewResponse)
async def preview_reading(
    payload: ReadingRequest,
    session: AsyncSession = Depends(get_async_session),  # noqa: B008
    settings: BillingSettings = Depends(get_settings),  # noqa: B008
    clock: Callable[[], datetime] = Depends(get_clock),  # noqa: B008
) -> PreviewResponse:
    service = BillsService(session, settings=settings, clock=clock)
    preview = await service.preview_reading(payload.customer_id, payload.reading)
    return PreviewResponse(**preview._asdict())


@router.post(
    "/readings", response_model=RecordReadingResponse, status_code=status.HTTP_201_CREATED
)
async def record_reading(
    payload: ReadingRequest,
    session: AsyncSession = Depends(get_async_session),  # noqa: B008
    feed: ChangeFeed = Depends(get_change_feed),  # noqa: B008
    settings: BillingSettings = Depends(get_settings),  # noqa: B008
    clock: Callable[[], datetime] = Depends(get_clock),  # noqa: B008
    actor: str | None = Depends(get_actor),  # noqa: B008
) -> RecordReadingResponse:
    """Record a meter reading, creating the bill for it."""
    service = BillsService(session, feed, settings=settings, clock=clock)
    bill = await service.record_reading(payload.customer_id, payload.reading, actor=actor)
    arrears = await service.arrears_for(bill)

    notice_link = None
    if payload.notify:
        # The bill is already committed; a failed notice must not undo it
        try:
            customer = await CustomerService(session).get(bill.customer_id)
            result = NotificationService(settings=settings).notify_new_bill(
                customer, bill, arrears
            )
            notice_link = result if isinstance(result, str) else None
        except Exception:
            logger.exception("Failed to send notice for bill %s", bill.id)

    return RecordReadingResponse(
        bill=BillResponse.model_validate(bill),
        arrears_count=arrears.bill_count,
        arrears_total=arrears.total,
        total_payable=bill.amount + arrears.total,
        notice_link=notice_link,
    )


@router.get("/bills", response_model=list[BillResponse])
async def list_bills(
    bill_status: BillStatusFilter = Query(default=BillStatusFilter.ALL, alias="status"),
    period: str | None = Query(default=None),
    session: AsyncSession = Depends(get_async_session),  # noqa: B008
    settings: BillingSettings = Depends(get_settings),  # noqa: B008
) -> list[BillResponse]:
    start_time = time.time()
    bills = await BillsService(session, settings=settings).list_bills(bill_status, period)
    _log_debug("bills", start_time, status=bill_status.value, period=period, count=len(bills))
    return [BillResponse.model_validate(bill) for bill in bills]


@router.post("/bills/{bill_id}/paid", response_model=BillResponse)
async def mark_bill_paid(
    bill_id: int,
    session: AsyncSession = Depends(get_async_session),  # noqa: B008
    feed: ChangeFeed = Depends(get_change_feed),  # noqa: B008
    settings: BillingSettings = Depends(get_settings),  # noqa: B008
    clock: Callable[[], datetime] = Depends(get_clock),  # noqa: B008
    actor: str | None = Depends(get_actor),  # noqa: B008
) -> BillResponse:
    service = SettlementService(session, feed, settings=settings, clock=clock)
    bill = await service.mark_paid(bill_id, actor=actor)
    return BillResponse.model_validate(bill)


@router.post("/bills/{bill_id}/unpaid", response_model=BillResponse)
async def mark_bill_unpaid(
    bill_id: int,
    session: AsyncSession = Depends(get_async_session),  # noqa: B008
    feed: ChangeFeed = Depends(get_change_feed),  # noqa: B008
    settings: BillingSettings = Depends(get_settings),  # noqa: B008
    clock: Callable[[], datetime] = Depends(get_clock),  # noqa: B008
    actor: str | None = Depends(get_actor),  # noqa: B008
) -> BillResponse:
    service = SettlementService(session, feed, settings=settings, clock=clock)
    bill = await service.mark_unpaid(bill_id, actor=actor)
    return BillResponse.model_validate(bill)


@router.get("/bills/{bill_id}/history", response_model=list[AuditEntryResponse])
async def bill_history(
    bill_id: int,
    session: AsyncSession = Depends(get_async_session),  # noqa: B008
    settings: BillingSettings = Depends(get_settings),  # noqa: B008
) -> list[AuditEntryResponse]:
    """Creation, settlement and revert entries of a bill, oldest first."""
    await BillsService(session, settings=settings).get_bill(bill_id)
    entries = await AuditService.history(session, "bill", bill_id)
    return [AuditEntryResponse.model_validate(entry) for entry in entries]


# Cash book
@router.get("/transactions", response_model=CashBookResponse)
async def cash_book(
    period: str | None = Query(default=None),
    page: int = Query(default=1),
    session: AsyncSession = Depends(get_async_session),  # noqa: B008
    settings: BillingSettings = Depends(get_settings),  # noqa: B008
    clock: Callable[[], datetime] = Depends(get_clock),  # noqa: B008
) -> CashBookResponse:
    """One page of the period's ledger, bill income included."""
    service = LedgerService(session, settings=settings, clock=clock)
    period = period or service.current_period()
    result = await service.cash_book(period, page)
    return CashBookResponse(
        period=period,
        page=result.page,
        total_pages=result.total_pages,
        entries=[LedgerEntryResponse(**entry._asdict()) for entry in result.entries],
    )


@router.post(
    "/transactions", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED
)
async def add_transaction(
    payload: TransactionCreate,
    session: AsyncSession = Depends(get_async_session),  # noqa: B008
    feed: ChangeFeed = Depends(get_change_feed),  # noqa: B008
    settings: BillingSettings = Depends(get_settings),  # noqa: B008
    clock: Callable[[], datetime] = Depends(get_clock),  # noqa: B008
    actor: str | None = Depends(get_actor),  # noqa: B008
) -> TransactionResponse:
    service = LedgerService(session, feed, settings=settings, clock=clock)
    transaction = await service.add_transaction(
        payload.direction,
        payload.description,
        payload.amount,
        occurred_at=payload.occurred_at,
        actor=actor,
    )
    return TransactionResponse.model_validate(transaction)


@router.delete("/transactions/{transaction_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_transaction(
    transaction_id: int,
    session: AsyncSession = Depends(get_async_session),  # noqa: B008
    feed: ChangeFeed = Depends(get_change_feed),  # noqa: B008
    settings: BillingSettings = Depends(get_settings),  # noqa: B008
    actor: str | None = Depends(get_actor),  # noqa: B008
) -> Response:
    await LedgerService(session, feed, settings=settings).delete_transaction(
        transaction_id, actor=actor
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/ledger", response_model=LedgerOverviewResponse)
async def ledger_overview(
    period: str | None = Query(default=None),
    session: AsyncSession = Depends(get_async_session),  # noqa: B008
    settings: BillingSettings = Depends(get_settings),  # noqa: B008
    clock: Callable[[], datetime] = Depends(get_clock),  # noqa: B008
) -> LedgerOverviewResponse:
    overview = await LedgerService(session, settings=settings, clock=clock).overview(period)
    return LedgerOverviewResponse(
        period=overview.period,
        period_summary=LedgerSummaryResponse.from_summary(overview.period_summary),
        lifetime_summary=LedgerSummaryResponse.from_summary(overview.lifetime_summary),
    )


@router.get("/ledger/periods", response_model=list[PeriodBalanceResponse])
async def period_balances(
    session: AsyncSession = Depends(get_async_session),  # noqa: B008
    settings: BillingSettings = Depends(get_settings),  # noqa: B008
) -> list[PeriodBalanceResponse]:
    balances = await LedgerService(session, settings=settings).period_balances()
    return [
        PeriodBalanceResponse(period=period, **summary._asdict())
        for period, summary in balances.items()
    ]


@router.get("/dashboard", response_model=DashboardResponse)
async def dashboard(
    session: AsyncSession = Depends(get_async_session),  # noqa: B008
    settings: BillingSettings = Depends(get_settings),  # noqa: B008
    clock: Callable[[], datetime] = Depends(get_clock),  # noqa: B008
) -> DashboardResponse:
    summary = await DashboardService(session, settings=settings, clock=clock).get_summary()
    return DashboardResponse(**summary._asdict())


@router.get("/reports/{period}")
async def download_report(
    period: str,
    session: AsyncSession = Depends(get_async_session),  # noqa: B008
    settings: BillingSettings = Depends(get_settings),  # noqa: B008
) -> Response:
    """Monthly report as a CSV attachment."""
    content = await LedgerService(session, settings=settings).export_report(period)
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{report_filename(period)}"'},
    )


__all__ = ["get_actor", "get_change_feed", "get_clock", "router"]
