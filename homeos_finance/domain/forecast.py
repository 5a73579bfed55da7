"""Cash-flow projection - pure simulation over supplied snapshots"""

from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Sequence, Tuple

from homeos_finance.domain.exceptions import InvalidHorizonError
from homeos_finance.domain.models import (
    AccountBalance,
    AmountType,
    CashFlowDataPoint,
    CashFlowForecast,
    Debt,
    DebtInstallment,
    DebtStatus,
    ForecastEvent,
    ForecastEventSource,
    RecurringTransaction,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from homeos_finance.domain.recurrence import compute_occurrences, cursor_of
from homeos_finance.utils.date_utils import add_months, shift_month

ZERO = Decimal("0.00")

OPENING_DESCRIPTION = "Current balance"
PROJECTION_DESCRIPTION = "Projection"


def validate_horizon(horizon_months: int, max_horizon_months: int | None = None) -> None:
    if horizon_months <= 0:
        raise InvalidHorizonError(f"Forecast horizon must be at least one month, got {horizon_months}")
    if max_horizon_months is not None and horizon_months > max_horizon_months:
        raise InvalidHorizonError(f"Forecast horizon cannot exceed {max_horizon_months} months")


def pending_events(transactions: Iterable[Transaction], start: date, end: date) -> List[ForecastEvent]:
    """Persisted, still unpaid transactions due within [start, end]"""
    return [
        ForecastEvent(
            date=txn.due_date,
            amount=txn.amount,
            type=txn.type,
            source=ForecastEventSource.PENDING,
            description=txn.description,
            reference_id=txn.id,
        )
        for txn in transactions
        if txn.status == TransactionStatus.PENDING and start <= txn.due_date <= end
    ]


def recurring_events(
    recurring_transactions: Iterable[RecurringTransaction],
    start: date,
    end: date,
) -> List[ForecastEvent]:
    """
    Simulated occurrences of active recurrences within [start, end].

    Simulation starts at the generation cursor: occurrences before it were
    already generated into the ledger. Variable amounts are carried as
    estimates through amount_type.
    """
    events = []
    for recurring in recurring_transactions:
        if not recurring.is_active:
            continue
        window_start = max(cursor_of(recurring), start)
        for occurrence in compute_occurrences(recurring, window_start, end):
            events.append(
                ForecastEvent(
                    date=occurrence,
                    amount=recurring.amount,
                    type=recurring.type,
                    source=ForecastEventSource.RECURRING,
                    description=recurring.description,
                    amount_type=recurring.amount_type,
                    reference_id=recurring.id,
                )
            )
    return events


def debt_events(
    debt_schedules: Iterable[Tuple[Debt, Sequence[DebtInstallment]]],
    account_ids: set,
    start: date,
    end: date,
) -> List[ForecastEvent]:
    """Unpaid installments of active debts linked to an in-scope account"""
    events = []
    for debt, installments in debt_schedules:
        if debt.status != DebtStatus.ACTIVE or debt.linked_account_id not in account_ids:
            continue
        for inst in installments:
            if inst.is_paid or not start <= inst.due_date <= end:
                continue
            events.append(
                ForecastEvent(
                    date=inst.due_date,
                    amount=inst.total_amount,
                    type=TransactionType.EXPENSE,
                    source=ForecastEventSource.DEBT_INSTALLMENT,
                    description=f"{debt.name} {inst.number}/{debt.total_installments}",
                    reference_id=debt.id,
                )
            )
    return events


def _continuity_dates(today: date, end_date: date) -> List[date]:
    """First day of each month after today, plus the horizon end"""
    dates = [end_date]
    year, month = shift_month(today.year, today.month, 1)
    first = date(year, month, 1)
    while first <= end_date:
        dates.append(first)
        year, month = shift_month(year, month, 1)
        first = date(year, month, 1)
    return dates


def build_forecast(
    today: date,
    horizon_months: int,
    accounts: Sequence[AccountBalance],
    pending_transactions: Iterable[Transaction] = (),
    recurring_transactions: Iterable[RecurringTransaction] = (),
    debt_schedules: Iterable[Tuple[Debt, Sequence[DebtInstallment]]] = (),
    max_horizon_months: int | None = None,
) -> CashFlowForecast:
    """
    Project the combined account balance forward.

    Algorithm:
    1. Starting balance = sum of initial balance + ledger total of active accounts
    2. Collect events in (today, today + horizon]: pending transactions,
       simulated recurring occurrences and unpaid debt installments.
       Today's own activity is already part of the ledger totals.
    3. Merge events per date into one incoming/outgoing pair
    4. Accumulate the running balance chronologically

    The output opens with today's balance and adds zero-flow points on the
    first of each month and on the horizon end so charts stay continuous.
    The last point's balance always equals starting balance plus total
    incoming minus total outgoing.

    Raises:
        InvalidHorizonError: horizon_months <= 0 or above max_horizon_months
    """
    validate_horizon(horizon_months, max_horizon_months)

    end_date = add_months(today, horizon_months)
    window_start = today + timedelta(days=1)
    starting_balance = sum((account.balance for account in accounts), ZERO)
    account_ids = {account.account_id for account in accounts}

    events = (
        pending_events(pending_transactions, window_start, end_date)
        + recurring_events(recurring_transactions, window_start, end_date)
        + debt_events(debt_schedules, account_ids, window_start, end_date)
    )

    events_by_date: Dict[date, List[ForecastEvent]] = defaultdict(list)
    for event in events:
        events_by_date[event.date].append(event)

    data_points = [CashFlowDataPoint(today, starting_balance, ZERO, ZERO, OPENING_DESCRIPTION)]
    balance = starting_balance

    for day in sorted(set(events_by_date) | set(_continuity_dates(today, end_date))):
        day_events = events_by_date.get(day, [])
        incoming = sum((e.amount for e in day_events if e.type == TransactionType.INCOME), ZERO)
        outgoing = sum((e.amount for e in day_events if e.type == TransactionType.EXPENSE), ZERO)
        balance += incoming - outgoing

        data_points.append(
            CashFlowDataPoint(
                date=day,
                balance=balance,
                incoming=incoming,
                outgoing=outgoing,
                description=PROJECTION_DESCRIPTION,
                includes_estimate=any(e.amount_type == AmountType.VARIABLE for e in day_events),
                events=day_events,
            )
        )

    return CashFlowForecast(
        starting_balance=starting_balance,
        start_date=today,
        end_date=end_date,
        data_points=data_points,
    )
