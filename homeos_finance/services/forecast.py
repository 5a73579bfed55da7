"""Cash-flow forecast service - gathers read-only snapshots and runs the projection"""

import time
from datetime import date
from typing import List, Sequence, Tuple

from sqlalchemy.orm import Session

from homeos_finance.config import Settings, settings
from homeos_finance.domain.amortization import schedule_for_debt
from homeos_finance.domain.exceptions import DataIntegrityError
from homeos_finance.domain.forecast import build_forecast, validate_horizon
from homeos_finance.domain.models import AccountBalance, CashFlowForecast, Debt, DebtInstallment
from homeos_finance.infrastructure.database.repositories import (
    AccountRepository,
    DebtRepository,
    RecurringTransactionRepository,
    TransactionRepository,
    recurring_to_domain,
)
from homeos_finance.infrastructure.observability.logging import log_forecast
from homeos_finance.infrastructure.observability.metrics import forecast_duration_histogram, forecast_horizon_histogram
from homeos_finance.utils.date_utils import add_months


class CashFlowForecastService:
    """Builds forecasts from persisted data without writing anything"""

    def __init__(self, db: Session, config: Settings = settings):
        self.db = db
        self.config = config
        self.account_repo = AccountRepository(db)
        self.transaction_repo = TransactionRepository(db)
        self.recurring_repo = RecurringTransactionRepository(db)
        self.debt_repo = DebtRepository(db)

    def forecast(self, user_id: str, horizon_months: int, today: date | None = None) -> CashFlowForecast:
        """
        Project a user's combined account balance over the next horizon_months.

        Raises:
            InvalidHorizonError: before any data is read
            DataIntegrityError: an account, recurrence or debt is inconsistent
        """
        validate_horizon(horizon_months, self.config.max_forecast_months)
        today = today or date.today()
        start_time = time.time()

        with forecast_duration_histogram.time():
            accounts = self._account_balances(user_id, today)
            pending = self.transaction_repo.get_pending(user_id, today, add_months(today, horizon_months))
            recurring = [recurring_to_domain(r) for r in self.recurring_repo.get_all(user_id)]
            debt_schedules = self._debt_schedules(user_id)

            forecast = build_forecast(
                today=today,
                horizon_months=horizon_months,
                accounts=accounts,
                pending_transactions=pending,
                recurring_transactions=recurring,
                debt_schedules=debt_schedules,
                max_horizon_months=self.config.max_forecast_months,
            )

        forecast_horizon_histogram.observe(horizon_months)
        log_forecast(
            user_id,
            horizon_months,
            len(forecast.data_points),
            str(forecast.starting_balance),
            (time.time() - start_time) * 1000,
        )
        return forecast

    def _account_balances(self, user_id: str, today: date) -> List[AccountBalance]:
        balances = []
        for account in self.account_repo.get_active_accounts(user_id):
            if account.initial_balance is None:
                raise DataIntegrityError(f"Account {account.id} has no initial balance")
            balances.append(
                AccountBalance(
                    account_id=account.id,
                    initial_balance=account.initial_balance,
                    ledger_total=self.account_repo.get_ledger_total(account.id, today),
                )
            )
        return balances

    def _debt_schedules(self, user_id: str) -> List[Tuple[Debt, Sequence[DebtInstallment]]]:
        """
        Unpaid installments of each active, account-linked debt.

        Stored schedules are used when present; otherwise the schedule is
        computed from the debt's terms and its first installments_paid
        entries are treated as paid.
        """
        schedules = []
        for debt in self.debt_repo.get_active_debts_linked_to_accounts(user_id):
            installments = self.debt_repo.get_installments(debt.id)
            if installments:
                unpaid = [inst for inst in installments if not inst.is_paid]
            else:
                unpaid = [inst for inst in schedule_for_debt(debt) if inst.number > debt.installments_paid]

            if not unpaid:
                raise DataIntegrityError(f"Debt {debt.name!r} ({debt.id}) is Active but has no remaining installments")
            schedules.append((debt, unpaid))
        return schedules
