"""Debt tracking - amortization schedules and installment payments"""

import logging
import uuid
from datetime import date
from typing import List, Tuple

from sqlalchemy.orm import Session

from homeos_finance.domain.amortization import (
    apply_installment_payment,
    ensure_schedule_replaceable,
    schedule_for_debt,
)
from homeos_finance.domain.exceptions import EntityNotFoundError
from homeos_finance.domain.models import Debt, DebtInstallment
from homeos_finance.infrastructure.database.repositories import DebtRepository

logger = logging.getLogger(__name__)


class DebtService:
    """Persists amortization schedules computed by the engine"""

    def __init__(self, db: Session):
        self.db = db
        self.debt_repo = DebtRepository(db)

    def _get_debt(self, user_id: str, debt_id: uuid.UUID) -> Debt:
        debt = self.debt_repo.get_by_id(debt_id, user_id)
        if debt is None:
            raise EntityNotFoundError(f"Debt {debt_id} not found")
        return debt

    def create(self, user_id: str, debt: Debt, generate_schedule: bool = True) -> List[DebtInstallment]:
        """Save a new debt and, unless told otherwise, its full schedule"""
        schedule = schedule_for_debt(debt) if generate_schedule else []
        self.debt_repo.add(user_id, debt)
        if schedule:
            self.debt_repo.save_installments(debt.id, schedule)
        self.db.commit()
        return schedule

    def get_schedule(self, user_id: str, debt_id: uuid.UUID) -> List[DebtInstallment]:
        """Stored installments, or the schedule computed from the debt's terms"""
        debt = self._get_debt(user_id, debt_id)
        stored = self.debt_repo.get_installments(debt_id)
        return stored if stored else schedule_for_debt(debt)

    def regenerate_schedule(self, user_id: str, debt_id: uuid.UUID) -> List[DebtInstallment]:
        """
        Replace a debt's schedule with one freshly computed from its terms.

        Raises:
            ScheduleRegenerationError: some stored installments are already paid
        """
        debt = self._get_debt(user_id, debt_id)
        ensure_schedule_replaceable(self.debt_repo.get_installments(debt_id))

        schedule = schedule_for_debt(debt)
        self.debt_repo.save_installments(debt_id, schedule)
        self.db.commit()

        logger.info(
            "Amortization schedule regenerated",
            extra={"user_id": user_id, "debt_id": str(debt_id), "installments": len(schedule)},
        )
        return schedule

    def pay_installment(
        self,
        user_id: str,
        debt_id: uuid.UUID,
        number: int,
        paid_date: date,
        transaction_id: uuid.UUID | None = None,
    ) -> Tuple[Debt, DebtInstallment]:
        """Mark the next installment paid and update the debt in one commit"""
        debt = self._get_debt(user_id, debt_id)
        installments = self.debt_repo.get_installments(debt_id)
        if not installments:
            # Persist the computed schedule so the payment has a row to land on
            installments = schedule_for_debt(debt)
            self.debt_repo.save_installments(debt_id, installments)

        updated_debt, paid = apply_installment_payment(debt, installments, number, paid_date, transaction_id)
        self.debt_repo.save_installment_payment(debt_id, paid)
        self.debt_repo.save_debt(user_id, updated_debt)
        self.db.commit()

        logger.info(
            "Debt installment paid",
            extra={
                "user_id": user_id,
                "debt_id": str(debt_id),
                "installment": number,
                "status": updated_debt.status.value,
            },
        )
        return updated_debt, paid
