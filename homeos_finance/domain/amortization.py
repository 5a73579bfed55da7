"""Amortization schedule generation for debts (Price, SAC and Bullet systems)"""

import uuid
from dataclasses import replace
from datetime import date
from decimal import ROUND_HALF_UP, ROUND_UP, Decimal, localcontext
from typing import List, Sequence, Tuple

from homeos_finance.domain.exceptions import InstallmentStateError, InvalidDebtTermsError, ScheduleRegenerationError
from homeos_finance.domain.models import (
    AmortizationType,
    BulletInterestPolicy,
    Debt,
    DebtInstallment,
    DebtStatus,
)
from homeos_finance.utils.date_utils import add_months

CENT = Decimal("0.01")


def to_money(value: Decimal) -> Decimal:
    """Round to the currency's minimal unit"""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _price_rows(principal: Decimal, rate: Decimal, n: int) -> List[Tuple[Decimal, Decimal]]:
    """Constant payment; the last row pays off whatever balance is left"""
    if rate == 0:
        payment = to_money(principal / n)
    else:
        payment = to_money(principal * rate / (1 - (1 + rate) ** -n))

    balance = principal
    rows = []
    for number in range(1, n + 1):
        interest = to_money(balance * rate)
        amortized = balance if number == n else min(payment - interest, balance)
        balance -= amortized
        rows.append((amortized, interest))
    return rows


def _sac_rows(principal: Decimal, rate: Decimal, n: int) -> List[Tuple[Decimal, Decimal]]:
    """Constant principal; interest shrinks with the balance"""
    # Rounded up: the last row takes the smaller residue
    base = (principal / n).quantize(CENT, rounding=ROUND_UP)

    balance = principal
    rows = []
    for number in range(1, n + 1):
        interest = to_money(balance * rate)
        amortized = balance if number == n else min(base, balance)
        balance -= amortized
        rows.append((amortized, interest))
    return rows


def _bullet_rows(
    principal: Decimal,
    rate: Decimal,
    n: int,
    policy: BulletInterestPolicy,
) -> List[Tuple[Decimal, Decimal]]:
    """Principal repaid in the last row only"""
    zero = Decimal("0.00")

    if policy == BulletInterestPolicy.INTEREST_ONLY:
        interest = to_money(principal * rate)
        return [(zero, interest)] * (n - 1) + [(principal, interest)]

    # Capitalize: interest compounds on the outstanding amount until the balloon
    accrued = to_money(principal * ((1 + rate) ** n - 1))
    return [(zero, zero)] * (n - 1) + [(principal, accrued)]


def generate_schedule(
    principal: Decimal,
    monthly_rate: Decimal,
    total_installments: int,
    amortization_type: AmortizationType,
    start_date: date,
    bullet_policy: BulletInterestPolicy | None = None,
    debt_id: uuid.UUID | None = None,
) -> List[DebtInstallment]:
    """
    Split a debt into monthly installments.

    Requirements:
    - Decimal arithmetic throughout; the outstanding balance is tracked in
      cents and interest is rounded per period
    - The last installment absorbs every rounding residue, so the principal
      portions sum exactly to the principal and the final remaining
      balance is 0.00
    - Installment i is due i calendar months after start_date, with the
      start day clamped to the end of shorter months

    Args:
        principal: Amount financed (must be positive)
        monthly_rate: Fixed monthly interest rate as a fraction (0.01 = 1%)
        total_installments: Number of monthly installments (>= 1)
        amortization_type: Price, SAC or Bullet
        start_date: Contract date; the first installment is due a month later
        bullet_policy: Required for Bullet debts, ignored otherwise

    Raises:
        InvalidDebtTermsError: On non-positive principal, negative rate,
            fewer than one installment, or Bullet without a policy

    Example:
        12000.00 at 1% over 12 installments (Price) ->
        first installment 1066.19 = 946.19 principal + 120.00 interest
    """
    principal = Decimal(principal)
    rate = Decimal(monthly_rate)

    if total_installments < 1:
        raise InvalidDebtTermsError(f"Debt needs at least one installment, got {total_installments}")
    if principal <= 0 or to_money(principal) <= 0:
        raise InvalidDebtTermsError(f"Debt principal must be positive, got {principal}")
    if rate < 0:
        raise InvalidDebtTermsError(f"Monthly rate cannot be negative, got {rate}")
    if amortization_type == AmortizationType.BULLET and bullet_policy is None:
        raise InvalidDebtTermsError("Bullet debts need an explicit interest policy")

    principal = to_money(principal)

    with localcontext() as ctx:
        ctx.prec = 34
        if amortization_type == AmortizationType.PRICE:
            rows = _price_rows(principal, rate, total_installments)
        elif amortization_type == AmortizationType.SAC:
            rows = _sac_rows(principal, rate, total_installments)
        else:
            rows = _bullet_rows(principal, rate, total_installments, bullet_policy)

    installments = []
    remaining = principal
    for number, (amortized, interest) in enumerate(rows, start=1):
        remaining -= amortized
        installments.append(
            DebtInstallment(
                debt_id=debt_id,
                number=number,
                due_date=add_months(start_date, number),
                total_amount=amortized + interest,
                principal_amount=amortized,
                interest_amount=interest,
                remaining_balance=remaining,
            )
        )

    return installments


def schedule_for_debt(debt: Debt) -> List[DebtInstallment]:
    """Schedule computed from a debt's terms"""
    return generate_schedule(
        principal=debt.original_amount,
        monthly_rate=debt.monthly_rate,
        total_installments=debt.total_installments,
        amortization_type=debt.amortization_type,
        start_date=debt.start_date,
        bullet_policy=debt.bullet_policy,
        debt_id=debt.id,
    )


def ensure_schedule_replaceable(existing: Sequence[DebtInstallment]) -> None:
    """
    Refuse to replace a schedule that already has payments recorded.

    Whether paid installments should be kept, re-based or dropped is a
    caller decision; this never truncates or merges on its own.
    """
    paid = [inst.number for inst in existing if inst.is_paid]
    if paid:
        raise ScheduleRegenerationError(
            f"Schedule has paid installments {paid}; regenerating would discard them"
        )


def apply_installment_payment(
    debt: Debt,
    installments: Sequence[DebtInstallment],
    number: int,
    paid_date: date,
    transaction_id: uuid.UUID | None = None,
) -> Tuple[Debt, DebtInstallment]:
    """
    Record payment of the next installment.

    Returns the updated debt (installments_paid, current_balance, status)
    and the updated installment. Installments must be paid in sequence so
    current_balance always matches the last paid installment's remaining
    balance.
    """
    if debt.status != DebtStatus.ACTIVE:
        raise InstallmentStateError(f"Debt {debt.id} is {debt.status.value}, not Active")

    installment = next((inst for inst in installments if inst.number == number), None)
    if installment is None:
        raise InstallmentStateError(f"Debt {debt.id} has no installment {number}")
    if installment.is_paid:
        raise InstallmentStateError(f"Installment {number} of debt {debt.id} is already paid")
    if number != debt.installments_paid + 1:
        raise InstallmentStateError(
            f"Installment {debt.installments_paid + 1} of debt {debt.id} must be paid before {number}"
        )

    paid_installment = replace(installment, paid_date=paid_date, transaction_id=transaction_id)
    installments_paid = debt.installments_paid + 1
    updated_debt = replace(
        debt,
        installments_paid=installments_paid,
        current_balance=paid_installment.remaining_balance,
        status=DebtStatus.SETTLED if installments_paid == debt.total_installments else debt.status,
    )
    return updated_debt, paid_installment
