"""Unit tests for amortization schedule generation"""

import uuid
import pytest
from dataclasses import replace
from datetime import date
from decimal import Decimal
from homeos_finance.domain.amortization import (
    apply_installment_payment,
    ensure_schedule_replaceable,
    generate_schedule,
    schedule_for_debt,
)
from homeos_finance.domain.exceptions import (
    InstallmentStateError,
    InvalidDebtTermsError,
    ScheduleRegenerationError,
)
from homeos_finance.domain.models import (
    AmortizationType,
    BulletInterestPolicy,
    Debt,
    DebtStatus,
)


START = date(2024, 1, 15)


def make_debt(**overrides) -> Debt:
    fields = dict(
        id=uuid.uuid4(),
        name="Car loan",
        original_amount=Decimal("12000.00"),
        current_balance=Decimal("12000.00"),
        monthly_rate=Decimal("0.01"),
        amortization_type=AmortizationType.PRICE,
        total_installments=12,
        start_date=START,
    )
    fields.update(overrides)
    return Debt(**fields)


def test_price_first_installment():
    """Test 12000.00 at 1% over 12 months"""
    installments = generate_schedule(Decimal("12000.00"), Decimal("0.01"), 12, AmortizationType.PRICE, START)

    first = installments[0]
    assert first.total_amount == Decimal("1066.19")
    assert first.principal_amount == Decimal("946.19")
    assert first.interest_amount == Decimal("120.00")
    assert first.remaining_balance == Decimal("11053.81")

    second = installments[1]
    assert second.interest_amount == Decimal("110.54")
    assert second.principal_amount == Decimal("955.65")


@pytest.mark.parametrize(
    "principal,rate,n",
    [
        ("12000.00", "0.01", 12),
        ("5000.00", "0.0199", 24),
        ("999.99", "0.035", 7),
        ("250000.00", "0.0085", 60),
        ("100.00", "0.05", 1),
    ],
)
def test_price_schedule_properties(principal, rate, n):
    """Test Price schedules pay off exactly with a constant payment"""
    installments = generate_schedule(Decimal(principal), Decimal(rate), n, AmortizationType.PRICE, START)

    assert len(installments) == n
    assert [inst.number for inst in installments] == list(range(1, n + 1))
    assert sum(inst.principal_amount for inst in installments) == Decimal(principal)
    assert installments[-1].remaining_balance == Decimal("0.00")
    # Only the last installment may differ by the accumulated rounding residue
    assert all(inst.total_amount == installments[0].total_amount for inst in installments[:-1])
    assert abs(installments[-1].total_amount - installments[0].total_amount) < Decimal("1.00")
    for inst in installments:
        assert inst.total_amount == inst.principal_amount + inst.interest_amount
        assert inst.remaining_balance >= 0


def test_price_zero_rate():
    """Test zero interest splits principal with the residue in the last installment"""
    installments = generate_schedule(Decimal("1000.00"), Decimal("0"), 3, AmortizationType.PRICE, START)

    assert [inst.principal_amount for inst in installments] == [
        Decimal("333.33"),
        Decimal("333.33"),
        Decimal("333.34"),
    ]
    assert all(inst.interest_amount == 0 for inst in installments)


def test_sac_constant_principal():
    """Test SAC amortizes equal principal with shrinking interest"""
    installments = generate_schedule(Decimal("12000.00"), Decimal("0.01"), 12, AmortizationType.SAC, START)

    assert all(inst.principal_amount == Decimal("1000.00") for inst in installments)
    assert installments[0].interest_amount == Decimal("120.00")
    assert installments[0].total_amount == Decimal("1120.00")
    assert installments[-1].interest_amount == Decimal("10.00")
    assert installments[-1].total_amount == Decimal("1010.00")

    totals = [inst.total_amount for inst in installments]
    assert totals == sorted(totals, reverse=True)


def test_sac_rounding_residue():
    """Test the last SAC installment takes the smaller principal remainder"""
    installments = generate_schedule(Decimal("100.00"), Decimal("0.01"), 3, AmortizationType.SAC, START)

    assert [inst.principal_amount for inst in installments] == [
        Decimal("33.34"),
        Decimal("33.34"),
        Decimal("33.32"),
    ]
    assert installments[1].interest_amount == Decimal("0.67")
    assert sum(inst.principal_amount for inst in installments) == Decimal("100.00")
    assert installments[-1].remaining_balance == Decimal("0.00")


@pytest.mark.parametrize(
    "principal,rate,n",
    [
        ("100.00", "0.00001", 3),
        ("1.00", "0.005", 3),
        ("0.07", "0.01", 3),
        ("0.10", "0", 3),
        ("1000.00", "0.02", 7),
        ("999.99", "0.0001", 11),
        ("12000.00", "0.01", 12),
    ],
)
def test_sac_totals_never_increase(principal, rate, n):
    """Test SAC installments shrink even when rounding dominates the interest"""
    installments = generate_schedule(Decimal(principal), Decimal(rate), n, AmortizationType.SAC, START)

    totals = [inst.total_amount for inst in installments]
    assert all(later <= earlier for earlier, later in zip(totals, totals[1:]))
    assert sum(inst.principal_amount for inst in installments) == Decimal(principal)
    assert installments[-1].remaining_balance == Decimal("0.00")


def test_bullet_interest_only():
    """Test interest paid every month and principal at the end"""
    installments = generate_schedule(
        Decimal("10000.00"),
        Decimal("0.02"),
        4,
        AmortizationType.BULLET,
        START,
        bullet_policy=BulletInterestPolicy.INTEREST_ONLY,
    )

    assert all(inst.interest_amount == Decimal("200.00") for inst in installments)
    assert [inst.principal_amount for inst in installments] == [
        Decimal("0.00"),
        Decimal("0.00"),
        Decimal("0.00"),
        Decimal("10000.00"),
    ]
    assert [inst.remaining_balance for inst in installments[:3]] == [Decimal("10000.00")] * 3
    assert installments[-1].remaining_balance == Decimal("0.00")
    assert installments[-1].total_amount == Decimal("10200.00")


def test_bullet_capitalize():
    """Test compounded interest is paid with the principal in one balloon payment"""
    installments = generate_schedule(
        Decimal("10000.00"),
        Decimal("0.01"),
        3,
        AmortizationType.BULLET,
        START,
        bullet_policy=BulletInterestPolicy.CAPITALIZE,
    )

    assert [inst.total_amount for inst in installments[:2]] == [Decimal("0.00"), Decimal("0.00")]
    assert installments[-1].principal_amount == Decimal("10000.00")
    assert installments[-1].interest_amount == Decimal("303.01")
    assert installments[-1].total_amount == Decimal("10303.01")
    assert installments[-1].remaining_balance == Decimal("0.00")


def test_bullet_requires_policy():
    with pytest.raises(InvalidDebtTermsError):
        generate_schedule(Decimal("10000.00"), Decimal("0.01"), 3, AmortizationType.BULLET, START)


@pytest.mark.parametrize(
    "principal,rate,n",
    [
        ("0", "0.01", 12),
        ("-100.00", "0.01", 12),
        ("0.001", "0.01", 12),
        ("1000.00", "-0.01", 12),
        ("1000.00", "0.01", 0),
    ],
)
def test_invalid_terms(principal, rate, n):
    """Test rejection of non-positive principal, negative rate and zero installments"""
    with pytest.raises(InvalidDebtTermsError):
        generate_schedule(Decimal(principal), Decimal(rate), n, AmortizationType.PRICE, START)


@pytest.mark.parametrize("paid", [-1, 13])
def test_debt_rejects_paid_count_outside_schedule(paid):
    with pytest.raises(InvalidDebtTermsError):
        make_debt(installments_paid=paid)


def test_due_dates_clamp_to_month_end():
    """Test monthly due dates from a day-31 start never drift"""
    installments = generate_schedule(Decimal("400.00"), Decimal("0.01"), 4, AmortizationType.SAC, date(2024, 1, 31))

    assert [inst.due_date for inst in installments] == [
        date(2024, 2, 29),
        date(2024, 3, 31),
        date(2024, 4, 30),
        date(2024, 5, 31),
    ]


def test_schedule_for_debt_carries_debt_id():
    debt = make_debt()
    installments = schedule_for_debt(debt)

    assert len(installments) == 12
    assert all(inst.debt_id == debt.id for inst in installments)


def test_ensure_schedule_replaceable():
    installments = schedule_for_debt(make_debt())
    ensure_schedule_replaceable(installments)

    installments[0] = replace(installments[0], paid_date=date(2024, 2, 15))
    with pytest.raises(ScheduleRegenerationError):
        ensure_schedule_replaceable(installments)


def test_apply_installment_payment():
    """Test paying the first installment updates the debt balance"""
    debt = make_debt()
    installments = schedule_for_debt(debt)
    transaction_id = uuid.uuid4()

    updated, paid = apply_installment_payment(debt, installments, 1, date(2024, 2, 14), transaction_id)

    assert paid.paid_date == date(2024, 2, 14)
    assert paid.transaction_id == transaction_id
    assert updated.installments_paid == 1
    assert updated.current_balance == Decimal("11053.81")
    assert updated.status == DebtStatus.ACTIVE
    # Input values are left untouched
    assert debt.installments_paid == 0
    assert installments[0].paid_date is None


def test_apply_installment_payment_settles_debt():
    debt = make_debt(total_installments=1)
    installments = schedule_for_debt(debt)

    updated, _ = apply_installment_payment(debt, installments, 1, date(2024, 2, 15))

    assert updated.status == DebtStatus.SETTLED
    assert updated.current_balance == Decimal("0.00")


def test_apply_installment_payment_out_of_order():
    debt = make_debt()
    with pytest.raises(InstallmentStateError):
        apply_installment_payment(debt, schedule_for_debt(debt), 3, date(2024, 2, 15))


def test_apply_installment_payment_rejects_invalid_state():
    debt = make_debt()
    installments = schedule_for_debt(debt)

    with pytest.raises(InstallmentStateError):
        apply_installment_payment(debt, installments, 13, date(2024, 2, 15))

    installments[0] = replace(installments[0], paid_date=date(2024, 2, 15))
    with pytest.raises(InstallmentStateError):
        apply_installment_payment(debt, installments, 1, date(2024, 2, 15))

    settled = make_debt(status=DebtStatus.SETTLED)
    with pytest.raises(InstallmentStateError):
        apply_installment_payment(settled, schedule_for_debt(settled), 1, date(2024, 2, 15))
