"""Integration tests for API endpoints"""

import uuid
import pytest
from datetime import date
from decimal import Decimal
from fastapi.testclient import TestClient
from homeos_finance.domain.models import AmortizationType, Debt, TransactionType
from homeos_finance.services.debts import DebtService
from homeos_finance.services.forecast import CashFlowForecastService


@pytest.fixture
def car_loan(db, user_id, account) -> uuid.UUID:
    debt = Debt(
        id=uuid.uuid4(),
        name="Car loan",
        original_amount=Decimal("12000.00"),
        current_balance=Decimal("12000.00"),
        monthly_rate=Decimal("0.01"),
        amortization_type=AmortizationType.PRICE,
        total_installments=12,
        start_date=date(2024, 2, 20),
        linked_account_id=account.id,
    )
    DebtService(db).create(user_id, debt)
    return debt.id


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    client.get("/health")
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "homeos_forecast_duration_seconds" in response.text
    assert "http_request_duration_seconds" in response.text


def test_request_id_is_echoed(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"

    assert client.get("/health").headers["X-Request-ID"]


def test_forecast_endpoint(client: TestClient, user_id, make_recurring, make_transaction):
    """Test GET /v1/cash-flow/forecast returns the running balance"""
    make_recurring()
    make_transaction("200.00", date(2024, 3, 15))

    response = client.get("/v1/cash-flow/forecast", params={"user_id": user_id, "months": 1})

    assert response.status_code == 200
    data = response.json()
    assert Decimal(data["starting_balance"]) == Decimal("1000.00")
    assert data["start_date"] == "2024-03-10"
    assert data["end_date"] == "2024-04-10"
    assert Decimal(data["lowest_balance"]) == Decimal("800.00")
    assert data["lowest_balance_date"] == "2024-03-15"

    balances = {p["date"]: Decimal(p["balance"]) for p in data["data_points"]}
    assert balances["2024-03-15"] == Decimal("800.00")
    assert balances["2024-04-01"] == Decimal("3800.00")


def test_forecast_default_horizon(client: TestClient, user_id, account):
    response = client.get("/v1/cash-flow/forecast", params={"user_id": user_id})

    assert response.status_code == 200
    assert response.json()["end_date"] == "2024-09-10"


@pytest.mark.parametrize("months", [0, -1, 500])
def test_forecast_invalid_horizon(client: TestClient, user_id, account, months):
    response = client.get("/v1/cash-flow/forecast", params={"user_id": user_id, "months": months})
    assert response.status_code == 422


def test_forecast_unexpected_error(client: TestClient, user_id, account, monkeypatch):
    def broken_forecast(self, *args, **kwargs):
        raise RuntimeError("connection reset")

    monkeypatch.setattr(CashFlowForecastService, "forecast", broken_forecast)

    response = client.get("/v1/cash-flow/forecast", params={"user_id": user_id})

    assert response.status_code == 500
    assert response.json()["detail"] == "Internal server error"


def test_simulate_schedule(client: TestClient):
    """Test POST /v1/debts/schedule/simulate"""
    response = client.post(
        "/v1/debts/schedule/simulate",
        json={
            "principal": "12000.00",
            "monthly_rate": "0.01",
            "total_installments": 12,
            "amortization_type": "Price",
            "start_date": "2024-01-15",
        },
    )

    assert response.status_code == 200
    data = response.json()
    assert len(data["installments"]) == 12
    first = data["installments"][0]
    assert Decimal(first["total_amount"]) == Decimal("1066.19")
    assert Decimal(first["principal_amount"]) == Decimal("946.19")
    assert Decimal(first["interest_amount"]) == Decimal("120.00")
    assert first["due_date"] == "2024-02-15"
    assert Decimal(data["total_principal"]) == Decimal("12000.00")
    assert Decimal(data["installments"][-1]["remaining_balance"]) == 0


def test_simulate_bullet_requires_policy(client: TestClient):
    response = client.post(
        "/v1/debts/schedule/simulate",
        json={
            "principal": "10000.00",
            "monthly_rate": "0.01",
            "total_installments": 3,
            "amortization_type": "Bullet",
            "start_date": "2024-01-15",
        },
    )
    assert response.status_code == 422


def test_get_schedule(client: TestClient, user_id, car_loan):
    response = client.get(f"/v1/debts/{car_loan}/amortization-schedule", params={"user_id": user_id})

    assert response.status_code == 200
    data = response.json()
    assert data["debt_id"] == str(car_loan)
    assert len(data["installments"]) == 12


def test_get_schedule_not_found(client: TestClient, user_id, account):
    response = client.get(f"/v1/debts/{uuid.uuid4()}/amortization-schedule", params={"user_id": user_id})
    assert response.status_code == 404


def test_get_schedule_invalid_id(client: TestClient, user_id):
    response = client.get("/v1/debts/not-a-uuid/amortization-schedule", params={"user_id": user_id})
    assert response.status_code == 400


def test_pay_installment_then_regenerate(client: TestClient, user_id, car_loan):
    """Test paying installment 1 updates the debt and blocks regeneration"""
    regenerated = client.post(
        f"/v1/debts/{car_loan}/amortization-schedule/regenerate", params={"user_id": user_id}
    )
    assert regenerated.status_code == 200

    response = client.post(
        f"/v1/debts/{car_loan}/pay-installment",
        json={"user_id": user_id, "installment_number": 1, "payment_date": "2024-03-20"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["installments_paid"] == 1
    assert data["status"] == "Active"
    assert Decimal(data["current_balance"]) == Decimal("11053.81")

    again = client.post(
        f"/v1/debts/{car_loan}/pay-installment",
        json={"user_id": user_id, "installment_number": 1, "payment_date": "2024-03-20"},
    )
    assert again.status_code == 409

    blocked = client.post(f"/v1/debts/{car_loan}/amortization-schedule/regenerate", params={"user_id": user_id})
    assert blocked.status_code == 409


def test_generate_endpoint_is_idempotent(client: TestClient, user_id, make_recurring):
    """Test POST /v1/recurring-transactions/generate twice"""
    make_recurring(description="Rent", type=TransactionType.EXPENSE, start_date=date(2024, 1, 31), day_of_month=31)

    first = client.post("/v1/recurring-transactions/generate", json={"user_id": user_id})
    assert first.status_code == 200
    data = first.json()
    assert data["as_of"] == "2024-03-10"
    assert data["generated_count"] == 2
    assert data["failures"] == []

    second = client.post("/v1/recurring-transactions/generate", json={"user_id": user_id, "as_of": "2024-03-10"})
    assert second.json()["generated_count"] == 0


def test_preview_endpoint(client: TestClient, user_id, make_recurring):
    recurring_id = make_recurring()

    response = client.get(
        f"/v1/recurring-transactions/{recurring_id}/preview", params={"user_id": user_id, "count": 3}
    )

    assert response.status_code == 200
    assert response.json()["occurrences"] == ["2024-01-01", "2024-02-01", "2024-03-01"]

    missing = client.get(f"/v1/recurring-transactions/{uuid.uuid4()}/preview", params={"user_id": user_id})
    assert missing.status_code == 404


def test_stats_endpoint(client: TestClient, user_id, make_recurring):
    make_recurring()

    response = client.get("/v1/recurring-transactions/stats", params={"user_id": user_id})

    assert response.status_code == 200
    data = response.json()
    assert data["active_count"] == 1
    assert data["next_due_date"] == "2024-01-01"
    assert data["last_run_at"] is None


def test_update_recurring_endpoint(client: TestClient, user_id, make_recurring):
    """Test PUT /v1/recurring-transactions/{id} after generation"""
    recurring_id = make_recurring(
        description="Rent", type=TransactionType.EXPENSE, start_date=date(2024, 1, 31), day_of_month=31
    )
    client.post("/v1/recurring-transactions/generate", json={"user_id": user_id})

    response = client.put(
        f"/v1/recurring-transactions/{recurring_id}",
        json={"user_id": user_id, "day_of_month": 15, "amount": "1600.00"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["day_of_month"] == 15
    assert Decimal(data["amount"]) == Decimal("1600.00")
    assert data["next_occurrence"] == "2024-03-15"
    assert data["description"] == "Rent"

    again = client.post("/v1/recurring-transactions/generate", json={"user_id": user_id})
    assert again.json()["generated_count"] == 0


def test_update_recurring_errors(client: TestClient, user_id, make_recurring):
    recurring_id = make_recurring()
    url = f"/v1/recurring-transactions/{recurring_id}"

    assert client.put(url, json={"user_id": user_id, "day_of_month": None}).status_code == 422
    assert client.put(url, json={"user_id": user_id, "day_of_month": 40}).status_code == 422
    assert client.put(url, json={"user_id": user_id, "account_id": "nope"}).status_code == 400
    assert client.put(url, json={"user_id": user_id, "account_id": str(uuid.uuid4())}).status_code == 409

    missing = client.put(f"/v1/recurring-transactions/{uuid.uuid4()}", json={"user_id": user_id})
    assert missing.status_code == 404


def test_toggle_recurring_endpoint(client: TestClient, user_id, make_recurring):
    recurring_id = make_recurring()
    url = f"/v1/recurring-transactions/{recurring_id}/toggle"

    response = client.patch(url, params={"user_id": user_id})
    assert response.status_code == 200
    assert response.json()["is_active"] is False

    generated = client.post("/v1/recurring-transactions/generate", json={"user_id": user_id})
    assert generated.json()["generated_count"] == 0

    assert client.patch(url, params={"user_id": user_id}).json()["is_active"] is True
    missing = client.patch(f"/v1/recurring-transactions/{uuid.uuid4()}/toggle", params={"user_id": user_id})
    assert missing.status_code == 404
