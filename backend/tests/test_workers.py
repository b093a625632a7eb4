"""
Worker and salary payment tests.

Verifies:
- Passport ID is unique across workers
- A termination date deactivates the worker without hiding them
- One active salary payment per worker per month
- Salary totals are exact Decimal sums of amount + bonus - deduction
- Owner-only writes, manager reads
"""

from datetime import date
from decimal import Decimal

import pytest

from phoneshop.services import worker_service
from phoneshop.validation import ConflictError, NotFoundError, ValidationError


def make_worker(passport_id="AA1234567", **overrides):
    payload = {
        "full_name": "Ali Karimov",
        "phone_number": "+998901234567",
        "passport_id": passport_id,
        "hire_date": "2026-01-01",
        "monthly_salary": "3000.00",
    }
    payload.update(overrides)
    return worker_service.create_worker(payload)


def pay(worker, month, year=2026, amount="3000.00", **extra):
    return worker_service.create_worker_payment({
        "worker_id": worker.id, "month": month, "year": year, "amount": amount, **extra,
    })


@pytest.fixture(scope='function')
def worker(app):
    return make_worker()


# =============================================================================
# WORKERS
# =============================================================================


class TestWorkers:

    def test_create(self, worker):
        assert worker.is_active is True
        assert worker.hire_date == date(2026, 1, 1)
        assert worker.monthly_salary == Decimal("3000.00")
        assert worker.to_dict()["hire_date"] == "2026-01-01"

    def test_duplicate_passport_rejected(self, worker):
        with pytest.raises(ConflictError):
            make_worker(passport_id=worker.passport_id, full_name="Someone Else")

    def test_passport_stays_taken_after_delete(self, worker):
        worker_service.delete_worker(worker.id)
        with pytest.raises(ConflictError):
            make_worker(passport_id="AA1234567")

    def test_bad_hire_date_rejected(self, app):
        with pytest.raises(ValidationError):
            make_worker(hire_date="01/02/2026")

    def test_zero_salary_rejected(self, app):
        with pytest.raises(ValidationError):
            make_worker(monthly_salary="0")

    def test_link_unknown_user(self, app):
        with pytest.raises(NotFoundError):
            make_worker(user_id=999)

    def test_link_user_once(self, users):
        make_worker(user_id=users["TECHNICIAN"].id)
        with pytest.raises(ConflictError):
            make_worker(passport_id="BB7654321", user_id=users["TECHNICIAN"].id)

    def test_termination_deactivates(self, worker):
        updated = worker_service.update_worker(worker.id, {"termination_date": "2026-06-30"})
        assert updated.is_active is False
        assert updated.termination_date == date(2026, 6, 30)

        assert worker_service.list_active_workers() == []
        items, total = worker_service.list_workers()
        assert total == 1
        assert worker_service.get_worker(worker.id).id == worker.id

    def test_termination_before_hire_rejected(self, worker):
        with pytest.raises(ValidationError):
            worker_service.update_worker(worker.id, {"termination_date": "2025-12-31"})

    def test_search(self, worker):
        make_worker(passport_id="CC1112223", full_name="Dilshod Rakhimov", phone_number="+998935550000")
        items, total = worker_service.list_workers(search="cc111")
        assert total == 1
        assert items[0].full_name == "Dilshod Rakhimov"

    def test_list_newest_hire_first(self, worker):
        make_worker(passport_id="DD0000001", hire_date="2026-03-01")
        items, _ = worker_service.list_workers()
        assert [w.passport_id for w in items] == ["DD0000001", "AA1234567"]

    def test_delete_hides_worker(self, worker):
        worker_service.delete_worker(worker.id)
        with pytest.raises(NotFoundError):
            worker_service.get_worker(worker.id)
        assert worker_service.list_workers()[1] == 0


# =============================================================================
# SALARY PAYMENTS
# =============================================================================


class TestSalaryPayments:

    def test_total_includes_bonus_and_deduction(self, worker):
        payment = pay(worker, 2, bonus="500.00", deduction="100.50")
        assert payment.total_paid == Decimal("3399.50")
        assert payment.method == "CASH"

    def test_one_payment_per_month(self, worker):
        pay(worker, 2)
        with pytest.raises(ConflictError):
            pay(worker, 2)
        assert pay(worker, 2, year=2025).year == 2025

    def test_deleted_payment_frees_month(self, worker):
        first = pay(worker, 3)
        worker_service.delete_worker_payment(first.id)
        assert pay(worker, 3, amount="2900.00").total_paid == Decimal("2900.00")

    @pytest.mark.parametrize("month,year", [(0, 2026), (13, 2026), (5, 1999)])
    def test_bad_period_rejected(self, worker, month, year):
        with pytest.raises(ValidationError):
            pay(worker, month, year=year)

    def test_deduction_above_pay_rejected(self, worker):
        with pytest.raises(ValidationError):
            pay(worker, 4, amount="100.00", bonus="10.00", deduction="110.01")

    def test_unknown_method_rejected(self, worker):
        with pytest.raises(ValidationError):
            pay(worker, 4, method="CHEQUE")

    def test_unknown_worker(self, app):
        with pytest.raises(NotFoundError):
            worker_service.create_worker_payment({"worker_id": 42, "month": 1, "year": 2026, "amount": "1.00"})

    def test_terminated_worker_can_get_final_salary(self, worker):
        worker_service.update_worker(worker.id, {"termination_date": "2026-05-31"})
        assert pay(worker, 5).total_paid == Decimal("3000.00")

    def test_salary_history_totals(self, worker):
        pay(worker, 1, amount="0.10", bonus="0.20")
        pay(worker, 2, amount="3000.00", deduction="150.00")
        pay(worker, 12, year=2025, amount="2800.00", bonus="1000.00")

        history = worker_service.get_salary_history(worker.id)
        assert history["payment_count"] == 3
        assert history["total_paid"] == "6650.30"
        assert history["total_bonus"] == "1000.20"
        assert history["total_deduction"] == "150.00"
        assert [(p["year"], p["month"]) for p in history["payments"]] == [(2026, 2), (2026, 1), (2025, 12)]

        only_2026 = worker_service.get_salary_history(worker.id, year=2026)
        assert only_2026["payment_count"] == 2
        assert only_2026["total_paid"] == "2850.30"

    def test_list_filtered_by_worker(self, worker):
        other = make_worker(passport_id="EE5556667")
        pay(worker, 1)
        pay(other, 1)
        items, total = worker_service.list_worker_payments(worker_id=other.id)
        assert total == 1
        assert items[0].worker_id == other.id


# =============================================================================
# API AND ACCESS
# =============================================================================


class TestWorkerRoutes:

    def test_owner_creates_worker(self, client, owner_headers):
        resp = client.post(
            "/api/workers",
            json={
                "full_name": "Ali Karimov",
                "phone_number": "+998901234567",
                "passport_id": "AA1234567",
                "hire_date": "2026-01-01",
                "monthly_salary": "3000.00",
            },
            headers=owner_headers,
        )
        assert resp.status_code == 201
        assert resp.json["worker"]["monthly_salary"] == "3000.00"

    def test_manager_cannot_create(self, client, manager_headers):
        resp = client.post("/api/workers", json={}, headers=manager_headers)
        assert resp.status_code == 403

    def test_manager_reads(self, client, manager_headers, worker):
        assert client.get("/api/workers", headers=manager_headers).json["count"] == 1
        assert client.get("/api/workers/active", headers=manager_headers).status_code == 200
        assert client.get(f"/api/workers/{worker.id}", headers=manager_headers).status_code == 200

    def test_cashier_cannot_list(self, client, cashier_headers):
        assert client.get("/api/workers", headers=cashier_headers).status_code == 403

    def test_salary_history_is_owner_only(self, client, owner_headers, manager_headers, worker):
        assert client.get(f"/api/workers/{worker.id}/salary-history", headers=manager_headers).status_code == 403

        resp = client.get(f"/api/workers/{worker.id}/salary-history?year=2026", headers=owner_headers)
        assert resp.status_code == 200
        assert resp.json["total_paid"] == "0.00"

    def test_salary_history_bad_year(self, client, owner_headers, worker):
        resp = client.get(f"/api/workers/{worker.id}/salary-history?year=last", headers=owner_headers)
        assert resp.status_code == 400

    def test_record_payment_and_duplicate(self, client, owner_headers, users, worker):
        body = {"worker_id": worker.id, "month": 2, "year": 2026, "amount": "3000.00", "bonus": "250.00"}
        resp = client.post("/api/workers/payments", json=body, headers=owner_headers)
        assert resp.status_code == 201
        assert resp.json["payment"]["total_paid"] == "3250.00"
        assert resp.json["payment"]["created_by_user_id"] == users["OWNER"].id

        again = client.post("/api/workers/payments", json=body, headers=owner_headers)
        assert again.status_code == 409

    def test_manager_cannot_pay_salary(self, client, manager_headers, worker):
        resp = client.post(
            "/api/workers/payments",
            json={"worker_id": worker.id, "month": 2, "year": 2026, "amount": "3000.00"},
            headers=manager_headers,
        )
        assert resp.status_code == 403

    def test_delete_worker(self, client, owner_headers, worker):
        assert client.delete(f"/api/workers/{worker.id}", headers=owner_headers).status_code == 200
        assert client.get(f"/api/workers/{worker.id}", headers=owner_headers).status_code == 404
