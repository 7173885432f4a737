"""Integration tests for the loyalty endpoints."""

from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

import pytest

pytestmark = pytest.mark.integration

LOYALTY_URL = "/api/v1/loyalty/"


@pytest.fixture()
def customer_client(client_for, customer):
    return client_for(customer.user)


@pytest.fixture()
def funded(loyalty_service, customer):
    loyalty_service.award_bonus_points(customer.id, 300, "welcome")
    return customer


class TestCustomerEndpoints:
    def test_summary(self, customer_client, funded):
        response = customer_client.get(f"{LOYALTY_URL}summary/")

        assert response.status_code == 200
        assert response.data["customer_id"] == str(funded.id)
        assert response.data["loyalty_points"] == {
            "current": 300,
            "total": 300,
            "used": 0,
        }
        assert response.data["purchase_stats"]["total_orders"] == 0
        assert Decimal(response.data["redemption_value"]) == Decimal("3.00")
        assert len(response.data["recent_transactions"]) == 1
        assert response.data["config"]["minimum_redemption"] == 100

    def test_transactions_paginated(self, customer_client, funded, loyalty_service):
        loyalty_service.redeem_points(funded.id, 100)

        response = customer_client.get(f"{LOYALTY_URL}transactions/")

        assert response.status_code == 200
        assert response.data["count"] == 2
        newest = response.data["results"][0]
        assert newest["type"] == "redeemed"
        assert newest["points"] == -100
        assert newest["balance_after"] == 200

    def test_redeem(self, customer_client, funded):
        response = customer_client.post(
            f"{LOYALTY_URL}redeem/", {"points": 120}, format="json"
        )

        assert response.status_code == 200
        assert response.data["points_redeemed"] == 120
        assert response.data["remaining_points"] == 180
        assert Decimal(response.data["discount_amount"]) == Decimal("1.20")

    def test_redeem_below_minimum(self, customer_client, funded):
        response = customer_client.post(
            f"{LOYALTY_URL}redeem/", {"points": 50}, format="json"
        )

        assert response.status_code == 400
        assert response.data["errors"][0]["code"] == "below_minimum_redemption"

    def test_redeem_more_than_balance(self, customer_client, funded):
        response = customer_client.post(
            f"{LOYALTY_URL}redeem/", {"points": 500}, format="json"
        )

        assert response.status_code == 409
        assert response.data["errors"][0]["code"] == "insufficient_points"

    def test_config(self, customer_client):
        response = customer_client.get(f"{LOYALTY_URL}config/")

        assert response.status_code == 200
        assert response.data["points_per_currency_unit"] == 1
        assert response.data["points_expiry_days"] == 365

    def test_calculate(self, customer_client):
        response = customer_client.get(f"{LOYALTY_URL}calculate/", {"amount": "1000.00"})

        assert response.status_code == 200
        assert response.data == {
            "base_points": 1000,
            "bonus_points": 150,
            "total_points": 1150,
        }

    def test_calculate_requires_amount(self, customer_client):
        response = customer_client.get(f"{LOYALTY_URL}calculate/")
        assert response.status_code == 400
        assert response.data["errors"][0]["attr"] == "amount"

    def test_user_without_customer_account(self, client_for, driver_user):
        response = client_for(driver_user).get(f"{LOYALTY_URL}summary/")
        assert response.status_code == 404


class TestAdminEndpoints:
    def test_customer_detail(self, client_for, staff_user, funded):
        response = client_for(staff_user).get(f"{LOYALTY_URL}customers/{funded.id}/")

        assert response.status_code == 200
        assert response.data["loyalty_points"]["current"] == 300

    def test_award_bonus(self, client_for, staff_user, customer):
        response = client_for(staff_user).post(
            f"{LOYALTY_URL}customers/{customer.id}/bonus/",
            {"points": 75, "description": "apology"},
            format="json",
        )

        assert response.status_code == 201
        assert response.data["balance"] == 75
        customer.refresh_from_db()
        assert customer.loyalty_current == 75

    def test_unknown_customer(self, client_for, staff_user):
        response = client_for(staff_user).get(f"{LOYALTY_URL}customers/{uuid4()}/")
        assert response.status_code == 404
        assert response.data["errors"][0]["code"] == "customer_not_found"

    def test_customers_cannot_use_admin_endpoints(self, customer_client, customer):
        response = customer_client.post(
            f"{LOYALTY_URL}customers/{customer.id}/bonus/",
            {"points": 1000},
            format="json",
        )
        assert response.status_code == 403
        customer.refresh_from_db()
        assert customer.loyalty_current == 0
