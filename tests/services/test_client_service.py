"""
Tests for ClientService.

Covers:
- Client creation and lookup
- Credit limit validation and changes
"""

from decimal import Decimal

import pytest

from store_kernel.exceptions import ClientNotFoundError, InvalidAmountError


class TestCreateClient:
    def test_create_client(self, client_service):
        client = client_service.create_client(
            "Acme Hardware", "555-0100", "1 Main St", Decimal("100")
        )

        assert client.id is not None
        assert client.name == "Acme Hardware"
        assert client.contact == "555-0100"
        assert client.address == "1 Main St"
        assert client.credit_limit == Decimal("100")

    def test_default_credit_limit_is_zero(self, client_service):
        client = client_service.create_client("Walk-in")
        assert client.credit_limit == Decimal("0")

    def test_negative_limit_rejected(self, client_service):
        with pytest.raises(InvalidAmountError) as exc_info:
            client_service.create_client("Acme", credit_limit=Decimal("-1"))
        assert exc_info.value.field == "credit_limit"

    def test_oversized_limit_rejected(self, client_service):
        with pytest.raises(InvalidAmountError) as exc_info:
            client_service.create_client("Acme", credit_limit="1" + "0" * 29)
        assert exc_info.value.field == "credit_limit"

    def test_largest_limit_round_trips(self, client_service):
        limit = Decimal("9" * 29 + ".999999999")
        client = client_service.create_client("Acme", credit_limit=limit)
        assert client_service.get_client(client.id).credit_limit == limit

    def test_round_trip(self, client_service, create_client):
        client = create_client("Acme", Decimal("250.50"), "acme@example.com", "Dock 4")
        assert client_service.get_client(client.id) == client

    def test_missing_returns_none(self, client_service):
        assert client_service.get_client(31337) is None

    def test_list_clients_in_creation_order(self, client_service, create_client):
        first = create_client("First")
        second = create_client("Second")
        assert client_service.list_clients() == [first, second]


class TestCreditLimit:
    def test_set_credit_limit(self, client_service, create_client):
        client = create_client("Acme", Decimal("100"))
        updated = client_service.set_credit_limit(client.id, Decimal("500"))

        assert updated.credit_limit == Decimal("500")
        assert client_service.get_client(client.id).credit_limit == Decimal("500")

    def test_unknown_client(self, client_service):
        with pytest.raises(ClientNotFoundError):
            client_service.set_credit_limit(8, Decimal("1"))

    def test_change_logged(self, client_service, create_client, captured_logs):
        client = create_client("Acme", Decimal("100"))
        client_service.set_credit_limit(client.id, Decimal("40"))

        record = next(r for r in captured_logs() if r["message"] == "credit_limit_changed")
        assert record["previous_limit"] == "100"
        assert record["credit_limit"] == "40"
