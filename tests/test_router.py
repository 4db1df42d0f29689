"""Tests for the RPC router."""

import json

import pytest

from bookkeeper.api import RpcError, RpcRouter
from bookkeeper.orchestrator import BookkeepingService
from bookkeeper.services.storage import InMemoryLedgerStorage, StorageError


class UnreachableStorage(InMemoryLedgerStorage):
    async def snapshot(self):
        raise StorageError("connection refused")


@pytest.fixture
def router(service):
    return RpcRouter(service)


INVOICE_INPUT = {
    "client_name": "Acme Corp",
    "description": "Website redesign",
    "amount": 1500.5,
    "issue_date": "2024-01-01T00:00:00Z",
    "due_date": "2024-01-31T00:00:00Z",
}


class TestDispatch:
    """Tests for successful calls."""

    def test_operations(self, router):
        assert set(router.operations) == {
            "healthcheck",
            "createInvoice",
            "getInvoices",
            "updateInvoice",
            "createExpense",
            "getExpenses",
            "updateExpense",
            "getDashboardStats",
        }

    @pytest.mark.asyncio
    async def test_create_invoice_wire_shape(self, router):
        result = await router.dispatch("createInvoice", dict(INVOICE_INPUT))
        assert result["id"] == 1
        assert result["amount"] == 1500.5
        assert result["status"] == "Pending"
        assert result["issue_date"] == "2024-01-01T00:00:00Z"
        assert isinstance(result["created_at"], str)

    @pytest.mark.asyncio
    async def test_get_invoices(self, router):
        await router.dispatch("createInvoice", dict(INVOICE_INPUT))
        await router.dispatch("createInvoice", dict(INVOICE_INPUT))
        result = await router.dispatch("getInvoices")
        assert [invoice["id"] for invoice in result] == [1, 2]

    @pytest.mark.asyncio
    async def test_update_invoice(self, router):
        await router.dispatch("createInvoice", dict(INVOICE_INPUT))
        result = await router.dispatch("updateInvoice", {"id": 1, "status": "Paid"})
        assert result["status"] == "Paid"
        assert result["client_name"] == "Acme Corp"

    @pytest.mark.asyncio
    async def test_expense_flow(self, router):
        created = await router.dispatch("createExpense", {
            "description": "Flights",
            "amount": "420.00",
            "date": "2024-02-01",
            "category": "Travel",
        })
        updated = await router.dispatch("updateExpense", {"id": created["id"], "amount": 400})
        assert updated["amount"] == 400.0
        assert updated["category"] == "Travel"
        assert len(await router.dispatch("getExpenses")) == 1

    @pytest.mark.asyncio
    async def test_dashboard_stats(self, router):
        await router.dispatch("createInvoice", dict(INVOICE_INPUT, status="Paid"))
        await router.dispatch("createExpense", {
            "description": "Ads",
            "amount": 350.75,
            "date": "2024-01-10",
            "category": "Marketing",
        })
        result = await router.dispatch("getDashboardStats")
        assert result == {
            "total_income": 1500.5,
            "total_expenses": 350.75,
            "net_income": 1149.75,
            "pending_invoices_count": 0,
            "overdue_invoices_count": 0,
        }

    @pytest.mark.asyncio
    async def test_healthcheck(self, router):
        result = await router.dispatch("healthcheck")
        assert result["status"] == "ok"


class TestErrorMapping:
    """Tests that each error kind maps to its transport code."""

    @pytest.mark.asyncio
    async def test_validation_error_is_bad_request(self, router):
        with pytest.raises(RpcError) as exc_info:
            await router.dispatch("createInvoice", dict(INVOICE_INPUT, amount=0))
        error = exc_info.value
        assert error.code == RpcError.BAD_REQUEST
        assert error.details[0]["field"] == "amount"

    @pytest.mark.asyncio
    async def test_missing_payload_is_bad_request(self, router):
        with pytest.raises(RpcError) as exc_info:
            await router.dispatch("createExpense")
        assert exc_info.value.code == RpcError.BAD_REQUEST

    @pytest.mark.asyncio
    async def test_update_without_id_is_bad_request(self, router):
        with pytest.raises(RpcError) as exc_info:
            await router.dispatch("updateInvoice", {"status": "Paid"})
        assert exc_info.value.code == RpcError.BAD_REQUEST

    @pytest.mark.asyncio
    async def test_update_with_bad_id_is_bad_request(self, router):
        with pytest.raises(RpcError) as exc_info:
            await router.dispatch("updateInvoice", {"id": "one", "status": "Paid"})
        assert exc_info.value.code == RpcError.BAD_REQUEST

    @pytest.mark.asyncio
    async def test_not_found(self, router):
        with pytest.raises(RpcError) as exc_info:
            await router.dispatch("updateExpense", {"id": 42, "description": "x"})
        assert exc_info.value.code == RpcError.NOT_FOUND

    @pytest.mark.asyncio
    async def test_unknown_operation(self, router):
        with pytest.raises(RpcError) as exc_info:
            await router.dispatch("deleteInvoice", {"id": 1})
        assert exc_info.value.code == RpcError.NOT_FOUND

    @pytest.mark.asyncio
    async def test_storage_error_is_internal(self, validator):
        router = RpcRouter(BookkeepingService(UnreachableStorage(), validator))
        with pytest.raises(RpcError) as exc_info:
            await router.dispatch("getDashboardStats")
        assert exc_info.value.code == RpcError.INTERNAL_SERVER_ERROR
        assert "connection refused" not in exc_info.value.message

    def test_to_dict(self):
        error = RpcError(RpcError.NOT_FOUND, "Invoice not found: 3")
        assert error.to_dict() == {
            "error": {"code": "NOT_FOUND", "message": "Invoice not found: 3"}
        }


class TestDispatchJson:
    """Tests for the JSON-in, JSON-out entry point."""

    @pytest.mark.asyncio
    async def test_result_envelope(self, router):
        body = await router.dispatch_json("createInvoice", json.dumps(INVOICE_INPUT))
        assert json.loads(body)["result"]["id"] == 1

    @pytest.mark.asyncio
    async def test_error_envelope(self, router):
        body = await router.dispatch_json("updateInvoice", json.dumps({"id": 9}))
        assert json.loads(body)["error"]["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_malformed_json(self, router):
        body = await router.dispatch_json("createInvoice", "{not json")
        assert json.loads(body)["error"]["code"] == "BAD_REQUEST"

    @pytest.mark.asyncio
    async def test_no_body(self, router):
        body = await router.dispatch_json("getInvoices")
        assert json.loads(body) == {"result": []}
