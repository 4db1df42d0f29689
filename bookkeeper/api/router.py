"""
RPC Router

Transport-neutral dispatcher for the bookkeeping operations.
Any transport (HTTP handler, message queue consumer, CLI) can call
dispatch() with an operation name and a JSON-decoded payload.

DESIGN DECISION: The router owns the wire format and nothing else:
- Inputs are passed to the façade as plain mappings (it validates them)
- Outputs are JSON-ready: ISO-8601 dates, decimals as numbers
- Internal error kinds map to a small set of transport error codes
"""

import json
from collections.abc import Mapping
from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel

from bookkeeper.log import get_logger
from bookkeeper.services.storage import NotFoundError, StorageError
from bookkeeper.validation import ValidationError

logger = get_logger(__name__)


class RpcError(Exception):
    """
    A failure in transport terms.

    code is one of BAD_REQUEST, NOT_FOUND, INTERNAL_SERVER_ERROR.
    """

    BAD_REQUEST = "BAD_REQUEST"
    NOT_FOUND = "NOT_FOUND"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"

    def __init__(self, code: str, message: str, details: Optional[list[dict]] = None):
        self.code = code
        self.message = message
        self.details = details or []
        super().__init__(f"{code}: {message}")

    def to_dict(self) -> dict:
        error = {"code": self.code, "message": self.message}
        if self.details:
            error["details"] = self.details
        return {"error": error}

    @classmethod
    def from_exception(cls, error: Exception) -> "RpcError":
        """Map an internal error kind to its transport code."""
        if isinstance(error, ValidationError):
            return cls(
                cls.BAD_REQUEST,
                str(error),
                [issue.model_dump(exclude_none=True) for issue in error.issues],
            )
        if isinstance(error, NotFoundError):
            return cls(cls.NOT_FOUND, str(error))
        if isinstance(error, StorageError):
            return cls(cls.INTERNAL_SERVER_ERROR, "Storage failure")
        raise TypeError(f"No transport mapping for {type(error).__name__}")


def to_wire(result: Any) -> Any:
    """Convert a façade result to JSON-ready Python data."""
    if isinstance(result, BaseModel):
        return result.model_dump(mode="json")
    if isinstance(result, list):
        return [to_wire(item) for item in result]
    return result


class RpcRouter:
    """
    Maps operation names to façade calls.

    Operations:
        healthcheck, createInvoice, getInvoices, updateInvoice,
        createExpense, getExpenses, updateExpense, getDashboardStats
    """

    def __init__(self, service):
        self._service = service
        self._procedures: dict[str, Callable[[Any], Awaitable[Any]]] = {
            "healthcheck": self._healthcheck,
            "createInvoice": service.create_invoice,
            "getInvoices": self._no_input(service.list_invoices),
            "updateInvoice": self._with_id(service.update_invoice),
            "createExpense": service.create_expense,
            "getExpenses": self._no_input(service.list_expenses),
            "updateExpense": self._with_id(service.update_expense),
            "getDashboardStats": self._no_input(service.get_dashboard_stats),
        }

    @property
    def operations(self) -> list[str]:
        return list(self._procedures)

    @staticmethod
    def _no_input(handler):
        async def call(payload):
            return await handler()
        return call

    @staticmethod
    def _with_id(handler):
        # updateX payloads carry the id next to the fields to change
        async def call(payload):
            if not isinstance(payload, Mapping):
                raise RpcError(RpcError.BAD_REQUEST, "Update payload must be an object")
            fields = dict(payload)
            if "id" not in fields:
                raise RpcError(RpcError.BAD_REQUEST, "id is required")
            record_id = fields.pop("id")
            return await handler(record_id, fields)
        return call

    async def _healthcheck(self, payload):
        return await self._service.healthcheck()

    async def dispatch(self, operation: str, payload: Any = None) -> Any:
        """
        Run one operation.

        Args:
            operation: Operation name (e.g. "createInvoice")
            payload: JSON-decoded input, or None for operations without input

        Returns:
            JSON-ready result

        Raises:
            RpcError: With the mapped transport code
        """
        procedure = self._procedures.get(operation)
        if procedure is None:
            raise RpcError(RpcError.NOT_FOUND, f"Unknown operation: {operation}")

        try:
            result = await procedure(payload)
        except RpcError:
            raise
        except (ValidationError, StorageError) as e:
            rpc_error = RpcError.from_exception(e)
            logger.info(
                "rpc_call_failed",
                operation=operation,
                code=rpc_error.code,
            )
            raise rpc_error from e

        return to_wire(result)

    async def dispatch_json(self, operation: str, body: Optional[str] = None) -> str:
        """
        Run one operation from a JSON request body.

        Always returns a JSON document: {"result": ...} or {"error": {...}}.
        """
        try:
            payload = json.loads(body) if body else None
        except json.JSONDecodeError as e:
            return json.dumps(
                RpcError(RpcError.BAD_REQUEST, f"Malformed JSON: {e.msg}").to_dict()
            )

        try:
            result = await self.dispatch(operation, payload)
        except RpcError as e:
            return json.dumps(e.to_dict())

        return json.dumps({"result": result})
