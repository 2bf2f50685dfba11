from __future__ import annotations

import logging
import os
import sys
import threading
from contextlib import contextmanager
from typing import Any, Callable, Iterator

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from schemas.tracker import AddTransactionRequest, UpdateInventoryRequest, UpdateStatusRequest
from services.reconciliation_service import FIRST_DATA_ROW, RECENT_TRANSACTION_LIMIT, reconcile
from services.record_store import RecordStore
from services.tracker_errors import InvalidArgument, NotFound, StoreUnavailable, TrackerError, UnknownAction


GATE_LOGGER = logging.getLogger("equipment_tracker.gate")
HANDLER_LOGGER = logging.getLogger("equipment_tracker.handler")

LOCK_TIMEOUT_SECONDS = float(os.environ.get("TRACKER_LOCK_TIMEOUT_SECONDS") or "10")
RECENT_TRANSACTIONS = int(os.environ.get("TRACKER_RECENT_TRANSACTIONS") or str(RECENT_TRANSACTION_LIMIT))


class RequestGate:
    """Process-wide mutual exclusion around store access with a bounded wait.

    When the wait times out the caller proceeds without the lock. That window
    of possibly interleaved access is logged rather than hidden.
    """

    def __init__(self, timeout_seconds: float = LOCK_TIMEOUT_SECONDS):
        self.timeout_seconds = timeout_seconds
        self._lock = threading.Lock()
        self.degraded_entries = 0

    @contextmanager
    def hold(self, operation: str = "request") -> Iterator[bool]:
        acquired = self._lock.acquire(timeout=max(self.timeout_seconds, 0))
        if not acquired:
            self.degraded_entries += 1
            GATE_LOGGER.warning(
                "Gate not acquired within %.1fs for %s; proceeding without lock (degraded consistency).",
                self.timeout_seconds,
                operation,
            )
        try:
            yield acquired
        finally:
            if acquired:
                self._lock.release()


REQUEST_GATE = RequestGate()


def success_response(message: str) -> dict[str, Any]:
    return {"status": "success", "message": message}


def _validation_message(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "Invalid payload: " + "; ".join(parts)


def parse_row_index(raw: Any) -> int:
    if raw is None or isinstance(raw, bool):
        raise InvalidArgument("Invalid row index")
    text = str(raw).strip()
    try:
        row = int(text)
    except ValueError:
        if text.lstrip("+").isdecimal():
            # past int()'s digit limit: a valid index, just not one that exists
            return sys.maxsize
        # "7.0" style values from spreadsheets and form fields
        try:
            as_float = float(text)
        except ValueError as exc:
            raise InvalidArgument("Invalid row index") from exc
        if not as_float.is_integer():
            raise InvalidArgument("Invalid row index")
        row = int(as_float)
    if row < FIRST_DATA_ROW:
        raise InvalidArgument("Invalid row index")
    return row


def read_state(store: RecordStore, limit: int = RECENT_TRANSACTIONS) -> dict[str, Any]:
    state = reconcile(store.inventory_values(), store.transaction_values(), limit=limit)
    return state.to_response()


def add_transaction(store: RecordStore, payload: dict[str, Any]) -> dict[str, Any]:
    request = AddTransactionRequest.model_validate(payload)
    store.append_transaction(request.model_dump())
    return success_response("Transaction saved successfully.")


def update_inventory(store: RecordStore, payload: dict[str, Any]) -> dict[str, Any]:
    request = UpdateInventoryRequest.model_validate(payload)
    device = request.device.strip()
    if not device:
        raise InvalidArgument("Device name is required")
    created = store.upsert_inventory(device, request.newTotal)
    if created:
        HANDLER_LOGGER.info("Inventory row created for %s with total %s", device, request.newTotal)
    return success_response("Inventory updated.")


def update_status(store: RecordStore, payload: dict[str, Any]) -> dict[str, Any]:
    request = UpdateStatusRequest.model_validate(payload)
    row = parse_row_index(request.row)
    if row > store.last_transaction_row():
        raise NotFound("Row not found")
    if store.set_transaction_status(row, request.status) is None:
        raise NotFound("Row not found")
    return success_response("Status updated.")


WRITE_ACTIONS: dict[str, Callable[[RecordStore, dict[str, Any]], dict[str, Any]]] = {
    "addTransaction": add_transaction,
    "updateInventory": update_inventory,
    "updateStatus": update_status,
}


def _run_guarded(db: Session, operation: str, work: Callable[[RecordStore], dict[str, Any]], gate: RequestGate) -> dict[str, Any]:
    store = RecordStore(db)
    with gate.hold(operation):
        try:
            store.ensure_tables()
            result = work(store)
            store.commit()
            return result
        except TrackerError as exc:
            store.rollback()
            HANDLER_LOGGER.info("%s rejected: %s", operation, exc.message)
            return exc.to_result()
        except ValidationError as exc:
            store.rollback()
            error = InvalidArgument(_validation_message(exc))
            HANDLER_LOGGER.info("%s rejected: %s", operation, error.message)
            return error.to_result()
        except SQLAlchemyError as exc:
            store.rollback()
            HANDLER_LOGGER.exception("%s failed against the record store", operation)
            return StoreUnavailable(f"Record store unavailable: {exc}").to_result()
        except Exception as exc:
            store.rollback()
            HANDLER_LOGGER.exception("%s failed", operation)
            return TrackerError(str(exc)).to_result()


def handle_read(db: Session, gate: RequestGate = REQUEST_GATE) -> dict[str, Any]:
    return _run_guarded(db, "read", read_state, gate)


def handle_write(db: Session, payload: Any, gate: RequestGate = REQUEST_GATE) -> dict[str, Any]:
    if not isinstance(payload, dict):
        return InvalidArgument("Request body must be a JSON object").to_result()
    action = payload.get("action")
    handler = WRITE_ACTIONS.get(action) if isinstance(action, str) else None
    if handler is None:
        return UnknownAction("Unknown action").to_result()
    return _run_guarded(db, action, lambda store: handler(store, payload), gate)
