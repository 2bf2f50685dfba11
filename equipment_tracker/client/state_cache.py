from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable, Optional, Union

from services.reconciliation_service import (
    RECENT_TRANSACTION_LIMIT,
    STATUS_RECEIVED,
    TRANSACTION_FIELDS,
    available_count,
    coerce_total,
    is_rented_status,
)
from services.tracker_errors import InvalidArgument, NotFound, NotYetSynced


@dataclass(frozen=True)
class PendingRef:
    """Row reference of a transaction the store has not numbered yet."""

    token: str = field(default_factory=lambda: uuid.uuid4().hex)


@dataclass(frozen=True)
class AssignedRef:
    row: int


RowRef = Union[PendingRef, AssignedRef]


@dataclass
class InventoryLevel:
    name: str
    total: int = 0
    rented: int = 0
    available: int = 0

    def recompute(self) -> None:
        self.available = available_count(self.total, self.rented)

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "total": self.total, "rented": self.rented, "available": self.available}


@dataclass(frozen=True)
class CachedTransaction:
    ref: RowRef
    timestamp: Any = None
    patientName: str = ""
    recipientName: str = ""
    relationship: str = ""
    patientId: str = ""
    recipientId: str = ""
    contact: str = ""
    area: str = ""
    diagnosis: str = ""
    device: str = ""
    deviceNumber: str = ""
    notes: str = ""
    status: str = ""
    type: str = ""

    @property
    def is_pending(self) -> bool:
        return isinstance(self.ref, PendingRef)

    def with_status(self, status: str) -> "CachedTransaction":
        return replace(self, status=status)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "CachedTransaction":
        row = payload.get("row")
        if row is None:
            raise InvalidArgument("Transaction payload has no row")
        values = {name: payload.get(name) for name in TRANSACTION_FIELDS}
        for name, value in values.items():
            if name != "timestamp":
                values[name] = "" if value is None else str(value)
        return cls(ref=AssignedRef(int(row)), **values)


@dataclass
class CacheState:
    inventory: dict[str, InventoryLevel] = field(default_factory=dict)
    transactions: list[CachedTransaction] = field(default_factory=list)
    provisional: bool = False
    synced_at: Optional[datetime] = None


Listener = Callable[["ClientStateCache"], None]


class ClientStateCache:
    """Session-local mirror of the tracker state.

    ``replace_from_response`` installs authoritative values from a read. The
    ``apply_*`` methods adjust the mirror incrementally and mark it
    provisional until the next authoritative pull.
    """

    def __init__(self, recent_limit: int = RECENT_TRANSACTION_LIMIT):
        self.state = CacheState()
        self.recent_limit = recent_limit
        self._listeners: list[Listener] = []

    @property
    def provisional(self) -> bool:
        return self.state.provisional

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def render(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def snapshot(self) -> CacheState:
        return copy.deepcopy(self.state)

    def restore(self, snapshot: CacheState) -> None:
        self.state = copy.deepcopy(snapshot)

    def replace_from_response(self, response: dict[str, Any]) -> None:
        inventory: dict[str, InventoryLevel] = {}
        rows = response.get("inventoryList")
        if rows is None:
            rows = [{"name": name, **levels} for name, levels in (response.get("data") or {}).items()]
        for row in rows:
            name = str(row.get("name") or "")
            if not name:
                continue
            inventory[name] = InventoryLevel(
                name=name,
                total=coerce_total(row.get("total")),
                rented=coerce_total(row.get("rented")),
                available=coerce_total(row.get("available")),
            )
        transactions = [CachedTransaction.from_payload(tx) for tx in response.get("transactions") or []]
        self.state = CacheState(
            inventory=inventory,
            transactions=transactions,
            provisional=False,
            synced_at=datetime.now(),
        )

    def inventory_list(self) -> list[dict[str, Any]]:
        return [level.to_dict() for level in self.state.inventory.values()]

    def inventory_map(self) -> dict[str, dict[str, int]]:
        return {
            name: {"total": level.total, "rented": level.rented, "available": level.available}
            for name, level in self.state.inventory.items()
        }

    def find_transaction(self, ref: RowRef) -> CachedTransaction | None:
        for tx in self.state.transactions:
            if tx.ref == ref:
                return tx
        return None

    def find_by_row(self, row: int) -> CachedTransaction | None:
        return self.find_transaction(AssignedRef(int(row)))

    def apply_new_transaction(self, fields: dict[str, Any]) -> CachedTransaction:
        values = {name: "" if fields.get(name) is None else str(fields.get(name)) for name in TRANSACTION_FIELDS}
        values["timestamp"] = datetime.now()
        tx = CachedTransaction(ref=PendingRef(), **values)
        level = self.state.inventory.get(tx.device)
        if level is not None and is_rented_status(tx.status):
            level.rented += 1
            level.recompute()
        self.state.transactions.insert(0, tx)
        del self.state.transactions[self.recent_limit:]
        self.state.provisional = True
        return tx

    def apply_inventory_total(self, device: str, new_total: int) -> InventoryLevel:
        total = coerce_total(new_total)
        level = self.state.inventory.get(device)
        if level is None:
            level = InventoryLevel(name=device, total=total)
            self.state.inventory[device] = level
        else:
            level.total = total
        level.recompute()
        self.state.provisional = True
        return level

    def require_assigned(self, ref: RowRef) -> CachedTransaction:
        tx = self.find_transaction(ref)
        if tx is None:
            raise NotFound("Transaction is not in the local cache")
        if tx.is_pending:
            raise NotYetSynced("Transaction has not been synced with the server yet")
        return tx

    def apply_mark_received(self, ref: RowRef) -> CachedTransaction:
        tx = self.require_assigned(ref)
        if tx.status == STATUS_RECEIVED:
            return tx
        level = self.state.inventory.get(tx.device)
        if level is not None and is_rented_status(tx.status):
            level.rented = max(0, level.rented - 1)
            level.recompute()
        updated = tx.with_status(STATUS_RECEIVED)
        index = self.state.transactions.index(tx)
        self.state.transactions[index] = updated
        self.state.provisional = True
        return updated
