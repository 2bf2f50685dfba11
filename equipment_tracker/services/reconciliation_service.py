from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence


INVENTORY_HEADERS = ["Device Name", "Total Stock"]
TRANSACTION_HEADERS = [
    "Timestamp",
    "Patient Name",
    "Device Recipient Name",
    "Relationship",
    "Patient ID",
    "Recipient ID",
    "Contact Number",
    "Area",
    "Diagnosis",
    "Device",
    "Device Number",
    "Notes",
    "Status",
    "Type",
]
# Wire names for the Transactions columns, in column order.
TRANSACTION_FIELDS = [
    "timestamp",
    "patientName",
    "recipientName",
    "relationship",
    "patientId",
    "recipientId",
    "contact",
    "area",
    "diagnosis",
    "device",
    "deviceNumber",
    "notes",
    "status",
    "type",
]
DEVICE_COLUMN = TRANSACTION_FIELDS.index("device")
STATUS_COLUMN = TRANSACTION_FIELDS.index("status")

STATUS_DELIVERED = "Delivered"
STATUS_RECEIVED = "Received"
STATUS_NOT_RECEIVED = "Not Received"
RENTED_STATUSES = frozenset({STATUS_DELIVERED, STATUS_NOT_RECEIVED})

# Header occupies row 1; the first data row is addressed as row 2.
FIRST_DATA_ROW = 2
RECENT_TRANSACTION_LIMIT = 50


@dataclass
class ReconciledInventory:
    inventory_map: dict[str, dict[str, int]] = field(default_factory=dict)
    transactions: list[dict[str, Any]] = field(default_factory=list)

    @property
    def inventory_list(self) -> list[dict[str, Any]]:
        return [{"name": name, **levels} for name, levels in self.inventory_map.items()]

    def to_response(self) -> dict[str, Any]:
        return {
            "status": "success",
            "data": {name: dict(levels) for name, levels in self.inventory_map.items()},
            "inventoryList": self.inventory_list,
            "transactions": [dict(tx) for tx in self.transactions],
        }


def coerce_total(raw: Any) -> int:
    if raw is None or isinstance(raw, bool):
        return 0
    try:
        value = int(float(str(raw).strip()))
    except (TypeError, ValueError):
        return 0
    return max(0, value)


def available_count(total: int, rented: int) -> int:
    return max(0, total - rented)


def is_rented_status(status: Any) -> bool:
    return status in RENTED_STATUSES


def serialize_transaction_row(values: Sequence[Any], row: int) -> dict[str, Any]:
    padded = list(values) + [None] * (len(TRANSACTION_FIELDS) - len(values))
    payload: dict[str, Any] = {"row": row}
    for name, value in zip(TRANSACTION_FIELDS, padded):
        payload[name] = value
    return payload


def reconcile(
    inventory_rows: Iterable[Sequence[Any]],
    transaction_rows: Iterable[Sequence[Any]],
    limit: int = RECENT_TRANSACTION_LIMIT,
) -> ReconciledInventory:
    """Derive per-device stock levels from inventory totals and the transaction log.

    ``inventory_rows`` are ``(Device Name, Total Stock)`` value rows and
    ``transaction_rows`` are value rows in ``TRANSACTION_HEADERS`` order, both
    in store order without the header. Rented counts only include
    transactions for known devices whose status is still out with a patient;
    every transaction is listed regardless, newest first, capped at ``limit``.
    """
    inventory_map: dict[str, dict[str, int]] = {}
    for values in inventory_rows:
        if not values or not values[0]:
            continue
        total = coerce_total(values[1] if len(values) > 1 else 0)
        inventory_map[str(values[0])] = {"total": total, "rented": 0, "available": total}

    transactions: list[dict[str, Any]] = []
    for index, values in enumerate(transaction_rows):
        device = values[DEVICE_COLUMN] if len(values) > DEVICE_COLUMN else None
        status = values[STATUS_COLUMN] if len(values) > STATUS_COLUMN else None
        levels = inventory_map.get(device) if isinstance(device, str) else None
        if levels is not None and is_rented_status(status):
            levels["rented"] += 1
        transactions.append(serialize_transaction_row(values, index + FIRST_DATA_ROW))

    for levels in inventory_map.values():
        levels["available"] = available_count(levels["total"], levels["rented"])

    transactions.reverse()
    return ReconciledInventory(
        inventory_map=inventory_map,
        transactions=transactions[: max(0, int(limit))],
    )
