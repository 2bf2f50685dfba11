from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import func, inspect, select
from sqlalchemy.orm import Session

from db.base import Base
from models.tracker_models import InventoryRow, TransactionRow
from services.reconciliation_service import FIRST_DATA_ROW


INITIAL_INVENTORY = [
    ("O2 Generator", 0),
    ("Nebulizer", 0),
    ("Suction Machine", 0),
    ("Air Mattress", 0),
    ("Lymphatic Drainage Device", 0),
    ("Commode", 0),
]

_TRANSACTION_COLUMNS = [
    TransactionRow.Timestamp,
    TransactionRow.PatientName,
    TransactionRow.RecipientName,
    TransactionRow.Relationship,
    TransactionRow.PatientID,
    TransactionRow.RecipientID,
    TransactionRow.ContactNumber,
    TransactionRow.Area,
    TransactionRow.Diagnosis,
    TransactionRow.Device,
    TransactionRow.DeviceNumber,
    TransactionRow.Notes,
    TransactionRow.Status,
    TransactionRow.Type,
]


class RecordStore:
    """Row-oriented view over the Inventory and Transactions tables.

    Rows are addressed the way a spreadsheet addresses them: by 1-based
    position with the header on row 1, ordered by insertion.
    """

    def __init__(self, db: Session):
        self.db = db

    def ensure_tables(self) -> None:
        conn = self.db.connection()
        inspector = inspect(conn)
        if not inspector.has_table(InventoryRow.__tablename__):
            Base.metadata.create_all(bind=conn, tables=[InventoryRow.__table__])
            self.db.add_all(
                [InventoryRow(DeviceName=name, TotalStock=total) for name, total in INITIAL_INVENTORY]
            )
            self.db.flush()
        if not inspector.has_table(TransactionRow.__tablename__):
            Base.metadata.create_all(bind=conn, tables=[TransactionRow.__table__])

    def inventory_values(self) -> list[tuple[Any, Any]]:
        rows = self.db.execute(
            select(InventoryRow.DeviceName, InventoryRow.TotalStock).order_by(InventoryRow.InventoryID)
        ).all()
        return [tuple(row) for row in rows]

    def transaction_values(self) -> list[tuple[Any, ...]]:
        rows = self.db.execute(select(*_TRANSACTION_COLUMNS).order_by(TransactionRow.TransactionID)).all()
        return [tuple(row) for row in rows]

    def last_transaction_row(self) -> int:
        count = self.db.execute(select(func.count()).select_from(TransactionRow)).scalar() or 0
        return int(count) + FIRST_DATA_ROW - 1

    def append_transaction(self, values: dict[str, Any]) -> TransactionRow:
        record = TransactionRow(
            Timestamp=datetime.now(),
            PatientName=values.get("patientName"),
            RecipientName=values.get("recipientName"),
            Relationship=values.get("relationship"),
            PatientID=values.get("patientId"),
            RecipientID=values.get("recipientId"),
            ContactNumber=values.get("contact"),
            Area=values.get("area"),
            Diagnosis=values.get("diagnosis"),
            Device=values.get("device"),
            DeviceNumber=values.get("deviceNumber"),
            Notes=values.get("notes"),
            Status=values.get("status"),
            Type=values.get("type"),
        )
        self.db.add(record)
        self.db.flush()
        return record

    def upsert_inventory(self, device: str, total: int) -> bool:
        """Overwrite the first row for ``device`` or append one. Returns True when appended."""
        existing = self.db.execute(
            select(InventoryRow).where(InventoryRow.DeviceName == device).order_by(InventoryRow.InventoryID)
        ).scalars().first()
        if existing:
            existing.TotalStock = total
            self.db.flush()
            return False
        self.db.add(InventoryRow(DeviceName=device, TotalStock=total))
        self.db.flush()
        return True

    def get_transaction_at(self, row: int) -> TransactionRow | None:
        if row < FIRST_DATA_ROW:
            return None
        return self.db.execute(
            select(TransactionRow)
            .order_by(TransactionRow.TransactionID)
            .offset(row - FIRST_DATA_ROW)
            .limit(1)
        ).scalars().first()

    def set_transaction_status(self, row: int, status: str) -> TransactionRow | None:
        record = self.get_transaction_at(row)
        if record is None:
            return None
        record.Status = status
        self.db.flush()
        return record

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
