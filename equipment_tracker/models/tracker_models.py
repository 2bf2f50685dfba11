from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.sql import func

from db.base import Base


class InventoryRow(Base):
    __tablename__ = "Inventory"

    InventoryID = Column(Integer, primary_key=True, autoincrement=True)
    DeviceName = Column("Device Name", String(255), nullable=False)
    TotalStock = Column("Total Stock", Integer, nullable=False, default=0)


class TransactionRow(Base):
    __tablename__ = "Transactions"

    # Surrogate key only fixes row order; clients address rows by position.
    TransactionID = Column(Integer, primary_key=True, autoincrement=True)
    Timestamp = Column("Timestamp", DateTime, server_default=func.now())
    PatientName = Column("Patient Name", String(255))
    RecipientName = Column("Device Recipient Name", String(255))
    Relationship = Column("Relationship", String(100))
    PatientID = Column("Patient ID", String(100))
    RecipientID = Column("Recipient ID", String(100))
    ContactNumber = Column("Contact Number", String(50))
    Area = Column("Area", String(100))
    Diagnosis = Column("Diagnosis", String(255))
    Device = Column("Device", String(255))
    DeviceNumber = Column("Device Number", String(100))
    Notes = Column("Notes", String)
    Status = Column("Status", String(50))
    Type = Column("Type", String(50))
