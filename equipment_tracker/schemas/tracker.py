from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


class AddTransactionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

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

    # Form fields arrive verbatim; numbers and nulls are stored as text.
    @field_validator("*", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return _as_text(value)


class UpdateInventoryRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    device: str
    newTotal: int = Field(ge=0)


class UpdateStatusRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    row: Optional[Any] = None
    status: str = ""
