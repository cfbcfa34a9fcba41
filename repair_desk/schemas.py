from __future__ import annotations

import math
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_QUALITY = "Standaard"
CATALOG_REQUIRED = ("brand", "model", "color", "repair_type")


def safe(value: Any) -> str:
    """Text with ``<`` and ``>`` removed; ``None`` becomes ``""``."""
    if value is None:
        return ""
    return str(value).replace("<", "").replace(">", "")


def capitalize_first(value: Any) -> str:
    text = safe(value).strip()
    return text[:1].upper() + text[1:]


def parse_price(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        number = float(str(value).replace(",", ".", 1))
    except ValueError:
        return None
    if not math.isfinite(number) or number == 0:
        return None
    return number


class RequestStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class RepairRequestCreate(BaseModel):
    customer_name: str = ""
    customer_email: str = ""
    customer_phone: str = ""
    brand: str = ""
    model: str = ""
    color: str = ""
    issue: str = ""
    price_text: str = ""
    preferred_date: str = ""
    preferred_time: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def _clean(cls, value: Any) -> str:
        return safe(value).strip()

    def to_row(self) -> dict[str, Any]:
        row = self.model_dump()
        row["status"] = RequestStatus.pending.value
        return row


class ReviewRequest(BaseModel):
    id: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def _clean_id(cls, value: Any) -> str:
        return "" if value is None else str(value).strip()


class RejectRequest(ReviewRequest):
    reason: str | None = None

    @field_validator("reason", mode="before")
    @classmethod
    def _clean_reason(cls, value: Any) -> str | None:
        text = safe(value).strip()
        return text or None


class RequestPatch(BaseModel):
    """The only request fields staff may edit after submission."""

    model_config = ConfigDict(extra="ignore")

    price_text: str | None = None
    preferred_date: str | None = None
    preferred_time: str | None = None
    notes: str | None = None

    @field_validator("*", mode="before")
    @classmethod
    def _as_text(cls, value: Any) -> str | None:
        return None if value is None else str(value)

    def changes(self) -> dict[str, str | None]:
        return {name: getattr(self, name) for name in self.model_fields_set}


class UpdateRequestBody(BaseModel):
    id: str = ""
    patch: Any = None

    @field_validator("id", mode="before")
    @classmethod
    def _clean_id(cls, value: Any) -> str:
        return "" if value is None else str(value).strip()


class CatalogEntryCreate(BaseModel):
    brand: str = ""
    model: str = ""
    color: str = ""
    repair_type: str = ""
    quality: str = DEFAULT_QUALITY
    price: float | None = None

    @field_validator("brand", "model", "color", "repair_type", mode="before")
    @classmethod
    def _capitalize(cls, value: Any) -> str:
        return capitalize_first(value)

    @field_validator("quality", mode="before")
    @classmethod
    def _quality(cls, value: Any) -> str:
        return safe(value).strip() or DEFAULT_QUALITY

    @field_validator("price", mode="before")
    @classmethod
    def _price(cls, value: Any) -> float | None:
        return parse_price(value)

    def missing_fields(self) -> list[str]:
        return [name for name in CATALOG_REQUIRED if not getattr(self, name)]


class CatalogEntryUpdate(CatalogEntryCreate):
    id: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def _clean_id(cls, value: Any) -> str:
        return safe(value).strip()

    def changes(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in self.model_fields_set if name != "id"}

    def emptied_fields(self) -> list[str]:
        return [name for name in CATALOG_REQUIRED if name in self.model_fields_set and not getattr(self, name)]


class CatalogDelete(BaseModel):
    id: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def _clean_id(cls, value: Any) -> str:
        return safe(value).strip()


class CatalogEntryOut(BaseModel):
    id: int | str
    brand: str
    model: str
    color: str
    repair_type: str
    quality: str | None = None
    price: float | None = None


class CatalogCreated(BaseModel):
    ok: bool = True
    id: int | str


class RepairRequestOut(BaseModel):
    id: int | str
    created_at: datetime | None = None
    customer_name: str | None = None
    customer_email: str | None = None
    customer_phone: str | None = None
    brand: str | None = None
    model: str | None = None
    color: str | None = None
    issue: str | None = None
    price_text: str | None = None
    preferred_date: str | None = None
    preferred_time: str | None = None
    status: str
    condition: str | None = None
    quality: str | None = None
    warranty: str | None = None
    notes: str | None = None
    rejection_reason: str | None = None
    newness: str = Field(default="unknown")
