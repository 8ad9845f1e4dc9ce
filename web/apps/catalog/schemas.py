from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ProductOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    sku: Optional[str] = None
    price: Optional[Decimal] = None
    quantity: Optional[int] = None
    status: str
    external_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProductListQuery(BaseModel):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)
    status: Optional[Literal["active", "inactive", "out_of_stock"]] = None


class StockAdjustmentIn(BaseModel):
    """Staff stock adjustment.

    ``add`` gives units back through the ledger's release, ``subtract``
    takes them through a reservation and fails on insufficient stock.
    """

    model_config = ConfigDict(extra="forbid")

    operation: Literal["add", "subtract"]
    quantity: int = Field(gt=0)
