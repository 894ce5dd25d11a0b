# FILE: app/schemas/shipment.py
from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ManualShipmentIn(BaseModel):
    pr_numbers: List[str] = Field(min_length=1)
    mode_of_transport: Literal["COURIER", "DIRECT", "HAND_DELIVERY"]
    courier_provider: Optional[str] = None
    shipment_number: Optional[str] = None
    tracking_url: Optional[str] = None
    dispatched_date: Optional[datetime] = None

    @model_validator(mode="after")
    def _courier_needs_provider(self) -> "ManualShipmentIn":
        if self.mode_of_transport == "COURIER" and not (self.courier_provider or "").strip():
            raise ValueError("courier_provider is required when mode_of_transport is COURIER")
        return self


class ShipmentOut(BaseModel):
    id: int
    shipment_id: str
    order_id: int
    vendor_id: int
    pr_number: str
    po_number: Optional[str] = None
    shipment_mode: str
    mode_of_transport: str
    courier_provider: Optional[str] = None
    shipment_number: Optional[str] = None
    tracking_url: Optional[str] = None
    shipment_status: str
    dispatched_date: datetime
    delivered_date: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ShipmentError(BaseModel):
    pr_number: str
    error: str


class ManualShipmentResult(BaseModel):
    shipments: List[ShipmentOut] = []
    errors: List[ShipmentError] = []
