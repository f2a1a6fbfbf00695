"""Records passed between the catalogue, the pricing engine and the quote workflow.

Inputs are pydantic models so out-of-range values are rejected where a
record is built. Engine outputs are frozen dataclasses.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

_TIME_OF_DAY = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class LineItemKind(str, Enum):
    BATTERY = "battery"
    INVERTER = "inverter"
    INSTALLATION = "installation"
    OTHER = "other"


class QuoteStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    VIEWED = "viewed"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"


class TariffInfo(BaseModel):
    """Customer electricity tariff, rates in £/kWh and standing charge in £/day."""

    import_rate: float = Field(ge=0)
    export_rate: float = Field(ge=0)
    standing_charge: float = Field(default=0.0, ge=0)
    has_time_of_use: bool = False
    peak_rate: Optional[float] = Field(default=None, ge=0)
    off_peak_rate: Optional[float] = Field(default=None, ge=0)
    peak_hours_start: Optional[str] = None
    peak_hours_end: Optional[str] = None

    @staticmethod
    def is_valid_time_of_day(value: Optional[str]) -> bool:
        return value is None or bool(_TIME_OF_DAY.match(value))


class CustomerProfile(BaseModel):
    name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    postcode: str = ""
    property_type: Literal["house", "flat", "bungalow", "commercial"] = "house"
    annual_consumption_kwh: float = Field(default=4000, gt=0)
    current_tariff: str = ""
    existing_solar: bool = False
    solar_capacity_kwp: Optional[float] = Field(default=None, ge=0)
    has_ev: bool = False
    ev_mileage_per_year: Optional[float] = Field(default=None, ge=0)


class QuoteLineItem(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    kind: LineItemKind
    product_id: Optional[str] = None
    description: str
    quantity: int = Field(default=1, ge=1)
    unit_price: float = Field(ge=0)
    cost_price: float = Field(ge=0)

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity


class BatteryProduct(BaseModel):
    id: str
    manufacturer_id: str
    manufacturer_name: str
    model: str
    capacity_kwh: float = Field(gt=0)
    power_kw: float = Field(gt=0)
    chemistry: str = "LiFePO4"
    warranty_years: int = 10
    cycle_life: int = 6000
    efficiency: float = Field(default=0.95, gt=0, le=1)
    dimensions: str = ""
    weight: float = 0
    cost_price: float = Field(ge=0)
    rrp: float = Field(ge=0)
    includes_inverter: bool = False
    is_active: bool = True


class InverterProduct(BaseModel):
    id: str
    manufacturer_id: str
    manufacturer_name: str
    model: str
    power_kw: float = Field(gt=0)
    phases: Literal[1, 3] = 1
    efficiency: float = Field(default=0.97, gt=0, le=1)
    warranty_years: int = 10
    cost_price: float = Field(ge=0)
    rrp: float = Field(ge=0)
    features: list[str] = Field(default_factory=list)
    is_active: bool = True


@dataclass(frozen=True)
class BatteryProductRef:
    """The part of a catalogue battery the capacity resolver needs."""

    capacity_kwh: float
    power_kw: float


@dataclass(frozen=True)
class ROIProjectionPoint:
    year: int
    savings: int
    cumulative_savings: int
    ev_tax_savings: int
    export_revenue: int
    load_shift_savings: int


@dataclass(frozen=True)
class PricedQuote:
    """Pricing and savings derived from the current quote inputs.

    Rebuilt in full from the inputs whenever any of them change.
    """

    product_cost: float
    product_price: float
    installation_cost: float
    subtotal: float
    vat_rate: float
    vat_amount: float
    total: float
    total_cost: float
    margin: float
    margin_percentage: float
    deposit: int
    battery_capacity_kwh: float
    load_shift_savings: int
    export_revenue: int
    ev_tax_savings: int
    annual_savings: int
    payback_years: float
    roi_projections: tuple[ROIProjectionPoint, ...] = field(default_factory=tuple)


class ROIProjection(BaseModel):
    """Stored form of a projection point on a saved quote."""

    year: int
    savings: int
    cumulative_savings: int
    ev_tax_savings: int
    export_revenue: int
    load_shift_savings: int


class Quote(BaseModel):
    id: str = ""
    company_id: str
    installer_id: str
    installer_name: str
    reference: str
    status: QuoteStatus = QuoteStatus.DRAFT
    installation_type: Literal["residential", "commercial"] = "residential"
    customer: CustomerProfile
    tariff: TariffInfo
    line_items: list[QuoteLineItem]
    subtotal: float
    vat_rate: float
    vat_amount: float
    total: float
    deposit: int
    margin: float
    margin_percentage: float
    roi_projections: list[ROIProjection]
    payback_years: float
    annual_savings: int
    notes: str = ""
    valid_until: datetime
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    viewed_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None

    @field_validator("valid_until", "created_at", "updated_at", "sent_at", "viewed_at", "accepted_at")
    @classmethod
    def _as_utc(cls, value):
        # Naive timestamps are taken as UTC so expiry and ordering compare cleanly
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_validator("roi_projections", mode="before")
    @classmethod
    def _projection_points(cls, value):
        return [
            asdict(point) if isinstance(point, ROIProjectionPoint) else point
            for point in value
        ]
