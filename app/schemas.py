from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated
from uuid import UUID

from pydantic import (
    AliasChoices,
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from app.models import (
    BookingEventType,
    BookingStatus,
    BookingType,
    InvoiceStatus,
    PayoutStatus,
    ProviderType,
)

# ---------------------------------------------------------------------------
# Money
# ---------------------------------------------------------------------------


def _to_cents(value: Decimal) -> Decimal:
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


# two fixed decimals on the way out, never an exponent
Money = Annotated[Decimal, AfterValidator(_to_cents)]


class FinancialBreakdown(BaseModel):
    base_amount: Money
    vat_amount: Money
    total_amount: Money
    platform_commission: Money
    vendor_payout: Money


# ---------------------------------------------------------------------------
# Intake
# ---------------------------------------------------------------------------


class ServiceSelection(BaseModel):
    """Ad-hoc service pick. price/quantity override the listing when given."""

    id: UUID
    price: Decimal | None = Field(default=None, ge=0)
    quantity: int | None = None


class ProductSelection(BaseModel):
    product_catalog_id: UUID = Field(
        validation_alias=AliasChoices("product_catalog_id", "productCatalogId", "id")
    )
    quantity: int | None = None


class AddressInput(BaseModel):
    """Raw address fields. Several spellings are accepted for the same field."""

    name: str | None = None
    type: str = "HOME"
    street: str = Field(
        default="",
        validation_alias=AliasChoices("street", "line1", "address_line1", "address"),
    )
    city: str = Field(
        default="", validation_alias=AliasChoices("city", "town", "locality")
    )
    state: str = Field(default="", validation_alias=AliasChoices("state", "province"))
    zip_code: str = Field(
        default="", validation_alias=AliasChoices("zip_code", "postal_code", "zip")
    )
    latitude: float | None = None
    longitude: float | None = None

    @property
    def is_complete(self) -> bool:
        return bool(self.street.strip() and self.city.strip())


class BookingCreate(BaseModel):
    customer_id: UUID | None = None  # defaults to the caller
    vendor_id: UUID | None = None  # direct vendor flow only

    catalog_service_id: UUID | None = None
    catalog_service_ids: list[UUID] = Field(default_factory=list)
    services: list[ServiceSelection] = Field(default_factory=list)
    product_selections: list[ProductSelection] = Field(
        default_factory=list,
        validation_alias=AliasChoices("product_selections", "products"),
    )

    scheduled_date: date
    scheduled_time: str

    address_id: UUID | None = None
    address: AddressInput | None = None

    booking_type: BookingType | None = None
    duration: int | None = Field(default=None, gt=0)
    total: Decimal | None = None
    notes: str | None = Field(default=None, max_length=1000)

    @field_validator("scheduled_time", mode="after")
    @classmethod
    def require_time(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3:
            raise ValueError("scheduled_time is not a valid time value")
        return v

    @model_validator(mode="after")
    def merge_catalog_ids(self) -> BookingCreate:
        if self.catalog_service_id and not self.catalog_service_ids:
            self.catalog_service_ids = [self.catalog_service_id]
        return self

    @property
    def is_catalog_flow(self) -> bool:
        return bool(self.catalog_service_ids)


# ---------------------------------------------------------------------------
# Lifecycle / assignment payloads
# ---------------------------------------------------------------------------


class BookingStatusUpdate(BaseModel):
    # plain str: unknown values are reported as invalid_status, not a 422
    status: str = Field(min_length=1, max_length=40)


class BookingCancel(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class VendorAssignment(BaseModel):
    vendor_id: UUID


class VendorResponse(BaseModel):
    accept: bool
    reason: str | None = Field(default=None, max_length=500)


class BeauticianDetails(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    role: str = "Beautician"
    email: str | None = None
    phone: str | None = None
    experience: int | None = Field(default=None, ge=0)
    specialization: str | None = None


class BeauticianAssignment(BaseModel):
    """Either an existing employee id or the details of a new one."""

    employee_id: UUID | None = None
    beautician: BeauticianDetails | None = None


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class BookingResponse(BaseModel):
    id: UUID
    customer_id: UUID
    vendor_id: UUID | None
    manager_id: UUID | None
    employee_id: UUID | None
    address_id: UUID
    booking_type: BookingType
    catalog_service_id: UUID | None
    scheduled_date: date
    scheduled_time: str
    duration: int
    service_subtotal: Money
    product_subtotal: Money
    subtotal: Money
    discount: Money
    tax: Money
    total: Money
    vendor_payout: Money | None
    platform_revenue: Money
    status: BookingStatus
    manager_assigned_at: datetime | None
    vendor_responded_at: datetime | None
    beautician_assigned_at: datetime | None
    customer_notified_at: datetime | None
    notes: str | None
    cancellation_reason: str | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BookingItemResponse(BaseModel):
    id: UUID
    service_id: UUID | None
    catalog_service_id: UUID | None
    name: str
    category: str | None
    quantity: int
    price: Money
    base_price: Money
    duration: int | None
    vendor_payout: Money | None

    model_config = ConfigDict(from_attributes=True)


class BookingProductResponse(BaseModel):
    id: UUID
    product_catalog_id: UUID
    name: str
    quantity: int
    unit_price: Money
    vendor_payout: Money

    model_config = ConfigDict(from_attributes=True)


class BookingEventResponse(BaseModel):
    id: UUID
    booking_id: UUID
    type: BookingEventType
    data: dict
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BookingDetail(BookingResponse):
    items: list[BookingItemResponse] = Field(default_factory=list)
    products: list[BookingProductResponse] = Field(default_factory=list)
    events: list[BookingEventResponse] = Field(default_factory=list)


class BookingFilters(BaseModel):
    """Bind to a FastAPI route via Depends(BookingFilters)."""

    status: BookingStatus | None = None
    booking_type: BookingType | None = None

    # Pagination
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)


class BookingStats(BaseModel):
    total: int = 0
    active: int = 0
    completed: int = 0
    cancelled: int = 0
    awaiting_manager: int = 0
    awaiting_vendor: int = 0
    awaiting_beautician: int = 0
    confirmed: int = 0
    in_progress: int = 0


class EligibleBeautician(BaseModel):
    id: UUID
    name: str
    skills: str
    phone: str | None
    specialization: str | None
    score: int
    matched_skills: list[str]
    match_type: str


class InvoiceResponse(BaseModel):
    id: UUID
    booking_id: UUID
    invoice_number: str
    customer_snapshot: dict
    items_snapshot: dict
    financial_breakdown: FinancialBreakdown
    status: InvoiceStatus
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PayoutResponse(BaseModel):
    id: UUID
    booking_id: UUID
    provider_id: UUID
    provider_type: ProviderType
    amount: Money
    status: PayoutStatus
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PayoutFilters(BaseModel):
    status: PayoutStatus | None = None
    provider_id: UUID | None = None


class InvoiceStats(BaseModel):
    total_revenue: Money = Decimal("0.00")
    total_commission: Money = Decimal("0.00")
    total_payouts: Money = Decimal("0.00")
    count: int = 0
