from enum import StrEnum

from tortoise import fields
from tortoise.exceptions import IntegrityError
from tortoise.models import Model


class BookingStatus(StrEnum):
    PENDING = "PENDING"  # direct vendor booking, awaiting vendor response
    AWAITING_MANAGER = "AWAITING_MANAGER"  # catalog booking, no vendor yet
    AWAITING_VENDOR_RESPONSE = "AWAITING_VENDOR_RESPONSE"  # manager picked a vendor
    AWAITING_BEAUTICIAN = "AWAITING_BEAUTICIAN"  # vendor accepted
    CONFIRMED = "CONFIRMED"  # beautician assigned
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class BookingType(StrEnum):
    AT_HOME = "AT_HOME"
    SALON_VISIT = "SALON_VISIT"


class BookingEventType(StrEnum):
    CREATED = "CREATED"
    STATUS_CHANGED = "STATUS_CHANGED"
    MANAGER_ASSIGNED_VENDOR = "MANAGER_ASSIGNED_VENDOR"
    VENDOR_ACCEPTED = "VENDOR_ACCEPTED"
    VENDOR_REJECTED = "VENDOR_REJECTED"
    BEAUTICIAN_ASSIGNED = "BEAUTICIAN_ASSIGNED"
    CANCELLED = "CANCELLED"


class VendorStatus(StrEnum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    SUSPENDED = "SUSPENDED"


class EmployeeStatus(StrEnum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class InvoiceStatus(StrEnum):
    ISSUED = "ISSUED"
    PAID = "PAID"
    VOID = "VOID"


class PayoutStatus(StrEnum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"


class ProviderType(StrEnum):
    EMPLOYEE = "EMPLOYEE"
    VENDOR = "VENDOR"


class TimestampedModel(Model):
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:  # type: ignore
        abstract = True


class AppendOnlyModel(TimestampedModel):
    """Rows are written once and never updated or deleted through the ORM."""

    async def save(self, *args, **kwargs) -> None:
        if self._saved_in_db:
            raise IntegrityError(f"{type(self).__name__} rows are append-only")
        await super().save(*args, **kwargs)

    async def delete(self, *args, **kwargs) -> None:
        raise IntegrityError(f"{type(self).__name__} rows are append-only")

    class Meta:  # type: ignore
        abstract = True


# ---------------------------------------------------------------------------
# Parties and catalogue. Referenced by id only: no aggregate holds another.
# ---------------------------------------------------------------------------


class User(TimestampedModel):
    id = fields.UUIDField(primary_key=True)
    first_name = fields.CharField(max_length=100)
    last_name = fields.CharField(max_length=100, default="")
    email = fields.CharField(max_length=255, null=True)
    phone = fields.CharField(max_length=32, null=True)

    class Meta:  # type: ignore
        table = "users"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Address(TimestampedModel):
    id = fields.UUIDField(primary_key=True)
    user_id = fields.UUIDField()
    name = fields.CharField(max_length=100, null=True)
    type = fields.CharField(max_length=20, default="HOME")
    street = fields.CharField(max_length=255)
    city = fields.CharField(max_length=100)
    state = fields.CharField(max_length=100, default="")
    zip_code = fields.CharField(max_length=20, default="")
    latitude = fields.FloatField(null=True)
    longitude = fields.FloatField(null=True)
    is_default = fields.BooleanField(default=False)

    class Meta:  # type: ignore
        table = "addresses"

    def one_line(self) -> str:
        parts = [self.street, self.city, self.state, self.zip_code]
        return ", ".join(p for p in parts if p)


class Vendor(TimestampedModel):
    id = fields.UUIDField(primary_key=True)
    user_id = fields.UUIDField(unique=True)
    shop_name = fields.CharField(max_length=200)
    status = fields.CharEnumField(VendorStatus, default=VendorStatus.PENDING)

    class Meta:  # type: ignore
        table = "vendor"


class Employee(TimestampedModel):
    """A beautician working for a vendor (or directly for the platform)."""

    id = fields.UUIDField(primary_key=True)
    vendor_id = fields.UUIDField(null=True)
    name = fields.CharField(max_length=200)
    role = fields.CharField(max_length=100, default="Beautician")
    email = fields.CharField(max_length=255, null=True)
    phone = fields.CharField(max_length=32, null=True)
    experience = fields.IntField(null=True)  # years
    specialization = fields.CharField(max_length=200, null=True)
    skills = fields.TextField(default="")  # free text, matched by keyword
    status = fields.CharEnumField(EmployeeStatus, default=EmployeeStatus.ACTIVE)

    class Meta:  # type: ignore
        table = "employees"


class ServiceCatalog(TimestampedModel):
    """Platform-defined at-home service with fixed price and vendor payout."""

    id = fields.UUIDField(primary_key=True)
    name = fields.CharField(max_length=200)
    description = fields.TextField(null=True)
    category = fields.CharField(max_length=100, null=True)
    customer_price = fields.DecimalField(max_digits=10, decimal_places=2)
    vendor_payout = fields.DecimalField(max_digits=10, decimal_places=2)
    duration = fields.IntField(null=True)  # minutes
    is_active = fields.BooleanField(default=True)

    class Meta:  # type: ignore
        table = "service_catalog"


class Service(TimestampedModel):
    """A vendor's own service listing with vendor-set pricing."""

    id = fields.UUIDField(primary_key=True)
    vendor_id = fields.UUIDField()
    name = fields.CharField(max_length=200)
    description = fields.TextField(null=True)
    category = fields.CharField(max_length=100, null=True)
    price = fields.DecimalField(max_digits=10, decimal_places=2)
    duration = fields.IntField(null=True)  # minutes
    is_active = fields.BooleanField(default=True)

    class Meta:  # type: ignore
        table = "services"


class ProductCatalog(TimestampedModel):
    id = fields.UUIDField(primary_key=True)
    name = fields.CharField(max_length=200)
    category = fields.CharField(max_length=100, null=True)
    customer_price = fields.DecimalField(max_digits=10, decimal_places=2)
    vendor_payout = fields.DecimalField(max_digits=10, decimal_places=2)
    is_active = fields.BooleanField(default=True)

    class Meta:  # type: ignore
        table = "product_catalog"


# ---------------------------------------------------------------------------
# Booking aggregate: the booking exclusively owns its items, products, events.
# ---------------------------------------------------------------------------


class Booking(TimestampedModel):
    id = fields.UUIDField(primary_key=True)

    customer_id = fields.UUIDField()
    vendor_id = fields.UUIDField(null=True)
    manager_id = fields.UUIDField(null=True)
    employee_id = fields.UUIDField(null=True)  # assigned beautician
    address_id = fields.UUIDField()

    booking_type = fields.CharEnumField(BookingType)
    catalog_service_id = fields.UUIDField(null=True)  # first catalog service only

    scheduled_date = fields.DateField()
    scheduled_time = fields.CharField(max_length=16)
    duration = fields.IntField(default=60)  # minutes

    service_subtotal = fields.DecimalField(max_digits=10, decimal_places=2, default=0)
    product_subtotal = fields.DecimalField(max_digits=10, decimal_places=2, default=0)
    subtotal = fields.DecimalField(max_digits=10, decimal_places=2, default=0)
    discount = fields.DecimalField(max_digits=10, decimal_places=2, default=0)
    tax = fields.DecimalField(max_digits=10, decimal_places=2, default=0)
    total = fields.DecimalField(max_digits=10, decimal_places=2, default=0)
    vendor_payout = fields.DecimalField(max_digits=10, decimal_places=2, null=True)
    platform_revenue = fields.DecimalField(max_digits=10, decimal_places=2, default=0)

    status = fields.CharEnumField(BookingStatus)

    manager_assigned_at = fields.DatetimeField(null=True)
    vendor_responded_at = fields.DatetimeField(null=True)
    beautician_assigned_at = fields.DatetimeField(null=True)
    customer_notified_at = fields.DatetimeField(null=True)

    notes = fields.TextField(null=True)
    cancellation_reason = fields.TextField(null=True)
    updated_at = fields.DatetimeField(auto_now=True)

    items: fields.ReverseRelation["BookingItem"]
    products: fields.ReverseRelation["BookingProduct"]
    events: fields.ReverseRelation["BookingEvent"]

    class Meta:  # type: ignore
        table = "bookings"
        ordering = ["-created_at"]


class BookingItem(TimestampedModel):
    id = fields.UUIDField(primary_key=True)
    booking: fields.ForeignKeyRelation[Booking] = fields.ForeignKeyField(
        "models.Booking", related_name="items", on_delete=fields.CASCADE
    )
    service_id = fields.UUIDField(null=True)  # ad-hoc flow
    catalog_service_id = fields.UUIDField(null=True)  # catalog flow
    name = fields.CharField(max_length=200)
    description = fields.TextField(null=True)
    category = fields.CharField(max_length=100, null=True)
    quantity = fields.IntField(default=1)
    price = fields.DecimalField(max_digits=10, decimal_places=2)  # line total
    base_price = fields.DecimalField(max_digits=10, decimal_places=2)  # unit price
    duration = fields.IntField(null=True)
    vendor_payout = fields.DecimalField(max_digits=10, decimal_places=2, null=True)

    class Meta:  # type: ignore
        table = "booking_items"


class BookingProduct(TimestampedModel):
    id = fields.UUIDField(primary_key=True)
    booking: fields.ForeignKeyRelation[Booking] = fields.ForeignKeyField(
        "models.Booking", related_name="products", on_delete=fields.CASCADE
    )
    product_catalog_id = fields.UUIDField()
    name = fields.CharField(max_length=200)
    quantity = fields.IntField(default=1)
    unit_price = fields.DecimalField(max_digits=10, decimal_places=2)
    vendor_payout = fields.DecimalField(max_digits=10, decimal_places=2)

    class Meta:  # type: ignore
        table = "booking_products"


class BookingEvent(AppendOnlyModel):
    id = fields.UUIDField(primary_key=True)
    booking: fields.ForeignKeyRelation[Booking] = fields.ForeignKeyField(
        "models.Booking", related_name="events", on_delete=fields.CASCADE
    )
    type = fields.CharEnumField(BookingEventType)
    data = fields.JSONField(default=dict)

    class Meta:  # type: ignore
        table = "booking_events"
        ordering = ["created_at"]


# ---------------------------------------------------------------------------
# Financial records. Reference a booking by id, never own it.
# ---------------------------------------------------------------------------


class Invoice(AppendOnlyModel):
    id = fields.UUIDField(primary_key=True)
    booking_id = fields.UUIDField(unique=True)
    invoice_number = fields.CharField(max_length=40, unique=True)
    customer_snapshot = fields.JSONField()
    items_snapshot = fields.JSONField()
    financial_breakdown = fields.JSONField()
    status = fields.CharEnumField(InvoiceStatus, default=InvoiceStatus.ISSUED)

    class Meta:  # type: ignore
        table = "invoices"
        ordering = ["-created_at"]


class Payout(TimestampedModel):
    id = fields.UUIDField(primary_key=True)
    booking_id = fields.UUIDField(unique=True)
    provider_id = fields.UUIDField()
    provider_type = fields.CharEnumField(ProviderType)
    amount = fields.DecimalField(max_digits=10, decimal_places=2)
    status = fields.CharEnumField(PayoutStatus, default=PayoutStatus.PENDING)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:  # type: ignore
        table = "payouts"
        ordering = ["-created_at"]
