from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from loguru import logger
from tortoise.transactions import in_transaction

from app.errors import BookingValidationError, NotFoundError, store_errors
from app.events import booking_event_log
from app.financials import platform_revenue
from app.models import (
    Address,
    Booking,
    BookingEventType,
    BookingItem,
    BookingProduct,
    BookingStatus,
    BookingType,
    ProductCatalog,
    Service,
    ServiceCatalog,
)
from app.schemas import (
    AddressInput,
    BookingCreate,
    BookingDetail,
    BookingItemResponse,
    BookingProductResponse,
    BookingResponse,
    ProductSelection,
    ServiceSelection,
)

DEFAULT_DURATION = 60  # minutes, when nothing else resolves


def normalise_product_selections(
    selections: Iterable[ProductSelection],
) -> list[ProductSelection]:
    """Merge repeated catalogue ids, summing quantities (each at least 1)."""
    totals: dict[UUID, int] = {}
    for item in selections:
        quantity = max(1, item.quantity or 1)
        pid = item.product_catalog_id
        totals[pid] = totals.get(pid, 0) + quantity
    return [
        ProductSelection(product_catalog_id=pid, quantity=qty)
        for pid, qty in totals.items()
    ]


@dataclass
class PricedOrder:
    """Line items and running totals resolved from the catalogue."""

    items: list[dict] = field(default_factory=list)
    products: list[dict] = field(default_factory=list)
    service_subtotal: Decimal = Decimal("0")
    product_subtotal: Decimal = Decimal("0")
    vendor_payout: Decimal = Decimal("0")
    duration: int = 0

    @property
    def subtotal(self) -> Decimal:
        return self.service_subtotal + self.product_subtotal


class BookingIntake:
    async def resolve_address_id(
        self,
        customer_id: UUID,
        address_id: UUID | None,
        address: AddressInput | None,
    ) -> UUID:
        """
        Pick the delivery address, in order of preference:
          1. the given address id, if it belongs to the customer
          2. a new address row built from raw street + city
          3. the customer's default address
        """
        if address_id is not None:
            existing = await Address.get_or_none(id=address_id, user_id=customer_id)
            if existing:
                return existing.id

        if address is not None and address.is_complete:
            created = await Address.create(
                user_id=customer_id,
                name=address.name,
                type=address.type,
                street=address.street.strip(),
                city=address.city.strip(),
                state=address.state,
                zip_code=address.zip_code,
                latitude=address.latitude,
                longitude=address.longitude,
                is_default=False,
            )
            return created.id

        default = await Address.get_or_none(user_id=customer_id, is_default=True)
        if default:
            return default.id

        raise BookingValidationError(
            "addressId is required or provide address fields (street, city)",
            code="address_required",
        )

    async def _price_catalog_services(
        self, catalog_service_ids: list[UUID], order: PricedOrder
    ) -> None:
        # a repeated id counts as a missing one
        records = await ServiceCatalog.filter(
            id__in=catalog_service_ids, is_active=True
        )
        if len(records) != len(catalog_service_ids):
            raise NotFoundError(
                "Selected at-home service is no longer available",
                code="catalog_service_not_found",
            )

        by_id = {r.id: r for r in records}
        for sid in catalog_service_ids:
            record = by_id[sid]
            order.service_subtotal += record.customer_price
            order.vendor_payout += record.vendor_payout
            order.duration += record.duration or 0
            order.items.append(
                dict(
                    catalog_service_id=record.id,
                    name=record.name,
                    description=record.description,
                    category=record.category,
                    quantity=1,
                    price=record.customer_price,
                    base_price=record.customer_price,
                    vendor_payout=record.vendor_payout,
                    duration=record.duration,
                )
            )

    async def _price_services(
        self, selections: list[ServiceSelection], order: PricedOrder
    ) -> None:
        if not selections:
            raise BookingValidationError(
                "Please select at least one service", code="service_selection_required"
            )

        records = await Service.filter(id__in=[s.id for s in selections])
        if len(records) != len(selections):
            raise NotFoundError(
                "One or more selected services are unavailable",
                code="service_not_found",
            )

        by_id = {r.id: r for r in records}
        for selection in selections:
            record = by_id[selection.id]
            quantity = max(1, selection.quantity or 1)
            unit_price = record.price if selection.price is None else selection.price
            line_total = unit_price * quantity

            order.service_subtotal += line_total
            order.duration += (record.duration or 0) * quantity
            order.items.append(
                dict(
                    service_id=record.id,
                    name=record.name,
                    description=record.description,
                    category=record.category,
                    quantity=quantity,
                    price=line_total,
                    base_price=unit_price,
                    duration=record.duration,
                )
            )

    async def _price_products(
        self, selections: list[ProductSelection], order: PricedOrder
    ) -> None:
        if not selections:
            return

        records = await ProductCatalog.filter(
            id__in=[s.product_catalog_id for s in selections], is_active=True
        )
        if len(records) != len(selections):
            raise NotFoundError(
                "One or more selected products are unavailable",
                code="product_not_found",
            )

        by_id = {r.id: r for r in records}
        for selection in selections:
            record = by_id[selection.product_catalog_id]
            quantity = selection.quantity or 1
            order.product_subtotal += record.customer_price * quantity
            order.vendor_payout += record.vendor_payout * quantity
            order.products.append(
                dict(
                    product_catalog_id=record.id,
                    name=record.name,
                    quantity=quantity,
                    unit_price=record.customer_price,
                    vendor_payout=record.vendor_payout,
                )
            )

    async def create_booking(
        self, payload: BookingCreate, customer_id: UUID
    ) -> BookingDetail:
        """
        Validate and price a booking request and persist it in one transaction:
        booking row, its items and products, and the CREATED event. Any
        failure rolls the whole unit back (including a freshly created address).
        """
        is_catalog_flow = payload.is_catalog_flow
        booking_type = payload.booking_type or (
            BookingType.AT_HOME if is_catalog_flow else BookingType.SALON_VISIT
        )
        products = normalise_product_selections(payload.product_selections)

        async with store_errors("create booking"), in_transaction():
            address_id = await self.resolve_address_id(
                customer_id, payload.address_id, payload.address
            )

            order = PricedOrder()
            if is_catalog_flow:
                await self._price_catalog_services(payload.catalog_service_ids, order)
            else:
                await self._price_services(payload.services, order)
            await self._price_products(products, order)

            subtotal = order.subtotal
            total = payload.total if payload.total and payload.total > 0 else subtotal
            vendor_payout = order.vendor_payout or None

            booking = await Booking.create(
                customer_id=customer_id,
                vendor_id=None if is_catalog_flow else payload.vendor_id,
                manager_id=None,
                address_id=address_id,
                booking_type=booking_type,
                catalog_service_id=(
                    payload.catalog_service_ids[0] if is_catalog_flow else None
                ),
                status=(
                    BookingStatus.AWAITING_MANAGER
                    if is_catalog_flow
                    else BookingStatus.PENDING
                ),
                scheduled_date=payload.scheduled_date,
                scheduled_time=payload.scheduled_time,
                duration=order.duration or payload.duration or DEFAULT_DURATION,
                service_subtotal=order.service_subtotal,
                product_subtotal=order.product_subtotal,
                subtotal=subtotal,
                discount=Decimal("0"),
                tax=Decimal("0"),
                total=total,
                vendor_payout=vendor_payout,
                platform_revenue=platform_revenue(total, vendor_payout),
                notes=payload.notes,
            )

            items = [BookingItem(booking=booking, **data) for data in order.items]
            if items:
                await BookingItem.bulk_create(items)
            booking_products = [
                BookingProduct(booking=booking, **data) for data in order.products
            ]
            if booking_products:
                await BookingProduct.bulk_create(booking_products)

            event = await booking_event_log.record(
                booking.id,
                BookingEventType.CREATED,
                {
                    "createdBy": customer_id,
                    "flow": "AT_HOME" if is_catalog_flow else "DIRECT",
                    "includeProducts": bool(booking_products),
                },
            )

        logger.info(
            "Booking {} created for customer {} ({}, total={})",
            booking.id,
            customer_id,
            booking_type,
            total,
        )
        return BookingDetail(
            **BookingResponse.model_validate(
                booking, from_attributes=True
            ).model_dump(),
            items=[
                BookingItemResponse.model_validate(i, from_attributes=True)
                for i in items
            ],
            products=[
                BookingProductResponse.model_validate(p, from_attributes=True)
                for p in booking_products
            ],
            events=[event],
        )


booking_intake = BookingIntake()
