from __future__ import annotations

from datetime import UTC, datetime
from uuid import UUID, uuid4

from loguru import logger
from tortoise.exceptions import IntegrityError
from tortoise.transactions import in_transaction

from app import settings
from app.errors import ConflictError, NotFoundError, store_errors
from app.financials import calculate_from_base, to_money
from app.invoice_pdf import render_invoice_pdf
from app.models import (
    Address,
    Booking,
    BookingStatus,
    Invoice,
    Payout,
    PayoutStatus,
    ProviderType,
    User,
)
from app.schemas import (
    FinancialBreakdown,
    InvoiceResponse,
    InvoiceStats,
    PayoutFilters,
    PayoutResponse,
)

PAYABLE_STATUSES = frozenset(
    {BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED}
)


def generate_invoice_number(now: datetime | None = None) -> str:
    now = now or datetime.now(UTC)
    return f"{settings.invoice_number_prefix}-{now:%Y%m%d}-{uuid4().hex[:8].upper()}"


def _customer_snapshot(customer: User | None, address: Address | None) -> dict:
    return {
        "name": customer.full_name if customer else None,
        "email": customer.email if customer else None,
        "phone": customer.phone if customer else None,
        "address": (
            {
                "street": address.street,
                "city": address.city,
                "state": address.state,
                "zip_code": address.zip_code,
                "line": address.one_line(),
            }
            if address
            else None
        ),
    }


def _items_snapshot(booking: Booking) -> dict:
    return {
        "services": [
            {
                "name": item.name,
                "quantity": item.quantity,
                "unit_price": str(to_money(item.base_price)),
                "price": str(to_money(item.price)),
            }
            for item in booking.items
        ],
        "products": [
            {
                "name": product.name,
                "quantity": product.quantity,
                "unit_price": str(to_money(product.unit_price)),
                "price": str(to_money(product.unit_price * product.quantity)),
            }
            for product in booking.products
        ],
    }


class InvoiceGenerator:
    async def get_invoice(self, booking_id: UUID) -> InvoiceResponse | None:
        inst = await Invoice.get_or_none(booking_id=booking_id)
        if not inst:
            return None
        return InvoiceResponse.model_validate(inst, from_attributes=True)

    async def generate_invoice(self, booking_id: UUID) -> InvoiceResponse:
        """
        Snapshot a payable booking into an immutable invoice, plus a PENDING
        payout for its provider. Idempotent: an existing invoice is returned
        unchanged. Two concurrent callers are separated by the unique
        constraint on invoices.booking_id; the loser returns the winner's row.
        """
        existing = await self.get_invoice(booking_id)
        if existing is not None:
            return existing

        booking = await Booking.get_or_none(id=booking_id).prefetch_related(
            "items", "products"
        )
        if booking is None:
            raise NotFoundError("Booking not found", code="booking_not_found")
        if booking.status not in PAYABLE_STATUSES:
            raise ConflictError(
                f"Booking is '{booking.status}' and cannot be invoiced yet",
                code="booking_not_payable",
            )

        customer = await User.get_or_none(id=booking.customer_id)
        address = await Address.get_or_none(id=booking.address_id)
        breakdown = calculate_from_base(booking.total)

        if booking.employee_id is not None:
            provider = (booking.employee_id, ProviderType.EMPLOYEE)
        elif booking.vendor_id is not None:
            provider = (booking.vendor_id, ProviderType.VENDOR)
        else:
            provider = None

        async with store_errors("generate invoice"):
            try:
                async with in_transaction():
                    inst = await Invoice.create(
                        booking_id=booking_id,
                        invoice_number=generate_invoice_number(),
                        customer_snapshot=_customer_snapshot(customer, address),
                        items_snapshot=_items_snapshot(booking),
                        financial_breakdown=breakdown.model_dump(mode="json"),
                    )
                    if provider is not None:
                        await Payout.create(
                            booking_id=booking_id,
                            provider_id=provider[0],
                            provider_type=provider[1],
                            amount=breakdown.vendor_payout,
                            status=PayoutStatus.PENDING,
                        )
            except IntegrityError:
                # lost the race: the unique booking_id already holds the winner
                winner = await self.get_invoice(booking_id)
                if winner is None:
                    raise
                logger.info(
                    "Invoice for booking {} was generated concurrently", booking_id
                )
                return winner

        logger.info(
            "Invoice {} issued for booking {} (total={}, payout={})",
            inst.invoice_number,
            booking_id,
            breakdown.total_amount,
            breakdown.vendor_payout if provider else None,
        )
        return InvoiceResponse.model_validate(inst, from_attributes=True)

    async def render_document(self, booking_id: UUID) -> tuple[str, bytes]:
        """PDF of the persisted invoice. Never creates or recomputes anything."""
        invoice = await self.get_invoice(booking_id)
        if invoice is None:
            raise NotFoundError(
                "Invoice not found. Generate it first.", code="invoice_not_generated"
            )
        return f"{invoice.invoice_number}.pdf", render_invoice_pdf(invoice)

    async def invoice_stats(self) -> InvoiceStats:
        stats = InvoiceStats()
        for raw in await Invoice.all().values_list("financial_breakdown", flat=True):
            fin = FinancialBreakdown.model_validate(raw)
            stats.total_revenue += fin.total_amount
            stats.total_commission += fin.platform_commission
            stats.total_payouts += fin.vendor_payout
            stats.count += 1
        return stats

    async def list_payouts(self, filters: PayoutFilters) -> list[PayoutResponse]:
        qs = Payout.all()
        if filters.status is not None:
            qs = qs.filter(status=filters.status)
        if filters.provider_id is not None:
            qs = qs.filter(provider_id=filters.provider_id)
        return [
            PayoutResponse.model_validate(p, from_attributes=True) for p in await qs
        ]


invoice_generator = InvoiceGenerator()
