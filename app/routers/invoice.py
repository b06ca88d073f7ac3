from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, status
from loguru import logger

from app.deps import (
    CurrentUser,
    can_generate_invoice,
    can_read_booking,
    can_view_finance,
    get_visible_booking,
)
from app.errors import BookingError
from app.invoicing import invoice_generator
from app.schemas import InvoiceResponse, InvoiceStats, PayoutFilters, PayoutResponse

router = APIRouter(prefix="/invoices", tags=["invoices"])


@router.post(
    "/generate/{booking_id}",
    response_model=InvoiceResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(can_generate_invoice)],
)
async def generate_invoice(booking_id: UUID) -> InvoiceResponse:
    return await invoice_generator.generate_invoice(booking_id)


# Registered before "/{booking_id}" so the literal segment wins
@router.get(
    "/admin/stats",
    response_model=InvoiceStats,
    dependencies=[Depends(can_view_finance)],
)
async def invoice_stats() -> InvoiceStats:
    return await invoice_generator.invoice_stats()


@router.get(
    "/admin/payouts",
    response_model=list[PayoutResponse],
    dependencies=[Depends(can_view_finance)],
)
async def list_payouts(filters: PayoutFilters = Depends()) -> list[PayoutResponse]:
    return await invoice_generator.list_payouts(filters)


@router.get("/download/{booking_id}")
async def download_invoice(
    booking_id: UUID,
    current_user: CurrentUser = Depends(can_read_booking),
) -> Response:
    await get_visible_booking(booking_id, current_user)
    try:
        filename, content = await invoice_generator.render_document(booking_id)
    except BookingError:
        raise
    except Exception:
        logger.exception("Rendering invoice PDF for booking {} failed", booking_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error generating PDF",
        ) from None

    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{booking_id}", response_model=InvoiceResponse)
async def get_invoice(
    booking_id: UUID,
    current_user: CurrentUser = Depends(can_read_booking),
) -> InvoiceResponse:
    await get_visible_booking(booking_id, current_user)
    invoice = await invoice_generator.get_invoice(booking_id)
    if invoice is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found"
        )
    return invoice
