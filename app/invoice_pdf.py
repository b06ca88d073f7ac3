from decimal import Decimal, InvalidOperation
from io import BytesIO
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from app import settings
from app.schemas import InvoiceResponse


def _money(value) -> str:
    try:
        amount = Decimal(str(value or 0))
    except InvalidOperation:
        return f"{settings.currency} -"
    return f"{settings.currency} {amount:,.2f}"


def render_invoice_pdf(invoice: InvoiceResponse) -> bytes:
    """
    Render a persisted invoice as PDF using ReportLab Platypus.

    Reads only the stored snapshots: brand header, invoice summary, bill-to
    block, line items and the VAT breakdown.
    """
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=18 * mm,
        rightMargin=18 * mm,
        topMargin=16 * mm,
        bottomMargin=16 * mm,
        title=f"Invoice {invoice.invoice_number}",
        author=settings.brand_name,
    )
    muted = colors.HexColor("#6b7280")
    border = colors.HexColor("#e5e7eb")

    styles = getSampleStyleSheet()
    styles.add(
        ParagraphStyle(
            name="TitleBrand",
            parent=styles["Heading1"],
            fontName="Helvetica-Bold",
            fontSize=18,
            spaceAfter=6,
        )
    )
    styles.add(
        ParagraphStyle(
            name="Muted",
            parent=styles["Normal"],
            fontName="Helvetica",
            fontSize=9,
            textColor=muted,
        )
    )
    styles.add(
        ParagraphStyle(
            name="Strong",
            parent=styles["Normal"],
            fontName="Helvetica-Bold",
            fontSize=10,
        )
    )
    styles.add(
        ParagraphStyle(
            name="NormalSmall",
            parent=styles["Normal"],
            fontName="Helvetica",
            fontSize=10,
        )
    )
    muted_style = styles["Muted"]
    strong = styles["Strong"]
    small = styles["NormalSmall"]

    story = []

    # Header
    header_tbl = Table(
        [
            [
                Paragraph(f"<b>{settings.brand_name}</b>", styles["TitleBrand"]),
                Paragraph("Official Invoice", muted_style),
            ]
        ],
        colWidths=[doc.width * 0.7, doc.width * 0.3],
        hAlign="LEFT",
    )
    header_tbl.setStyle(
        TableStyle(
            [
                ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
                ("ALIGN", (1, 0), (1, 0), "RIGHT"),
            ]
        )
    )
    story.append(header_tbl)
    story.append(Spacer(1, 6))

    # Summary grid
    fin = invoice.financial_breakdown
    summary_tbl = Table(
        [
            [
                Paragraph("Invoice #", muted_style),
                Paragraph(invoice.invoice_number, strong),
                Paragraph("Date", muted_style),
                Paragraph(f"{invoice.created_at:%Y-%m-%d}", small),
            ],
            [
                Paragraph("Status", muted_style),
                Paragraph(invoice.status.value, small),
                Paragraph("Amount", muted_style),
                Paragraph(_money(fin.total_amount), strong),
            ],
        ],
        colWidths=[
            doc.width * 0.15,
            doc.width * 0.35,
            doc.width * 0.15,
            doc.width * 0.35,
        ],
    )
    summary_tbl.setStyle(
        TableStyle(
            [
                ("INNERGRID", (0, 0), (-1, -1), 0.25, border),
                ("BOX", (0, 0), (-1, -1), 0.25, border),
                ("BACKGROUND", (0, 0), (-1, -1), colors.whitesmoke),
                ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ]
        )
    )
    story.append(summary_tbl)
    story.append(Spacer(1, 8))

    # Bill to
    customer = invoice.customer_snapshot or {}
    address = customer.get("address") or {}
    bill_to = [
        customer.get("name") or "",
        customer.get("phone") or "",
        customer.get("email") or "",
        address.get("line") if isinstance(address, dict) else str(address),
    ]
    story.append(Paragraph("Bill To", muted_style))
    story.append(
        Paragraph("<br/>".join(escape(line) for line in bill_to if line), small)
    )
    story.append(Spacer(1, 8))

    # Line items
    items = invoice.items_snapshot or {}
    rows = [[Paragraph("Description", strong), Paragraph("Amount", strong)]]
    for s in items.get("services", []):
        label = f"Service: {s.get('name') or 'Service'}"
        if (s.get("quantity") or 1) > 1:
            label += f" (x{s['quantity']})"
        rows.append(
            [Paragraph(escape(label), small), Paragraph(_money(s.get("price")), small)]
        )
    for p in items.get("products", []):
        label = f"Product: {p.get('name') or 'Product'} (x{p.get('quantity') or 1})"
        rows.append(
            [Paragraph(escape(label), small), Paragraph(_money(p.get("price")), small)]
        )
    if len(rows) == 1:
        rows.append(
            [Paragraph("Booking", small), Paragraph(_money(fin.base_amount), small)]
        )
    items_tbl = Table(rows, colWidths=[doc.width * 0.65, doc.width * 0.35])
    items_tbl.setStyle(
        TableStyle(
            [
                ("BOX", (0, 0), (-1, -1), 0.25, border),
                ("INNERGRID", (0, 0), (-1, -1), 0.25, border),
                ("BACKGROUND", (0, 0), (-1, 0), colors.Color(0.95, 0.95, 0.97)),
                ("ALIGN", (1, 1), (1, -1), "RIGHT"),
            ]
        )
    )
    story.append(items_tbl)
    story.append(Spacer(1, 6))

    # Totals
    totals_tbl = Table(
        [
            [Paragraph("Subtotal", small), Paragraph(_money(fin.base_amount), small)],
            [Paragraph("VAT (16%)", small), Paragraph(_money(fin.vat_amount), small)],
            [
                Paragraph("Total Paid", strong),
                Paragraph(_money(fin.total_amount), strong),
            ],
        ],
        colWidths=[doc.width * 0.65, doc.width * 0.35],
    )
    totals_tbl.setStyle(
        TableStyle(
            [
                ("ALIGN", (1, 0), (1, -1), "RIGHT"),
                ("LINEABOVE", (0, -1), (-1, -1), 0.5, border),
            ]
        )
    )
    story.append(totals_tbl)
    story.append(Spacer(1, 18))
    story.append(
        Paragraph(f"Thank you for choosing {settings.brand_name}.", muted_style)
    )

    doc.build(story)
    return buffer.getvalue()
