"""
PDF export for quotes.

WHAT: Renders a quote as a client-ready PDF using ReportLab.

WHY: Contractors email quotes as PDFs and clients print them for sign-off.
The document shows the client view only: sell prices (markup folded in),
never cost or markup.

HOW: ReportLab platypus flowables built on demand (nothing stored):
- Header with company branding from settings
- Client/site block and key dates
- Line items table (optional items flagged)
- Totals block (subtotal, discount, GST, total)
- Terms, warranty, payment terms and an acceptance block
"""

import io
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, List, Optional, Tuple
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from quote_engine.core.config import settings
from quote_engine.core.exceptions import ExportError
from quote_engine.models.quote import Quote, QuoteStatus
from quote_engine.schemas.quote import ClientInfo, ProjectData, QuoteSettings
from quote_engine.services.line_items import load_line_items
from quote_engine.services.pricing import sell_unit_price

logger = logging.getLogger(__name__)


@dataclass
class CompanyInfo:
    """Company branding printed on every quote."""

    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    abn: Optional[str] = None

    @classmethod
    def from_settings(cls) -> "CompanyInfo":
        return cls(
            name=settings.COMPANY_NAME,
            address=settings.COMPANY_ADDRESS,
            phone=settings.COMPANY_PHONE,
            email=settings.COMPANY_EMAIL,
            abn=settings.COMPANY_ABN,
        )


STATUS_COLORS = {
    QuoteStatus.SENT: "#3182ce",
    QuoteStatus.VIEWED: "#805ad5",
    QuoteStatus.ACCEPTED: "#38a169",
    QuoteStatus.REJECTED: "#e53e3e",
    QuoteStatus.EXPIRED: "#718096",
}


def get_styles():
    """Paragraph styles used by the quote document."""
    styles = getSampleStyleSheet()

    styles.add(ParagraphStyle(
        name="CompanyTitle",
        parent=styles["Heading1"],
        fontSize=22,
        spaceAfter=12,
        textColor=colors.HexColor("#1a365d"),
    ))
    styles.add(ParagraphStyle(
        name="QuoteSection",
        parent=styles["Heading2"],
        fontSize=13,
        spaceBefore=12,
        spaceAfter=8,
        textColor=colors.HexColor("#2d3748"),
    ))
    styles.add(ParagraphStyle(
        name="QuoteBody",
        parent=styles["Normal"],
        fontSize=10,
        spaceBefore=3,
        spaceAfter=3,
    ))
    styles.add(ParagraphStyle(
        name="QuoteSmall",
        parent=styles["Normal"],
        fontSize=8,
        textColor=colors.HexColor("#718096"),
    ))
    styles.add(ParagraphStyle(
        name="QuoteRight",
        parent=styles["Normal"],
        fontSize=10,
        alignment=TA_RIGHT,
    ))
    return styles


def format_currency(amount: Any) -> str:
    """Format an amount as dollars and cents, e.g. "$1,234.56" ("-$50.00" for credits)."""
    if amount is None:
        return "$0.00"
    value = float(amount)
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def format_date(d: Any) -> str:
    """Format a date as "15 January 2026"."""
    if d is None:
        return ""
    if isinstance(d, datetime):
        d = d.date()
    if isinstance(d, date):
        return d.strftime("%d %B %Y").lstrip("0")
    return str(d)


def format_quantity(quantity: Any) -> str:
    text = f"{quantity:f}" if hasattr(quantity, "as_tuple") else str(quantity)
    return text.rstrip("0").rstrip(".") if "." in text else text


class QuotePDFService:
    """
    Renders quotes to PDF.

    Usage:
        pdf_bytes = get_pdf_service().generate_quote_pdf(quote)
    """

    def __init__(self, company_info: Optional[CompanyInfo] = None):
        self.company = company_info or CompanyInfo.from_settings()
        self.styles = get_styles()

    def _text(self, value: Optional[str], style: str = "QuoteBody") -> Paragraph:
        return Paragraph(escape(value or "").replace("\n", "<br/>"), self.styles[style])

    def _build_header(self, quote: Quote) -> List:
        elements = [Paragraph(escape(self.company.name), self.styles["CompanyTitle"])]

        contact = [
            value for value in (
                self.company.address,
                self.company.phone,
                self.company.email,
                f"ABN {self.company.abn}" if self.company.abn else None,
            ) if value
        ]
        if contact:
            elements.append(self._text(" | ".join(contact), "QuoteSmall"))
        elements.append(Spacer(1, 16))

        header_table = Table([["QUOTE", quote.quote_number]], colWidths=[3 * inch, 4 * inch])
        header_table.setStyle(TableStyle([
            ("FONTNAME", (0, 0), (0, 0), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (0, 0), 18),
            ("TEXTCOLOR", (0, 0), (0, 0), colors.HexColor("#2563eb")),
            ("FONTSIZE", (1, 0), (1, 0), 12),
            ("ALIGN", (1, 0), (1, 0), "RIGHT"),
            ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ]))
        elements.append(header_table)

        status = QuoteStatus(quote.status)
        if status in STATUS_COLORS:
            elements.append(Paragraph(
                f"<font color='{STATUS_COLORS[status]}'><b>STATUS: {status.value.upper()}</b></font>",
                self.styles["QuoteBody"],
            ))
        elements.append(Spacer(1, 12))
        return elements

    def _build_client_block(self, quote: Quote) -> List:
        client = ClientInfo.model_validate(quote.client_info or {})
        project = ProjectData.model_validate(quote.project_data or {})

        left = [Paragraph("<b>Prepared For:</b>", self.styles["QuoteBody"])]
        for line in (client.company, client.name, client.contact_person, client.address, client.email, client.phone):
            if line:
                left.append(self._text(line))
        if client.abn:
            left.append(self._text(f"ABN {client.abn}"))

        dates: List[Tuple[str, str]] = [
            ("Date", format_date(quote.created_at)),
            ("Valid Until", format_date(quote.valid_until)),
        ]
        if project.site_address:
            dates.append(("Site", project.site_address))
        if project.estimated_install_date:
            dates.append(("Est. Install", format_date(project.estimated_install_date)))

        right = [
            Paragraph(f"<b>{label}:</b> {escape(value)}", self.styles["QuoteRight"])
            for label, value in dates
        ]

        table = Table([[left, right]], colWidths=[3.5 * inch, 3.5 * inch])
        table.setStyle(TableStyle([("VALIGN", (0, 0), (-1, -1), "TOP")]))
        return [table, Spacer(1, 16)]

    def _build_line_items_table(self, quote: Quote) -> Table:
        data = [["Item", "Qty", "Unit", "Unit Price", "Amount"]]
        for item in load_line_items(quote.line_items):
            name = escape(item.name)
            if item.is_optional:
                name += " <i>(optional)</i>"
            if item.description:
                name += f"<br/><font size='8' color='#718096'>{escape(item.description)}</font>"
            data.append([
                Paragraph(name, self.styles["QuoteBody"]),
                format_quantity(item.quantity),
                item.unit.value.replace("_", " "),
                format_currency(sell_unit_price(item)),
                format_currency(item.line_total),
            ])

        table = Table(
            data,
            colWidths=[3.2 * inch, 0.6 * inch, 0.8 * inch, 1.1 * inch, 1.3 * inch],
            repeatRows=1,
        )
        table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#f7fafc")),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, -1), 9),
            ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
            ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#e2e8f0")),
            ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#f7fafc")]),
        ]))
        return table

    def _build_totals_table(self, quote: Quote) -> Table:
        data = [["Subtotal", format_currency(quote.subtotal)]]
        if quote.discount_amount and quote.discount_amount > 0:
            data.append(["Discount", f"-{format_currency(quote.discount_amount)}"])
        data.append([f"GST ({format_quantity(quote.tax_rate)}%)", format_currency(quote.tax_amount)])
        data.append([f"Total ({settings.CURRENCY} inc. GST)", format_currency(quote.total)])

        table = Table(data, colWidths=[2 * inch, 1.3 * inch])
        last = len(data) - 1
        table.setStyle(TableStyle([
            ("ALIGN", (0, 0), (-1, -1), "RIGHT"),
            ("FONTSIZE", (0, 0), (-1, -1), 10),
            ("FONTNAME", (0, last), (-1, last), "Helvetica-Bold"),
            ("TEXTCOLOR", (0, last), (-1, last), colors.HexColor("#1a365d")),
            ("LINEABOVE", (0, last), (-1, last), 1, colors.HexColor("#2d3748")),
        ]))

        layout = Table([["", table]], colWidths=[3.7 * inch, 3.3 * inch])
        layout.setStyle(TableStyle([("VALIGN", (0, 0), (-1, -1), "TOP")]))
        return layout

    def _build_terms(self, quote: Quote) -> List:
        quote_settings = QuoteSettings.model_validate(quote.settings or {})
        sections = [
            ("Notes", quote_settings.notes),
            ("Payment Terms", quote_settings.payment_terms),
            ("Warranty", quote_settings.warranty),
            ("Delivery", quote_settings.delivery_terms),
            ("Terms & Conditions", quote_settings.terms),
        ]
        elements = []
        for title, body in sections:
            if body:
                elements.append(Paragraph(f"<b>{title}</b>", self.styles["QuoteSection"]))
                elements.append(self._text(body))
        return elements

    def _build_acceptance(self) -> List:
        signature = Table(
            [["_" * 40, "_" * 20], ["Signature", "Date"], ["", ""], ["_" * 40, ""], ["Printed Name", ""]],
            colWidths=[3 * inch, 2 * inch],
        )
        signature.setStyle(TableStyle([
            ("FONTSIZE", (0, 0), (-1, -1), 9),
            ("ALIGN", (0, 0), (-1, -1), "LEFT"),
        ]))
        return [
            Spacer(1, 24),
            Paragraph("<b>Acceptance</b>", self.styles["QuoteSection"]),
            self._text("By signing below, you accept this quote and authorise the work to begin."),
            Spacer(1, 16),
            signature,
        ]

    def generate_quote_pdf(self, quote: Quote) -> bytes:
        """
        Render a quote to PDF.

        Args:
            quote: Quote to render

        Returns:
            PDF file as bytes

        Raises:
            ExportError: If ReportLab fails to build the document
        """
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            rightMargin=0.6 * inch,
            leftMargin=0.6 * inch,
            topMargin=0.6 * inch,
            bottomMargin=0.6 * inch,
            title=f"Quote {quote.quote_number}",
        )

        elements = self._build_header(quote)
        elements.append(self._text(quote.title, "QuoteSection"))
        elements.extend(self._build_client_block(quote))
        if quote.description:
            elements.append(self._text(quote.description))
            elements.append(Spacer(1, 10))
        if quote.line_items:
            elements.append(self._build_line_items_table(quote))
            elements.append(Spacer(1, 14))
        elements.append(self._build_totals_table(quote))
        elements.extend(self._build_terms(quote))
        if not quote.is_terminal:
            elements.extend(self._build_acceptance())

        try:
            doc.build(elements)
        except Exception as e:
            logger.error(f"Failed to render quote {quote.quote_number}: {e}")
            raise ExportError(quote_id=quote.id) from e

        pdf_bytes = buffer.getvalue()
        buffer.close()
        logger.info(f"Generated quote PDF: {quote.quote_number}")
        return pdf_bytes


_pdf_service: Optional[QuotePDFService] = None


def get_pdf_service() -> QuotePDFService:
    """Get or create the global PDF service instance."""
    global _pdf_service
    if _pdf_service is None:
        _pdf_service = QuotePDFService()
    return _pdf_service
