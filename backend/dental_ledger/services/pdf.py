from __future__ import annotations

from decimal import Decimal
from io import BytesIO
from typing import Iterable

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas
from reportlab.platypus import Table, TableStyle

from dental_ledger.core.settings import settings
from dental_ledger.models.invoice import Invoice, InvoiceStatus, Payment


def _format_money(amount: Decimal) -> str:
    return f"{amount:,.2f}"


def _draw_header(pdf: canvas.Canvas, title: str) -> None:
    pdf.setFont("Helvetica-Bold", 16)
    pdf.drawString(20 * mm, 280 * mm, settings.clinic_name)
    pdf.setFont("Helvetica", 10)
    y = 274 * mm
    for line in filter(None, (part.strip() for part in settings.clinic_address.split(","))):
        pdf.drawString(20 * mm, y, line)
        y -= 4 * mm
    pdf.setFont("Helvetica-Bold", 14)
    pdf.drawRightString(190 * mm, 280 * mm, title)
    pdf.setStrokeColor(colors.lightgrey)
    pdf.line(20 * mm, 258 * mm, 190 * mm, 258 * mm)


def _draw_patient_block(pdf: canvas.Canvas, invoice: Invoice) -> None:
    patient = invoice.patient
    pdf.setFont("Helvetica-Bold", 11)
    pdf.drawString(20 * mm, 245 * mm, "Billed to")
    pdf.setFont("Helvetica", 10)
    pdf.drawString(20 * mm, 240 * mm, patient.full_name)
    if patient.phone:
        pdf.drawString(20 * mm, 235 * mm, patient.phone)
    if patient.email:
        pdf.drawString(20 * mm, 230 * mm, patient.email)


def _draw_invoice_meta(pdf: canvas.Canvas, invoice: Invoice) -> None:
    pdf.setFont("Helvetica-Bold", 10)
    pdf.drawString(120 * mm, 245 * mm, f"Invoice: {invoice.invoice_number}")
    pdf.setFont("Helvetica", 10)
    issued = invoice.issued_date.isoformat() if invoice.issued_date else "not issued"
    pdf.drawString(120 * mm, 240 * mm, f"Issued: {issued}")
    if invoice.due_date:
        pdf.drawString(160 * mm, 240 * mm, f"Due: {invoice.due_date.isoformat()}")
    pdf.drawString(120 * mm, 235 * mm, f"Status: {invoice.status.value}")
    pdf.drawString(120 * mm, 230 * mm, f"Odontogram: {invoice.odontogram_id}")


def _draw_lines_table(pdf: canvas.Canvas, invoice: Invoice) -> None:
    data = [["Code", "Description", "Tooth", "Price"]]
    for line in invoice.lines:
        data.append(
            [
                line.treatment_code,
                line.description,
                "global" if line.is_global else str(line.tooth_number),
                _format_money(line.price),
            ]
        )
    table = Table(data, colWidths=[25 * mm, 90 * mm, 20 * mm, 25 * mm])
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#f0f0f0")),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("GRID", (0, 0), (-1, -1), 0.25, colors.lightgrey),
                ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
                ("ALIGN", (2, 1), (-1, -1), "RIGHT"),
            ]
        )
    )
    _, height = table.wrapOn(pdf, 170 * mm, 90 * mm)
    table.drawOn(pdf, 20 * mm, 215 * mm - height)


def _discount_label(invoice: Invoice) -> str:
    if invoice.discount_percentage is None:
        return "Discount"
    return f"Discount ({invoice.discount_percentage:.2f}%)"


def _draw_totals(pdf: canvas.Canvas, invoice: Invoice, y: float) -> None:
    rows = [
        ("Subtotal", invoice.subtotal),
        (_discount_label(invoice), invoice.discount),
        (f"Tax ({invoice.tax_rate * 100:.2f}%)", invoice.tax),
        ("Total", invoice.total),
    ]
    pdf.setFont("Helvetica-Bold", 10)
    for label, amount in rows:
        pdf.drawRightString(170 * mm, y, label)
        pdf.drawRightString(190 * mm, y, _format_money(amount))
        y -= 12
    pdf.setFont("Helvetica", 10)
    pdf.drawRightString(170 * mm, y - 4, "Paid")
    pdf.drawRightString(190 * mm, y - 4, _format_money(invoice.amount_paid))
    pdf.setFont("Helvetica-Bold", 11)
    pdf.drawRightString(170 * mm, y - 20, "Balance")
    pdf.drawRightString(190 * mm, y - 20, _format_money(invoice.balance))


def _draw_payments(pdf: canvas.Canvas, payments: Iterable[Payment], y: float) -> None:
    pdf.setFont("Helvetica-Bold", 10)
    pdf.drawString(20 * mm, y, "Payments")
    pdf.setFont("Helvetica", 9)
    y -= 10
    payments = list(payments)
    if not payments:
        pdf.drawString(20 * mm, y, "No payments recorded.")
        return
    for payment in payments:
        paid_at = payment.paid_at.strftime("%Y-%m-%d")
        line = f"{paid_at} | {_format_money(payment.amount)} | {payment.method.value}"
        if payment.reference:
            line = f"{line} | {payment.reference}"
        pdf.drawString(20 * mm, y, line)
        y -= 10


def _draw_cancelled_watermark(pdf: canvas.Canvas, reason: str | None) -> None:
    pdf.saveState()
    pdf.setFont("Helvetica-Bold", 60)
    pdf.setFillColor(colors.lightgrey)
    pdf.translate(105 * mm, 150 * mm)
    pdf.rotate(45)
    pdf.drawCentredString(0, 0, "CANCELLED")
    pdf.restoreState()
    if reason:
        pdf.setFont("Helvetica-Oblique", 9)
        pdf.drawString(20 * mm, 30 * mm, f"Cancellation reason: {reason}")


def build_invoice_pdf(invoice: Invoice) -> bytes:
    buffer = BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=A4)
    pdf.setTitle(invoice.invoice_number or "Invoice")
    _draw_header(pdf, "Invoice")
    _draw_patient_block(pdf, invoice)
    _draw_invoice_meta(pdf, invoice)
    _draw_lines_table(pdf, invoice)
    _draw_totals(pdf, invoice, 110 * mm)
    _draw_payments(pdf, invoice.payments, 70 * mm)
    if invoice.status == InvoiceStatus.cancelled:
        _draw_cancelled_watermark(pdf, invoice.cancellation_reason)
    pdf.showPage()
    pdf.save()
    return buffer.getvalue()
