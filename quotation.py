"""PDF proposal generator for battery storage quotes."""

import logging
from io import BytesIO
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import mm
from reportlab.platypus import (
    SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle, PageBreak
)
from reportlab.graphics.shapes import Drawing, String
from reportlab.graphics.charts.barcharts import VerticalBarChart

from constants import PROPERTY_TYPES, TERMS_AND_CONDITIONS
from models import Quote

logger = logging.getLogger(__name__)

PRIMARY = colors.HexColor('#3fc0eb')
PRIMARY_DARK = colors.HexColor('#1aa8d6')
SUCCESS = colors.HexColor('#22c55e')
SOLAR = colors.HexColor('#f59e0b')
DARK = colors.HexColor('#0f172a')
MUTED = colors.HexColor('#64748b')
LIGHT = colors.HexColor('#f1f5f9')
BORDER = colors.HexColor('#e2e8f0')

KIND_COLOURS = {
    "battery": PRIMARY,
    "inverter": SOLAR,
    "installation": SUCCESS,
    "other": MUTED,
}


def proposal_filename(quote: Quote) -> str:
    return f"{quote.reference}-Proposal.pdf"


def _money(value: float) -> str:
    return f"£{value:,.0f}"


def payback_label(payback_years: float) -> str:
    """Payback for display; 0 means the quote has no savings."""
    if payback_years <= 0:
        return "n/a"
    return f"{payback_years} Years"


def create_savings_chart(roi_projections: list) -> Drawing:
    """Bar chart of cumulative savings for each projection year."""

    drawing = Drawing(170*mm, 70*mm)

    chart = VerticalBarChart()
    chart.x = 20*mm
    chart.y = 12*mm
    chart.width = 140*mm
    chart.height = 45*mm

    cumulative = [p.cumulative_savings for p in roi_projections]
    chart.data = [cumulative or [0]]
    chart.categoryAxis.categoryNames = [f"Y{p.year}" for p in roi_projections] or ["Y1"]
    chart.categoryAxis.labels.fontSize = 7

    chart.valueAxis.valueMin = 0
    chart.valueAxis.valueMax = max(cumulative + [1]) * 1.1
    chart.valueAxis.labels.fontSize = 8
    chart.valueAxis.labelTextFormat = '£%d'

    chart.bars[0].fillColor = PRIMARY
    chart.bars[0].strokeColor = None
    chart.barSpacing = 2

    drawing.add(chart)

    final_total = cumulative[-1] if cumulative else 0
    title = String(chart.x, chart.y + chart.height + 8*mm,
                   f'Cumulative savings by Year {len(cumulative)}: {_money(final_total)}')
    title.fontSize = 9
    title.fontName = 'Helvetica-Bold'
    title.fillColor = SUCCESS
    drawing.add(title)

    return drawing


def _styles():
    styles = getSampleStyleSheet()

    styles.add(ParagraphStyle(
        name='CompanyName',
        parent=styles['Heading1'],
        fontSize=24,
        textColor=PRIMARY_DARK,
        spaceAfter=2*mm
    ))
    styles.add(ParagraphStyle(
        name='ProposalTitle',
        parent=styles['Heading1'],
        fontSize=26,
        textColor=DARK,
        alignment=TA_CENTER,
        spaceBefore=8*mm,
        spaceAfter=10*mm
    ))
    styles.add(ParagraphStyle(
        name='SectionHeader',
        parent=styles['Heading2'],
        fontSize=14,
        textColor=DARK,
        spaceBefore=8*mm,
        spaceAfter=4*mm
    ))
    styles.add(ParagraphStyle(
        name='BodyTextRight',
        parent=styles['Normal'],
        alignment=TA_RIGHT
    ))
    styles.add(ParagraphStyle(
        name='Muted',
        parent=styles['Normal'],
        fontSize=8,
        textColor=MUTED
    ))
    styles.add(ParagraphStyle(
        name='Footer',
        parent=styles['Normal'],
        fontSize=8,
        textColor=colors.grey,
        alignment=TA_CENTER
    ))
    return styles


def _info_table(rows, col_widths, background=LIGHT):
    table = Table(rows, colWidths=col_widths)
    table.setStyle(TableStyle([
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica'),
        ('FONTSIZE', (0, 0), (-1, 0), 8),
        ('TEXTCOLOR', (0, 0), (-1, 0), MUTED),
        ('FONTNAME', (0, 1), (-1, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 1), (-1, -1), 11),
        ('TEXTCOLOR', (0, 1), (-1, -1), DARK),
        ('BACKGROUND', (0, 0), (-1, -1), background),
        ('PADDING', (0, 0), (-1, -1), 6),
    ]))
    return table


def generate_proposal_pdf(quote: Quote, company_name: str) -> bytes:
    """Generate the customer-facing proposal PDF for a saved quote.

    Returns PDF as bytes.
    """

    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=20*mm,
        leftMargin=20*mm,
        topMargin=20*mm,
        bottomMargin=20*mm,
        title=f"{quote.reference} Battery Storage Proposal",
        author=company_name
    )
    styles = _styles()
    customer = quote.customer
    tariff = quote.tariff
    created = quote.created_at or quote.valid_until

    elements = []

    # --- Header ---
    header_table = Table([[
        Paragraph(f"<b>{escape(company_name)}</b>", styles['CompanyName']),
        Paragraph(f"<b>{quote.reference}</b>", styles['BodyTextRight']),
    ]], colWidths=[120*mm, 50*mm])
    header_table.setStyle(TableStyle([
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ('LINEBELOW', (0, 0), (-1, 0), 1, PRIMARY),
    ]))
    elements.append(header_table)

    elements.append(Paragraph("Battery Storage Proposal", styles['ProposalTitle']))

    # --- Prepared for / by ---
    prepared = [
        [Paragraph("PREPARED FOR", styles['Muted']), Paragraph("PREPARED BY", styles['Muted'])],
        [Paragraph(f"<b>{escape(customer.name)}</b>", styles['Normal']),
         Paragraph(f"<b>{escape(company_name)}</b>", styles['Normal'])],
        [customer.address, quote.installer_name],
        [customer.postcode, f"Date: {created.strftime('%d %B %Y')}"],
        [f"{customer.email}  •  {customer.phone}", f"Valid until: {quote.valid_until.strftime('%d %B %Y')}"],
    ]
    prepared_table = Table(prepared, colWidths=[85*mm, 85*mm])
    prepared_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, -1), LIGHT),
        ('LINEAFTER', (0, 0), (0, -1), 0.3, BORDER),
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ('PADDING', (0, 0), (-1, -1), 5),
    ]))
    elements.append(prepared_table)

    # --- Investment Summary ---
    elements.append(Paragraph("Investment Summary", styles['SectionHeader']))
    summary_table = Table([
        ["Total Investment", "Annual Savings", "Payback Period"],
        [_money(quote.total), _money(quote.annual_savings), payback_label(quote.payback_years)],
    ], colWidths=[56*mm, 56*mm, 56*mm])
    summary_table.setStyle(TableStyle([
        ('FONTSIZE', (0, 0), (-1, 0), 9),
        ('TEXTCOLOR', (0, 0), (-1, 0), MUTED),
        ('FONTNAME', (0, 1), (-1, 1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 1), (-1, 1), 18),
        ('LEADING', (0, 1), (-1, 1), 22),
        ('TEXTCOLOR', (0, 1), (0, 1), PRIMARY),
        ('TEXTCOLOR', (1, 1), (1, 1), SUCCESS),
        ('TEXTCOLOR', (2, 1), (2, 1), SOLAR),
        ('LINEABOVE', (0, 0), (0, 0), 3, PRIMARY),
        ('LINEABOVE', (1, 0), (1, 0), 3, SUCCESS),
        ('LINEABOVE', (2, 0), (2, 0), 3, SOLAR),
        ('BOX', (0, 0), (-1, -1), 0.5, BORDER),
        ('INNERGRID', (0, 0), (-1, -1), 0.25, BORDER),
        ('TOPPADDING', (0, 1), (-1, 1), 8),
        ('BOTTOMPADDING', (0, 1), (-1, 1), 10),
        ('PADDING', (0, 0), (-1, 0), 8),
    ]))
    elements.append(summary_table)

    # --- Property Details ---
    elements.append(Paragraph("Property Details", styles['SectionHeader']))
    solar = f"{customer.solar_capacity_kwp} kWp" if customer.existing_solar else "None"
    elements.append(_info_table([
        ["Property Type", "Annual Usage", "Existing Solar", "Electric Vehicle"],
        [PROPERTY_TYPES.get(customer.property_type, customer.property_type),
         f"{customer.annual_consumption_kwh:,.0f} kWh", solar, "Yes" if customer.has_ev else "No"],
    ], [42.5*mm] * 4))

    # --- Current Tariff ---
    elements.append(Paragraph("Current Tariff", styles['SectionHeader']))
    tariff_labels = ["Import Rate", "Export Rate", "Time of Use"]
    tariff_values = [
        f"£{tariff.import_rate:.2f}/kWh",
        f"£{tariff.export_rate:.2f}/kWh",
        "Yes" if tariff.has_time_of_use else "Standard",
    ]
    if tariff.has_time_of_use:
        tariff_labels.append("Off-Peak Rate")
        tariff_values.append(f"£{(tariff.off_peak_rate or 0):.2f}/kWh")
    elements.append(_info_table([tariff_labels, tariff_values], [170*mm / len(tariff_labels)] * len(tariff_labels)))

    # --- Products & Services ---
    elements.append(PageBreak())
    elements.append(Paragraph("Products & Services", styles['SectionHeader']))

    rows = [["Description", "Qty", "Unit Price", "Total"]]
    for item in quote.line_items:
        rows.append([item.description, str(item.quantity), _money(item.unit_price), _money(item.line_total)])

    items_table = Table(rows, colWidths=[95*mm, 15*mm, 30*mm, 30*mm])
    item_style = [
        ('BACKGROUND', (0, 0), (-1, 0), DARK),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 9),
        ('ALIGN', (1, 0), (-1, -1), 'RIGHT'),
        ('FONTNAME', (3, 1), (3, -1), 'Helvetica-Bold'),
        ('PADDING', (0, 0), (-1, -1), 5),
    ]
    for row, item in enumerate(quote.line_items, start=1):
        if row % 2 == 1:
            item_style.append(('BACKGROUND', (0, row), (-1, row), LIGHT))
        item_style.append(('LINEBEFORE', (0, row), (0, row), 3, KIND_COLOURS.get(item.kind.value, MUTED)))
    items_table.setStyle(TableStyle(item_style))
    elements.append(items_table)
    elements.append(Spacer(1, 6*mm))

    totals_table = Table([
        ["Subtotal", _money(quote.subtotal)],
        [f"VAT ({quote.vat_rate * 100:.0f}% - Battery Storage)", _money(quote.vat_amount)],
        ["TOTAL", _money(quote.total)],
    ], colWidths=[60*mm, 30*mm], hAlign='RIGHT')
    totals_table.setStyle(TableStyle([
        ('ALIGN', (1, 0), (1, -1), 'RIGHT'),
        ('TEXTCOLOR', (0, 1), (-1, 1), MUTED),
        ('FONTSIZE', (0, 1), (-1, 1), 8),
        ('BACKGROUND', (0, -1), (-1, -1), PRIMARY),
        ('TEXTCOLOR', (0, -1), (-1, -1), colors.white),
        ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, -1), (-1, -1), 12),
        ('PADDING', (0, 0), (-1, -1), 5),
    ]))
    elements.append(totals_table)
    elements.append(Spacer(1, 6*mm))

    deposit_table = Table([
        [Paragraph(f"<b>Deposit Required</b><br/>{_money(quote.deposit)}", styles['Normal']),
         Paragraph("Balance due upon completion", styles['BodyTextRight'])],
    ], colWidths=[85*mm, 85*mm])
    deposit_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, -1), LIGHT),
        ('BOX', (0, 0), (-1, -1), 0.75, PRIMARY),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ('PADDING', (0, 0), (-1, -1), 8),
    ]))
    elements.append(deposit_table)

    # --- 10-Year Projection ---
    elements.append(Paragraph(f"{len(quote.roi_projections)}-Year Savings Projection", styles['SectionHeader']))
    elements.append(create_savings_chart(quote.roi_projections))

    # --- Notes ---
    if quote.notes:
        elements.append(Paragraph("Notes", styles['SectionHeader']))
        elements.append(Paragraph(escape(quote.notes).replace("\n", "<br/>"), styles['Normal']))

    # --- Terms ---
    elements.append(Paragraph("Terms & Conditions", styles['SectionHeader']))
    validity_days = (quote.valid_until - created).days if quote.created_at else 30
    for term in TERMS_AND_CONDITIONS:
        elements.append(Paragraph(f"• {term.format(validity_days=validity_days)}", styles['Muted']))

    # --- Footer ---
    elements.append(Spacer(1, 12*mm))
    elements.append(Paragraph(f"{escape(company_name)} | {quote.reference} | Battery Storage Proposal", styles['Footer']))

    doc.build(elements)
    logger.info("Generated proposal PDF for %s", quote.reference)

    return buffer.getvalue()
