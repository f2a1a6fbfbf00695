from datetime import datetime, timezone

import pytest

from models import LineItemKind, QuoteStatus
from quotation import create_savings_chart, generate_proposal_pdf, payback_label, proposal_filename
from quotes import QuoteAuthoringSession


@pytest.fixture
def quote(catalogue, customer, tou_tariff):
    session = QuoteAuthoringSession(catalogue, customer=customer, tariff=tou_tariff, installation_cost=1200)
    session.add_product(LineItemKind.BATTERY, "bat-test-10")
    session.add_product(LineItemKind.INVERTER, "inv-test-3")
    return session.submit(
        installer_id="installer-1",
        installer_name="Sam Taylor",
        company_id="company-1",
        status=QuoteStatus.SENT,
        notes="Battery to go in the garage <near the consumer unit> & meter",
        now=datetime(2026, 5, 1, tzinfo=timezone.utc),
    )


def test_filename(quote):
    assert proposal_filename(quote) == f"{quote.reference}-Proposal.pdf"


def test_generates_pdf(quote):
    pdf = generate_proposal_pdf(quote, "Bright Homes Energy")

    assert pdf.startswith(b"%PDF")
    assert len(pdf) > 1000


def test_empty_quote_still_renders(catalogue, customer, flat_tariff):
    session = QuoteAuthoringSession(catalogue, customer=customer, tariff=flat_tariff, installation_cost=0)
    session.add_manual_item(LineItemKind.BATTERY, "Customer-supplied battery")
    quote = session.submit(installer_id="i", installer_name="Sam", company_id="c")

    assert quote.annual_savings == 0
    assert generate_proposal_pdf(quote, "Bright Homes Energy").startswith(b"%PDF")


def test_savings_chart_has_a_bar_per_year(quote):
    drawing = create_savings_chart(quote.roi_projections)
    chart = drawing.contents[0]
    assert len(chart.data[0]) == 10


def test_payback_label():
    assert payback_label(17.6) == "17.6 Years"
    assert payback_label(0.0) == "n/a"
