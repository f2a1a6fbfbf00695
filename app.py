"""Battery Storage Quote Builder Streamlit Dashboard.

An installer-facing dashboard for pricing UK residential battery storage
quotes, projecting customer savings and exporting PDF proposals.
"""

import logging

import streamlit as st
import pandas as pd
import plotly.graph_objects as go

from constants import PROPERTY_TYPES, QUOTE_STATUS_LABELS, PROJECTION_YEARS
from equipment import default_catalogue
from exceptions import QuoteError, QuoteValidationError
from models import CustomerProfile, LineItemKind, QuoteStatus, TariffInfo
from quotation import generate_proposal_pdf, payback_label, proposal_filename
from quotes import (
    InMemoryQuoteStore,
    QuoteAuthoringSession,
    mark_sent,
    summarise_quotes,
)
from settings import get_settings

settings = get_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

st.set_page_config(
    page_title="Battery Storage Quote Builder",
    page_icon="🔋",
    layout="wide"
)

st.markdown("""
<style>
    [data-testid="stSidebar"] {
        background-color: #f1f5f9;
    }
    [data-testid="stSidebar"] .stMarkdown,
    [data-testid="stSidebar"] label,
    [data-testid="stSidebar"] p,
    [data-testid="stSidebar"] span {
        color: #0f172a !important;
        font-weight: 500 !important;
    }
    .quote-total {
        font-size: 1.4em;
        font-weight: bold;
        color: #1aa8d6;
    }
</style>
""", unsafe_allow_html=True)

# --- Session state ---
if "catalogue" not in st.session_state:
    st.session_state.catalogue = default_catalogue()
if "quote_store" not in st.session_state:
    st.session_state.quote_store = InMemoryQuoteStore()
if "authoring" not in st.session_state:
    st.session_state.authoring = QuoteAuthoringSession(
        st.session_state.catalogue,
        repository=st.session_state.quote_store,
    )

catalogue = st.session_state.catalogue
store = st.session_state.quote_store
authoring = st.session_state.authoring

# --- Sidebar: installer and recent quotes ---
st.sidebar.header("Installer")
company_name = st.sidebar.text_input("Company Name", value=settings.company_name)
installer_name = st.sidebar.text_input("Installer Name", value="Sam Taylor")
installer_id = "installer-1"
company_id = "company-1"

st.sidebar.header("Your Quotes")
stats = summarise_quotes(store.list(company_id=company_id))
col_s1, col_s2 = st.sidebar.columns(2)
with col_s1:
    st.metric("Total Quotes", stats["total_quotes"], help=f"{stats['draft_quotes']} drafts")
    st.metric("Pending", stats["pending_quotes"])
with col_s2:
    st.metric("Accepted", stats["accepted_quotes"])
    st.metric("Conversion", f"{stats['conversion_rate']:.1f}%")
if stats["total_quotes"]:
    st.sidebar.caption(f"Average quote value: £{stats['average_quote_value']:,.0f}")

st.title("🔋 Battery Storage Quote Builder")

tab_customer, tab_property, tab_tariff, tab_products, tab_pricing, tab_review = st.tabs([
    "Customer", "Property & Energy", "Tariff", "Products", "Pricing & ROI", "Review & Export"
])

with tab_customer:
    st.header("Customer Information")
    col_c1, col_c2 = st.columns(2)
    with col_c1:
        customer_name = st.text_input("Full Name", value=authoring.customer.name, placeholder="John Smith")
        customer_email = st.text_input("Email Address", value=authoring.customer.email, placeholder="john@example.com")
        customer_phone = st.text_input("Phone Number", value=authoring.customer.phone, placeholder="07700 900123")
    with col_c2:
        property_keys = list(PROPERTY_TYPES.keys())
        property_type = st.selectbox(
            "Property Type",
            property_keys,
            index=property_keys.index(authoring.customer.property_type),
            format_func=lambda key: PROPERTY_TYPES[key]
        )
        customer_address = st.text_input("Address", value=authoring.customer.address, placeholder="123 High Street, Bristol")
        customer_postcode = st.text_input("Postcode", value=authoring.customer.postcode, placeholder="BS1 4AB")

with tab_property:
    st.header("Property & Energy Details")
    col_p1, col_p2 = st.columns(2)
    with col_p1:
        annual_consumption = st.number_input(
            "Annual Electricity Consumption (kWh)",
            min_value=100, max_value=50000, value=int(authoring.customer.annual_consumption_kwh), step=100,
            help="Average UK household uses 3,500-4,500 kWh"
        )
    with col_p2:
        current_tariff = st.text_input(
            "Current Tariff Name", value=authoring.customer.current_tariff,
            placeholder="e.g., Octopus Go, British Gas Fixed"
        )

    st.subheader("☀️ Existing Solar")
    existing_solar = st.checkbox("Customer has existing solar panels", value=authoring.customer.existing_solar)
    solar_capacity = None
    if existing_solar:
        solar_capacity = st.number_input(
            "Solar System Size (kWp)", min_value=0.0, max_value=50.0,
            value=float(authoring.customer.solar_capacity_kwp or 4.0), step=0.1
        )

    st.subheader("🚗 Electric Vehicle")
    has_ev = st.checkbox("Customer has or plans to get an EV", value=authoring.customer.has_ev)
    ev_mileage = None
    if has_ev:
        ev_mileage = st.number_input(
            "Annual EV Mileage", min_value=0, max_value=50000,
            value=int(authoring.customer.ev_mileage_per_year or 8000), step=500
        )

authoring.set_customer(CustomerProfile(
    name=customer_name,
    email=customer_email,
    phone=customer_phone,
    address=customer_address,
    postcode=customer_postcode,
    property_type=property_type,
    annual_consumption_kwh=annual_consumption,
    current_tariff=current_tariff,
    existing_solar=existing_solar,
    solar_capacity_kwp=solar_capacity,
    has_ev=has_ev,
    ev_mileage_per_year=ev_mileage,
))

with tab_tariff:
    st.header("Tariff Details")
    col_t1, col_t2, col_t3 = st.columns(3)
    with col_t1:
        import_rate = st.number_input("Import Rate (£/kWh)", min_value=0.0, value=authoring.tariff.import_rate,
                                      step=0.01, format="%.2f")
    with col_t2:
        export_rate = st.number_input("Export Rate (£/kWh)", min_value=0.0, value=authoring.tariff.export_rate,
                                      step=0.01, format="%.2f")
    with col_t3:
        standing_charge = st.number_input("Standing Charge (£/day)", min_value=0.0,
                                          value=authoring.tariff.standing_charge, step=0.01, format="%.2f")

    has_time_of_use = st.checkbox("Time-of-use tariff (e.g. Octopus Go, Intelligent)",
                                  value=authoring.tariff.has_time_of_use)
    peak_rate = authoring.tariff.peak_rate
    off_peak_rate = authoring.tariff.off_peak_rate
    peak_start = authoring.tariff.peak_hours_start
    peak_end = authoring.tariff.peak_hours_end
    if has_time_of_use:
        col_t4, col_t5, col_t6, col_t7 = st.columns(4)
        with col_t4:
            peak_rate = st.number_input("Peak Rate (£/kWh)", min_value=0.0,
                                        value=peak_rate or settings.default_peak_rate, step=0.01, format="%.2f")
        with col_t5:
            off_peak_rate = st.number_input("Off-Peak Rate (£/kWh)", min_value=0.0,
                                            value=off_peak_rate or settings.default_off_peak_rate,
                                            step=0.01, format="%.2f")
        with col_t6:
            peak_start = st.text_input("Peak Start", value=peak_start or settings.default_peak_hours_start)
        with col_t7:
            peak_end = st.text_input("Peak End", value=peak_end or settings.default_peak_hours_end)

authoring.set_tariff(TariffInfo(
    import_rate=import_rate,
    export_rate=export_rate,
    standing_charge=standing_charge,
    has_time_of_use=has_time_of_use,
    peak_rate=peak_rate,
    off_peak_rate=off_peak_rate,
    peak_hours_start=peak_start,
    peak_hours_end=peak_end,
))

with tab_products:
    st.header("Products")

    col_add1, col_add2 = st.columns(2)
    with col_add1:
        st.subheader("Batteries")
        batteries = catalogue.active_batteries()
        battery_id = st.selectbox(
            "Battery",
            [b.id for b in batteries],
            format_func=lambda pid: next(
                f"{b.manufacturer_name} {b.model} • {b.capacity_kwh} kWh • £{b.rrp:,.0f}"
                for b in batteries if b.id == pid
            )
        )
        if st.button("Add Battery"):
            authoring.add_product(LineItemKind.BATTERY, battery_id)
            st.rerun()

    with col_add2:
        st.subheader("Inverters")
        inverters = catalogue.active_inverters()
        inverter_id = st.selectbox(
            "Inverter",
            [i.id for i in inverters],
            format_func=lambda pid: next(
                f"{i.manufacturer_name} {i.model} • {i.power_kw} kW • £{i.rrp:,.0f}"
                for i in inverters if i.id == pid
            )
        )
        if st.button("Add Inverter"):
            authoring.add_product(LineItemKind.INVERTER, inverter_id)
            st.rerun()

    with st.expander("Add a manual line (cabling, EPS switch, etc.)"):
        manual_desc = st.text_input("Description", value="")
        col_m1, col_m2, col_m3 = st.columns(3)
        with col_m1:
            manual_qty = st.number_input("Quantity", min_value=1, value=1, step=1)
        with col_m2:
            manual_price = st.number_input("Unit Price (£)", min_value=0.0, value=0.0, step=10.0)
        with col_m3:
            manual_cost = st.number_input("Unit Cost (£)", min_value=0.0, value=0.0, step=10.0)
        if st.button("Add Line") and manual_desc:
            authoring.add_manual_item(LineItemKind.OTHER, manual_desc, int(manual_qty), manual_price, manual_cost)
            st.rerun()

    st.subheader("Quote Lines")
    if not authoring.line_items:
        st.info("No products added yet.")
    for item in authoring.line_items:
        col_l1, col_l2, col_l3, col_l4 = st.columns([5, 2, 2, 1])
        with col_l1:
            st.markdown(f"**{item.description}**  \n{item.kind.value.title()}")
        with col_l2:
            qty = st.number_input("Qty", min_value=1, value=item.quantity, step=1, key=f"qty-{item.id}")
            if qty != item.quantity:
                authoring.update_line_item(item.id, quantity=int(qty))
                st.rerun()
        with col_l3:
            st.markdown(f"£{item.line_total:,.0f}")
        with col_l4:
            if st.button("🗑️", key=f"remove-{item.id}"):
                authoring.remove_line_item(item.id)
                st.rerun()

# Pricing is rebuilt from the current inputs on every rerun
pricing = authoring.pricing

with tab_pricing:
    st.header("Pricing & ROI")

    col_pr1, col_pr2 = st.columns(2)
    with col_pr1:
        installation_cost = st.number_input(
            "Installation Cost (£)", min_value=0.0, value=float(authoring.installation_cost), step=50.0
        )
        if installation_cost != authoring.installation_cost:
            authoring.set_installation_cost(installation_cost)
            st.rerun()

        st.markdown(f"**Products:** £{pricing.product_price:,.0f}")
        st.markdown(f"**Subtotal:** £{pricing.subtotal:,.0f}")
        st.markdown(f"**VAT ({pricing.vat_rate:.0%}):** £{pricing.vat_amount:,.0f}")
        st.markdown(f"<div class='quote-total'>Total: £{pricing.total:,.0f}</div>", unsafe_allow_html=True)
        st.caption(f"Margin: £{pricing.margin:,.0f} ({pricing.margin_percentage:.1f}%) • "
                   f"Deposit: £{pricing.deposit:,}")

    with col_pr2:
        col_m1, col_m2 = st.columns(2)
        with col_m1:
            st.metric("Annual Savings", f"£{pricing.annual_savings:,}")
        with col_m2:
            st.metric("Payback Period", payback_label(pricing.payback_years))

        st.markdown(f"**Load shifting:** £{pricing.load_shift_savings}/year")
        if pricing.export_revenue:
            st.markdown(f"**Solar self-consumption:** £{pricing.export_revenue}/year")
        if pricing.ev_tax_savings:
            st.markdown(f"**EV charging vs petrol:** £{pricing.ev_tax_savings}/year")
        st.caption(f"Battery capacity: {pricing.battery_capacity_kwh:g} kWh")

    st.subheader(f"{PROJECTION_YEARS}-Year Savings Projection")
    df_projection = pd.DataFrame([
        {
            "Year": p.year,
            "Savings (£)": p.savings,
            "Cumulative (£)": p.cumulative_savings,
            "Load Shift (£)": p.load_shift_savings,
            "Export (£)": p.export_revenue,
            "EV (£)": p.ev_tax_savings,
        }
        for p in pricing.roi_projections
    ])

    fig_projection = go.Figure()
    fig_projection.add_trace(go.Bar(
        x=df_projection["Year"], y=df_projection["Load Shift (£)"],
        name="Load Shift", marker_color="#3fc0eb"
    ))
    fig_projection.add_trace(go.Bar(
        x=df_projection["Year"], y=df_projection["Export (£)"],
        name="Solar Self-Consumption", marker_color="#f59e0b"
    ))
    fig_projection.add_trace(go.Scatter(
        x=df_projection["Year"], y=df_projection["Cumulative (£)"],
        name="Cumulative Savings", mode="lines+markers", line=dict(color="#22c55e", width=3), yaxis="y2"
    ))
    if pricing.total > 0:
        fig_projection.add_hline(
            y=pricing.total, line_dash="dash", line_color="gray", yref="y2",
            annotation_text="System cost"
        )
    fig_projection.update_layout(
        barmode="stack",
        xaxis_title="Year",
        yaxis=dict(title="Annual savings (£)"),
        yaxis2=dict(title="Cumulative (£)", overlaying="y", side="right"),
        height=420,
        legend=dict(orientation="h", y=-0.2)
    )
    st.plotly_chart(fig_projection, use_container_width=True)
    st.dataframe(df_projection, hide_index=True, use_container_width=True)

with tab_review:
    st.header("Review & Export")

    errors, warnings = authoring.validate()
    for message in errors:
        st.error(message)
    for message in warnings:
        st.warning(message)

    col_r1, col_r2 = st.columns(2)
    with col_r1:
        st.write(f"**Customer:** {authoring.customer.name or '—'}")
        st.write(f"**Address:** {authoring.customer.address} {authoring.customer.postcode}")
        st.write(f"**Battery:** {pricing.battery_capacity_kwh:g} kWh")
    with col_r2:
        st.write(f"**Total:** £{pricing.total:,.0f}")
        st.write(f"**Annual Savings:** £{pricing.annual_savings:,}/year")
        st.write(f"**Payback:** {payback_label(pricing.payback_years)}")

    notes = st.text_area("Notes (visible to customer)", value="")

    col_b1, col_b2 = st.columns(2)
    submit_status = None
    with col_b1:
        if st.button("Save as Draft"):
            submit_status = QuoteStatus.DRAFT
    with col_b2:
        if st.button("Send to Customer", type="primary"):
            submit_status = QuoteStatus.SENT

    if submit_status is not None:
        try:
            quote = authoring.submit(
                installer_id=installer_id,
                installer_name=installer_name,
                company_id=company_id,
                status=submit_status,
                notes=notes,
            )
        except QuoteValidationError as e:
            logger.info("Quote not saved: %s", e)
            for message in e.errors:
                st.error(message)
        else:
            st.success(f"Quote {quote.reference} saved ({QUOTE_STATUS_LABELS[quote.status.value]}).")
            st.session_state.authoring = QuoteAuthoringSession(catalogue, repository=store)

    st.markdown("---")
    st.subheader("Saved Quotes")
    saved = store.list(company_id=company_id)
    if not saved:
        st.info("No quotes saved yet.")
    for quote in saved:
        col_q1, col_q2, col_q3 = st.columns([4, 2, 2])
        with col_q1:
            st.markdown(f"**{quote.reference}** • {quote.customer.name} • "
                        f"{QUOTE_STATUS_LABELS[quote.status.value]}")
            st.caption(f"£{quote.total:,.0f} • £{quote.annual_savings:,}/year • {quote.payback_years} year payback")
        with col_q2:
            st.download_button(
                label="Download PDF",
                data=generate_proposal_pdf(quote, company_name),
                file_name=proposal_filename(quote),
                mime="application/pdf",
                key=f"pdf-{quote.id}"
            )
        with col_q3:
            if quote.status == QuoteStatus.DRAFT and st.button("Mark Sent", key=f"send-{quote.id}"):
                try:
                    store.update(quote.id, **mark_sent(quote).model_dump(include={"status", "sent_at"}))
                except QuoteError as e:
                    st.error(str(e))
                else:
                    st.rerun()
