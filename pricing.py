"""Quote pricing and battery ROI calculations.

Everything here is a pure function of its arguments. Degenerate inputs
(no battery, no savings, missing tariff or profile fields) resolve to
zero-valued outputs rather than exceptions.
"""

from __future__ import annotations

import logging
import math
from typing import Iterable, Optional, Protocol

from constants import (
    ANNUAL_INFLATION,
    DAILY_CYCLES,
    DAYS_PER_YEAR,
    DEPOSIT_FRACTION,
    EV_EFFICIENCY_KWH_PER_MILE,
    FLAT_DISPLACED_FRACTION,
    FLAT_USABLE_FRACTION,
    INSTALLATION_COST_FRACTION,
    PETROL_COST_PER_MILE,
    PROJECTION_YEARS,
    ROUND_TRIP_EFFICIENCY,
    SELF_CONSUMED_FRACTION,
    STORED_EXPORT_FRACTION,
    UK_SPECIFIC_YIELD_KWH_PER_KWP,
    USABLE_DEPTH_OF_DISCHARGE,
    VAT_RATE,
)
from models import (
    CustomerProfile,
    LineItemKind,
    PricedQuote,
    QuoteLineItem,
    ROIProjectionPoint,
    TariffInfo,
)

logger = logging.getLogger(__name__)


class BatteryCapacityLookup(Protocol):
    def resolve_battery_capacity(self, product_id: str) -> Optional[float]:
        ...


def round_currency(value: float) -> int:
    """Round half up to the nearest whole pound (2.5 -> 3, -2.5 -> -2)."""
    return int(math.floor(value + 0.5))


def round_years(value: float) -> float:
    """Round half up to one decimal place."""
    return math.floor(value * 10 + 0.5) / 10


def time_of_use_rates(tariff: TariffInfo) -> Optional[tuple[float, float]]:
    """Return (peak, off_peak) when the tariff can be priced as time-of-use.

    A time-of-use tariff missing either rate is priced as a flat tariff.
    """
    if not tariff.has_time_of_use:
        return None
    if tariff.peak_rate is None or tariff.off_peak_rate is None:
        return None
    return tariff.peak_rate, tariff.off_peak_rate


def validate_tariff(tariff: TariffInfo) -> tuple[list, list]:
    """Check a tariff is internally consistent.

    Returns:
        (errors, warnings) lists of human-readable messages
    """
    errors = []
    warnings = []

    if tariff.has_time_of_use:
        if tariff.peak_rate is None or tariff.off_peak_rate is None:
            warnings.append(
                "Time-of-use tariff is missing peak or off-peak rate; "
                "savings use the standard import rate instead"
            )
        elif tariff.peak_rate < tariff.off_peak_rate:
            warnings.append(
                "Peak rate is below off-peak rate, load shifting will lose money"
            )

        for label, value in (("Peak start", tariff.peak_hours_start),
                             ("Peak end", tariff.peak_hours_end)):
            if not TariffInfo.is_valid_time_of_day(value):
                errors.append(f"{label} time '{value}' must be in HH:MM format")

    if tariff.export_rate > tariff.import_rate:
        warnings.append(
            "Export rate exceeds import rate; storing solar is worth less than exporting it"
        )

    return errors, warnings


def calculate_line_item_totals(line_items: Iterable[QuoteLineItem], installation_cost: float) -> dict:
    """Sum product cost and price, with installation tracked separately.

    Installation lines in the list are skipped so the separately entered
    installation cost is never counted twice.
    """
    product_cost = 0.0
    product_price = 0.0

    for item in line_items:
        if item.kind == LineItemKind.INSTALLATION:
            continue
        product_cost += item.cost_price * item.quantity
        product_price += item.unit_price * item.quantity

    return {
        "product_cost": product_cost,
        "product_price": product_price,
        "installation_cost": installation_cost,
        "subtotal": product_price + installation_cost,
    }


def calculate_battery_capacity(line_items: Iterable[QuoteLineItem], catalogue: BatteryCapacityLookup) -> float:
    """Total rated battery capacity (kWh) across battery lines.

    Lines whose product can't be found contribute nothing.
    """
    capacity = 0.0
    for item in line_items:
        if item.kind != LineItemKind.BATTERY:
            continue
        unit_capacity = None
        if item.product_id:
            unit_capacity = catalogue.resolve_battery_capacity(item.product_id)
        if unit_capacity is None:
            logger.debug("Battery line %s (%s) has no catalogue capacity, counting 0 kWh",
                         item.id, item.product_id)
            continue
        capacity += unit_capacity * item.quantity
    return capacity


def calculate_load_shift_savings(battery_kwh: float, tariff: TariffInfo) -> float:
    rates = time_of_use_rates(tariff)
    if rates:
        peak_rate, off_peak_rate = rates
        usable_capacity = battery_kwh * USABLE_DEPTH_OF_DISCHARGE
        rate_delta = peak_rate - off_peak_rate
        return usable_capacity * DAILY_CYCLES * DAYS_PER_YEAR * rate_delta * ROUND_TRIP_EFFICIENCY

    # Flat tariff: stored solar/cheap energy displaces half a day's import
    return battery_kwh * FLAT_USABLE_FRACTION * DAYS_PER_YEAR * tariff.import_rate * FLAT_DISPLACED_FRACTION


def calculate_export_revenue(battery_kwh: float, tariff: TariffInfo, customer: CustomerProfile) -> float:
    """Value of self-consuming battery-stored solar instead of exporting it."""
    if not customer.existing_solar or not customer.solar_capacity_kwp:
        return 0.0

    annual_generation = customer.solar_capacity_kwp * UK_SPECIFIC_YIELD_KWH_PER_KWP
    battery_stored_export = min(
        annual_generation * STORED_EXPORT_FRACTION,
        battery_kwh * DAYS_PER_YEAR,
    )
    self_consumed_increase = battery_stored_export * SELF_CONSUMED_FRACTION
    return self_consumed_increase * (tariff.import_rate - tariff.export_rate)


def calculate_ev_savings(tariff: TariffInfo, customer: CustomerProfile) -> float:
    """Fuel saving from charging an EV at home instead of running on petrol."""
    if not customer.has_ev or not customer.ev_mileage_per_year:
        return 0.0

    rates = time_of_use_rates(tariff)
    charging_rate = rates[1] if rates else tariff.import_rate
    ev_cost_per_mile = EV_EFFICIENCY_KWH_PER_MILE * charging_rate
    return customer.ev_mileage_per_year * (PETROL_COST_PER_MILE - ev_cost_per_mile)


def calculate_annual_savings(battery_kwh: float, tariff: TariffInfo, customer: CustomerProfile) -> dict:
    """Year 1 savings split into load shifting, export revenue and EV fuel.

    Values are unrounded. Without a battery every component is zero.
    """
    if battery_kwh <= 0:
        return {
            "load_shift_savings": 0.0,
            "export_revenue": 0.0,
            "ev_tax_savings": 0.0,
            "annual_savings": 0.0,
        }

    load_shift = calculate_load_shift_savings(battery_kwh, tariff)
    export_revenue = calculate_export_revenue(battery_kwh, tariff, customer)
    ev_savings = calculate_ev_savings(tariff, customer)

    return {
        "load_shift_savings": load_shift,
        "export_revenue": export_revenue,
        "ev_tax_savings": ev_savings,
        "annual_savings": load_shift + export_revenue + ev_savings,
    }


def calculate_payback_years(total: float, annual_savings: float) -> float:
    """Simple payback in years to one decimal place, 0 when there are no savings."""
    if annual_savings <= 0:
        return 0.0
    return round_years(total / annual_savings)


def calculate_roi_projections(
    load_shift_savings: float,
    export_revenue: float,
    ev_tax_savings: float,
    years: int = PROJECTION_YEARS,
    inflation: float = ANNUAL_INFLATION
) -> list:
    """Inflation-adjusted savings for each year of the projection.

    EV savings are reported per year but are not part of ``savings`` or
    ``cumulative_savings``. Cumulative savings are the year's inflated
    savings multiplied by the year number, not a running total.
    """
    base = load_shift_savings + export_revenue
    projections = []

    for year in range(1, years + 1):
        inflation_factor = (1 + inflation) ** (year - 1)
        projections.append(ROIProjectionPoint(
            year=year,
            savings=round_currency(base * inflation_factor),
            cumulative_savings=round_currency(base * inflation_factor * year),
            ev_tax_savings=round_currency(ev_tax_savings * inflation_factor),
            export_revenue=round_currency(export_revenue * inflation_factor),
            load_shift_savings=round_currency(load_shift_savings * inflation_factor),
        ))

    return projections


def calculate_quote_summary(totals: dict) -> dict:
    """VAT, total, margin and deposit from the line item totals."""
    subtotal = totals["subtotal"]
    vat_amount = subtotal * VAT_RATE
    total = subtotal + vat_amount
    total_cost = totals["product_cost"] + totals["installation_cost"] * INSTALLATION_COST_FRACTION
    margin = total - total_cost
    margin_percentage = (margin / total) * 100 if total > 0 else 0

    return {
        "vat_rate": VAT_RATE,
        "vat_amount": vat_amount,
        "total": total,
        "total_cost": total_cost,
        "margin": margin,
        "margin_percentage": margin_percentage,
        "deposit": round_currency(total * DEPOSIT_FRACTION),
    }


def compute_quote_pricing(
    line_items: list,
    installation_cost: float,
    tariff: TariffInfo,
    customer: CustomerProfile,
    catalogue: BatteryCapacityLookup
) -> PricedQuote:
    """Price a quote and project the customer's savings.

    Args:
        line_items: QuoteLineItem records selected for the quote
        installation_cost: Installation price entered separately (£)
        tariff: Customer's current electricity tariff
        customer: Customer energy profile (solar, EV, consumption)
        catalogue: Anything that resolves a battery product id to kWh

    Returns:
        A new PricedQuote. Inputs are never modified.
    """
    totals = calculate_line_item_totals(line_items, installation_cost)
    summary = calculate_quote_summary(totals)

    battery_kwh = calculate_battery_capacity(line_items, catalogue)
    savings = calculate_annual_savings(battery_kwh, tariff, customer)

    projections = calculate_roi_projections(
        savings["load_shift_savings"],
        savings["export_revenue"],
        savings["ev_tax_savings"],
    )

    return PricedQuote(
        product_cost=totals["product_cost"],
        product_price=totals["product_price"],
        installation_cost=installation_cost,
        subtotal=totals["subtotal"],
        vat_rate=summary["vat_rate"],
        vat_amount=summary["vat_amount"],
        total=summary["total"],
        total_cost=summary["total_cost"],
        margin=summary["margin"],
        margin_percentage=summary["margin_percentage"],
        deposit=summary["deposit"],
        battery_capacity_kwh=battery_kwh,
        load_shift_savings=round_currency(savings["load_shift_savings"]),
        export_revenue=round_currency(savings["export_revenue"]),
        ev_tax_savings=round_currency(savings["ev_tax_savings"]),
        annual_savings=round_currency(savings["annual_savings"]),
        payback_years=calculate_payback_years(summary["total"], savings["annual_savings"]),
        roi_projections=tuple(projections),
    )
